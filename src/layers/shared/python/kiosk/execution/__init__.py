"""Execution infrastructure for fault-tolerant service calls.

This module provides the components for reliable notification delivery:
- RetryPolicy: Exponential backoff for transient errors
- CircuitBreaker: Stops calling services that keep failing
- ServiceRecovery: Per-service breaker and retry settings
- classify_error: Maps failures to user-facing error categories
"""

from kiosk.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
)
from kiosk.execution.error_classifier import (
    ErrorClassification,
    ErrorSeverity,
    ErrorType,
    UserFriendlyError,
    classify_error,
    create_user_friendly_error,
)
from kiosk.execution.retry_policy import (
    RetryConfig,
    RetryMetrics,
    RetryPolicy,
    default_retry_condition,
    fetch_with_retry,
)
from kiosk.execution.service_recovery import (
    CHAT_SERVICE,
    EMAIL_SERVICE,
    MONDAY_SERVICE,
    SERVICE_RETRY_CONFIGS,
    ServiceRecovery,
)

__all__ = [
    # Circuit breaker
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    # Error classifier
    "ErrorClassification",
    "ErrorSeverity",
    "ErrorType",
    "UserFriendlyError",
    "classify_error",
    "create_user_friendly_error",
    # Retry policy
    "RetryConfig",
    "RetryMetrics",
    "RetryPolicy",
    "default_retry_condition",
    "fetch_with_retry",
    # Service recovery
    "CHAT_SERVICE",
    "EMAIL_SERVICE",
    "MONDAY_SERVICE",
    "SERVICE_RETRY_CONFIGS",
    "ServiceRecovery",
]

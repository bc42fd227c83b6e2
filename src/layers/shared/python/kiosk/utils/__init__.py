"""Utility functions and helpers."""

from kiosk.utils.responses import (
    classified_error,
    error,
    from_exception,
    method_not_allowed,
    not_found,
    pipeline_result,
    success,
    validation_error,
)
from kiosk.utils.exceptions import (
    KioskError,
    ExternalServiceError,
    FileValidationError,
    HttpStatusError,
    NetworkError,
    NotFoundError,
    OperationTimeoutError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
)

__all__ = [
    # Response helpers
    "classified_error",
    "error",
    "from_exception",
    "method_not_allowed",
    "not_found",
    "pipeline_result",
    "success",
    "validation_error",
    # Exceptions
    "KioskError",
    "ExternalServiceError",
    "FileValidationError",
    "HttpStatusError",
    "NetworkError",
    "NotFoundError",
    "OperationTimeoutError",
    "RateLimitError",
    "UnauthorizedError",
    "ValidationError",
]

"""Classify failures into user-facing error categories."""

from enum import Enum

from pydantic import BaseModel, Field
from ulid import ULID

from kiosk.models.base import utc_now


class ErrorType(str, Enum):
    """Error categories."""

    NETWORK = "network"
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    SERVICE = "service"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Error severities."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorClassification(BaseModel):
    """Category, severity and messages for a failure."""

    type: ErrorType
    severity: ErrorSeverity
    user_message: str
    technical_message: str
    recoverable: bool


class UserFriendlyError(ErrorClassification):
    """Classification plus correlation fields for logs and the UI."""

    error_id: str = Field(default_factory=lambda: str(ULID()))
    timestamp: str = Field(default_factory=lambda: utc_now().isoformat())
    can_retry: bool = True


# Checked in order; the first matching rule wins
_RULES: list[tuple[tuple[str, ...], ErrorType, ErrorSeverity, str, bool]] = [
    (
        ("fetch", "network", "timeout"),
        ErrorType.NETWORK,
        ErrorSeverity.MEDIUM,
        "Connection issue detected. Please check your internet connection and try again.",
        True,
    ),
    (
        ("unauthorized", "authentication", "403"),
        ErrorType.AUTHENTICATION,
        ErrorSeverity.HIGH,
        "Authentication failed. Please refresh the page and try again.",
        False,
    ),
    (
        ("validation", "invalid", "400"),
        ErrorType.VALIDATION,
        ErrorSeverity.LOW,
        "Please check your input and try again.",
        True,
    ),
    (
        ("500", "502", "503"),
        ErrorType.SERVICE,
        ErrorSeverity.HIGH,
        "Our services are temporarily unavailable. Please try again in a few minutes.",
        True,
    ),
]

_UNKNOWN_MESSAGE = "An unexpected error occurred. Please try again."


def classify_error(error: BaseException | str) -> ErrorClassification:
    """Map an error to a category by case-insensitive substring matching.

    Args:
        error: The exception or its message.

    Returns:
        ErrorClassification with the technical message preserved.
    """
    technical = str(error)
    message = technical.lower()

    for patterns, error_type, severity, user_message, recoverable in _RULES:
        if any(pattern in message for pattern in patterns):
            return ErrorClassification(
                type=error_type,
                severity=severity,
                user_message=user_message,
                technical_message=technical,
                recoverable=recoverable,
            )

    return ErrorClassification(
        type=ErrorType.UNKNOWN,
        severity=ErrorSeverity.MEDIUM,
        user_message=_UNKNOWN_MESSAGE,
        technical_message=technical,
        recoverable=True,
    )


def create_user_friendly_error(error: BaseException | str) -> UserFriendlyError:
    """Classify an error and stamp it with an id and timestamp."""
    classification = classify_error(error)
    return UserFriendlyError(
        **classification.model_dump(),
        can_retry=classification.recoverable,
    )

"""Custom exception classes for the visitor kiosk."""


class KioskError(Exception):
    """Base exception for all kiosk errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int = 500,
        details: dict | None = None,
    ):
        """Initialize KioskError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            status_code: HTTP status code for API responses.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API response."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(KioskError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        """Initialize NotFoundError.

        Args:
            resource_type: Type of resource (e.g., "Visitor", "StaffMember").
            resource_id: ID of the resource that was not found.
            message: Optional custom message.
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message=message or f"{resource_type} with ID '{resource_id}' not found",
            error_code="NOT_FOUND",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class ValidationError(KioskError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[dict] | None = None,
    ):
        """Initialize ValidationError.

        Args:
            message: Error message.
            errors: List of validation errors with field and message.
        """
        self.errors = errors or []
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            status_code=400,
            details={"errors": self.errors},
        )

    @classmethod
    def from_pydantic(cls, exc: Exception) -> "ValidationError":
        """Create ValidationError from Pydantic ValidationError."""
        errors = []
        if hasattr(exc, "errors"):
            for error in exc.errors():
                errors.append(
                    {
                        "field": ".".join(str(loc) for loc in error.get("loc", [])),
                        "message": error.get("msg", "Invalid value"),
                        "type": error.get("type", "unknown"),
                    }
                )
        return cls(message="Validation failed", errors=errors)


class FileValidationError(ValidationError):
    """Raised when an uploaded file fails type or size checks."""

    def __init__(self, message: str, filename: str | None = None):
        """Initialize FileValidationError."""
        super().__init__(
            message=message,
            errors=[{"field": filename or "file", "message": message, "type": "file"}],
        )


class UnauthorizedError(KioskError):
    """Raised when authentication with an external service fails."""

    def __init__(self, message: str = "Authentication required"):
        """Initialize UnauthorizedError."""
        super().__init__(
            message=message,
            error_code="UNAUTHORIZED",
            status_code=401,
        )


class RateLimitError(KioskError):
    """Raised when rate limit is exceeded."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: int | None = None,
    ):
        """Initialize RateLimitError."""
        details = {}
        if retry_after:
            details["retry_after_seconds"] = retry_after

        super().__init__(
            message=message,
            error_code="RATE_LIMIT_EXCEEDED",
            status_code=429,
            details=details if details else None,
        )


class ExternalServiceError(KioskError):
    """Raised when an external service call fails."""

    def __init__(
        self,
        service: str,
        message: str | None = None,
        original_error: str | None = None,
    ):
        """Initialize ExternalServiceError."""
        self.service = service
        super().__init__(
            message=message or f"External service '{service}' returned an error",
            error_code="EXTERNAL_SERVICE_ERROR",
            status_code=502,
            details={
                "service": service,
                "original_error": original_error,
            },
        )


class HttpStatusError(ExternalServiceError):
    """Raised when an HTTP call returns a non-2xx status.

    The message always starts with the status code so substring based
    retry predicates and the error classifier can match on it.
    """

    def __init__(
        self,
        status_code: int,
        reason: str = "",
        service: str = "http",
        prefix: str | None = None,
    ):
        """Initialize HttpStatusError.

        Args:
            status_code: HTTP status returned by the remote service.
            reason: Reason phrase.
            service: Service name for error details.
            prefix: Optional message prefix (e.g. "Google Chat webhook error").
        """
        self.http_status = status_code
        self.reason = reason
        message = f"HTTP {status_code}: {reason}".rstrip(": ")
        if prefix:
            message = f"{prefix}: {message}"
        super().__init__(service=service, message=message)
        self.details["status_code"] = status_code


class NetworkError(ExternalServiceError):
    """Raised when a request never produced a response."""

    def __init__(self, service: str, message: str):
        """Initialize NetworkError."""
        super().__init__(service=service, message=f"network error: {message}")
        self.error_code = "NETWORK_ERROR"


class OperationTimeoutError(KioskError):
    """Raised when an operation exceeds its time budget."""

    def __init__(self, message: str = "Operation timeout", timeout: float | None = None):
        """Initialize OperationTimeoutError."""
        super().__init__(
            message=message,
            error_code="TIMEOUT",
            status_code=504,
            details={"timeout_seconds": timeout} if timeout is not None else None,
        )

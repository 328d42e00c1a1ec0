"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.
The REST layer maps them to HTTP status codes; the tool registry renders
them as in-band error content.
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class AuthenticationError(ApplicationError):
    """Raised when the API credential is missing or wrong."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message, code="AUTH_UNAUTHORIZED")


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class PayloadTooLargeError(ApplicationError):
    """Raised when an upload or request body exceeds the configured limit."""

    def __init__(self, message: str = "Payload too large") -> None:
        super().__init__(message, code="VAL_PAYLOAD_TOO_LARGE")


class CapabilityUnavailableError(ApplicationError):
    """Raised when a feature needs infrastructure this deployment lacks."""

    def __init__(self, message: str = "Capability not available") -> None:
        super().__init__(message, code="SYS_CAPABILITY_UNAVAILABLE")


class ConfigurationError(ApplicationError):
    """Raised when the server is missing required configuration."""

    def __init__(self, message: str = "Server misconfigured") -> None:
        super().__init__(message, code="SYS_MISCONFIGURED")


class DatabaseError(ApplicationError):
    """Raised when a database operation fails."""

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message, code="SYS_DATABASE_ERROR")

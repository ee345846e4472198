"""Custom exceptions for the application."""


class AppException(Exception):
    """Base application exception."""
    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class UnauthorizedException(AppException):
    """Raised when authentication fails.

    The message is deliberately generic; callers never learn which check failed.
    """
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, status_code=401)


class NotFoundException(AppException):
    """Raised when resource is not found."""
    def __init__(self, message: str = "Not Found"):
        super().__init__(message, status_code=404)


class ValidationException(AppException):
    """Raised when validation fails."""
    def __init__(self, message: str = "Validation Error"):
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Raised when a unique record already exists."""
    def __init__(self, message: str = "Conflict"):
        super().__init__(message, status_code=409)


class ConfigurationException(AppException):
    """Raised when a required deployment secret is missing."""
    def __init__(self, message: str = "Server misconfigured", status_code: int = 503):
        super().__init__(message, status_code=status_code)


class ServiceUnavailableException(AppException):
    """Raised when service is temporarily unavailable (e.g., database connection failure)."""
    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message, status_code=503)


class InternalServerException(AppException):
    """Raised when an internal server error occurs."""
    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, status_code=500)

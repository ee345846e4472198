"""Repository layer exceptions.

Repositories raise these when database operations fail. The usecase layer
translates them into AppExceptions.
"""


class RepositoryException(Exception):
    """Base exception for repository layer errors."""
    def __init__(self, message: str, detail: str | None = None):
        self.message = message
        self.detail = detail
        super().__init__(self.message)


class DuplicateRecordException(RepositoryException):
    """Raised on a unique constraint violation."""
    def __init__(self, message: str = "Record already exists", detail: str | None = None):
        super().__init__(message, detail)


class DatabaseConnectionException(RepositoryException):
    """Raised when the database cannot be reached."""
    def __init__(self, message: str = "Database connection error", detail: str | None = None):
        super().__init__(message, detail)


class DatabaseOperationException(RepositoryException):
    """Raised when a database operation fails."""
    def __init__(self, message: str = "Database operation failed", detail: str | None = None):
        super().__init__(message, detail)

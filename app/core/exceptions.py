"""Application exceptions rendered by the handlers in ``app.middleware.error_handler``."""


class AppException(Exception):
    """Base application exception carrying an HTTP status."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Profile or other document does not exist (404)."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class BadRequestException(AppException):
    """Request does not apply to the target document (400)."""

    def __init__(self, message: str = "Bad request"):
        super().__init__(message, status_code=400)


class ConflictException(AppException):
    """Document already exists or has the wrong variant (409)."""

    def __init__(self, message: str = "Conflict"):
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Business validation failed (422)."""

    def __init__(self, message: str = "Validation error"):
        super().__init__(message, status_code=422)


class AuthError(AppException):
    """Identity provider failure mapped to a user-facing message."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        """Initialize with the client error code and its localized message."""
        self.code = code
        super().__init__(message, status_code=status_code)

    def __repr__(self) -> str:
        return f"AuthError(code={self.code!r}, message={self.message!r})"

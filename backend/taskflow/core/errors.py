from typing import Optional


class InvalidConfiguration(ValueError):
    """Raised at startup when settings are missing or malformed."""


class AppError(Exception):
    """Base class for errors mapped to an HTTP response.

    ``message`` and ``code`` are safe to show to the caller. Anything more
    precise belongs in the server log, not in the exception payload.
    """

    status_code: int = 400
    code: str = "bad_request"

    def __init__(self, message: str, *, errors: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.errors = errors


class ValidationError(AppError):
    status_code = 400
    code = "validation_error"


class DuplicateUser(AppError):
    status_code = 400
    code = "duplicate_user"

    def __init__(self, message: str = "User with this email already exists") -> None:
        super().__init__(message)


class InvalidCredentials(AppError):
    """Login failed.

    ``reason`` is either ``unknown_email`` or ``wrong_password``. It is kept for
    logging only; both variants render the same response.
    """

    status_code = 401
    code = "invalid_credentials"
    UNKNOWN_EMAIL = "unknown_email"
    WRONG_PASSWORD = "wrong_password"

    def __init__(self, reason: str) -> None:
        super().__init__("Invalid email or password")
        self.reason = reason


class InvalidAccessToken(AppError):
    status_code = 401
    code = "invalid_access_token"

    def __init__(self, message: str = "Invalid or expired access token") -> None:
        super().__init__(message)


class InvalidRefreshToken(AppError):
    status_code = 401
    code = "invalid_refresh_token"

    def __init__(self, message: str = "Invalid or expired refresh token") -> None:
        super().__init__(message)


class NotFound(AppError):
    status_code = 404
    code = "not_found"


class RateLimited(AppError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "Too many attempts") -> None:
        super().__init__(message)


class ConflictError(AppError):
    """A ledger write collided with an existing row. Should never happen."""

    status_code = 500
    code = "conflict"

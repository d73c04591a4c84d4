"""
Application error taxonomy.

Services raise these at the point of detection; main.py turns them into
JSON responses. Nothing here is retried.
"""

from starlette import status


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def public_detail(self) -> str:
        """Message sent to the client (may be less specific than `message`)."""
        return self.message

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class AuthenticationError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"

    @property
    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class TokenError(AuthenticationError):
    """
    Session token rejected.

    The specific reason stays in `message` for logging; clients only see
    a generic detail.
    """
    default_message = "Invalid token"

    @property
    def public_detail(self) -> str:
        return "Could not validate credentials."


class InvalidTokenError(TokenError):
    default_message = "Invalid token"


class ExpiredTokenError(TokenError):
    default_message = "Token expired"


class StaleTokenError(TokenError):
    default_message = "Stale token"


class UnauthorizedError(TokenError):
    default_message = "Unauthorized"


class InvalidOrExpiredTokenError(AuthenticationError):
    """Verification or reset token could not be consumed."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired token"

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not enough permissions"

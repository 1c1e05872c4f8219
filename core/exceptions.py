"""
Application error taxonomy.

Services raise these; the handlers registered in main.py turn each one into
a `{code, message, data}` envelope with the matching HTTP status. The message
is the only text that reaches the client, so it must stay stable and free of
internal detail.
"""

from starlette import status


class AppError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class ConflictError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource already exists"


class UnauthorizedError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"


class ForbiddenError(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Account is not active"


class NotFoundError(AppError):
    # Unknown refresh token on logout is a client error, not a missing route
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Resource not found"


class RefreshTokenError(UnauthorizedError):
    """Raised when a refresh token cannot be redeemed."""

    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"

    _messages = {
        NOT_FOUND: "Invalid refresh token",
        EXPIRED: "Refresh token expired",
        REVOKED: "Refresh token revoked",
    }

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(self._messages[reason])

"""Application error taxonomy.

Every error carries an HTTP status, a machine-readable code and a list of
human-readable detail messages. The central handlers in
``scoopauth.api.error_handling`` turn them into JSON responses.
"""

from typing import Any


class AppError(Exception):
    """Base class for errors that map to an HTTP response."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: list[dict[str, Any]] | None = None,
        code: str | None = None,
        status_code: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details if details is not None else [{"message": self.message}]
        self.headers = headers


class ValidationError(AppError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation error"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource conflict"


class RateLimitError(AppError):
    status_code = 429
    code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests"


class ServiceUnavailableError(AppError):
    status_code = 503
    code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"


class SmsDeliveryError(AppError):
    """The SMS gateway could not deliver a message."""

    status_code = 502
    code = "SMS_DELIVERY_FAILED"
    default_message = "Failed to send SMS"


class TokenRotationError(AppError):
    """Refresh token rotation could not be completed.

    Never swallowed: a caller must not believe it holds a new token pair.
    """

    status_code = 500
    code = "TOKEN_ROTATION_FAILED"
    default_message = "Failed to rotate tokens"

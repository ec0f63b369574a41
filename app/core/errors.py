# app/core/errors.py
from fastapi import HTTPException, status


class AppError(HTTPException):
    """
    Base class for domain errors raised by services.

    Subclasses pin the HTTP status so services only choose the kind of
    failure; FastAPI renders every one of them as {"detail": message}.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.default_detail,
            headers=headers,
        )


class ValidationError(AppError):
    """Missing or malformed input (400)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class ConflictError(AppError):
    """
    Unique constraint violation, e.g. duplicate SKU.

    Reported as 400 with a specific message.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Resource already exists"


class AuthError(AppError):
    """Missing, invalid or expired bearer token (401)."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Invalid or expired token"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class ForbiddenError(AppError):
    """Authenticated but lacking the required role (403)."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Admin access required"


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class InternalError(AppError):
    """Store / connection failure surfaced from a service (500)."""

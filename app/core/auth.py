# app/core/auth.py
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from app.core.errors import AuthError, ForbiddenError
from app.core.security import decode_access_token
from app.database import get_session
from app.models.user import User
from app.repositories.user_repo import UserRepository

# HTTP Bearer scheme:
# - auto_error=False => missing Authorization header will NOT raise immediately
#   so we can answer with our own 401 body instead of FastAPI's 403.
bearer_scheme = HTTPBearer(auto_error=False)

user_repo = UserRepository()


def get_token_claims(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> dict:
    """
    Extract and verify the bearer token.

    Raises:
        AuthError(401): header missing, token malformed, bad signature or expired.
    """
    if credentials is None:
        raise AuthError("Access token required")

    payload = decode_access_token(credentials.credentials)
    if not payload.get("sub"):
        raise AuthError("Invalid or expired token")
    return payload


def require_admin(
    claims: dict = Depends(get_token_claims),
    session: Session = Depends(get_session),
) -> User:
    """
    Enforce admin role.

    The role is NOT taken from the token: it is re-read from the users
    table on every request so a revoked admin is locked out immediately.

    Raises:
        ForbiddenError(403): user no longer exists or role != "admin".
    """
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError):
        raise AuthError("Invalid or expired token")

    user = user_repo.get_by_id(session, user_id)
    if user is None or user.role != "admin":
        raise ForbiddenError("Admin access required")
    return user

# app/core/security.py
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.core.config import get_settings
from app.core.errors import AuthError

settings = get_settings()

# bcrypt with a per-hash random salt
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """
    Compare a plain password to a stored hash.

    A malformed / non-bcrypt stored hash counts as a mismatch.
    """
    try:
        return pwd_context.verify(plain_password, password_hash)
    except ValueError:
        return False


@lru_cache
def dummy_password_hash() -> str:
    """
    Hash checked against when no account matches, so a login for an unknown
    email costs the same bcrypt work as one for a real account.
    """
    return hash_password("not-a-real-account")


def create_access_token(
    user_id: int,
    email: str,
    expires_delta: timedelta | None = None,
) -> str:
    """
    Issue a signed access token.

    Claims:
      - sub: user id (string, per JWT convention)
      - email
      - iat / exp: validity window, ACCESS_TOKEN_EXPIRE_DAYS by default
    """
    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(days=settings.ACCESS_TOKEN_EXPIRE_DAYS)

    claims = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token (signature + exp).

    Raises:
        AuthError(401): if token is invalid/expired.
    """
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        raise AuthError("Invalid or expired token")

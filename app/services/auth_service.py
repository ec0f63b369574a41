# app/services/auth_service.py
import logging

from sqlmodel import Session

from app.core.errors import AuthError, ValidationError
from app.core.security import create_access_token, dummy_password_hash, verify_password
from app.repositories.user_repo import UserRepository
from app.schemas.user import LoginRequest, LoginResponse, UserSummary

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


class AuthService:
    """
    Password login + token issuance.

    Unknown email and wrong password fail identically so the endpoint
    cannot be used to probe which emails are registered.
    """

    def __init__(self, repo: UserRepository):
        self.repo = repo

    def login(self, session: Session, payload: LoginRequest) -> LoginResponse:
        if not payload.email or not payload.password:
            raise ValidationError("Email and password are required")

        user = self.repo.get_by_email(session, payload.email)
        # Unknown emails still pay for a bcrypt check
        stored_hash = user.password_hash if user is not None else dummy_password_hash()
        if not verify_password(payload.password, stored_hash) or user is None:
            logger.info("Failed login attempt for %s", payload.email)
            raise AuthError(INVALID_CREDENTIALS)

        token = create_access_token(user.id, user.email)
        logger.info("Login successful for %s", user.email)

        return LoginResponse(
            message="Login successful",
            user=UserSummary(
                id=user.id,
                email=user.email,
                name=user.display_name,
                role=user.role,
            ),
            token=token,
        )

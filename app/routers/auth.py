# app/routers/auth.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.database import get_session
from app.repositories.user_repo import UserRepository
from app.schemas.user import LoginRequest, LoginResponse
from app.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])

repo = UserRepository()
service = AuthService(repo)


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
):
    """
    Exchange email + password for a bearer token.

    - 400 if either field is missing.
    - 401 "Invalid email or password" for unknown email OR wrong password.
    """
    return service.login(session, payload)

# app/schemas/user.py
from pydantic import ConfigDict
from sqlmodel import SQLModel


class LoginRequest(SQLModel):
    """
    Login payload.

    Both fields are optional at the schema level so a missing one is
    answered with the service's 400 message rather than a schema error.
    """

    model_config = ConfigDict(extra="ignore")

    email: str | None = None
    password: str | None = None


class UserSummary(SQLModel):
    """Public user fields returned after login."""

    id: int
    email: str
    name: str
    role: str


class LoginResponse(SQLModel):
    message: str
    user: UserSummary
    token: str

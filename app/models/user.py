# app/models/user.py
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class User(SQLModel, table=True):
    """
    Back-office / storefront account.

    Role:
      - "customer" (default) | "admin"
      - admin routes re-read `role` from this table on every request,
        so demoting an admin takes effect without a new login.

    Passwords are stored as bcrypt hashes only (see app/core/security.py).
    """

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)

    email: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="Login identifier (exact match)",
    )

    password_hash: str = Field(max_length=255)

    first_name: str | None = Field(default=None, max_length=100)
    last_name: str | None = Field(default=None, max_length=100)

    # Application role
    role: str = Field(
        default="customer",
        max_length=20,
        description="Application role: customer | admin",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

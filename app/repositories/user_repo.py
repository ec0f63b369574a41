# app/repositories/user_repo.py
from sqlmodel import Session, select

from app.models.user import User


class UserRepository:
    """
    Read-only User lookups.

    Accounts are created by the seed script; the API only reads them
    (login, and the admin gate re-checking the role per request).
    """

    def get_by_id(self, session: Session, user_id: int) -> User | None:
        """Return a User by primary key, or None if not found."""
        return session.get(User, user_id)

    def get_by_email(self, session: Session, email: str) -> User | None:
        """Return a User by exact (case-sensitive) email, or None."""
        stmt = select(User).where(User.email == email)
        return session.exec(stmt).first()

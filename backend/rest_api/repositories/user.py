"""
User Repository - Data access for chat accounts.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import User
from .base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for User entities."""

    @property
    def model(self) -> type[User]:
        return User

    def find_by_username(self, username: str) -> User | None:
        return self._db.scalar(select(User).where(User.username == username))

    def get_username(self, user_id: int) -> str | None:
        return self._db.scalar(select(User.username).where(User.id == user_id))


def get_user_repository(db: Session) -> UserRepository:
    """Factory function for UserRepository."""
    return UserRepository(db)

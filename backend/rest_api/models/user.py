"""
User Model.
"""

from __future__ import annotations

from sqlalchemy import Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, CreatedAtMixin


class User(CreatedAtMixin, Base):
    """
    A chat account.

    username is the unique display and lookup key; it never changes after
    registration.
    """

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    username: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    password: Mapped[str] = mapped_column(Text, nullable=False)  # bcrypt hash

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username='{self.username}')>"

"""
Base class and shared column helpers for all SQLAlchemy ORM models.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# BigInteger keys in production; SQLite only auto-increments INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class CreatedAtMixin:
    """
    Mixin providing a server-assigned creation timestamp.

    Chat entities are append-only within this service, so there is no
    update/soft-delete trail.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

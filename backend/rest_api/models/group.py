"""
Group and GroupMembership Models.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, CreatedAtMixin


class Group(CreatedAtMixin, Base):
    """
    A chat group. code is the immutable join token handed out by members.
    """

    __tablename__ = "chat_group"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    created_by: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Group(id={self.id}, name='{self.name}', code='{self.code}')>"


class GroupMembership(Base):
    """A user's membership in a group. A user appears at most once per group."""

    __tablename__ = "group_member"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    group_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("chat_group.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_group_member"),
    )

    def __repr__(self) -> str:
        return f"<GroupMembership(group_id={self.group_id}, user_id={self.user_id})>"

"""
Message Model and timestamp conversion helpers.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def from_epoch_ms(value: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime (exact)."""
    return EPOCH + timedelta(milliseconds=value)


def to_epoch_ms(value: datetime) -> int:
    """
    Convert a datetime to epoch milliseconds (exact).

    SQLite hands back naive datetimes; they are stored as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - EPOCH) // timedelta(milliseconds=1)


class Message(Base):
    """
    A chat message addressed to exactly one user or exactly one group.

    created_at carries the client-supplied send time when present. The
    sender's username is joined at read time, never stored here.
    """

    __tablename__ = "message"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    sender_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    receiver_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=True
    )
    group_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("chat_group.id", ondelete="CASCADE"), nullable=True
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    client_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(receiver_id IS NULL) <> (group_id IS NULL)",
            name="ck_message_single_target",
        ),
        CheckConstraint("length(content) > 0", name="ck_message_content"),
        Index("ix_message_direct_pair", "sender_id", "receiver_id", "created_at"),
        Index("ix_message_group_created", "group_id", "created_at"),
    )

    @property
    def timestamp(self) -> int:
        return to_epoch_ms(self.created_at)

    def __repr__(self) -> str:
        target = f"receiver_id={self.receiver_id}" if self.receiver_id else f"group_id={self.group_id}"
        return f"<Message(id={self.id}, sender_id={self.sender_id}, {target})>"

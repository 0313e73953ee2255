"""
Friend relationship Model.
"""

from __future__ import annotations

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Text, UniqueConstraint, case
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, CreatedAtMixin


FRIEND_STATUS_PENDING = "pending"
FRIEND_STATUS_ACCEPTED = "accepted"


class FriendEdge(CreatedAtMixin, Base):
    """
    A friend relationship between two users.

    user_id is the requester and friend_id the target. The pair is
    unordered: uq_friend_edge_unordered allows one edge per pair whichever
    side asked first.
    Status moves pending -> accepted only.
    """

    __tablename__ = "friend_edge"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    friend_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default=FRIEND_STATUS_PENDING)

    __table_args__ = (
        UniqueConstraint("user_id", "friend_id", name="uq_friend_edge_pair"),
        CheckConstraint("user_id <> friend_id", name="ck_friend_edge_no_self"),
        CheckConstraint(
            "status IN ('pending', 'accepted')", name="ck_friend_edge_status"
        ),
        Index("ix_friend_edge_friend_status", "friend_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<FriendEdge(id={self.id}, {self.user_id}->{self.friend_id}, status='{self.status}')>"


# CASE rather than least()/greatest() so the expression index also builds on SQLite
_edge = FriendEdge.__table__.c
_low = case((_edge.user_id < _edge.friend_id, _edge.user_id), else_=_edge.friend_id)
_high = case((_edge.user_id < _edge.friend_id, _edge.friend_id), else_=_edge.user_id)
Index("uq_friend_edge_unordered", _low, _high, unique=True)

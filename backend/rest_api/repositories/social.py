"""
Friend Repository - Data access for friend edges.
"""

from typing import Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from rest_api.models import FriendEdge, User, FRIEND_STATUS_ACCEPTED, FRIEND_STATUS_PENDING
from .base import BaseRepository


class FriendRepository(BaseRepository[FriendEdge]):
    """
    Repository for FriendEdge entities.

    Edges are directional in storage (requester -> target) but every lookup
    here treats the pair as unordered.
    """

    @property
    def model(self) -> type[FriendEdge]:
        return FriendEdge

    def find_between(self, user_a: int, user_b: int) -> FriendEdge | None:
        """Find the edge joining two users in either direction."""
        return self._db.scalar(
            select(FriendEdge).where(
                or_(
                    and_(FriendEdge.user_id == user_a, FriendEdge.friend_id == user_b),
                    and_(FriendEdge.user_id == user_b, FriendEdge.friend_id == user_a),
                )
            )
        )

    def list_friends(self, user_id: int) -> Sequence[User]:
        """Accepted friends of a user, ordered by username."""
        query = (
            select(User)
            .join(
                FriendEdge,
                or_(
                    and_(FriendEdge.user_id == user_id, FriendEdge.friend_id == User.id),
                    and_(FriendEdge.friend_id == user_id, FriendEdge.user_id == User.id),
                ),
            )
            .where(FriendEdge.status == FRIEND_STATUS_ACCEPTED)
            .order_by(User.username)
        )
        return self._db.scalars(query).all()

    def list_pending_for(self, user_id: int) -> Sequence[tuple[FriendEdge, str]]:
        """Pending requests addressed to a user, with the requester's username."""
        query = (
            select(FriendEdge, User.username)
            .join(User, User.id == FriendEdge.user_id)
            .where(
                FriendEdge.friend_id == user_id,
                FriendEdge.status == FRIEND_STATUS_PENDING,
            )
            .order_by(FriendEdge.created_at, FriendEdge.id)
        )
        return [(edge, username) for edge, username in self._db.execute(query).all()]


def get_friend_repository(db: Session) -> FriendRepository:
    """Factory function for FriendRepository."""
    return FriendRepository(db)

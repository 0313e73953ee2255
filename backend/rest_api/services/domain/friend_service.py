"""
Friend Domain Service.

Friend requests move pending -> accepted and nothing else. The pair is
unordered: a request from A to B blocks a second request from B to A.
Notifications to online users are the router's job, after commit.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from shared.utils.schemas import FriendRequestOutput, PendingRequestOutput, UserInfo
from rest_api.models import FriendEdge, FRIEND_STATUS_ACCEPTED, FRIEND_STATUS_PENDING
from rest_api.repositories import get_friend_repository, get_user_repository

logger = get_logger(__name__)


class FriendService:
    """Domain service for the friend request lifecycle."""

    def __init__(self, db: Session):
        self._db = db
        self._friends = get_friend_repository(db)
        self._users = get_user_repository(db)

    def list_friends(self, user_id: int) -> list[UserInfo]:
        return [UserInfo(id=u.id, username=u.username) for u in self._friends.list_friends(user_id)]

    def list_pending(self, user_id: int) -> list[PendingRequestOutput]:
        """Pending requests addressed to user_id."""
        return [
            PendingRequestOutput(
                id=edge.id,
                user_id=edge.user_id,
                username=username,
                created_at=edge.created_at,
            )
            for edge, username in self._friends.list_pending_for(user_id)
        ]

    def send_request(self, user_id: int, friend_username: str) -> FriendRequestOutput:
        """
        Create a pending request from user_id to the named user.

        Raises:
            NotFoundError: Unknown username.
            ValidationError: Request to self.
            ConflictError: The pair already has an edge in either direction.
        """
        target = self._users.find_by_username(friend_username)
        if target is None:
            raise NotFoundError("User", user_id=user_id)

        if target.id == user_id:
            raise ValidationError("Cannot send a friend request to yourself", user_id=user_id)

        existing = self._friends.find_between(user_id, target.id)
        if existing is not None:
            if existing.status == FRIEND_STATUS_ACCEPTED:
                raise ConflictError("Already friends", user_id=user_id, friend_id=target.id)
            raise ConflictError(
                "Friend request already pending", user_id=user_id, friend_id=target.id
            )

        edge = FriendEdge(user_id=user_id, friend_id=target.id, status=FRIEND_STATUS_PENDING)
        try:
            self._friends.add(edge)
            safe_commit(self._db)
        except IntegrityError:
            self._db.rollback()
            raise ConflictError("Friend request already pending", user_id=user_id, friend_id=target.id)

        logger.info("Friend request created", request_id=edge.id, user_id=user_id, friend_id=target.id)
        return FriendRequestOutput(
            id=edge.id, user_id=edge.user_id, friend_id=edge.friend_id, status=edge.status
        )

    def accept_request(self, user_id: int, request_id: int) -> FriendRequestOutput:
        """
        Accept a pending request addressed to user_id.

        Raises:
            NotFoundError: No such request.
            ForbiddenError: The caller is not the request's target.
            InvalidTransitionError: The request is no longer pending.
        """
        edge = self._friends.find_by_id(request_id)
        if edge is None:
            raise NotFoundError("Friend request", request_id, user_id=user_id)

        if edge.friend_id != user_id:
            raise ForbiddenError("accept this friend request", request_id=request_id, user_id=user_id)

        if edge.status != FRIEND_STATUS_PENDING:
            raise InvalidTransitionError("friend request", edge.status, FRIEND_STATUS_ACCEPTED)

        edge.status = FRIEND_STATUS_ACCEPTED
        safe_commit(self._db)

        logger.info("Friend request accepted", request_id=edge.id, user_id=edge.user_id, friend_id=edge.friend_id)
        return FriendRequestOutput(
            id=edge.id, user_id=edge.user_id, friend_id=edge.friend_id, status=edge.status
        )

    def get_username(self, user_id: int) -> str | None:
        return self._users.get_username(user_id)

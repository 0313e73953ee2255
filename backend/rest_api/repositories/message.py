"""
Message Repository - Data access for persisted chat messages.

History queries join the sender's username so callers never need a second
round trip per message.
"""

from datetime import datetime
from typing import Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from rest_api.models import Message, User
from .base import BaseRepository


class MessageRepository(BaseRepository[Message]):
    """Repository for Message entities."""

    @property
    def model(self) -> type[Message]:
        return Message

    def insert(
        self,
        sender_id: int,
        content: str,
        created_at: datetime,
        receiver_id: int | None = None,
        group_id: int | None = None,
        client_token: str | None = None,
    ) -> Message:
        """Stage a message and flush so the store assigns its id."""
        return self.add(
            Message(
                sender_id=sender_id,
                receiver_id=receiver_id,
                group_id=group_id,
                content=content,
                created_at=created_at,
                client_token=client_token,
            )
        )

    def list_direct(self, user_a: int, user_b: int) -> Sequence[tuple[Message, str]]:
        """Messages exchanged between two users, oldest first."""
        query = (
            select(Message, User.username)
            .join(User, User.id == Message.sender_id)
            .where(
                or_(
                    and_(Message.sender_id == user_a, Message.receiver_id == user_b),
                    and_(Message.sender_id == user_b, Message.receiver_id == user_a),
                )
            )
            .order_by(Message.created_at, Message.id)
        )
        return [(message, username) for message, username in self._db.execute(query).all()]

    def list_group(self, group_id: int) -> Sequence[tuple[Message, str]]:
        """Messages posted to a group, oldest first."""
        query = (
            select(Message, User.username)
            .join(User, User.id == Message.sender_id)
            .where(Message.group_id == group_id)
            .order_by(Message.created_at, Message.id)
        )
        return [(message, username) for message, username in self._db.execute(query).all()]


def get_message_repository(db: Session) -> MessageRepository:
    """Factory function for MessageRepository."""
    return MessageRepository(db)

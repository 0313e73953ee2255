"""
History Domain Service.

Durable fallback for live delivery: clients fetch these after reconnecting
and merge them with what they received over the socket. Reads go through
the same ChatStore the gateway writes with, so both sides agree on what a
stored message looks like.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from shared.utils.schemas import MessageOutput
from rest_api.models import to_epoch_ms
from .group_service import GroupService

if TYPE_CHECKING:
    from ws_gateway.components.data.ports import ChatStore, StoredMessage


def to_message_output(message: "StoredMessage") -> MessageOutput:
    return MessageOutput(
        id=message.id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        group_id=message.group_id,
        content=message.content,
        timestamp=to_epoch_ms(message.created_at),
        sender_username=message.sender_username,
        client_token=message.client_token,
    )


class HistoryService:
    """Ordered message history, oldest first, ties broken by id."""

    def __init__(self, db: Session, store: "ChatStore"):
        self._db = db
        self._store = store

    def direct_history(self, user_id: int, friend_id: int) -> list[MessageOutput]:
        return [
            to_message_output(message)
            for message in self._store.list_messages_between(user_id, friend_id)
        ]

    def group_history(self, group_id: int, user_id: int) -> list[MessageOutput]:
        """Group history for a member. Non-members get 403."""
        GroupService(self._db).require_member(group_id, user_id)
        return [to_message_output(message) for message in self._store.list_group_messages(group_id)]

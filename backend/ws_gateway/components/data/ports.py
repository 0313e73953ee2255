"""
Persistence port for the realtime core.

The gateway only talks to storage through ChatStore. The methods are
synchronous: implementations do blocking I/O and callers on the event loop
go through AsyncChatStore, which runs them in a worker thread.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


class PersistenceError(Exception):
    """The store failed to read or write. Nothing should be fanned out."""


class GroupNotFoundError(PersistenceError):
    """The group does not exist (or no longer exists)."""

    def __init__(self, group_id: int):
        self.group_id = group_id
        super().__init__(f"Group {group_id} not found")


class SenderNotMemberError(PersistenceError):
    """A group message from a user who is not a member of the group."""

    def __init__(self, group_id: int, sender_id: int):
        self.group_id = group_id
        self.sender_id = sender_id
        super().__init__(f"User {sender_id} is not a member of group {group_id}")


@dataclass(frozen=True, slots=True)
class StoredMessage:
    """A message as persisted, with its store-assigned id."""

    id: int
    sender_id: int
    content: str
    created_at: datetime
    receiver_id: int | None = None
    group_id: int | None = None
    client_token: str | None = None
    sender_username: str | None = None


class ChatStore(Protocol):
    """Durable store for messages, memberships and usernames."""

    def insert_message(
        self,
        sender_id: int,
        content: str,
        created_at: datetime,
        receiver_id: int | None = None,
        group_id: int | None = None,
        client_token: str | None = None,
    ) -> StoredMessage:
        """
        Persist a message and return it with its id.

        Raises:
            GroupNotFoundError: group_id names no group.
            SenderNotMemberError: The sender is not a member of group_id.
            PersistenceError: Any other storage failure.
        """
        ...

    def list_messages_between(self, user_a: int, user_b: int) -> list[StoredMessage]:
        ...

    def list_group_messages(self, group_id: int) -> list[StoredMessage]:
        ...

    def list_group_members(self, group_id: int) -> set[int]:
        """Current member ids. Raises GroupNotFoundError for a missing group."""
        ...

    def get_username(self, user_id: int) -> str | None:
        ...

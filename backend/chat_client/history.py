"""
Client-side conversation view.

Merges live direct_message / group_message events with history fetched
from /api/messages/{friend_id} or /api/groups/{group_id}/messages. The same
message can arrive several times (own echo on every device, history fetched
after the live event, re-delivery after a reconnect); it is kept once.

A message is identified by, in order:
1. its persisted id,
2. its client_token,
3. the (sender_id, content, timestamp) tuple, only when neither is known.

Messages are listed in (timestamp, id) order, never arrival order.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Any, Iterable, Self

MessageKey = tuple[str, Any]


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A message as the client sees it, live or fetched."""

    sender_id: int
    content: str
    timestamp: int
    id: int | None = None
    client_token: str | None = None
    receiver_id: int | None = None
    group_id: int | None = None
    sender_username: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Build from an event's data or a MessageOutput body."""
        return cls(
            sender_id=int(data["sender_id"]),
            content=str(data["content"]),
            timestamp=int(data["timestamp"]),
            id=data.get("id"),
            client_token=data.get("client_token") or None,
            receiver_id=data.get("receiver_id"),
            group_id=data.get("group_id"),
            sender_username=data.get("sender_username"),
        )

    @property
    def tuple_key(self) -> MessageKey:
        return ("tuple", (self.sender_id, self.content, self.timestamp))

    def merged_with(self, newer: "ChatMessage") -> "ChatMessage":
        """Fill fields this copy is missing from a later copy of the same message."""
        return replace(
            self,
            id=self.id if self.id is not None else newer.id,
            client_token=self.client_token or newer.client_token,
            sender_username=self.sender_username or newer.sender_username,
            receiver_id=self.receiver_id if self.receiver_id is not None else newer.receiver_id,
            group_id=self.group_id if self.group_id is not None else newer.group_id,
        )


class ConversationView:
    """
    Ordered, de-duplicated messages of one conversation.

    Usage:
        view = ConversationView.direct(me=1, friend=2)
        view.load_history(response.json())
        client.add_listener(view.apply_event)
        for message in view.messages():
            ...
    """

    def __init__(self, owner_id: int | None = None, friend_id: int | None = None,
                 group_id: int | None = None) -> None:
        self._owner_id = owner_id
        self._friend_id = friend_id
        self._group_id = group_id

        self._entries: dict[int, ChatMessage] = {}
        self._arrival: dict[int, int] = {}
        self._aliases: dict[MessageKey, int] = {}
        self._slots = itertools.count()

    @classmethod
    def direct(cls, me: int, friend: int) -> Self:
        return cls(owner_id=me, friend_id=friend)

    @classmethod
    def group(cls, group_id: int) -> Self:
        return cls(group_id=group_id)

    def __len__(self) -> int:
        return len(self._entries)

    def belongs(self, message: ChatMessage) -> bool:
        """True if the message is part of this conversation."""
        if self._group_id is not None:
            return message.group_id == self._group_id
        if self._friend_id is None:
            return True
        if message.group_id is not None:
            return False
        pair = {message.sender_id, message.receiver_id}
        return pair == {self._owner_id, self._friend_id}

    def merge(self, message: ChatMessage) -> bool:
        """
        Add a message unless it is already known.

        Returns:
            True if the message was new.
        """
        slot = self._find(message)
        if slot is None:
            slot = next(self._slots)
            self._entries[slot] = message
            self._arrival[slot] = slot
            self._index(slot, message)
            return True

        merged = self._entries[slot].merged_with(message)
        self._entries[slot] = merged
        self._index(slot, merged)
        return False

    def load_history(self, rows: Iterable[dict[str, Any]]) -> int:
        """Merge fetched history. Returns how many messages were new."""
        return sum(1 for row in rows if self.merge(ChatMessage.from_dict(row)))

    def apply_event(self, event: dict[str, Any]) -> bool:
        """
        Listener for live events. Ignores everything but chat messages
        belonging to this conversation.
        """
        if event.get("type") not in ("direct_message", "group_message"):
            return False
        data = event.get("data")
        if not isinstance(data, dict):
            return False
        message = ChatMessage.from_dict(data)
        if not self.belongs(message):
            return False
        return self.merge(message)

    def messages(self) -> list[ChatMessage]:
        """Messages ordered by (timestamp, id); unsaved ones after saved at equal time."""
        def sort_key(slot: int) -> tuple[int, bool, int, int]:
            m = self._entries[slot]
            return (m.timestamp, m.id is None, m.id or 0, self._arrival[slot])

        return [self._entries[slot] for slot in sorted(self._entries, key=sort_key)]

    def _find(self, message: ChatMessage) -> int | None:
        if message.id is not None:
            slot = self._aliases.get(("id", message.id))
            if slot is not None:
                return slot

        if message.client_token:
            slot = self._aliases.get(("token", message.client_token))
            if slot is not None and self._compatible(self._entries[slot], message):
                return slot

        # Only entries that never had an id or token are matched by tuple
        slot = self._aliases.get(message.tuple_key)
        if slot is not None and not message.client_token:
            existing = self._entries[slot]
            if existing.id is None and not existing.client_token:
                return slot
        return None

    @staticmethod
    def _compatible(existing: ChatMessage, incoming: ChatMessage) -> bool:
        # Two different persisted ids are two messages, whatever their tokens say
        return existing.id is None or incoming.id is None or existing.id == incoming.id

    def _index(self, slot: int, message: ChatMessage) -> None:
        if message.id is not None:
            self._aliases[("id", message.id)] = slot
        if message.client_token:
            self._aliases.setdefault(("token", message.client_token), slot)
        if message.id is None and not message.client_token:
            self._aliases.setdefault(message.tuple_key, slot)

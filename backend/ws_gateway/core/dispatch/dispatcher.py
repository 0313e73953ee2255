"""
Message Dispatch Engine.

Validates an outbound chat message, persists it, resolves who should see
it, and publishes it to every live connection of every recipient.

Ordering per message:
1. persist (store-assigned id)
2. resolve the sender's username
3. resolve recipients (direct: sender + receiver; group: member snapshot)
4. publish once per recipient

A message that failed to persist is never fanned out. Errors are reported
to the originating connection only.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol, TYPE_CHECKING

from shared.config.logging import get_logger
from rest_api.models import from_epoch_ms, to_epoch_ms
from ws_gateway.components.core.context import sanitize_log_data
from ws_gateway.components.data.ports import (
    GroupNotFoundError,
    PersistenceError,
    SenderNotMemberError,
    StoredMessage,
)
from ws_gateway.components.events.types import (
    ChatMessageEvent,
    EventType,
    MessageValidationError,
    build_event,
    check_timestamp,
    error_event,
)

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_gateway.components.data.chat_repository import AsyncChatStore
    from ws_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)

DIRECT_FAILED = "Failed to send message"
GROUP_FAILED = "Failed to send group message"
GROUP_NOT_FOUND = "Group not found"
NOT_A_MEMBER = "Not a member of this group"


class Publisher(Protocol):
    """The part of the Channel Registry the dispatcher needs."""

    async def publish(self, user_id: int, event: dict[str, Any]) -> int: ...

    async def send_to_connection(self, ws: "WebSocket", event: dict[str, Any]) -> bool: ...


def message_payload(message: StoredMessage, sender_username: str | None) -> dict[str, Any]:
    """Wire shape of a persisted message."""
    data: dict[str, Any] = {
        "id": message.id,
        "sender_id": message.sender_id,
        "content": message.content,
        "timestamp": to_epoch_ms(message.created_at),
        "sender_username": sender_username,
    }
    if message.group_id is not None:
        data["group_id"] = message.group_id
    else:
        data["receiver_id"] = message.receiver_id
    if message.client_token is not None:
        data["client_token"] = message.client_token
    return data


class MessageDispatcher:
    """
    Persists and fans out direct and group messages.

    Usage:
        dispatcher = MessageDispatcher(manager, AsyncChatStore(store), metrics)
        await dispatcher.send_direct(1, 2, "hi", timestamp=1000, origin=ws)
    """

    def __init__(
        self,
        publisher: Publisher,
        store: "AsyncChatStore",
        metrics: "MetricsCollector",
        max_message_length: int = 4000,
    ) -> None:
        self._publisher = publisher
        self._store = store
        self._metrics = metrics
        self._max_message_length = max_message_length

    def validate_content(self, content: Any) -> str:
        """
        Returns:
            The content with surrounding whitespace removed.

        Raises:
            MessageValidationError: Empty after trimming, or too long.
        """
        if not isinstance(content, str):
            raise MessageValidationError("content must be a string")
        content = content.strip()
        if not content:
            raise MessageValidationError("Message content cannot be empty")
        if len(content) > self._max_message_length:
            raise MessageValidationError(
                f"Message content exceeds {self._max_message_length} characters"
            )
        return content

    async def dispatch(
        self,
        sender_id: int,
        event: ChatMessageEvent,
        origin: "WebSocket | None" = None,
    ) -> StoredMessage | None:
        """Route a parsed inbound message event to send_direct or send_group."""
        if event.is_group:
            return await self.send_group(
                sender_id,
                event.group_id,
                event.content,
                timestamp=event.timestamp,
                client_token=event.client_token,
                origin=origin,
            )
        return await self.send_direct(
            sender_id,
            event.receiver_id,
            event.content,
            timestamp=event.timestamp,
            client_token=event.client_token,
            origin=origin,
        )

    async def send_direct(
        self,
        sender_id: int,
        receiver_id: int,
        content: str,
        timestamp: int | None = None,
        client_token: str | None = None,
        origin: "WebSocket | None" = None,
    ) -> StoredMessage | None:
        """
        Persist a direct message and deliver it to both parties.

        The sender is a recipient too, so their other devices see the
        message and the originating connection gets its echo.

        Returns:
            The persisted message, or None if persistence failed (an error
            event has then been sent to origin).

        Raises:
            MessageValidationError: Invalid content or timestamp; nothing is
                persisted.
        """
        content = self.validate_content(content)
        created_at = self._created_at(timestamp)

        try:
            message = await self._store.insert_message(
                sender_id,
                content,
                created_at,
                receiver_id=receiver_id,
                client_token=client_token,
            )
        except PersistenceError as e:
            self._metrics.increment_persistence_failed()
            logger.error(
                "Direct message not persisted",
                sender_id=sender_id,
                receiver_id=receiver_id,
                error=str(e),
            )
            await self._report(origin, DIRECT_FAILED)
            return None

        sender_username = await self._sender_username(sender_id)
        event = build_event(EventType.DIRECT_MESSAGE, message_payload(message, sender_username))
        delivered = await self._fan_out({sender_id, receiver_id}, event)

        self._metrics.increment_dispatched("direct")
        logger.info(
            "Direct message dispatched",
            message_id=message.id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            delivered=delivered,
            preview=sanitize_log_data(content, max_length=30),
        )
        return message

    async def send_group(
        self,
        sender_id: int,
        group_id: int,
        content: str,
        timestamp: int | None = None,
        client_token: str | None = None,
        origin: "WebSocket | None" = None,
    ) -> StoredMessage | None:
        """
        Persist a group message and deliver it to the group's members.

        Recipients are the member list read after persistence; members who
        join later do not receive this message live.

        Returns:
            The persisted message, or None if it was not persisted.

        Raises:
            MessageValidationError: Invalid content or timestamp; nothing is
                persisted.
        """
        content = self.validate_content(content)
        created_at = self._created_at(timestamp)

        try:
            message = await self._store.insert_message(
                sender_id,
                content,
                created_at,
                group_id=group_id,
                client_token=client_token,
            )
        except GroupNotFoundError:
            self._metrics.increment_membership_failed()
            logger.warning("Group message to missing group", sender_id=sender_id, group_id=group_id)
            await self._report(origin, GROUP_NOT_FOUND)
            return None
        except SenderNotMemberError:
            self._metrics.increment_membership_failed()
            logger.warning("Group message from non-member", sender_id=sender_id, group_id=group_id)
            await self._report(origin, NOT_A_MEMBER)
            return None
        except PersistenceError as e:
            self._metrics.increment_persistence_failed()
            logger.error(
                "Group message not persisted",
                sender_id=sender_id,
                group_id=group_id,
                error=str(e),
            )
            await self._report(origin, GROUP_FAILED)
            return None

        sender_username = await self._sender_username(sender_id)

        try:
            members = await self._store.list_group_members(group_id)
        except GroupNotFoundError:
            # Deleted between insert and lookup
            self._metrics.increment_membership_failed()
            logger.warning("Group vanished during dispatch", group_id=group_id, message_id=message.id)
            await self._report(origin, GROUP_NOT_FOUND)
            return message
        except PersistenceError as e:
            self._metrics.increment_membership_failed()
            logger.error("Group membership lookup failed", group_id=group_id, error=str(e))
            await self._report(origin, GROUP_FAILED)
            return message

        event = build_event(EventType.GROUP_MESSAGE, message_payload(message, sender_username))
        delivered = await self._fan_out(members, event)

        self._metrics.increment_dispatched("group")
        logger.info(
            "Group message dispatched",
            message_id=message.id,
            sender_id=sender_id,
            group_id=group_id,
            members=len(members),
            delivered=delivered,
        )
        return message

    async def _fan_out(self, recipients: set[int], event: dict[str, Any]) -> int:
        """Publish once per recipient. One recipient failing never affects the others."""
        ordered = sorted(recipients)
        results = await asyncio.gather(
            *[self._publisher.publish(user_id, event) for user_id in ordered],
            return_exceptions=True,
        )
        delivered = 0
        for user_id, result in zip(ordered, results):
            if isinstance(result, BaseException):
                logger.warning("Publish failed", user_id=user_id, error=str(result))
            else:
                delivered += result
        return delivered

    async def _sender_username(self, sender_id: int) -> str | None:
        # The message is already persisted; a failed lookup only costs the display name
        try:
            return await self._store.get_username(sender_id)
        except PersistenceError as e:
            logger.warning("Sender username lookup failed", sender_id=sender_id, error=str(e))
            return None

    async def _report(self, origin: "WebSocket | None", message: str) -> None:
        if origin is not None:
            await self._publisher.send_to_connection(origin, error_event(message))

    @staticmethod
    def _created_at(timestamp: int | None):
        if timestamp is None:
            return from_epoch_ms(int(time.time() * 1000))
        return from_epoch_ms(check_timestamp(timestamp))

"""
Event Value Objects for WebSocket Gateway.

Inbound frames are parsed into immutable value objects with validation at
construction time. Outbound events are plain dicts built by the helpers at
the bottom of this module so every sender produces the same shape:

    {"type": <EventType>, "data": {...}}
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Self

from shared.config.logging import get_logger

logger = get_logger(__name__)

# More unknown keys than this in one frame is a buggy or hostile client
MAX_UNKNOWN_FIELDS = 10
MAX_CLIENT_TOKEN_LENGTH = 128
# 9999-12-31T23:59:59.999Z, the last instant a datetime can hold
MAX_TIMESTAMP_MS = 253_402_300_799_999


class MessageValidationError(ValueError):
    """An inbound frame or message failed validation. Nothing is persisted."""


class EventType(str, Enum):
    """Event types carried in the "type" field of every frame."""

    # Inbound
    JOIN = "join"
    PING = "ping"

    # Both directions
    DIRECT_MESSAGE = "direct_message"
    GROUP_MESSAGE = "group_message"

    # Outbound
    CONNECTED = "connected"
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPTED = "friend_accepted"
    ERROR = "error"
    PONG = "pong"


INBOUND_EVENT_TYPES: frozenset[str] = frozenset({
    EventType.JOIN.value,
    EventType.PING.value,
    EventType.DIRECT_MESSAGE.value,
    EventType.GROUP_MESSAGE.value,
})

# Fields accepted on message frames besides the target id
MESSAGE_FIELDS: frozenset[str] = frozenset({
    "type", "content", "timestamp", "client_token", "sender_id",
})


def _positive_int(data: dict[str, Any], name: str) -> int:
    value = data.get(name)
    # bool is an int subclass; true is not a user id
    if isinstance(value, bool) or not isinstance(value, int):
        raise MessageValidationError(f"{name} must be an integer")
    if value <= 0:
        raise MessageValidationError(f"{name} must be positive")
    return value


def _optional_timestamp(data: dict[str, Any]) -> int | None:
    value = data.get("timestamp")
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MessageValidationError("timestamp must be epoch milliseconds")
    return check_timestamp(int(value))


def check_timestamp(value: int) -> int:
    """Epoch milliseconds between 1970 and the end of year 9999, else MessageValidationError."""
    if not 0 <= value <= MAX_TIMESTAMP_MS:
        raise MessageValidationError("timestamp out of range")
    return value


def _optional_client_token(data: dict[str, Any]) -> str | None:
    value = data.get("client_token")
    if value is None:
        return None
    if not isinstance(value, str) or not value or len(value) > MAX_CLIENT_TOKEN_LENGTH:
        raise MessageValidationError("client_token must be a non-empty string")
    return value


@dataclass(frozen=True, slots=True)
class JoinEvent:
    """Client asks to be registered under user_id."""

    user_id: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(user_id=_positive_int(data, "user_id"))


@dataclass(frozen=True, slots=True)
class ChatMessageEvent:
    """
    A direct or group message as sent by the client.

    Exactly one of receiver_id / group_id is set. sender_id is only
    echoed by some clients; when present it must match the joined user.
    """

    event_type: EventType
    content: str
    receiver_id: int | None = None
    group_id: int | None = None
    timestamp: int | None = None
    client_token: str | None = None
    sender_id: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """
        Raises:
            MessageValidationError: If data fails validation.
        """
        event_type = EventType(data.get("type"))
        has_receiver = data.get("receiver_id") is not None
        has_group = data.get("group_id") is not None
        if has_receiver == has_group:
            raise MessageValidationError("Exactly one of receiver_id or group_id is required")

        if event_type is EventType.DIRECT_MESSAGE and not has_receiver:
            raise MessageValidationError("direct_message requires receiver_id")
        if event_type is EventType.GROUP_MESSAGE and not has_group:
            raise MessageValidationError("group_message requires group_id")

        content = data.get("content")
        if not isinstance(content, str):
            raise MessageValidationError("content must be a string")

        unknown_fields = set(data) - MESSAGE_FIELDS - {"receiver_id", "group_id"}
        if len(unknown_fields) > MAX_UNKNOWN_FIELDS:
            raise MessageValidationError(f"Too many unknown fields: {len(unknown_fields)}")

        sender_id = None
        if data.get("sender_id") is not None:
            sender_id = _positive_int(data, "sender_id")

        return cls(
            event_type=event_type,
            content=content,
            receiver_id=_positive_int(data, "receiver_id") if has_receiver else None,
            group_id=_positive_int(data, "group_id") if has_group else None,
            timestamp=_optional_timestamp(data),
            client_token=_optional_client_token(data),
            sender_id=sender_id,
        )

    @property
    def is_group(self) -> bool:
        return self.group_id is not None


InboundEvent = JoinEvent | ChatMessageEvent


def parse_inbound(data: Any) -> InboundEvent:
    """
    Parse a decoded JSON frame into an inbound event.

    Pings are answered before parsing and never reach here.

    Raises:
        MessageValidationError: Unknown type or invalid fields.
    """
    if not isinstance(data, dict):
        raise MessageValidationError("Event must be a JSON object")

    event_type = data.get("type")
    if event_type == EventType.JOIN.value:
        return JoinEvent.from_dict(data)
    if event_type in (EventType.DIRECT_MESSAGE.value, EventType.GROUP_MESSAGE.value):
        return ChatMessageEvent.from_dict(data)

    logger.debug("Unknown inbound event type", event_type=str(event_type)[:50])
    raise MessageValidationError("Unknown event type")


# =============================================================================
# Outbound event builders
# =============================================================================


def build_event(event_type: EventType, data: dict[str, Any] | None = None) -> dict[str, Any]:
    event: dict[str, Any] = {"type": event_type.value}
    if data is not None:
        event["data"] = data
    return event


def error_event(message: str) -> dict[str, Any]:
    return build_event(EventType.ERROR, {"message": message})


def connected_event(user_id: int) -> dict[str, Any]:
    return build_event(
        EventType.CONNECTED,
        {"message": "Successfully connected to server", "user_id": user_id},
    )

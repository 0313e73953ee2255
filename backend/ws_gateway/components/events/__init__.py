"""
Event handling components.

Inbound frame parsing and outbound event builders.
"""

from ws_gateway.components.events.types import (
    EventType,
    INBOUND_EVENT_TYPES,
    JoinEvent,
    ChatMessageEvent,
    InboundEvent,
    MessageValidationError,
    parse_inbound,
    build_event,
    error_event,
    connected_event,
)

__all__ = [
    "EventType",
    "INBOUND_EVENT_TYPES",
    "JoinEvent",
    "ChatMessageEvent",
    "InboundEvent",
    "MessageValidationError",
    "parse_inbound",
    "build_event",
    "error_event",
    "connected_event",
]

"""
WebSocket Gateway Core Module.

- connection/: Connection lifecycle, publishing, cleanup, stats, sessions
- dispatch/: Message dispatch and friend notifications
"""

from ws_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionCleanup,
    ConnectionStats,
    ChatSession,
    SessionState,
    SessionStateError,
    is_ws_connected,
)
from ws_gateway.core.dispatch import MessageDispatcher, PresenceNotifier

__all__ = [
    # Connection module
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionCleanup",
    "ConnectionStats",
    "ChatSession",
    "SessionState",
    "SessionStateError",
    "is_ws_connected",
    # Dispatch module
    "MessageDispatcher",
    "PresenceNotifier",
]

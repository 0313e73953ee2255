"""
Connection Management Module.

Modular components extracted from ConnectionManager:
- lifecycle.py: Accept, register, unregister, disconnect
- broadcaster.py: Publishing events to a user's connections
- cleanup.py: Stale/dead connection and lock cleanup
- stats.py: Statistics aggregation
- session.py: Per-connection join state machine
"""

from ws_gateway.core.connection.lifecycle import ConnectionLifecycle
from ws_gateway.core.connection.broadcaster import ConnectionBroadcaster, is_ws_connected
from ws_gateway.core.connection.cleanup import ConnectionCleanup
from ws_gateway.core.connection.stats import ConnectionStats
from ws_gateway.core.connection.session import ChatSession, SessionState, SessionStateError

__all__ = [
    "ConnectionLifecycle",
    "ConnectionBroadcaster",
    "ConnectionCleanup",
    "ConnectionStats",
    "is_ws_connected",
    "ChatSession",
    "SessionState",
    "SessionStateError",
]

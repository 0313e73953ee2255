"""
Connection management components.

Handles the registry's building blocks: indices, locks, heartbeat, rate limiting.
"""

from ws_gateway.components.connection.index import ConnectionIndex
from ws_gateway.components.connection.locks import LockManager
from ws_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat, is_ping
from ws_gateway.components.connection.rate_limiter import WebSocketRateLimiter

__all__ = [
    "ConnectionIndex",
    "LockManager",
    "HeartbeatTracker",
    "handle_heartbeat",
    "is_ping",
    "WebSocketRateLimiter",
]

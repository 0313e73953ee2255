"""
Building blocks of the chat gateway:

- core/       - Constants, per-connection context, dependency providers
- connection/ - Connection index, locks, heartbeat, rate limiting
- events/     - Inbound frame parsing and outbound event builders
- endpoints/  - WebSocket endpoint base classes, mixins, chat endpoint
- metrics/    - In-process counters
- data/       - Persistence port and its SQLAlchemy implementation
"""

from ws_gateway.components.core.constants import (
    WSCloseCode,
    WSConstants,
    MSG_PING_PLAIN,
    MSG_PING_JSON,
    MSG_PONG_JSON,
    DEFAULT_ALLOWED_ORIGINS,
    validate_websocket_origin,
)
from ws_gateway.components.core.context import WebSocketContext, sanitize_log_data

from ws_gateway.components.connection.index import ConnectionIndex
from ws_gateway.components.connection.locks import LockManager
from ws_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat
from ws_gateway.components.connection.rate_limiter import WebSocketRateLimiter

from ws_gateway.components.events.types import (
    EventType,
    JoinEvent,
    ChatMessageEvent,
    MessageValidationError,
    parse_inbound,
    error_event,
    connected_event,
)

from ws_gateway.components.metrics.collector import MetricsCollector

from ws_gateway.components.data.ports import (
    ChatStore,
    GroupNotFoundError,
    PersistenceError,
    SenderNotMemberError,
    StoredMessage,
)
from ws_gateway.components.data.chat_repository import (
    AsyncChatStore,
    SqlAlchemyChatStore,
    UsernameCache,
)

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "validate_websocket_origin",
    "WebSocketContext",
    "sanitize_log_data",
    "ConnectionIndex",
    "LockManager",
    "HeartbeatTracker",
    "handle_heartbeat",
    "WebSocketRateLimiter",
    "EventType",
    "JoinEvent",
    "ChatMessageEvent",
    "MessageValidationError",
    "parse_inbound",
    "error_event",
    "connected_event",
    "MetricsCollector",
    "ChatStore",
    "GroupNotFoundError",
    "PersistenceError",
    "SenderNotMemberError",
    "StoredMessage",
    "AsyncChatStore",
    "SqlAlchemyChatStore",
    "UsernameCache",
]

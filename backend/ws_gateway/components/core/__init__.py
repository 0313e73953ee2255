"""
Core WebSocket Gateway components.

Foundational components: constants, context, and dependency injection.
"""

from ws_gateway.components.core.constants import WSCloseCode, WSConstants
from ws_gateway.components.core.context import WebSocketContext, sanitize_log_data
from ws_gateway.components.core.dependencies import (
    ConnectionManagerDependencies,
    get_chat_store,
    get_connection_manager,
    get_dispatcher,
    get_notifier,
    get_username_cache,
)

__all__ = [
    # Constants
    "WSCloseCode",
    "WSConstants",
    # Context
    "WebSocketContext",
    "sanitize_log_data",
    # Dependencies
    "ConnectionManagerDependencies",
    "get_chat_store",
    "get_connection_manager",
    "get_dispatcher",
    "get_notifier",
    "get_username_cache",
]

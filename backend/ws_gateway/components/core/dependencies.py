"""
Wiring for the chat gateway.

The ConnectionManager itself lives on app.state (created in the gateway
lifespan); everything that needs the registry reaches it through
get_connection_manager so tests can swap in their own instance.
"""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING

from fastapi import Depends
from starlette.requests import HTTPConnection

from shared.config.settings import settings
from shared.infrastructure.db import SessionLocal
from ws_gateway.components.connection.locks import LockManager
from ws_gateway.components.metrics.collector import MetricsCollector
from ws_gateway.components.connection.heartbeat import HeartbeatTracker
from ws_gateway.components.connection.rate_limiter import WebSocketRateLimiter
from ws_gateway.components.data.chat_repository import (
    AsyncChatStore,
    SqlAlchemyChatStore,
    UsernameCache,
)
from ws_gateway.components.data.ports import ChatStore

if TYPE_CHECKING:
    from ws_gateway.connection_manager import ConnectionManager
    from ws_gateway.core.dispatch.dispatcher import MessageDispatcher
    from ws_gateway.core.dispatch.notifier import PresenceNotifier


class ConnectionManagerDependencies:
    """
    The components one ConnectionManager is built from. Defaults come from
    settings; two managers never share a component unless it is passed in.

    Usage:
        manager = ConnectionManager(deps=ConnectionManagerDependencies())

        # For testing:
        deps = ConnectionManagerDependencies(
            heartbeat_tracker=HeartbeatTracker(timeout_seconds=0.01),
        )
        manager = ConnectionManager(deps=deps)
    """

    def __init__(
        self,
        lock_manager: LockManager | None = None,
        metrics: MetricsCollector | None = None,
        heartbeat_tracker: HeartbeatTracker | None = None,
        rate_limiter: WebSocketRateLimiter | None = None,
    ) -> None:
        self.lock_manager = lock_manager or LockManager()
        self.metrics = metrics or MetricsCollector()
        self.heartbeat_tracker = heartbeat_tracker or HeartbeatTracker(
            timeout_seconds=settings.ws_heartbeat_timeout,
        )
        self.rate_limiter = rate_limiter or WebSocketRateLimiter(
            max_messages=settings.ws_message_rate_limit,
            window_seconds=settings.ws_message_rate_window,
        )


def get_connection_manager(conn: HTTPConnection) -> "ConnectionManager":
    """
    The process-wide registry, created by the gateway lifespan.

    Works for both HTTP requests and WebSocket connections.
    """
    manager = getattr(conn.app.state, "connection_manager", None)
    if manager is None:
        raise RuntimeError("ConnectionManager not initialized; is the gateway lifespan running?")
    return manager


@lru_cache(maxsize=1)
def get_chat_store() -> ChatStore:
    """Persistence port backed by the application's database."""
    return SqlAlchemyChatStore(SessionLocal)


def get_username_cache(conn: HTTPConnection) -> UsernameCache:
    cache = getattr(conn.app.state, "username_cache", None)
    if cache is None:
        cache = UsernameCache()
        conn.app.state.username_cache = cache
    return cache


def get_dispatcher(
    conn: HTTPConnection,
    store: ChatStore = Depends(get_chat_store),
) -> "MessageDispatcher":
    """Dispatcher bound to the shared registry and the configured store."""
    from ws_gateway.core.dispatch.dispatcher import MessageDispatcher

    manager = get_connection_manager(conn)
    return MessageDispatcher(
        publisher=manager,
        store=AsyncChatStore(store, username_cache=get_username_cache(conn)),
        metrics=manager.metrics,
        max_message_length=settings.max_message_length,
    )


def get_notifier(conn: HTTPConnection) -> "PresenceNotifier":
    """Friend notifications published through the shared registry."""
    from ws_gateway.core.dispatch.notifier import PresenceNotifier

    manager = get_connection_manager(conn)
    return PresenceNotifier(manager, manager.metrics)


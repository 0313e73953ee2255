"""
Admission and membership for chat sockets.

A socket goes through three registry states:

    accepted    counted toward ws_max_total_connections, owned by nobody
    registered  in exactly one user's set (after join)
    forgotten   gone from every structure (after disconnect)

Lock order: a user's lock, then connection_counter_lock. Two user locks
are never held together.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_gateway.components.connection.locks import LockManager
    from ws_gateway.components.connection.heartbeat import HeartbeatTracker
    from ws_gateway.components.connection.rate_limiter import WebSocketRateLimiter
    from ws_gateway.components.connection.index import ConnectionIndex
    from ws_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionLifecycle:
    def __init__(
        self,
        lock_manager: "LockManager",
        metrics: "MetricsCollector",
        heartbeat_tracker: "HeartbeatTracker",
        rate_limiter: "WebSocketRateLimiter",
        index: "ConnectionIndex",
        max_connections_per_user: int,
        max_total_connections: int,
    ) -> None:
        self._locks = lock_manager
        self._metrics = metrics
        self._heartbeats = heartbeat_tracker
        self._rate_limiter = rate_limiter
        self._index = index
        self.max_connections_per_user = max_connections_per_user
        self.max_total_connections = max_total_connections
        self.is_shutdown = False

    @property
    def total_connections(self) -> int:
        return self._index.total_connections

    def set_shutdown(self, value: bool) -> None:
        self.is_shutdown = value

    async def accept(
        self,
        websocket: "WebSocket",
        timeout: float = WSConstants.WS_ACCEPT_TIMEOUT,
    ) -> None:
        """
        Reserve a slot, then complete the handshake.

        The slot is reserved before the handshake so two sockets racing for
        the last slot cannot both get it, and released again if the
        handshake fails.

        Raises:
            ConnectionError: shutting down, gateway full, or handshake failed.
        """
        if self.is_shutdown:
            raise ConnectionError("Server is shutting down")

        async with self._locks.connection_counter_lock:
            if self._index.total_connections >= self.max_total_connections:
                self._metrics.increment_connection_rejected_limit()
                raise ConnectionError(f"Server at capacity ({self.max_total_connections} connections)")
            self._index.add_accepted(websocket)

        try:
            await asyncio.wait_for(websocket.accept(), timeout=timeout)
        except Exception as e:
            await self._release_slot(websocket)
            if isinstance(e, asyncio.TimeoutError):
                self._metrics.increment_connection_timeouts()
                raise ConnectionError("WebSocket accept timed out") from e
            raise ConnectionError(f"WebSocket accept failed: {e}") from e

        self._heartbeats.record(websocket)

    async def register(self, user_id: int, websocket: "WebSocket") -> bool:
        """
        Join websocket to user_id's set.

        A socket already registered under another user is moved first.

        Returns:
            False if it was already in user_id's set.

        Raises:
            ConnectionError: user_id already has max_connections_per_user sockets.
        """
        owner = self._index.get_user_id(websocket)
        if owner is not None and owner != user_id:
            await self.unregister(websocket)

        async with await self._locks.get_user_lock(user_id):
            if websocket in self._index.get_user_connections(user_id):
                return False
            if self._index.count_user_connections(user_id) >= self.max_connections_per_user:
                raise ConnectionError(
                    f"User {user_id} exceeded max connections ({self.max_connections_per_user})"
                )
            self._index.register_user(websocket, user_id)

        logger.debug("Socket joined user channel", user_id=user_id)
        return True

    async def unregister(self, websocket: "WebSocket") -> int | None:
        """Returns the user it was registered under, or None if it was not registered."""
        user_id = self._index.get_user_id(websocket)
        if user_id is None:
            return None

        async with await self._locks.get_user_lock(user_id):
            # Another unregister may have run while we waited for the lock.
            if self._index.get_user_id(websocket) != user_id:
                return None
            self._index.unregister_user(websocket)

        logger.debug("Socket left user channel", user_id=user_id)
        return user_id

    async def disconnect(self, websocket: "WebSocket") -> int | None:
        """Forget websocket entirely. Idempotent."""
        self._heartbeats.remove(websocket)
        await self._rate_limiter.remove_connection(websocket)
        user_id = await self.unregister(websocket)
        await self._release_slot(websocket)
        return user_id

    async def _release_slot(self, websocket: "WebSocket") -> None:
        async with self._locks.connection_counter_lock:
            self._index.remove_accepted(websocket)

"""
Channel registry for the chat gateway.

ConnectionManager answers two questions: which sockets belong to a user,
and how to get an event onto all of them. The work is split across
collaborators under ws_gateway.core.connection and this class wires them
together:

    ConnectionLifecycle    accept / register / unregister / disconnect
    ConnectionBroadcaster  publish to one user's sockets
    ConnectionCleanup      stale sockets, failed sends, idle locks
    ConnectionStats        numbers for /ws/health

The gateway lifespan creates one manager per process and keeps it on
app.state; tests construct their own.
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Any, TYPE_CHECKING

from shared.config.settings import settings
from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSCloseCode
from ws_gateway.components.core.dependencies import ConnectionManagerDependencies
from ws_gateway.components.connection.index import ConnectionIndex
from ws_gateway.core.connection import (
    ConnectionLifecycle,
    ConnectionBroadcaster,
    ConnectionCleanup,
    ConnectionStats,
)

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionManager:
    """
    user id -> live sockets, plus publishing to them.

    A socket is accepted first and belongs to nobody until the client
    joins; only then does register() put it in the user's set. Limits
    default to the ws_* settings and can be overridden per instance.

    Locks are always taken in this order: a user's lock, then the
    connection counter lock. The dead-connection lock is never held
    together with either.
    """

    def __init__(
        self,
        deps: ConnectionManagerDependencies | None = None,
        max_connections_per_user: int | None = None,
        max_total_connections: int | None = None,
        batch_size: int | None = None,
    ) -> None:
        deps = deps or ConnectionManagerDependencies()
        self._locks = deps.lock_manager
        self._metrics = deps.metrics
        self._heartbeats = deps.heartbeat_tracker
        self._rate_limiter = deps.rate_limiter
        self._index = ConnectionIndex()

        per_user_limit = max_connections_per_user or settings.ws_max_connections_per_user
        total_limit = max_total_connections or settings.ws_max_total_connections

        self._lifecycle = ConnectionLifecycle(
            self._locks,
            self._metrics,
            self._heartbeats,
            self._rate_limiter,
            self._index,
            max_connections_per_user=per_user_limit,
            max_total_connections=total_limit,
        )
        self._cleanup = ConnectionCleanup(
            self._locks,
            self._metrics,
            self._heartbeats,
            self._index,
            disconnect_callback=self.disconnect,
        )
        self._broadcaster = ConnectionBroadcaster(
            self._locks,
            self._index,
            self._metrics,
            self._cleanup.mark_dead_connection,
            batch_size=batch_size or settings.ws_broadcast_batch_size,
        )
        self._stats = ConnectionStats(
            self._locks,
            self._metrics,
            self._heartbeats,
            self._rate_limiter,
            self._index,
            get_dead_connections_count=lambda: self._cleanup.dead_connections_count,
            max_total_connections=total_limit,
        )

    @property
    def by_user(self) -> MappingProxyType[int, set["WebSocket"]]:
        return self._index.by_user

    @property
    def total_connections(self) -> int:
        """Every accepted socket, joined or not."""
        return self._lifecycle.total_connections

    @property
    def metrics(self) -> "MetricsCollector":
        return self._metrics

    def get_user_connections(self, user_id: int) -> set["WebSocket"]:
        return self._index.get_user_connections(user_id)

    def is_online(self, user_id: int) -> bool:
        return bool(self._index.count_user_connections(user_id))

    # Per-frame bookkeeping

    async def check_rate_limit(self, ws: "WebSocket") -> bool:
        return await self._rate_limiter.is_allowed(ws)

    async def record_heartbeat(self, websocket: "WebSocket") -> None:
        self._heartbeats.record(websocket)

    def record_rate_limit_rejection(self) -> None:
        self._metrics.increment_connection_rejected_rate_limit()

    def record_auth_rejection(self) -> None:
        self._metrics.increment_connection_rejected_auth()

    # Membership

    async def accept(self, websocket: "WebSocket") -> None:
        """Raises ConnectionError when shutting down or at the global limit."""
        await self._lifecycle.accept(websocket)

    async def register(self, user_id: int, websocket: "WebSocket") -> bool:
        """
        Put an accepted socket in user_id's set.

        Returns False if it was already there. Raises ConnectionError when
        the user is at the per-user limit.
        """
        return await self._lifecycle.register(user_id, websocket)

    async def unregister(self, websocket: "WebSocket") -> int | None:
        return await self._lifecycle.unregister(websocket)

    async def disconnect(self, websocket: "WebSocket") -> int | None:
        """Unregister and drop heartbeat, rate and dead-send state. Safe to repeat."""
        user_id = await self._lifecycle.disconnect(websocket)
        self._cleanup.forget_dead(websocket)
        return user_id

    # Delivery

    async def publish(self, user_id: int, event: dict[str, Any]) -> int:
        """Send to every socket of user_id. 0 means nobody got it; offline events are not queued."""
        return await self._broadcaster.publish(user_id, event)

    async def send_to_connection(self, websocket: "WebSocket", event: dict[str, Any]) -> bool:
        return await self._broadcaster.send_to_connection(websocket, event)

    # Housekeeping, driven by the gateway's background cleanup task

    async def cleanup_stale_connections(self) -> int:
        return await self._cleanup.cleanup_stale_connections()

    async def cleanup_dead_connections(self) -> int:
        return await self._cleanup.cleanup_dead_connections()

    async def cleanup_rate_limiter(self) -> int:
        return await self._rate_limiter.cleanup_stale()

    async def cleanup_locks(self) -> int:
        return await self._cleanup.cleanup_locks()

    def is_marked_dead(self, websocket: "WebSocket") -> bool:
        return self._cleanup.is_marked_dead(websocket)

    async def get_stats(self) -> dict[str, Any]:
        return await self._stats.get_stats()

    def get_stats_sync(self) -> dict[str, Any]:
        return self._stats.get_stats_sync()

    def is_shutting_down(self) -> bool:
        return self._lifecycle.is_shutdown

    async def shutdown(self) -> int:
        """
        Refuse new sockets, close every open one with 1001 and forget it.

        Returns:
            How many sockets closed cleanly.
        """
        self._lifecycle.set_shutdown(True)
        sockets = list(self._index.get_all_connections())
        logger.info("Closing chat connections for shutdown", count=len(sockets))

        outcomes = await asyncio.gather(
            *(ws.close(code=WSCloseCode.GOING_AWAY, reason="Server shutdown") for ws in sockets),
            return_exceptions=True,
        )
        closed = 0
        for ws, outcome in zip(sockets, outcomes):
            if isinstance(outcome, Exception):
                logger.debug("Close during shutdown failed", error=str(outcome))
            else:
                closed += 1
            await self.disconnect(ws)

        logger.info("Chat gateway shutdown complete", closed=closed)
        return closed

"""
Registry housekeeping.

Three kinds of leftovers accumulate in a long-running gateway:

- sockets that stopped sending anything (no heartbeat within the timeout)
- sockets whose send failed during a publish; they are marked here and
  disconnected on the next sweep rather than inside the publish
- per-user locks of users who went offline

The gateway's cleanup task calls into this class on a timer.
"""

from __future__ import annotations

import time
from typing import Callable, Awaitable, TYPE_CHECKING

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSCloseCode, WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_gateway.components.connection.locks import LockManager
    from ws_gateway.components.connection.heartbeat import HeartbeatTracker
    from ws_gateway.components.connection.index import ConnectionIndex
    from ws_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ConnectionCleanup:
    def __init__(
        self,
        lock_manager: "LockManager",
        metrics: "MetricsCollector",
        heartbeat_tracker: "HeartbeatTracker",
        index: "ConnectionIndex",
        disconnect_callback: Callable[["WebSocket"], Awaitable[object]],
        max_dead_connections: int = WSConstants.MAX_DEAD_CONNECTIONS,
    ) -> None:
        self._locks = lock_manager
        self._metrics = metrics
        self._heartbeats = heartbeat_tracker
        self._index = index
        self._disconnect = disconnect_callback
        self._max_dead = max_dead_connections
        # socket -> when its send failed
        self._dead: dict["WebSocket", float] = {}

    @property
    def dead_connections_count(self) -> int:
        return len(self._dead)

    def is_marked_dead(self, ws: "WebSocket") -> bool:
        return ws in self._dead

    def forget_dead(self, ws: "WebSocket") -> None:
        self._dead.pop(ws, None)

    async def cleanup_stale_connections(self) -> int:
        """Close silent sockets with 1001 and disconnect them. Returns how many were disconnected."""
        disconnected = 0
        for ws in self._heartbeats.cleanup_stale():
            try:
                await ws.close(code=WSCloseCode.GOING_AWAY, reason="Heartbeat timeout")
            except Exception as e:
                logger.debug("Closing silent socket failed", error=str(e))
            try:
                await self._disconnect(ws)
            except Exception as e:
                logger.debug("Disconnecting silent socket failed", error=str(e))
            else:
                disconnected += 1

        if disconnected:
            logger.info("Disconnected silent sockets", count=disconnected)
        return disconnected

    async def mark_dead_connection(self, ws: "WebSocket") -> None:
        """Queue a socket whose send failed. When the queue is full the oldest entry is dropped."""
        async with self._locks.dead_connections_lock:
            if ws in self._dead:
                return
            if len(self._dead) >= self._max_dead:
                oldest = min(self._dead, key=self._dead.__getitem__)
                del self._dead[oldest]
                logger.warning("Dead socket queue full, dropping oldest", max_size=self._max_dead)
            self._dead[ws] = time.time()

    async def cleanup_dead_connections(self) -> int:
        async with self._locks.dead_connections_lock:
            dead, self._dead = list(self._dead), {}

        disconnected = 0
        for ws in dead:
            try:
                await self._disconnect(ws)
            except Exception as e:
                logger.warning("Disconnecting dead socket failed", error=str(e))
            else:
                disconnected += 1
        return disconnected

    async def cleanup_locks(self) -> int:
        cleaned = await self._locks.cleanup_stale_locks(self._index.get_active_user_ids())
        if cleaned:
            self._metrics.add_locks_cleaned(cleaned)
        return cleaned

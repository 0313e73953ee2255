"""
Fan-out of one event to one user's sockets.

Delivery is best effort per socket: a closed socket or a failed send is
handed to the dead-socket queue and the remaining sockets still get the
event. Nothing is queued for users who are offline.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Awaitable, TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_gateway.components.connection.locks import LockManager
    from ws_gateway.components.connection.index import ConnectionIndex
    from ws_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


def is_ws_connected(ws: "WebSocket") -> bool:
    """Both sides of a Starlette socket still report CONNECTED."""
    return ws.client_state == ws.application_state == WebSocketState.CONNECTED


class ConnectionBroadcaster:
    def __init__(
        self,
        lock_manager: "LockManager",
        index: "ConnectionIndex",
        metrics: "MetricsCollector",
        mark_dead_callback: Callable[["WebSocket"], Awaitable[None]],
        batch_size: int = 50,
    ) -> None:
        self._locks = lock_manager
        self._index = index
        self._metrics = metrics
        self._mark_dead = mark_dead_callback
        # sockets written to concurrently per gather
        self._batch_size = max(1, batch_size)

    async def send_to_connection(self, ws: "WebSocket", payload: dict[str, Any]) -> bool:
        if is_ws_connected(ws):
            try:
                await ws.send_json(payload)
                return True
            except Exception as e:
                logger.debug("Send to socket failed", error=str(e))
        await self._mark_dead(ws)
        return False

    async def publish(self, user_id: int, payload: dict[str, Any]) -> int:
        """
        Returns:
            How many of user_id's sockets received payload.
        """
        # Copy the set under the lock, send outside it: a slow reader must
        # not hold up joins and disconnects for the same user.
        async with await self._locks.get_user_lock(user_id):
            sockets = list(self._index.get_user_connections(user_id))

        if not sockets:
            self._metrics.record_publish(0, 0)
            logger.debug("Event for offline user dropped", user_id=user_id, type=payload.get("type"))
            return 0

        delivered = 0
        for start in range(0, len(sockets), self._batch_size):
            batch = sockets[start : start + self._batch_size]
            outcomes = await asyncio.gather(
                *(self.send_to_connection(ws, payload) for ws in batch),
                return_exceptions=True,
            )
            delivered += sum(1 for outcome in outcomes if outcome is True)

        failed = len(sockets) - delivered
        self._metrics.record_publish(delivered, failed)
        if failed:
            logger.debug("Publish partially failed", user_id=user_id, delivered=delivered, failed=failed)
        return delivered

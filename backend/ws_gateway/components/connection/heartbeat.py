"""
Liveness of chat sockets.

Every inbound frame refreshes a socket's timestamp, pings included. Ping
frames ("ping" or {"type":"ping"}) are answered with {"type":"pong"} and
never reach the chat handler.
"""

from __future__ import annotations

import json
import threading
import time
from typing import TYPE_CHECKING

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import MSG_PING_PLAIN, MSG_PING_JSON, MSG_PONG_JSON

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)

# {"type": "ping"} with generous whitespace fits; chat frames are longer.
_PING_FRAME_MAX_LEN = 64


class HeartbeatTracker:
    """
    Last-seen time per socket.

    Read by the sync health endpoint and written from the event loop, so
    the map is guarded by a threading.Lock.
    """

    def __init__(self, timeout_seconds: float = 60.0):
        self.timeout = timeout_seconds
        self._seen: dict[WebSocket, float] = {}
        self._lock = threading.Lock()

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._seen)

    def record(self, websocket: WebSocket, timestamp: float | None = None) -> None:
        with self._lock:
            self._seen[websocket] = time.time() if timestamp is None else timestamp

    def remove(self, websocket: WebSocket) -> None:
        with self._lock:
            self._seen.pop(websocket, None)

    def get_last_activity(self, websocket: WebSocket) -> float | None:
        with self._lock:
            return self._seen.get(websocket)

    def is_stale(self, websocket: WebSocket) -> bool:
        last = self.get_last_activity(websocket)
        return last is None or time.time() - last > self.timeout

    def cleanup_stale(self) -> list[WebSocket]:
        """Stop tracking silent sockets and return them so the caller can close them."""
        cutoff = time.time() - self.timeout
        with self._lock:
            stale = [ws for ws, last in self._seen.items() if last < cutoff]
            for ws in stale:
                del self._seen[ws]
        return stale

    def get_stats(self) -> dict[str, float | int]:
        now = time.time()
        with self._lock:
            ages = [now - last for last in self._seen.values()]
        return {
            "tracked_connections": len(ages),
            "timeout_seconds": self.timeout,
            "oldest_heartbeat_age": max(ages, default=0),
            "average_heartbeat_age": sum(ages) / len(ages) if ages else 0,
        }


def is_ping(data: str) -> bool:
    if data in (MSG_PING_PLAIN, MSG_PING_JSON):
        return True
    if len(data) > _PING_FRAME_MAX_LEN or not data.lstrip().startswith("{"):
        return False
    try:
        frame = json.loads(data)
    except ValueError:
        return False
    return frame == {"type": "ping"}


async def handle_heartbeat(ws: WebSocket, data: str) -> bool:
    """Answer data with a pong if it is a ping. Returns whether it was one."""
    if not is_ping(data):
        return False
    try:
        await ws.send_text(MSG_PONG_JSON)
    except (ConnectionError, RuntimeError, OSError):
        # Peer already gone; the receive loop will see the disconnect.
        pass
    except Exception as e:
        logger.warning("Pong failed", error=type(e).__name__, message=str(e))
    return True

"""
Inbound frame rate limiting, per socket.

One group message fans out to every member, so a single chatty socket can
produce a lot of outbound traffic. Each socket keeps a log of its recent
frame times; a frame is refused once max_messages of them fall inside the
last window_seconds.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from typing import TYPE_CHECKING

from starlette.websockets import WebSocketState

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSConstants

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = get_logger(__name__)


class WebSocketRateLimiter:
    """
    Sliding-window log per socket.

    At most max_tracked sockets are remembered. When a new one arrives at
    capacity, the EVICTION_PERCENTAGE least recently active are forgotten
    (and so get a fresh window).
    """

    def __init__(
        self,
        max_messages: int,
        window_seconds: float,
        max_tracked: int = WSConstants.MAX_TRACKED_CONNECTIONS,
    ):
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self.max_tracked = max_tracked

        self._frames: dict[WebSocket, deque[float]] = {}
        self._lock = asyncio.Lock()
        self._warned_full = False
        self._allowed = 0
        self._rejected = 0
        self._evictions = 0

    @property
    def tracked_count(self) -> int:
        return len(self._frames)

    async def is_allowed(self, ws: WebSocket, now: float | None = None) -> bool:
        """Record a frame from ws; False if it goes over the limit (the frame is not recorded)."""
        if now is None:
            now = time.time()
        cutoff = now - self.window_seconds

        async with self._lock:
            log = self._frames.get(ws)
            if log is None:
                if len(self._frames) >= self.max_tracked:
                    self._evict_least_active()
                log = self._frames[ws] = deque()

            while log and log[0] <= cutoff:
                log.popleft()

            if len(log) >= self.max_messages:
                self._rejected += 1
                return False
            log.append(now)
            self._allowed += 1
            return True

    def _evict_least_active(self) -> None:
        if not self._warned_full:
            logger.warning("Rate limiter full, forgetting least active sockets", max_tracked=self.max_tracked)
            self._warned_full = True

        count = max(1, self.max_tracked * WSConstants.EVICTION_PERCENTAGE // 100)
        least_active = sorted(self._frames, key=lambda ws: self._frames[ws][-1] if self._frames[ws] else 0.0)
        for ws in least_active[:count]:
            del self._frames[ws]
        self._evictions += min(count, len(least_active))

    async def remove_connection(self, ws: WebSocket) -> None:
        async with self._lock:
            self._frames.pop(ws, None)

    async def cleanup_stale(self) -> int:
        """Forget sockets that are closed or sent nothing within the window."""
        cutoff = time.time() - self.window_seconds

        def is_stale(ws: WebSocket, log: deque[float]) -> bool:
            if getattr(ws, "client_state", WebSocketState.CONNECTED) != WebSocketState.CONNECTED:
                return True
            return not log or log[-1] <= cutoff

        async with self._lock:
            stale = [ws for ws, log in self._frames.items() if is_stale(ws, log)]
            for ws in stale:
                del self._frames[ws]
            if len(self._frames) < self.max_tracked * 0.9:
                self._warned_full = False
        return len(stale)

    def get_stats(self) -> dict[str, int | float]:
        return {
            "tracked_connections": len(self._frames),
            "max_tracked": self.max_tracked,
            "max_messages_per_window": self.max_messages,
            "window_seconds": self.window_seconds,
            "total_allowed": self._allowed,
            "total_rejected": self._rejected,
            "evictions": self._evictions,
        }

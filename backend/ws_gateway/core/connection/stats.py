"""
Registry statistics for /ws/health and diagnostics.
"""

from __future__ import annotations

from typing import Any, Callable, TYPE_CHECKING

if TYPE_CHECKING:
    from ws_gateway.components.connection.locks import LockManager
    from ws_gateway.components.connection.heartbeat import HeartbeatTracker
    from ws_gateway.components.connection.rate_limiter import WebSocketRateLimiter
    from ws_gateway.components.connection.index import ConnectionIndex
    from ws_gateway.components.metrics.collector import MetricsCollector


class ConnectionStats:
    """
    Read-only view over the registry's components.

    snapshot() is safe from sync code (the health route); get_stats() adds
    the per-component breakdowns.
    """

    def __init__(
        self,
        lock_manager: "LockManager",
        metrics: "MetricsCollector",
        heartbeat_tracker: "HeartbeatTracker",
        rate_limiter: "WebSocketRateLimiter",
        index: "ConnectionIndex",
        get_dead_connections_count: Callable[[], int],
        max_total_connections: int,
    ) -> None:
        self._locks = lock_manager
        self._metrics = metrics
        self._heartbeats = heartbeat_tracker
        self._limiter = rate_limiter
        self._index = index
        self._dead_count = get_dead_connections_count
        self._capacity = max_total_connections

    def snapshot(self) -> dict[str, Any]:
        counts = self._index.get_stats()
        accepted = counts["total_connections"]
        return {
            "total_connections": accepted,
            "joined_connections": counts["joined_connections"],
            "users_connected": counts["users_count"],
            "max_connections": self._capacity,
            "utilization_percent": round(100 * accepted / max(1, self._capacity), 1),
            "dead_connections_pending": self._dead_count(),
            "rate_limiter_tracked": self._limiter.tracked_count,
            "user_locks_count": self._locks.user_lock_count,
            "metrics": self._metrics.get_snapshot(),
        }

    async def get_stats(self) -> dict[str, Any]:
        return {
            **self.snapshot(),
            "locks": self._locks.get_stats(),
            "heartbeat": self._heartbeats.get_stats(),
            "rate_limiter": self._limiter.get_stats(),
        }

    def get_stats_sync(self) -> dict[str, Any]:
        return self.snapshot()

"""
Metrics Collector for WebSocket Gateway.

Centralizes counters for observability. Counters are incremented from the
event loop and read from the sync health endpoint, so every operation
holds a threading.Lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any


@dataclass
class PublishMetrics:
    """Channel publish outcomes."""
    total: int = 0
    delivered: int = 0
    dropped_offline: int = 0
    failed_sends: int = 0


@dataclass
class ConnectionMetrics:
    """Connection admission outcomes."""
    rejected_limit: int = 0
    rejected_rate_limit: int = 0
    rejected_auth: int = 0
    timeouts: int = 0


@dataclass
class MessageMetrics:
    """Dispatch and notification outcomes."""
    dispatched_direct: int = 0
    dispatched_group: int = 0
    persistence_failed: int = 0
    membership_failed: int = 0
    notifications_sent: int = 0
    notifications_failed: int = 0


class MetricsCollector:
    """
    Thread-safe metrics collector for WebSocket Gateway.

    Snapshot keys are {category}_{metric}, e.g. publish_dropped_offline.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._publish = PublishMetrics()
        self._connection = ConnectionMetrics()
        self._message = MessageMetrics()
        self._locks_cleaned = 0

    # Publish Metrics

    def record_publish(self, delivered: int, failed: int) -> None:
        """Record one publish call and how its sends went."""
        with self._lock:
            self._publish.total += 1
            self._publish.delivered += delivered
            self._publish.failed_sends += failed
            if delivered == 0 and failed == 0:
                self._publish.dropped_offline += 1

    # Connection Metrics

    def increment_connection_rejected_limit(self) -> None:
        with self._lock:
            self._connection.rejected_limit += 1

    def increment_connection_rejected_rate_limit(self) -> None:
        with self._lock:
            self._connection.rejected_rate_limit += 1

    def increment_connection_rejected_auth(self) -> None:
        with self._lock:
            self._connection.rejected_auth += 1

    def increment_connection_timeouts(self) -> None:
        with self._lock:
            self._connection.timeouts += 1

    # Message Metrics

    def increment_dispatched(self, kind: str) -> None:
        """kind is "direct" or "group"."""
        with self._lock:
            if kind == "group":
                self._message.dispatched_group += 1
            else:
                self._message.dispatched_direct += 1

    def increment_persistence_failed(self) -> None:
        with self._lock:
            self._message.persistence_failed += 1

    def increment_membership_failed(self) -> None:
        with self._lock:
            self._message.membership_failed += 1

    def increment_notification(self, success: bool) -> None:
        with self._lock:
            if success:
                self._message.notifications_sent += 1
            else:
                self._message.notifications_failed += 1

    # Lock Metrics

    def add_locks_cleaned(self, count: int) -> None:
        with self._lock:
            self._locks_cleaned += count

    def get_snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "publish_total": self._publish.total,
                "publish_delivered": self._publish.delivered,
                "publish_dropped_offline": self._publish.dropped_offline,
                "publish_failed_sends": self._publish.failed_sends,
                "connections_rejected_limit": self._connection.rejected_limit,
                "connections_rejected_rate_limit": self._connection.rejected_rate_limit,
                "connections_rejected_auth": self._connection.rejected_auth,
                "connections_timeouts": self._connection.timeouts,
                "messages_dispatched_direct": self._message.dispatched_direct,
                "messages_dispatched_group": self._message.dispatched_group,
                "messages_persistence_failed": self._message.persistence_failed,
                "messages_membership_failed": self._message.membership_failed,
                "notifications_sent": self._message.notifications_sent,
                "notifications_failed": self._message.notifications_failed,
                "locks_cleaned": self._locks_cleaned,
            }


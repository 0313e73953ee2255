"""
Locks for the channel registry.

Each user's connection set has its own asyncio.Lock, so a join for alice
never waits on a disconnect for bob. Two process-wide locks cover the
accepted-socket counter and the dead-connection set.

A user lock may be held while taking connection_counter_lock, never the
reverse. _registry_lock only guards the dict of user locks and is never
held across an await of another lock.
"""

from __future__ import annotations

import asyncio
from collections.abc import Set

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSConstants

logger = get_logger(__name__)


class LockManager:
    """
    Hands out per-user locks and keeps their number bounded.

    Once the cache reaches cleanup_threshold, idle locks are evicted
    (oldest first) down to LOCK_CLEANUP_HYSTERESIS_RATIO of the threshold
    before a new one is created. An evicted lock is simply recreated the
    next time the user needs it.
    """

    def __init__(
        self,
        max_cached_locks: int = WSConstants.MAX_CACHED_LOCKS,
        cleanup_threshold: int = WSConstants.LOCK_CLEANUP_THRESHOLD,
    ):
        self.max_cached_locks = max_cached_locks
        self.cleanup_threshold = cleanup_threshold

        self._by_user: dict[int, asyncio.Lock] = {}
        self._registry_lock = asyncio.Lock()
        self._evicted = 0

        self.connection_counter_lock = asyncio.Lock()
        self.dead_connections_lock = asyncio.Lock()

    @property
    def user_lock_count(self) -> int:
        return len(self._by_user)

    @property
    def locks_cleaned_total(self) -> int:
        return self._evicted

    async def get_user_lock(self, user_id: int) -> asyncio.Lock:
        async with self._registry_lock:
            lock = self._by_user.get(user_id)
            if lock is None:
                if len(self._by_user) >= self.cleanup_threshold:
                    self._evict_idle(int(self.cleanup_threshold * WSConstants.LOCK_CLEANUP_HYSTERESIS_RATIO))
                lock = self._by_user[user_id] = asyncio.Lock()
            return lock

    def _evict_idle(self, keep: int) -> None:
        excess = len(self._by_user) - keep
        if excess <= 0:
            return
        idle = [uid for uid, lock in self._by_user.items() if not lock.locked()][:excess]
        for uid in idle:
            del self._by_user[uid]
        self._evicted += len(idle)
        logger.debug("Evicted idle user locks", evicted=len(idle), remaining=len(self._by_user))

    async def cleanup_stale_locks(self, active_users: Set[int]) -> int:
        """Drop idle locks of users with no registered connection. Returns how many."""
        async with self._registry_lock:
            offline = [
                uid for uid, lock in self._by_user.items()
                if uid not in active_users and not lock.locked()
            ]
            for uid in offline:
                del self._by_user[uid]
            self._evicted += len(offline)

        if offline:
            logger.info("Dropped locks of offline users", count=len(offline))
        return len(offline)

    def get_stats(self) -> dict[str, int]:
        return {
            "user_locks_count": len(self._by_user),
            "locks_cleaned_total": self._evicted,
            "max_cached_locks": self.max_cached_locks,
            "cleanup_threshold": self.cleanup_threshold,
        }

"""
The channel registry's data structures, without locking.

A user id maps to the set of sockets joined under it; a reverse map gives
the owner of a socket. Accepted sockets that have not joined yet are kept
separately so the global limit counts them. A user with no sockets has no
entry at all.

Callers hold the owning user's lock for membership changes and
connection_counter_lock for the accepted set.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi import WebSocket


class ConnectionIndex:
    def __init__(self) -> None:
        self._by_user: dict[int, set[WebSocket]] = {}
        self._owner: dict[WebSocket, int] = {}
        self._accepted: set[WebSocket] = set()

    @property
    def by_user(self) -> MappingProxyType[int, set["WebSocket"]]:
        return MappingProxyType(self._by_user)

    @property
    def total_connections(self) -> int:
        return len(self._accepted)

    def get_user_id(self, ws: "WebSocket") -> int | None:
        return self._owner.get(ws)

    def get_user_connections(self, user_id: int) -> set["WebSocket"]:
        """A copy; safe to iterate while the registry changes."""
        return set(self._by_user.get(user_id, ()))

    def count_user_connections(self, user_id: int) -> int:
        return len(self._by_user.get(user_id, ()))

    def get_all_connections(self) -> set["WebSocket"]:
        return set(self._accepted)

    def get_active_user_ids(self) -> set[int]:
        return set(self._by_user)

    def add_accepted(self, ws: "WebSocket") -> None:
        self._accepted.add(ws)

    def remove_accepted(self, ws: "WebSocket") -> bool:
        if ws not in self._accepted:
            return False
        self._accepted.remove(ws)
        return True

    def register_user(self, ws: "WebSocket", user_id: int) -> bool:
        sockets = self._by_user.setdefault(user_id, set())
        if ws in sockets:
            return False
        sockets.add(ws)
        self._owner[ws] = user_id
        return True

    def unregister_user(self, ws: "WebSocket") -> int | None:
        user_id = self._owner.pop(ws, None)
        sockets = self._by_user.get(user_id) if user_id is not None else None
        if sockets is not None:
            sockets.discard(ws)
            if not sockets:
                del self._by_user[user_id]
        return user_id

    def get_stats(self) -> dict[str, int]:
        return {
            "total_connections": len(self._accepted),
            "joined_connections": len(self._owner),
            "users_count": len(self._by_user),
        }

"""
SQLAlchemy implementation of the ChatStore port, plus the async adapter
the event loop uses to reach it.

Each call opens its own session so worker threads never share one.
"""

from __future__ import annotations

import asyncio
import threading
import time
from datetime import datetime
from functools import partial
from typing import Any, Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from rest_api.repositories import (
    get_group_repository,
    get_message_repository,
    get_user_repository,
)
from ws_gateway.components.core.constants import WSConstants
from ws_gateway.components.data.ports import (
    ChatStore,
    GroupNotFoundError,
    PersistenceError,
    SenderNotMemberError,
    StoredMessage,
)

logger = get_logger(__name__)

T = TypeVar("T")


def _to_stored(message: Any, sender_username: str | None = None) -> StoredMessage:
    return StoredMessage(
        id=message.id,
        sender_id=message.sender_id,
        receiver_id=message.receiver_id,
        group_id=message.group_id,
        content=message.content,
        created_at=message.created_at,
        client_token=message.client_token,
        sender_username=sender_username,
    )


class SqlAlchemyChatStore:
    """
    ChatStore backed by the REST API's repositories.

    Usage:
        store = SqlAlchemyChatStore(SessionLocal)
        message = store.insert_message(1, "hi", now, receiver_id=2)
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def _run(self, operation: str, fn: Callable[[Session], T], commit: bool = False) -> T:
        db = self._session_factory()
        try:
            result = fn(db)
            if commit:
                db.commit()
            return result
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Chat store operation failed", operation=operation, error=str(e))
            raise PersistenceError(f"{operation} failed") from e
        finally:
            db.close()

    def insert_message(
        self,
        sender_id: int,
        content: str,
        created_at: datetime,
        receiver_id: int | None = None,
        group_id: int | None = None,
        client_token: str | None = None,
    ) -> StoredMessage:
        def insert(db: Session) -> StoredMessage:
            if group_id is not None:
                groups = get_group_repository(db)
                if groups.find_by_id(group_id) is None:
                    raise GroupNotFoundError(group_id)
                if not groups.is_member(group_id, sender_id):
                    raise SenderNotMemberError(group_id, sender_id)
            message = get_message_repository(db).insert(
                sender_id=sender_id,
                content=content,
                created_at=created_at,
                receiver_id=receiver_id,
                group_id=group_id,
                client_token=client_token,
            )
            return _to_stored(message)

        return self._run("insert_message", insert, commit=True)

    def list_messages_between(self, user_a: int, user_b: int) -> list[StoredMessage]:
        return self._run(
            "list_messages_between",
            lambda db: [
                _to_stored(m, username)
                for m, username in get_message_repository(db).list_direct(user_a, user_b)
            ],
        )

    def list_group_messages(self, group_id: int) -> list[StoredMessage]:
        return self._run(
            "list_group_messages",
            lambda db: [
                _to_stored(m, username)
                for m, username in get_message_repository(db).list_group(group_id)
            ],
        )

    def list_group_members(self, group_id: int) -> set[int]:
        def members(db: Session) -> set[int]:
            groups = get_group_repository(db)
            if groups.find_by_id(group_id) is None:
                raise GroupNotFoundError(group_id)
            return groups.member_ids(group_id)

        return self._run("list_group_members", members)

    def get_username(self, user_id: int) -> str | None:
        return self._run("get_username", lambda db: get_user_repository(db).get_username(user_id))


class UsernameCache:
    """
    user id -> username, each entry valid for ttl_seconds.

    Every fanned-out message carries sender_username, so an active sender
    would otherwise cost a query per message. Usernames never change, the
    TTL only bounds memory held for users who went quiet. Filled from
    worker threads, hence the lock.
    """

    def __init__(self, ttl_seconds: float = 300.0, max_size: int = 1000) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        # user_id -> (username, expires_at); insertion order is age order
        self._entries: dict[int, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, user_id: int, now: float | None = None) -> str | None:
        now = time.time() if now is None else now
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None and entry[1] >= now:
                self.hits += 1
                return entry[0]
            self._entries.pop(user_id, None)
            self.misses += 1
            return None

    def set(self, user_id: int, username: str, now: float | None = None) -> None:
        now = time.time() if now is None else now
        with self._lock:
            self._entries.pop(user_id, None)
            if len(self._entries) >= self.max_size:
                self._entries = {uid: e for uid, e in self._entries.items() if e[1] >= now}
            while len(self._entries) >= self.max_size:
                del self._entries[next(iter(self._entries))]
            self._entries[user_id] = (username, now + self.ttl_seconds)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            size = len(self._entries)
        lookups = self.hits + self.misses
        return {
            "size": size,
            "max_size": self.max_size,
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "hit_ratio": round(self.hits / lookups, 3) if lookups else 0.0,
        }


class AsyncChatStore:
    """
    The event loop's view of a ChatStore.

    Each call runs in a worker thread. Lookups are bounded by timeout;
    inserts are not, since the worker thread cannot be cancelled and a
    timed-out insert would still commit. Any failure surfaces as
    PersistenceError (or a subclass raised by the store itself), never as a
    raw driver error.
    """

    def __init__(
        self,
        store: ChatStore,
        timeout: float = WSConstants.DB_LOOKUP_TIMEOUT,
        username_cache: UsernameCache | None = None,
    ):
        self._store = store
        self._timeout = timeout
        self._usernames = username_cache or UsernameCache()
        self._outcomes = {"success": 0, "timeouts": 0, "errors": 0}

    async def _call(self, operation: str, fn: Callable[[], T], bounded: bool = True) -> T:
        try:
            work = asyncio.to_thread(fn)
            result = await (asyncio.wait_for(work, timeout=self._timeout) if bounded else work)
        except asyncio.TimeoutError as e:
            self._outcomes["timeouts"] += 1
            logger.error("Chat store call timed out", operation=operation, timeout=self._timeout)
            raise PersistenceError(f"{operation} timed out") from e
        except PersistenceError:
            self._outcomes["errors"] += 1
            raise
        except Exception as e:
            self._outcomes["errors"] += 1
            logger.error("Chat store call failed", operation=operation, error=str(e))
            raise PersistenceError(f"{operation} failed") from e
        self._outcomes["success"] += 1
        return result

    async def insert_message(
        self,
        sender_id: int,
        content: str,
        created_at: datetime,
        receiver_id: int | None = None,
        group_id: int | None = None,
        client_token: str | None = None,
    ) -> StoredMessage:
        insert = partial(
            self._store.insert_message,
            sender_id,
            content,
            created_at,
            receiver_id=receiver_id,
            group_id=group_id,
            client_token=client_token,
        )
        return await self._call("insert_message", insert, bounded=False)

    async def list_group_members(self, group_id: int) -> set[int]:
        return await self._call("list_group_members", partial(self._store.list_group_members, group_id))

    async def get_username(self, user_id: int) -> str | None:
        username = self._usernames.get(user_id)
        if username is None:
            username = await self._call("get_username", partial(self._store.get_username, user_id))
            if username is not None:
                self._usernames.set(user_id, username)
        return username

    def get_stats(self) -> dict[str, Any]:
        return {
            "timeout": self._timeout,
            "username_cache": self._usernames.get_stats(),
            "lookups": {**self._outcomes, "total": sum(self._outcomes.values())},
        }

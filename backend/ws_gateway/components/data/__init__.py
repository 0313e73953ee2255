"""
Data access components.

The persistence port the realtime core depends on, and its SQLAlchemy
implementation.
"""

from ws_gateway.components.data.ports import (
    ChatStore,
    GroupNotFoundError,
    PersistenceError,
    SenderNotMemberError,
    StoredMessage,
)
from ws_gateway.components.data.chat_repository import (
    AsyncChatStore,
    SqlAlchemyChatStore,
    UsernameCache,
)

__all__ = [
    "ChatStore",
    "GroupNotFoundError",
    "PersistenceError",
    "SenderNotMemberError",
    "StoredMessage",
    "AsyncChatStore",
    "SqlAlchemyChatStore",
    "UsernameCache",
]

"""
Python client for the relaychat WebSocket API.

- reconnect.py: ReconnectingClient, the connection driver with join and backoff
- history.py: ConversationView, de-duplicating merge of live and fetched messages
"""

from chat_client.history import ChatMessage, ConversationView
from chat_client.reconnect import (
    ClientState,
    NotJoinedError,
    ReconnectingClient,
    ReconnectPolicy,
    websockets_connect,
)

__all__ = [
    "ChatMessage",
    "ConversationView",
    "ClientState",
    "NotJoinedError",
    "ReconnectingClient",
    "ReconnectPolicy",
    "websockets_connect",
]

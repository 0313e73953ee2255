"""
Dispatch Module.

- dispatcher.py: persist and fan out direct/group messages
- notifier.py: friend request / friend accepted pushes
"""

from ws_gateway.core.dispatch.dispatcher import MessageDispatcher, message_payload
from ws_gateway.core.dispatch.notifier import PresenceNotifier

__all__ = [
    "MessageDispatcher",
    "PresenceNotifier",
    "message_payload",
]

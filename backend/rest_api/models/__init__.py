"""
SQLAlchemy ORM Models Package.

Models are organized into domain-specific modules:
- base: Base class and CreatedAtMixin
- user: User
- social: FriendEdge
- group: Group, GroupMembership
- message: Message (+ epoch millisecond helpers)
"""

from .base import Base, CreatedAtMixin
from .user import User
from .social import FriendEdge, FRIEND_STATUS_PENDING, FRIEND_STATUS_ACCEPTED
from .group import Group, GroupMembership
from .message import Message, from_epoch_ms, to_epoch_ms

__all__ = [
    "Base",
    "CreatedAtMixin",
    "User",
    "FriendEdge",
    "FRIEND_STATUS_PENDING",
    "FRIEND_STATUS_ACCEPTED",
    "Group",
    "GroupMembership",
    "Message",
    "from_epoch_ms",
    "to_epoch_ms",
]

"""
Repository Pattern implementation.
Centralizes data access for the chat entities.

Usage:
    from rest_api.repositories import get_message_repository

    repo = get_message_repository(db)
    history = repo.list_direct(user_a=1, user_b=2)
"""

from .base import BaseRepository
from .user import UserRepository, get_user_repository
from .social import FriendRepository, get_friend_repository
from .group import GroupRepository, get_group_repository
from .message import MessageRepository, get_message_repository

__all__ = [
    "BaseRepository",
    "UserRepository",
    "get_user_repository",
    "FriendRepository",
    "get_friend_repository",
    "GroupRepository",
    "get_group_repository",
    "MessageRepository",
    "get_message_repository",
]

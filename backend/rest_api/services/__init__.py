"""
Services module for business logic.

- domain/: Application services (business logic) used by the routers

Usage:
    from rest_api.services.domain import FriendService
    service = FriendService(db)
    friends = service.list_friends(user_id)
"""

from .domain import AccountService, FriendService, GroupService, HistoryService

__all__ = [
    "AccountService",
    "FriendService",
    "GroupService",
    "HistoryService",
]

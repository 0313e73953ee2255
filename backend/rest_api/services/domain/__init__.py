"""
Chat business rules for the REST routers.

Routers stay thin: they resolve the caller from the token and hand a
Session to one of these services, which talks to the repositories and
raises AppException subclasses on rule violations.

    service = GroupService(db)
    groups = service.list_groups(user_id)
"""

from .account_service import AccountService
from .friend_service import FriendService
from .group_service import GroupService, generate_group_code
from .history_service import HistoryService, to_message_output

__all__ = [
    "AccountService",
    "FriendService",
    "GroupService",
    "generate_group_code",
    "HistoryService",
    "to_message_output",
]

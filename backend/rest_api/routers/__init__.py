"""
REST routers.
"""

from .auth import router as auth_router
from .friends import router as friends_router
from .groups import router as groups_router
from .messages import router as messages_router

__all__ = ["auth_router", "friends_router", "groups_router", "messages_router"]

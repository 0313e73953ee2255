"""
Presence/Notification Fanout.

Pushes friend lifecycle events to online users through the same publish
primitive the dispatcher uses. Notifications are observational: the
friend edge is committed before they are sent, and a failure here is
logged and dropped.
"""

from __future__ import annotations

from typing import Any, Protocol, TYPE_CHECKING

from shared.config.logging import get_logger
from ws_gateway.components.events.types import EventType, build_event

if TYPE_CHECKING:
    from shared.utils.schemas import UserInfo
    from ws_gateway.components.metrics.collector import MetricsCollector

logger = get_logger(__name__)


class ChannelPublisher(Protocol):
    async def publish(self, user_id: int, event: dict[str, Any]) -> int: ...


class PresenceNotifier:
    """
    Usage:
        notifier = PresenceNotifier(manager, metrics)
        await notifier.notify_friend_request(7, 5, "alice")
    """

    def __init__(self, publisher: ChannelPublisher, metrics: "MetricsCollector | None" = None):
        self._publisher = publisher
        self._metrics = metrics

    async def notify_friend_request(
        self, to_user_id: int, from_user_id: int, from_username: str
    ) -> int:
        """Tell the target of a new friend request. Dropped if they are offline."""
        event = build_event(
            EventType.FRIEND_REQUEST,
            {"from": from_user_id, "username": from_username},
        )
        return await self._send(to_user_id, event)

    async def notify_friend_accepted(
        self, to_user_id: int, by_user_id: int, by_username: str
    ) -> int:
        event = build_event(
            EventType.FRIEND_ACCEPTED,
            {"by": by_user_id, "username": by_username},
        )
        return await self._send(to_user_id, event)

    async def notify_friendship_accepted(
        self, requester: "UserInfo", accepter: "UserInfo"
    ) -> None:
        """Both parties learn about the new friendship, each seeing the other."""
        await self.notify_friend_accepted(requester.id, accepter.id, accepter.username)
        await self.notify_friend_accepted(accepter.id, requester.id, requester.username)

    async def _send(self, user_id: int, event: dict[str, Any]) -> int:
        try:
            delivered = await self._publisher.publish(user_id, event)
        except Exception as e:
            logger.warning(
                "Notification failed",
                user_id=user_id,
                event_type=event.get("type"),
                error=str(e),
            )
            if self._metrics is not None:
                self._metrics.increment_notification(False)
            return 0

        if self._metrics is not None:
            self._metrics.increment_notification(True)
        logger.debug(
            "Notification published",
            user_id=user_id,
            event_type=event.get("type"),
            delivered=delivered,
        )
        return delivered

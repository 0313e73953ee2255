"""
Per-connection session state.

Every accepted WebSocket gets one ChatSession. The session starts in
CONNECTING, moves to JOINED after a valid join, and ends in DISCONNECTED.
DISCONNECTED is terminal: a reconnecting client is a new WebSocket and a
new session, and must join again.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from shared.config.logging import get_logger

if TYPE_CHECKING:
    from fastapi import WebSocket
    from ws_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class SessionState(str, Enum):
    CONNECTING = "connecting"
    JOINED = "joined"
    DISCONNECTED = "disconnected"


class SessionStateError(Exception):
    """An operation is not valid in the session's current state."""

    def __init__(self, message: str, state: SessionState):
        super().__init__(message)
        self.state = state


class ChatSession:
    """
    State machine for one live connection.

    Usage:
        session = ChatSession(websocket, manager)
        await session.join(user_id)      # CONNECTING -> JOINED
        session.require_joined()         # raises before join
        await session.disconnect()       # any state -> DISCONNECTED
    """

    def __init__(self, websocket: "WebSocket", manager: "ConnectionManager"):
        self._websocket = websocket
        self._manager = manager
        self._state = SessionState.CONNECTING
        self._user_id: int | None = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user_id(self) -> int | None:
        """The joined user, None before join."""
        return self._user_id

    @property
    def websocket(self) -> "WebSocket":
        return self._websocket

    @property
    def is_joined(self) -> bool:
        return self._state is SessionState.JOINED

    async def join(self, user_id: int) -> bool:
        """
        Register the connection under user_id.

        Re-joining as the same user while JOINED is idempotent.

        Returns:
            True on the first join, False on an idempotent re-join.

        Raises:
            SessionStateError: If the session is disconnected, or already
                joined as a different user.
            ConnectionError: If the user is at the per-user connection limit.
        """
        if self._state is SessionState.DISCONNECTED:
            raise SessionStateError("Session is disconnected", self._state)

        if self._state is SessionState.JOINED and self._user_id != user_id:
            raise SessionStateError("Already joined as another user", self._state)

        first_join = self._state is SessionState.CONNECTING
        await self._manager.register(user_id, self._websocket)
        self._user_id = user_id
        self._state = SessionState.JOINED

        if first_join:
            logger.info("Session joined", user_id=user_id)
        return first_join

    def require_joined(self) -> int:
        """
        Returns:
            The joined user id.

        Raises:
            SessionStateError: If the session has not joined.
        """
        if self._state is not SessionState.JOINED or self._user_id is None:
            raise SessionStateError("Join required", self._state)
        return self._user_id

    async def disconnect(self) -> None:
        """Tear the connection down. Safe to call more than once."""
        if self._state is SessionState.DISCONNECTED:
            return
        previous = self._state
        self._state = SessionState.DISCONNECTED
        await self._manager.disconnect(self._websocket)
        logger.debug(
            "Session disconnected",
            user_id=self._user_id,
            previous_state=previous.value,
        )

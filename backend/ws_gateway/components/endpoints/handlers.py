"""
Chat WebSocket endpoint.

One ChatEndpoint per connection. It owns the connection's ChatSession and
turns inbound frames into session transitions and dispatches:

    join            -> session.join, "connected" ack
    direct_message  -> MessageDispatcher.send_direct
    group_message   -> MessageDispatcher.send_group

Every failure is reported to this connection only, as an "error" event.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from fastapi import WebSocket

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSCloseCode
from ws_gateway.components.core.context import WebSocketContext, sanitize_log_data
from ws_gateway.components.endpoints.base import JWTWebSocketEndpoint
from ws_gateway.components.events.types import (
    ChatMessageEvent,
    JoinEvent,
    MessageValidationError,
    connected_event,
    error_event,
    parse_inbound,
)
from ws_gateway.core.connection.session import ChatSession, SessionStateError

if TYPE_CHECKING:
    from ws_gateway.connection_manager import ConnectionManager
    from ws_gateway.core.dispatch.dispatcher import MessageDispatcher

logger = get_logger(__name__)


class ChatEndpoint(JWTWebSocketEndpoint):
    """
    WebSocket endpoint for chat clients.

    Features:
    - JWT authentication from the token query parameter
    - Explicit join before any message; join must name the token's user
    - Direct and group messages through the dispatcher
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        dispatcher: "MessageDispatcher",
        token: str,
        **kwargs: Any,
    ):
        super().__init__(
            websocket=websocket,
            manager=manager,
            endpoint_name="/ws/chat",
            token=token,
            **kwargs,
        )
        self.dispatcher = dispatcher
        self.session = ChatSession(websocket, manager)
        self._token_user_id: int = 0

    async def create_context(self, auth_data: dict[str, Any]) -> WebSocketContext:
        self._token_user_id = int(auth_data["sub"])
        return WebSocketContext.from_jwt_claims(self.websocket, auth_data, self.endpoint_name)

    async def close_connection(self) -> None:
        await self.session.disconnect()

    async def handle_message(self, data: str) -> None:
        try:
            payload = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(
                "Invalid JSON frame",
                identifier=self.context.identifier if self.context else "unknown",
                message=sanitize_log_data(data),
            )
            await self._send_error("Invalid JSON")
            return

        try:
            event = parse_inbound(payload)
        except MessageValidationError as e:
            await self._send_error(str(e))
            return

        if isinstance(event, JoinEvent):
            await self._handle_join(event)
        elif isinstance(event, ChatMessageEvent):
            await self._handle_chat_message(event)

    async def _handle_join(self, event: JoinEvent) -> None:
        if event.user_id != self._token_user_id:
            logger.warning(
                "Join identity mismatch",
                token_user_id=self._token_user_id,
                join_user_id=event.user_id,
            )
            if self.context:
                self.context.audit("JOIN_REJECTED", reason="identity_mismatch")
            await self.websocket.close(
                code=WSCloseCode.FORBIDDEN,
                reason="Join user does not match token",
            )
            self.stop()
            return

        try:
            await self.session.join(event.user_id)
        except SessionStateError as e:
            await self._send_error(str(e))
            return
        except ConnectionError as e:
            self.log_connect_rejected(str(e))
            await self._send_error("Too many connections for this user")
            await self.websocket.close(
                code=WSCloseCode.POLICY_VIOLATION,
                reason="Too many connections",
            )
            self.stop()
            return

        if self.context:
            self.context.joined_user_id = event.user_id
            self.context.audit("JOIN")
        await self.websocket.send_json(connected_event(event.user_id))

    async def _handle_chat_message(self, event: ChatMessageEvent) -> None:
        try:
            sender_id = self.session.require_joined()
        except SessionStateError:
            await self._send_error("Join required")
            return

        if event.sender_id is not None and event.sender_id != sender_id:
            await self._send_error("sender_id does not match joined user")
            return

        try:
            await self.dispatcher.dispatch(sender_id, event, origin=self.websocket)
        except MessageValidationError as e:
            await self._send_error(str(e))
        except Exception as e:
            logger.error(
                "Unexpected error dispatching message",
                sender_id=sender_id,
                error=str(e),
                exc_info=True,
            )
            await self._send_error("Internal error")

    async def _send_error(self, message: str) -> None:
        await self.manager.send_to_connection(self.websocket, error_event(message))

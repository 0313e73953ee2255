"""
Endpoint base classes.

WebSocketEndpointBase drives one connection from handshake to teardown:

    validate_auth -> create_context -> accept -> on_connected -> frames -> close

Every frame passes the guards (size, rate, liveness, before_frame) before a
ping is answered or handle_message sees it. JWTWebSocketEndpoint fills in the
handshake for token-authenticated clients.
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from fastapi import HTTPException, WebSocket, WebSocketDisconnect

from shared.config.logging import audit_ws_connection, get_logger
from ws_gateway.components.connection.heartbeat import handle_heartbeat
from ws_gateway.components.core.constants import WSCloseCode, WSConstants
from ws_gateway.components.core.context import WebSocketContext
from ws_gateway.components.endpoints.mixins import (
    ConnectionAuditMixin,
    FrameLimitsMixin,
    OriginValidationMixin,
    TokenRevalidationMixin,
)

if TYPE_CHECKING:
    from ws_gateway.connection_manager import ConnectionManager

logger = get_logger(__name__)


class WebSocketEndpointBase(FrameLimitsMixin, ConnectionAuditMixin, ABC):
    """
    One instance per connection.

    Subclasses decide how a connection authenticates (validate_auth), what
    it is called in the logs (create_context) and what a frame means
    (handle_message).
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
        receive_timeout: float = WSConstants.WS_RECEIVE_TIMEOUT,
        jwt_revalidation_interval: float = WSConstants.JWT_REVALIDATION_INTERVAL,
    ):
        self.websocket = websocket
        self.manager = manager
        self.endpoint_name = endpoint_name
        self.receive_timeout = receive_timeout
        self.jwt_revalidation_interval = jwt_revalidation_interval

        self.context: WebSocketContext | None = None
        self._last_jwt_revalidation = time.time()
        self._is_running = False

    @abstractmethod
    async def validate_auth(self) -> dict[str, Any] | None:
        """Claims for the connection, or None after closing the socket."""

    @abstractmethod
    async def create_context(self, auth_data: dict[str, Any]) -> WebSocketContext:
        ...

    @abstractmethod
    async def handle_message(self, data: str) -> None:
        """Handle a frame that is not a heartbeat. Call stop() to end the loop."""

    async def accept_connection(self) -> None:
        """Raises ConnectionError when the gateway is full."""
        await self.manager.accept(self.websocket)

    async def close_connection(self) -> None:
        await self.manager.disconnect(self.websocket)

    async def on_connected(self) -> None:
        pass

    async def before_frame(self) -> bool:
        """Last guard before a frame is interpreted; False ends the loop."""
        return True

    def stop(self) -> None:
        self._is_running = False

    @property
    def identifier(self) -> str:
        return self.context.identifier if self.context else "unknown"

    async def run(self) -> None:
        claims = await self.validate_auth()
        if claims is None:
            return
        self.context = await self.create_context(claims)

        if not await self._accept_or_refuse():
            return
        self.log_connect()

        self._is_running = True
        reason = "server_close"
        try:
            await self.on_connected()
            await self._serve_frames()
        except WebSocketDisconnect:
            reason = "client_disconnect"
        except Exception as e:
            reason = "error"
            logger.error(
                "Chat connection failed",
                endpoint=self.endpoint_name,
                identifier=self.identifier,
                error=str(e),
                exc_info=True,
            )
        finally:
            self._is_running = False
            await self.close_connection()
            self.log_disconnect(reason)

    async def _accept_or_refuse(self) -> bool:
        try:
            await self.accept_connection()
            return True
        except ConnectionError as e:
            self.log_connect_rejected(str(e))

        try:
            await self.websocket.close(code=WSCloseCode.SERVER_OVERLOADED, reason="Server unavailable")
        except Exception as e:
            logger.debug("Close after refusal failed", error=str(e))
        return False

    async def _passes_guards(self, data: str) -> bool:
        if not await self.validate_message_size(data):
            return False
        if not await self.check_rate_limit():
            return False
        await self.record_heartbeat()
        return await self.before_frame()

    async def _serve_frames(self) -> None:
        while self._is_running:
            data = await self._next_frame()
            if data is None:
                logger.info(
                    "Idle connection closed",
                    endpoint=self.endpoint_name,
                    identifier=self.identifier,
                    timeout=self.receive_timeout,
                )
                await self.websocket.close(code=WSCloseCode.NORMAL, reason="Connection timeout")
                return

            if not await self._passes_guards(data):
                return

            if await handle_heartbeat(self.websocket, data):
                continue
            await self.handle_message(data)

    async def _next_frame(self) -> str | None:
        """None when nothing arrived within receive_timeout."""
        try:
            return await asyncio.wait_for(self.websocket.receive_text(), timeout=self.receive_timeout)
        except asyncio.TimeoutError:
            return None


class JWTWebSocketEndpoint(OriginValidationMixin, TokenRevalidationMixin, WebSocketEndpointBase):
    """
    Handshake for clients that pass an access token as a query parameter.

    The origin is checked first, then the token. While the connection is
    open the token is re-verified periodically and the socket is closed
    with 4001 once it stops verifying.
    """

    def __init__(
        self,
        websocket: WebSocket,
        manager: "ConnectionManager",
        endpoint_name: str,
        token: str,
        **kwargs: Any,
    ):
        super().__init__(websocket, manager, endpoint_name, **kwargs)
        self.token = token
        self._claims: dict[str, Any] | None = None

    async def validate_auth(self) -> dict[str, Any] | None:
        from shared.security.auth import verify_jwt

        if not self.validate_origin():
            logger.warning("Chat handshake from disallowed origin", origin=self.get_origin())
            await self._refuse_handshake(WSCloseCode.FORBIDDEN, "Origin not allowed", "invalid_origin")
            return None

        if not self.token:
            await self._refuse_handshake(WSCloseCode.AUTH_FAILED, "Authentication failed", "missing_token")
            return None

        try:
            self._claims = verify_jwt(self.token)
        except HTTPException as e:
            logger.warning("Chat handshake token rejected", error=str(e.detail), origin=self.get_origin())
            await self._refuse_handshake(WSCloseCode.AUTH_FAILED, "Authentication failed", "jwt_validation_failed")
            return None

        self.reset_jwt_revalidation_timer()
        return self._claims

    async def before_frame(self) -> bool:
        if await self.revalidate_jwt_if_needed():
            return True
        logger.warning("Token stopped verifying mid-session", identifier=self.identifier)
        await self.websocket.close(code=WSCloseCode.AUTH_FAILED, reason="Token expired or revoked")
        return False

    async def _refuse_handshake(self, code: int, reason: str, audit_reason: str) -> None:
        audit_ws_connection(
            event_type="AUTH_FAILED",
            endpoint=self.endpoint_name,
            origin=self.get_origin(),
            reason=audit_reason,
        )
        self.manager.record_auth_rejection()
        await self.websocket.close(code=code, reason=reason)

"""
Chat endpoint mixins.

One concern per mixin, combined by the endpoint base classes:

    FrameLimitsMixin        frame size, per-connection rate, heartbeat bookkeeping
    OriginValidationMixin   Origin header against the allowed list
    TokenRevalidationMixin  the handshake token stays valid for the whole session
    ConnectionAuditMixin    connect / disconnect / rejection audit lines
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Protocol

from fastapi import HTTPException, WebSocket

from shared.config.logging import get_logger
from ws_gateway.components.core.constants import WSCloseCode

if TYPE_CHECKING:
    from ws_gateway.connection_manager import ConnectionManager
    from ws_gateway.components.core.context import WebSocketContext

logger = get_logger(__name__)


class EndpointHost(Protocol):
    """Attributes every mixin below expects on the endpoint."""

    websocket: WebSocket
    manager: "ConnectionManager"
    endpoint_name: str
    context: "WebSocketContext | None"


class TokenHost(EndpointHost, Protocol):
    token: str
    jwt_revalidation_interval: float
    _last_jwt_revalidation: float
    _claims: dict[str, Any] | None


def _identifier(host: EndpointHost) -> str:
    return host.context.identifier if host.context else "unknown"


class FrameLimitsMixin:
    """
    Per-frame checks run before a frame is interpreted.

    A failed check closes the socket; the caller just stops reading.
    """

    async def validate_message_size(self: EndpointHost, data: str) -> bool:
        """False (and the socket closed with 1009) if the frame is too large."""
        from shared.config.settings import settings

        limit = settings.ws_max_message_size
        if len(data) <= limit:
            return True

        logger.warning(
            "Frame over size limit",
            endpoint=self.endpoint_name,
            identifier=_identifier(self),
            size=len(data),
            max_size=limit,
        )
        await self.websocket.close(code=WSCloseCode.MESSAGE_TOO_BIG, reason="Message too large")
        return False

    async def check_rate_limit(self: EndpointHost) -> bool:
        """False (and the socket closed with 4029) if this connection is sending too fast."""
        if await self.manager.check_rate_limit(self.websocket):
            return True

        logger.warning("Frame rate exceeded", endpoint=self.endpoint_name, identifier=_identifier(self))
        self.manager.record_rate_limit_rejection()
        await self.websocket.close(code=WSCloseCode.RATE_LIMITED, reason="Rate limit exceeded")
        return False

    async def record_heartbeat(self: EndpointHost) -> None:
        """Any inbound frame counts as liveness, not only pings."""
        await self.manager.record_heartbeat(self.websocket)


class OriginValidationMixin:
    """Browser clients must come from an allowed origin."""

    def get_origin(self: EndpointHost) -> str | None:
        return self.websocket.headers.get("origin")

    def validate_origin(self: EndpointHost) -> bool:
        from shared.config.settings import settings
        from ws_gateway.components.core.constants import validate_websocket_origin

        return validate_websocket_origin(self.websocket.headers.get("origin"), settings)


class TokenRevalidationMixin:
    """
    Re-checks the handshake token every jwt_revalidation_interval seconds.

    A session outlives its token otherwise: the token is only verified once
    at connect time. The subject must also stay the same user.
    """

    def reset_jwt_revalidation_timer(self: TokenHost) -> None:
        self._last_jwt_revalidation = time.time()

    async def revalidate_jwt_if_needed(self: TokenHost) -> bool:
        """
        Returns:
            True while the token is valid, False once it expired or changed hands.
        """
        if time.time() - self._last_jwt_revalidation < self.jwt_revalidation_interval:
            return True

        from shared.security.auth import verify_jwt

        try:
            claims = verify_jwt(self.token)
        except HTTPException as e:
            logger.debug("Token no longer valid", identifier=_identifier(self), error=str(e.detail))
            return False

        if self._claims is not None and claims.get("sub") != self._claims.get("sub"):
            logger.warning("Token subject changed", identifier=_identifier(self))
            return False

        self._last_jwt_revalidation = time.time()
        return True


class ConnectionAuditMixin:
    """Audit trail for the connection lifecycle."""

    def log_connect(self: EndpointHost) -> None:
        if self.context is None:
            logger.info("WebSocket connected", endpoint=self.endpoint_name)
            return
        logger.info("WebSocket connected", **self.context.to_audit_dict("CONNECT"))
        self.context.audit("CONNECT")

    def log_disconnect(self: EndpointHost, reason: str = "client_disconnect") -> None:
        if self.context is None:
            logger.info("WebSocket disconnected", endpoint=self.endpoint_name, reason=reason)
            return
        logger.info("WebSocket disconnected", **self.context.to_audit_dict("DISCONNECT", reason=reason))
        self.context.audit("DISCONNECT", reason=reason)

    def log_connect_rejected(self: EndpointHost, reason: str) -> None:
        logger.warning(
            "Connection rejected",
            endpoint=self.endpoint_name,
            identifier=_identifier(self),
            reason=reason,
        )
        if self.context:
            self.context.audit("CONNECT_REJECTED", reason=reason)


__all__ = [
    "FrameLimitsMixin",
    "OriginValidationMixin",
    "TokenRevalidationMixin",
    "ConnectionAuditMixin",
    "EndpointHost",
    "TokenHost",
]

"""
WebSocket endpoint components.

Base classes, mixins, and the chat endpoint.
"""

from ws_gateway.components.endpoints.base import (
    WebSocketEndpointBase,
    JWTWebSocketEndpoint,
)
from ws_gateway.components.endpoints.mixins import (
    FrameLimitsMixin,
    OriginValidationMixin,
    TokenRevalidationMixin,
    ConnectionAuditMixin,
)
from ws_gateway.components.endpoints.handlers import ChatEndpoint

__all__ = [
    "WebSocketEndpointBase",
    "JWTWebSocketEndpoint",
    "FrameLimitsMixin",
    "OriginValidationMixin",
    "TokenRevalidationMixin",
    "ConnectionAuditMixin",
    "ChatEndpoint",
]

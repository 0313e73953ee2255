"""
Per-connection audit context, and scrubbing of user text before it is logged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from shared.config.logging import audit_ws_connection

if TYPE_CHECKING:
    from fastapi import WebSocket


# C0/C1 controls, zero-width characters, bidi overrides and isolates, BOM.
_UNPRINTABLE = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u202a-\u202e\u2066-\u2069\ufeff]")
_ESCAPES = str.maketrans({"\\": "\\\\", '"': '\\"', "\n": "\\n", "\r": "\\r", "\t": "\\t"})


def sanitize_log_data(data: str, max_length: int = 100) -> str:
    """
    Make a chat frame or username safe to put in a log line.

    Cut to max_length first (marked with "..."), then drop unprintable
    characters and escape quotes and backslashes, so an escape is never
    split by the cut.
    """
    head = data[:max_length]
    cleaned = _UNPRINTABLE.sub("", head).translate(_ESCAPES)
    return cleaned + "..." if len(data) > max_length else cleaned


@dataclass
class WebSocketContext:
    """
    Who is on the other end of a chat socket, for audit lines.

    user_id comes from the handshake token; joined_user_id is filled in
    once the client has joined and stays None until then.
    """

    endpoint: str
    origin: str | None = None
    user_id: int | None = None
    username: str | None = None
    joined_user_id: int | None = None

    @classmethod
    def from_jwt_claims(cls, websocket: "WebSocket", claims: dict[str, Any], endpoint: str) -> "WebSocketContext":
        return cls(
            endpoint=endpoint,
            origin=websocket.headers.get("origin"),
            user_id=int(claims.get("sub", 0)),
            username=claims.get("username"),
        )

    @property
    def identifier(self) -> str:
        return f"user:{self.user_id}" if self.user_id else "anonymous"

    def to_audit_dict(self, event_type: str, **extra: Any) -> dict[str, Any]:
        """Audit fields; unset ones are left out."""
        fields: dict[str, Any] = {"event_type": event_type, "endpoint": self.endpoint}
        if self.origin:
            fields["origin"] = self.origin
        if self.user_id:
            fields["user_id"] = self.user_id
        if self.joined_user_id:
            fields["joined"] = True
        fields.update(extra)
        return fields

    def audit(self, event_type: str, **extra: Any) -> None:
        audit_ws_connection(**self.to_audit_dict(event_type, **extra))

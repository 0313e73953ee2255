"""
Gateway constants: close codes, internal tuning, heartbeat frames, origins.

Operator-facing limits (connections per user, frame size, rate window,
heartbeat timeout) are settings, not constants; see shared.config.settings.
"""

from enum import IntEnum
from typing import Final

from shared.config.logging import get_logger

__all__ = [
    "WSCloseCode",
    "WSConstants",
    "MSG_PING_PLAIN",
    "MSG_PING_JSON",
    "MSG_PONG_JSON",
    "DEFAULT_ALLOWED_ORIGINS",
    "validate_websocket_origin",
]

logger = get_logger(__name__)


class WSCloseCode(IntEnum):
    """Close codes sent by the chat gateway. 4xxx are application codes."""

    NORMAL = 1000  # also sent when a connection idles past the receive timeout
    GOING_AWAY = 1001  # shutdown, or no heartbeat within ws_heartbeat_timeout
    POLICY_VIOLATION = 1008  # user already at ws_max_connections_per_user
    MESSAGE_TOO_BIG = 1009
    SERVER_ERROR = 1011
    SERVER_OVERLOADED = 1013  # gateway at ws_max_total_connections

    AUTH_FAILED = 4001  # token missing, invalid, expired or revoked
    FORBIDDEN = 4003  # join for another user than the token's, or bad origin
    RATE_LIMITED = 4029


class WSConstants:
    """Internal tuning that operators are not expected to change."""

    # Seconds. Three heartbeat sweeps without a single frame, not even a ping.
    WS_RECEIVE_TIMEOUT: Final[float] = 90.0
    # Seconds between re-checks of the handshake token on an open socket.
    JWT_REVALIDATION_INTERVAL: Final[float] = 300.0
    # Seconds. A slower insert or membership lookup counts as a persistence failure.
    DB_LOOKUP_TIMEOUT: Final[float] = 2.0
    WS_ACCEPT_TIMEOUT: Final[float] = 5.0

    # Per-user lock cache. Idle locks are evicted at the threshold, down to
    # threshold * ratio, so eviction does not run again for the next new user.
    MAX_CACHED_LOCKS: Final[int] = 500
    LOCK_CLEANUP_THRESHOLD: Final[int] = 400
    LOCK_CLEANUP_HYSTERESIS_RATIO: Final[float] = 0.8

    # Rate limiter memory: twice the default connection limit, then the
    # oldest EVICTION_PERCENTAGE of tracked sockets are forgotten.
    MAX_TRACKED_CONNECTIONS: Final[int] = 2000
    EVICTION_PERCENTAGE: Final[int] = 10

    HEARTBEAT_CLEANUP_INTERVAL: Final[float] = 30.0
    # Lock cleanup runs on every fifth heartbeat sweep.
    LOCK_CLEANUP_CYCLE: Final[int] = 5

    # Sockets whose send failed wait here for the next sweep; at this many
    # they are disconnected straight away.
    MAX_DEAD_CONNECTIONS: Final[int] = 500


# Heartbeat frames. Clients may send either ping form.
MSG_PING_PLAIN: Final[str] = "ping"
MSG_PING_JSON: Final[str] = '{"type":"ping"}'
MSG_PONG_JSON: Final[str] = '{"type":"pong"}'

# Used when settings.allowed_origins is empty.
DEFAULT_ALLOWED_ORIGINS: Final[tuple[str, ...]] = (
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
)


def validate_websocket_origin(origin: str | None, settings: object) -> bool:
    """
    Is a chat handshake from this Origin allowed?

    settings needs allowed_origins (comma separated, may be empty) and
    environment. Clients that send no Origin at all (the CLI client,
    mobile apps) are only let in during development.
    """
    configured = getattr(settings, "allowed_origins", None) or ""
    allowed = {o.strip() for o in configured.split(",") if o.strip()} or set(DEFAULT_ALLOWED_ORIGINS)

    if origin is None or origin == "":
        if getattr(settings, "environment", "production") == "development":
            return True
        logger.warning("Chat handshake without Origin outside development")
        return False

    if origin not in allowed:
        logger.warning("Chat handshake origin not allowed", origin=origin, allowed_count=len(allowed))
        return False
    return True

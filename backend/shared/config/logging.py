"""
Logging for relaychat.

Standard library logging with keyword context:

    logger = get_logger(__name__)
    logger.info("Message persisted", message_id=12, group_id=3)

Production writes one JSON object per line; development writes a coloured
single line with the context appended. Both carry the X-Request-ID of the
HTTP request being served, when there is one.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings


def _context(record: logging.LogRecord) -> dict[str, Any] | None:
    return getattr(record, "extra_data", None) or None


def _request_id(record: logging.LogRecord) -> str | None:
    request_id = getattr(record, "request_id", None)
    return request_id if request_id and request_id != "-" else None


class StructuredFormatter(logging.Formatter):
    """JSON lines for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if request_id := _request_id(record):
            entry["request_id"] = request_id
        if data := _context(record):
            entry["data"] = data
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.filename}:{record.lineno} in {record.funcName}"
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):
    """Readable lines for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, self.RESET)
        parts = [f"{color}{datetime.now():%H:%M:%S} {record.levelname:<8}{self.RESET}"]

        if request_id := _request_id(record):
            parts.append(f"{self.DIM}{request_id[:8]}{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")
        if data := _context(record):
            parts.append(" ".join(f"{key}={value}" for key, value in data.items()))

        line = " ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose keyword arguments (other than exc_info) become record context."""

    def log_with_context(self, level: int, msg: str, *args: Any, exc_info: Any = None, **context: Any) -> None:
        if self.isEnabledFor(level):
            self._log(level, msg, args, exc_info=exc_info, extra={"extra_data": context or None})

    def debug(self, msg: str, *args: Any, **context: Any) -> None:
        self.log_with_context(logging.DEBUG, msg, *args, **context)

    def info(self, msg: str, *args: Any, **context: Any) -> None:
        self.log_with_context(logging.INFO, msg, *args, **context)

    def warning(self, msg: str, *args: Any, **context: Any) -> None:
        self.log_with_context(logging.WARNING, msg, *args, **context)

    def error(self, msg: str, *args: Any, **context: Any) -> None:
        self.log_with_context(logging.ERROR, msg, *args, **context)

    def critical(self, msg: str, *args: Any, **context: Any) -> None:
        self.log_with_context(logging.CRITICAL, msg, *args, **context)


logging.setLoggerClass(StructuredLogger)

_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "websockets": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Call once per process."""
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers[:] = [handler]

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_username(username: str | None) -> str:
    """
    "alice_wonder" -> "al***".

    Failed logins log the attempted name, which is sometimes a password
    typed into the wrong field.
    """
    if not username:
        return "<no-username>"
    return f"{username[:2]}***"


rest_api_logger = get_logger("rest_api")
ws_gateway_logger = get_logger("ws_gateway")
security_audit_logger = get_logger("security.audit")


def audit_ws_connection(
    event_type: str,
    endpoint: str,
    user_id: int | str | None = None,
    origin: str | None = None,
    reason: str | None = None,
    **extra: Any,
) -> None:
    """Audit line for a chat connection event (CONNECT, JOIN, AUTH_FAILED, DISCONNECT, ...)."""
    security_audit_logger.info(
        f"WS_AUDIT: {event_type}",
        event_type=event_type,
        endpoint=endpoint,
        user_id=user_id,
        origin=origin,
        reason=reason,
        **extra,
    )


def audit_auth_event(
    event_type: str,
    user_id: int | str | None = None,
    username: str | None = None,
    success: bool = True,
    reason: str | None = None,
    ip_address: str | None = None,
    **extra: Any,
) -> None:
    """Audit line for REGISTER and LOGIN attempts. Failures log at WARNING."""
    security_audit_logger.log_with_context(
        logging.INFO if success else logging.WARNING,
        f"AUTH_AUDIT: {event_type}",
        event_type=event_type,
        user_id=user_id,
        username=mask_username(username) if username else None,
        success=success,
        reason=reason,
        ip_address=ip_address,
        **extra,
    )

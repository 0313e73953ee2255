"""
Rate limiting for public endpoints using slowapi.
Protects register/login from credential stuffing and signup abuse.

Limits are kept in the limiter's in-process storage; the service runs as a
single process alongside its in-process connection registry.
"""

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from shared.config.settings import settings
from shared.config.logging import get_logger, security_audit_logger

logger = get_logger(__name__)

# Create limiter instance using client IP as key
limiter = Limiter(key_func=get_remote_address)

LOGIN_RATE_LIMIT = f"{settings.login_rate_limit}/{settings.login_rate_window} seconds"
REGISTER_RATE_LIMIT = f"{settings.register_rate_limit}/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """
    Custom handler for rate limit exceeded errors.
    Returns a JSON response with retry information.
    """
    client_ip = get_remote_address(request)
    security_audit_logger.warning(
        "RATE_LIMIT_AUDIT: http",
        path=request.url.path,
        ip_address=client_ip,
        limit=str(exc.detail),
    )

    return JSONResponse(
        status_code=429,
        content={
            "detail": "Too many requests. Please try again later.",
            "limit": str(exc.detail),
        },
        headers={"Retry-After": "60"},
    )

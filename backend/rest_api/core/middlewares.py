"""
HTTP middlewares: response security headers and request correlation ids.
"""

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from shared.infrastructure.correlation import CorrelationIdMiddleware

_ALWAYS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
_HSTS = "max-age=31536000; includeSubDomains"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Fixed security headers on every response; HSTS only in production."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        from shared.config.settings import settings

        response = await call_next(request)
        response.headers.update(_ALWAYS)
        if settings.environment == "production":
            response.headers["Strict-Transport-Security"] = _HSTS
        return response


def register_middlewares(app: FastAPI) -> None:
    # Starlette runs the last added middleware first, so the request id
    # is already set while the security headers middleware runs.
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(CorrelationIdMiddleware)

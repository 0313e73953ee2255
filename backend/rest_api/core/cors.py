"""
Cross-origin policy for browser clients of the REST API.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.config.settings import settings
from ws_gateway.components.core.constants import DEFAULT_ALLOWED_ORIGINS

ALLOWED_METHODS = ["GET", "POST", "OPTIONS"]
ALLOWED_HEADERS = ["Authorization", "Content-Type", "Accept", "X-Request-ID"]


def get_cors_origins() -> list[str]:
    """ALLOWED_ORIGINS (comma separated) when set, else the localhost list /ws/chat also accepts."""
    configured = [origin.strip() for origin in settings.allowed_origins.split(",")]
    return [origin for origin in configured if origin] or list(DEFAULT_ALLOWED_ORIGINS)


def configure_cors(app: FastAPI) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=ALLOWED_METHODS,
        allow_headers=ALLOWED_HEADERS,
        expose_headers=["X-Request-ID"],
        # Preflight results are not cached while developing
        max_age=0 if settings.environment == "development" else 600,
    )

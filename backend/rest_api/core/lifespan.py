"""
Startup and shutdown of the combined REST + WebSocket process.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from shared.infrastructure.db import engine
from shared.config.settings import settings
from shared.config.logging import setup_logging, rest_api_logger as logger
from rest_api.models import Base
from ws_gateway.main import gateway_lifespan


def check_configuration() -> None:
    """Log every insecure setting; refuse to start with any of them in production."""
    problems = settings.validate_production_secrets()
    for problem in problems:
        logger.error("Insecure configuration", problem=problem)
    if problems and settings.environment == "production":
        raise RuntimeError("Refusing to start in production: " + "; ".join(problems))


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    check_configuration()
    logger.info("Starting relaychat", port=settings.server_port, env=settings.environment)

    # No migration tool; missing tables are created on boot
    Base.metadata.create_all(bind=engine)

    async with gateway_lifespan(app):
        yield

    logger.info("relaychat stopped")

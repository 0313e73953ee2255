"""
relaychat main application.
Entry point for the FastAPI server: REST API and WebSocket gateway in one
process, sharing one connection registry.
"""

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from rest_api.core.cors import configure_cors
from rest_api.core.lifespan import lifespan
from rest_api.core.middlewares import register_middlewares
from rest_api.routers import auth_router, friends_router, groups_router, messages_router
from shared.config.settings import settings
from shared.security.rate_limit import limiter, rate_limit_exceeded_handler
from shared.utils.schemas import HealthResponse
from ws_gateway.main import router as ws_router


app = FastAPI(
    title="relaychat",
    description="Realtime chat: direct and group messages, friends, history",
    version="0.1.0",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

register_middlewares(app)
configure_cors(app)


@app.get("/api/health", response_model=HealthResponse)
def health_check():
    """Basic health check endpoint."""
    return HealthResponse(
        status="healthy",
        service="rest-api",
        environment=settings.environment,
    )


app.include_router(auth_router)
app.include_router(friends_router)
app.include_router(groups_router)
app.include_router(messages_router)
app.include_router(ws_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "rest_api.main:app",
        host="0.0.0.0",
        port=settings.server_port,
        reload=settings.debug,
    )

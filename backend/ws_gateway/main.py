"""
Realtime half of relaychat.

/ws/chat, /ws/health, and gateway_lifespan, which owns the process's
ConnectionManager and its housekeeping task. rest_api.main mounts the
router and enters the lifespan, so HTTP handlers and chat sockets share
one registry.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Query, Request, WebSocket

from shared.config.settings import settings
from shared.config.logging import ws_gateway_logger as logger
from ws_gateway.connection_manager import ConnectionManager
from ws_gateway.components.core.constants import WSConstants
from ws_gateway.components.core.dependencies import get_connection_manager, get_dispatcher
from ws_gateway.components.data.chat_repository import UsernameCache
from ws_gateway.components.endpoints.handlers import ChatEndpoint
from ws_gateway.core.dispatch.dispatcher import MessageDispatcher


@asynccontextmanager
async def gateway_lifespan(
    app: FastAPI,
    manager: ConnectionManager | None = None,
) -> AsyncIterator[ConnectionManager]:
    """Publish the registry on app.state, run housekeeping, close every socket on exit."""
    manager = manager or ConnectionManager()
    app.state.connection_manager = manager
    app.state.username_cache = UsernameCache()

    housekeeping = asyncio.create_task(start_heartbeat_cleanup(manager), name="ws_housekeeping")
    logger.info("Chat gateway started", env=settings.environment)
    try:
        yield manager
    finally:
        housekeeping.cancel()
        with suppress(asyncio.CancelledError):
            await housekeeping
        await manager.shutdown()


async def cleanup_sweep(manager: ConnectionManager, sweep: int) -> None:
    """One housekeeping pass. Locks are only swept every LOCK_CLEANUP_CYCLE passes."""
    stale = await manager.cleanup_stale_connections()
    dead = await manager.cleanup_dead_connections()
    if dead:
        logger.info("Disconnected sockets with failed sends", count=dead)

    try:
        forgotten = await manager.cleanup_rate_limiter()
    except Exception as e:
        logger.warning("Rate limiter sweep failed", error=str(e))
    else:
        if forgotten:
            logger.debug("Rate limiter entries forgotten", count=forgotten)

    if sweep % WSConstants.LOCK_CLEANUP_CYCLE == 0:
        await manager.cleanup_locks()

    logger.debug("Housekeeping sweep done", sweep=sweep, stale=stale, dead=dead)


async def start_heartbeat_cleanup(
    manager: ConnectionManager,
    interval: float = WSConstants.HEARTBEAT_CLEANUP_INTERVAL,
) -> None:
    """Run cleanup_sweep every interval seconds until cancelled. A failed sweep is logged, not fatal."""
    sweep = 0
    while True:
        await asyncio.sleep(interval)
        sweep += 1
        try:
            await cleanup_sweep(manager, sweep)
        except Exception as e:
            logger.error("Housekeeping sweep failed", sweep=sweep, error=str(e), exc_info=True)


router = APIRouter(tags=["realtime"])


@router.get("/ws/health")
def health_check(request: Request):
    try:
        stats = get_connection_manager(request).get_stats_sync()
    except Exception as e:
        logger.warning("Registry stats unavailable", error=str(e))
        stats = {"error": "stats_unavailable"}
    return {"status": "healthy", "service": "ws-gateway", "environment": settings.environment, **stats}


@router.websocket("/ws/chat")
async def chat_websocket(
    websocket: WebSocket,
    token: str = Query(default="", description="JWT access token"),
    manager: ConnectionManager = Depends(get_connection_manager),
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    """
    Connect with ?token=<JWT>, send {"type": "join", "user_id": <own id>},
    then direct_message and group_message frames.
    """
    await ChatEndpoint(websocket, manager, dispatcher, token).run()

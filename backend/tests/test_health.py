"""
Tests for health check endpoints and gateway housekeeping.
"""

import asyncio
from contextlib import suppress
from unittest.mock import AsyncMock

import pytest

from ws_gateway.components.core.constants import WSConstants
from ws_gateway.main import cleanup_sweep, start_heartbeat_cleanup


class TestHealthEndpoints:
    """Test health check API endpoints."""

    def test_health_check(self, client):
        """Basic health check should return healthy status."""
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "rest-api"

    def test_ws_health_includes_registry_stats(self, client):
        """The gateway health check reports the registry."""
        response = client.get("/ws/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "ws-gateway"
        assert data["total_connections"] == 0
        assert data["users_connected"] == 0
        assert "metrics" in data

    def test_responses_carry_request_id(self, client):
        """Every response echoes or assigns X-Request-ID."""
        response = client.get("/api/health", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"
        assert response.headers["X-Content-Type-Options"] == "nosniff"


def housekeeping_manager(dead: int = 0) -> AsyncMock:
    manager = AsyncMock()
    manager.cleanup_stale_connections.return_value = 0
    manager.cleanup_dead_connections.return_value = dead
    manager.cleanup_rate_limiter.return_value = 0
    return manager


class TestHousekeeping:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("sweep, locks_swept", [(1, False), (4, False), (5, True), (10, True)])
    async def test_locks_swept_every_cycle(self, sweep, locks_swept):
        manager = housekeeping_manager()

        await cleanup_sweep(manager, sweep)

        manager.cleanup_stale_connections.assert_awaited_once()
        manager.cleanup_dead_connections.assert_awaited_once()
        assert manager.cleanup_locks.await_count == (1 if locks_swept else 0)

    @pytest.mark.asyncio
    async def test_rate_limiter_failure_does_not_stop_sweep(self):
        manager = housekeeping_manager()
        manager.cleanup_rate_limiter.side_effect = RuntimeError("boom")

        await cleanup_sweep(manager, WSConstants.LOCK_CLEANUP_CYCLE)

        manager.cleanup_locks.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_loop_survives_failed_sweep(self):
        manager = housekeeping_manager()
        manager.cleanup_stale_connections.side_effect = [RuntimeError("db gone")] + [0] * 50

        task = asyncio.create_task(start_heartbeat_cleanup(manager, interval=0.01))
        await asyncio.sleep(0.1)
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

        assert manager.cleanup_stale_connections.await_count >= 2

"""
Tests for heartbeat handling and per-connection rate limiting.
"""

import time

import pytest

from ws_gateway.components.connection.heartbeat import HeartbeatTracker, handle_heartbeat, is_ping
from ws_gateway.components.connection.rate_limiter import WebSocketRateLimiter
from ws_gateway.components.core.constants import MSG_PONG_JSON
from tests.conftest import mock_websocket


class TestPing:

    @pytest.mark.parametrize("frame", ["ping", '{"type":"ping"}', '{ "type": "ping" }'])
    def test_ping_frames(self, frame):
        assert is_ping(frame)

    @pytest.mark.parametrize(
        "frame",
        ['{"type":"ping","extra":1}', '{"type":"pong"}', "PING", "[]", '{"type":"ping"', ""],
    )
    def test_not_ping(self, frame):
        assert not is_ping(frame)

    @pytest.mark.asyncio
    async def test_pong_sent_as_text(self):
        ws = mock_websocket()

        assert await handle_heartbeat(ws, "ping") is True
        ws.send_text.assert_awaited_once_with(MSG_PONG_JSON)

    @pytest.mark.asyncio
    async def test_other_frames_untouched(self):
        ws = mock_websocket()

        assert await handle_heartbeat(ws, '{"type":"join","user_id":1}') is False
        ws.send_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure_swallowed(self):
        """The peer may be gone already; the receive loop notices."""
        ws = mock_websocket()
        ws.send_text.side_effect = RuntimeError("closed")

        assert await handle_heartbeat(ws, "ping") is True


class TestHeartbeatTracker:

    def test_stale_after_timeout(self):
        tracker = HeartbeatTracker(timeout_seconds=30)
        fresh, old = object(), object()
        tracker.record(fresh)
        tracker.record(old, timestamp=time.time() - 60)

        assert tracker.is_stale(old)
        assert not tracker.is_stale(fresh)
        assert tracker.cleanup_stale() == [old]
        assert tracker.tracked_count == 1

    def test_remove(self):
        tracker = HeartbeatTracker()
        ws = object()
        tracker.record(ws)
        tracker.remove(ws)

        assert tracker.get_last_activity(ws) is None


class TestWebSocketRateLimiter:

    @pytest.mark.asyncio
    async def test_limit_within_window(self):
        limiter = WebSocketRateLimiter(max_messages=3, window_seconds=1.0)
        ws = mock_websocket()

        results = [await limiter.is_allowed(ws, now=100.0 + i * 0.1) for i in range(4)]

        assert results == [True, True, True, False]
        assert limiter.get_stats()["total_rejected"] == 1

    @pytest.mark.asyncio
    async def test_window_slides(self):
        limiter = WebSocketRateLimiter(max_messages=2, window_seconds=1.0)
        ws = mock_websocket()
        await limiter.is_allowed(ws, now=100.0)
        await limiter.is_allowed(ws, now=100.5)

        assert await limiter.is_allowed(ws, now=100.9) is False
        assert await limiter.is_allowed(ws, now=101.1) is True

    @pytest.mark.asyncio
    async def test_connections_limited_independently(self):
        limiter = WebSocketRateLimiter(max_messages=1, window_seconds=1.0)
        a, b = mock_websocket(), mock_websocket()

        assert await limiter.is_allowed(a, now=1.0)
        assert await limiter.is_allowed(b, now=1.0)
        assert not await limiter.is_allowed(a, now=1.1)

    @pytest.mark.asyncio
    async def test_eviction_at_capacity(self):
        limiter = WebSocketRateLimiter(max_messages=5, window_seconds=1.0, max_tracked=10)
        for i in range(11):
            await limiter.is_allowed(mock_websocket(), now=float(i))

        assert limiter.tracked_count <= 10
        assert limiter.get_stats()["evictions"] >= 1

    @pytest.mark.asyncio
    async def test_cleanup_drops_closed_and_idle(self):
        limiter = WebSocketRateLimiter(max_messages=5, window_seconds=60.0)
        active = mock_websocket()
        closed = mock_websocket(connected=False)
        await limiter.is_allowed(active)
        await limiter.is_allowed(closed)

        assert await limiter.cleanup_stale() == 1
        assert limiter.tracked_count == 1

        await limiter.remove_connection(active)
        assert limiter.tracked_count == 0

"""
Tests for the per-connection session state machine.
"""

import pytest

from ws_gateway.core.connection.session import ChatSession, SessionState, SessionStateError
from tests.conftest import mock_websocket


async def accepted_session(manager):
    ws = mock_websocket()
    await manager.accept(ws)
    return ChatSession(ws, manager)


class TestChatSession:
    """CONNECTING -> JOINED -> DISCONNECTED."""

    @pytest.mark.asyncio
    async def test_starts_connecting(self, manager):
        session = await accepted_session(manager)

        assert session.state is SessionState.CONNECTING
        assert session.user_id is None
        assert not session.is_joined

    @pytest.mark.asyncio
    async def test_join_registers_connection(self, manager):
        session = await accepted_session(manager)

        assert await session.join(1) is True
        assert session.state is SessionState.JOINED
        assert session.user_id == 1
        assert manager.get_user_connections(1) == {session.websocket}

    @pytest.mark.asyncio
    async def test_rejoin_same_user_is_idempotent(self, manager):
        """A second join as the same user changes nothing."""
        session = await accepted_session(manager)
        await session.join(1)

        assert await session.join(1) is False
        assert session.state is SessionState.JOINED
        assert manager.get_user_connections(1) == {session.websocket}

    @pytest.mark.asyncio
    async def test_rejoin_as_other_user_rejected(self, manager):
        session = await accepted_session(manager)
        await session.join(1)

        with pytest.raises(SessionStateError, match="Already joined as another user"):
            await session.join(2)
        assert session.user_id == 1
        assert manager.get_user_connections(2) == set()

    @pytest.mark.asyncio
    async def test_require_joined_before_join(self, manager):
        session = await accepted_session(manager)

        with pytest.raises(SessionStateError) as exc_info:
            session.require_joined()
        assert str(exc_info.value) == "Join required"
        assert exc_info.value.state is SessionState.CONNECTING

    @pytest.mark.asyncio
    async def test_require_joined_returns_user(self, manager):
        session = await accepted_session(manager)
        await session.join(7)

        assert session.require_joined() == 7

    @pytest.mark.asyncio
    async def test_join_over_user_limit_stays_connecting(self, manager):
        """The per-user limit surfaces as ConnectionError and leaves the session unjoined."""
        for _ in range(3):
            other = await accepted_session(manager)
            await other.join(1)
        session = await accepted_session(manager)

        with pytest.raises(ConnectionError):
            await session.join(1)
        assert session.state is SessionState.CONNECTING

    @pytest.mark.asyncio
    async def test_disconnect_unregisters(self, manager):
        session = await accepted_session(manager)
        await session.join(1)

        await session.disconnect()

        assert session.state is SessionState.DISCONNECTED
        assert not manager.is_online(1)
        assert manager.total_connections == 0

    @pytest.mark.asyncio
    async def test_disconnect_twice_is_safe(self, manager):
        session = await accepted_session(manager)
        await session.join(1)
        await session.disconnect()

        await session.disconnect()

        assert session.state is SessionState.DISCONNECTED
        assert manager.total_connections == 0

    @pytest.mark.asyncio
    async def test_disconnect_before_join(self, manager):
        session = await accepted_session(manager)

        await session.disconnect()

        assert session.state is SessionState.DISCONNECTED
        assert manager.total_connections == 0

    @pytest.mark.asyncio
    async def test_join_after_disconnect_rejected(self, manager):
        """DISCONNECTED is terminal; a reconnect needs a new session."""
        session = await accepted_session(manager)
        await session.disconnect()

        with pytest.raises(SessionStateError, match="Session is disconnected"):
            await session.join(1)
        assert not manager.is_online(1)

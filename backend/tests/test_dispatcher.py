"""
Tests for the message dispatch engine.

Tests verify:
- persist before fan-out, store-assigned ids in the payload
- sender echo and multi-device delivery
- group recipients are the members read at dispatch time; later joiners and
  members who drop mid-dispatch do not affect the rest
- failures are reported to the originating connection only
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from rest_api.models import GroupMembership
from ws_gateway.components.data.chat_repository import AsyncChatStore, SqlAlchemyChatStore
from ws_gateway.components.data.ports import PersistenceError
from ws_gateway.components.events.types import (
    ChatMessageEvent,
    EventType,
    MessageValidationError,
)
from ws_gateway.core.dispatch.dispatcher import MessageDispatcher, message_payload
from tests.conftest import TestingSessionLocal, make_group, make_user, mock_websocket, sent_events


async def joined(manager, user_id):
    ws = mock_websocket()
    await manager.accept(ws)
    await manager.register(user_id, ws)
    return ws


@pytest.fixture
def dispatcher(manager, chat_store):
    return MessageDispatcher(manager, AsyncChatStore(chat_store), manager.metrics)


def failing_dispatcher(manager, store):
    return MessageDispatcher(manager, AsyncChatStore(store, timeout=1.0), manager.metrics)


class TestDirectMessages:
    """send_direct: persist, then deliver to both parties."""

    @pytest.mark.asyncio
    async def test_delivered_to_receiver_and_echoed(self, dispatcher, manager, alice, bob):
        sender_ws = await joined(manager, alice.id)
        receiver_ws = await joined(manager, bob.id)

        message = await dispatcher.send_direct(
            alice.id, bob.id, "  hello bob  ", timestamp=1_700_000_000_123,
            client_token="tok-1", origin=sender_ws,
        )

        assert message is not None
        expected = {
            "type": "direct_message",
            "data": {
                "id": message.id,
                "sender_id": alice.id,
                "receiver_id": bob.id,
                "content": "hello bob",
                "timestamp": 1_700_000_000_123,
                "sender_username": "alice",
                "client_token": "tok-1",
            },
        }
        assert sent_events(receiver_ws) == [expected]
        assert sent_events(sender_ws) == [expected]

    @pytest.mark.asyncio
    async def test_every_sender_device_gets_the_echo(self, dispatcher, manager, alice, bob):
        phone = await joined(manager, alice.id)
        laptop = await joined(manager, alice.id)

        await dispatcher.send_direct(alice.id, bob.id, "hi", origin=phone)

        assert len(sent_events(phone)) == 1
        assert len(sent_events(laptop)) == 1

    @pytest.mark.asyncio
    async def test_offline_receiver_still_persisted(self, dispatcher, manager, chat_store, alice, bob):
        """Live delivery is best effort; history has the message."""
        await joined(manager, alice.id)

        message = await dispatcher.send_direct(alice.id, bob.id, "are you there?")

        history = chat_store.list_messages_between(bob.id, alice.id)
        assert [m.id for m in history] == [message.id]
        assert manager.metrics.get_snapshot()["publish_dropped_offline"] == 1

    @pytest.mark.asyncio
    async def test_missing_timestamp_uses_server_time(self, dispatcher, alice, bob):
        message = await dispatcher.send_direct(alice.id, bob.id, "now")

        assert message.created_at is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("timestamp", [10**17, -5])
    async def test_timestamp_out_of_range_not_persisted(self, dispatcher, chat_store, alice, bob, timestamp):
        with pytest.raises(MessageValidationError, match="timestamp"):
            await dispatcher.send_direct(alice.id, bob.id, "when?", timestamp=timestamp)

        assert chat_store.list_messages_between(alice.id, bob.id) == []

    @pytest.mark.asyncio
    async def test_epoch_zero_is_a_valid_timestamp(self, dispatcher, alice, bob):
        message = await dispatcher.send_direct(alice.id, bob.id, "1970", timestamp=0)

        assert message_payload(message, "alice")["timestamp"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "x" * 4001])
    async def test_invalid_content_not_persisted(self, dispatcher, chat_store, alice, bob, content):
        with pytest.raises(MessageValidationError):
            await dispatcher.send_direct(alice.id, bob.id, content)

        assert chat_store.list_messages_between(alice.id, bob.id) == []

    @pytest.mark.asyncio
    async def test_persistence_failure_reports_once(self, manager):
        """Nothing is fanned out and the origin gets exactly one error."""
        store = MagicMock()
        store.insert_message.side_effect = PersistenceError("database is down")
        dispatcher = failing_dispatcher(manager, store)
        origin = await joined(manager, 1)
        receiver = await joined(manager, 2)

        assert await dispatcher.send_direct(1, 2, "lost", origin=origin) is None

        assert sent_events(origin) == [
            {"type": "error", "data": {"message": "Failed to send message"}}
        ]
        receiver.send_json.assert_not_awaited()
        assert manager.metrics.get_snapshot()["messages_persistence_failed"] == 1

    @pytest.mark.asyncio
    async def test_username_lookup_failure_still_delivers(self, manager, alice, bob, chat_store):
        """The message is already persisted; only the display name is lost."""
        store = MagicMock(wraps=chat_store)
        store.get_username.side_effect = PersistenceError("lookup failed")
        dispatcher = failing_dispatcher(manager, store)
        receiver = await joined(manager, bob.id)

        message = await dispatcher.send_direct(alice.id, bob.id, "hi")

        assert message is not None
        [event] = sent_events(receiver)
        assert event["data"]["sender_username"] is None
        assert event["data"]["id"] == message.id


class TestGroupMessages:
    """send_group: membership checked at insert, members snapshot for fan-out."""

    @pytest.mark.asyncio
    async def test_members_receive_non_members_do_not(
        self, dispatcher, manager, db_session, alice, bob, carol
    ):
        group = make_group(db_session, "Hikers", "HIKE01", [alice, bob])
        alice_ws = await joined(manager, alice.id)
        bob_ws = await joined(manager, bob.id)
        carol_ws = await joined(manager, carol.id)

        message = await dispatcher.send_group(alice.id, group.id, "trail at 9", origin=alice_ws)

        [event] = sent_events(bob_ws)
        assert event["type"] == EventType.GROUP_MESSAGE.value
        assert event["data"]["group_id"] == group.id
        assert event["data"]["id"] == message.id
        assert "receiver_id" not in event["data"]
        assert sent_events(alice_ws) == [event]
        carol_ws.send_json.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_member_sender_rejected(
        self, dispatcher, manager, chat_store, db_session, alice, bob, carol
    ):
        group = make_group(db_session, "Hikers", "HIKE01", [alice, bob])
        carol_ws = await joined(manager, carol.id)
        bob_ws = await joined(manager, bob.id)

        assert await dispatcher.send_group(carol.id, group.id, "let me in", origin=carol_ws) is None

        assert sent_events(carol_ws) == [
            {"type": "error", "data": {"message": "Not a member of this group"}}
        ]
        bob_ws.send_json.assert_not_awaited()
        assert chat_store.list_group_messages(group.id) == []

    @pytest.mark.asyncio
    async def test_missing_group(self, dispatcher, manager, alice):
        origin = await joined(manager, alice.id)

        assert await dispatcher.send_group(alice.id, 999, "anyone?", origin=origin) is None

        assert sent_events(origin) == [{"type": "error", "data": {"message": "Group not found"}}]
        assert manager.metrics.get_snapshot()["messages_membership_failed"] == 1

    @pytest.mark.asyncio
    async def test_persistence_failure_uses_group_message(self, manager):
        store = MagicMock()
        store.insert_message.side_effect = PersistenceError("disk full")
        dispatcher = failing_dispatcher(manager, store)
        origin = await joined(manager, 1)

        await dispatcher.send_group(1, 5, "hello", origin=origin)

        assert sent_events(origin) == [
            {"type": "error", "data": {"message": "Failed to send group message"}}
        ]

    @pytest.mark.asyncio
    async def test_one_failing_recipient_does_not_affect_others(self, chat_store, db_session, alice, bob, carol):
        group = make_group(db_session, "Trio", "TRIO01", [alice, bob, carol])
        publisher = MagicMock()

        async def publish(user_id, event):
            if user_id == bob.id:
                raise RuntimeError("boom")
            return 1

        publisher.publish = AsyncMock(side_effect=publish)
        publisher.send_to_connection = AsyncMock()
        metrics = MagicMock()
        dispatcher = MessageDispatcher(publisher, AsyncChatStore(chat_store), metrics)

        await dispatcher.send_group(alice.id, group.id, "hi all")

        called = sorted(c.args[0] for c in publisher.publish.await_args_list)
        assert called == sorted([alice.id, bob.id, carol.id])
        metrics.increment_dispatched.assert_called_once_with("group")

    @pytest.mark.asyncio
    async def test_member_who_joins_afterwards_gets_nothing_live(
        self, dispatcher, manager, chat_store, db_session, alice, bob, carol
    ):
        group = make_group(db_session, "Trio", "TRIO01", [alice, bob, carol])
        dave = make_user(db_session, "dave")
        dave_ws = await joined(manager, dave.id)

        message = await dispatcher.send_group(bob.id, group.id, "before dave")
        db_session.add(GroupMembership(group_id=group.id, user_id=dave.id))
        db_session.commit()

        dave_ws.send_json.assert_not_awaited()
        assert [m.id for m in chat_store.list_group_messages(group.id)] == [message.id]

    @pytest.mark.asyncio
    async def test_recipients_are_members_at_dispatch_time(
        self, manager, db_session, alice, bob, carol
    ):
        """A member added after the insert but before the lookup is included."""
        group = make_group(db_session, "Trio", "TRIO01", [alice, bob, carol])
        dave = make_user(db_session, "dave")
        dave_ws = await joined(manager, dave.id)

        class JoinDuringInsert(SqlAlchemyChatStore):
            def insert_message(self, *args, **kwargs):
                stored = super().insert_message(*args, **kwargs)
                with TestingSessionLocal() as db:
                    db.add(GroupMembership(group_id=group.id, user_id=dave.id))
                    db.commit()
                return stored

        store = AsyncChatStore(JoinDuringInsert(TestingSessionLocal))
        dispatcher = MessageDispatcher(manager, store, manager.metrics)

        message = await dispatcher.send_group(alice.id, group.id, "welcome dave")

        assert [e["data"]["id"] for e in sent_events(dave_ws)] == [message.id]

    @pytest.mark.asyncio
    async def test_member_disconnecting_mid_dispatch(self, manager, chat_store, db_session, alice, bob, carol):
        """The other members still get the message and nothing is raised."""
        group = make_group(db_session, "Trio", "TRIO01", [alice, bob, carol])
        alice_ws = await joined(manager, alice.id)
        bob_ws = await joined(manager, bob.id)
        carol_ws = await joined(manager, carol.id)

        class DisconnectDuringLookup(AsyncChatStore):
            async def list_group_members(self, group_id):
                members = await super().list_group_members(group_id)
                await manager.disconnect(carol_ws)
                return members

        dispatcher = MessageDispatcher(manager, DisconnectDuringLookup(chat_store), manager.metrics)

        message = await dispatcher.send_group(alice.id, group.id, "still here?", origin=alice_ws)

        assert message is not None
        assert [e["data"]["id"] for e in sent_events(alice_ws)] == [message.id]
        assert [e["data"]["id"] for e in sent_events(bob_ws)] == [message.id]
        carol_ws.send_json.assert_not_awaited()
        assert not manager.is_online(carol.id)


class TestDispatch:
    """dispatch routes parsed events."""

    @pytest.mark.asyncio
    async def test_routes_direct_and_group(self, dispatcher):
        dispatcher.send_direct = AsyncMock(return_value=None)
        dispatcher.send_group = AsyncMock(return_value=None)

        await dispatcher.dispatch(1, ChatMessageEvent(EventType.DIRECT_MESSAGE, "a", receiver_id=2))
        await dispatcher.dispatch(1, ChatMessageEvent(EventType.GROUP_MESSAGE, "b", group_id=3))

        assert dispatcher.send_direct.await_args.args == (1, 2, "a")
        assert dispatcher.send_group.await_args.args == (1, 3, "b")

    def test_validate_content_trims(self, dispatcher):
        assert dispatcher.validate_content("  hi  ") == "hi"

    def test_validate_content_rejects_non_string(self, dispatcher):
        with pytest.raises(MessageValidationError):
            dispatcher.validate_content(42)

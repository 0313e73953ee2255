"""
Tests for direct message history.
"""

from unittest.mock import MagicMock

from rest_api.main import app
from rest_api.models import from_epoch_ms
from ws_gateway.components.core.dependencies import get_chat_store
from ws_gateway.components.data.ports import StoredMessage
from tests.conftest import headers_for


class TestDirectHistory:
    """GET /api/messages/{friend_id}"""

    def test_both_directions_oldest_first(self, client, chat_store, alice, bob, auth_headers):
        reply = chat_store.insert_message(bob.id, "hi alice", from_epoch_ms(3_000), receiver_id=alice.id)
        opener = chat_store.insert_message(alice.id, "hi bob", from_epoch_ms(1_000), receiver_id=bob.id)

        response = client.get(f"/api/messages/{bob.id}", headers=auth_headers)

        assert response.status_code == 200
        rows = response.json()
        assert [r["id"] for r in rows] == [opener.id, reply.id]
        assert rows[0] == {
            "id": opener.id,
            "sender_id": alice.id,
            "receiver_id": bob.id,
            "group_id": None,
            "content": "hi bob",
            "timestamp": 1_000,
            "sender_username": "alice",
            "client_token": None,
        }

    def test_same_timestamp_ordered_by_id(self, client, chat_store, alice, bob, auth_headers):
        first = chat_store.insert_message(alice.id, "a", from_epoch_ms(5_000), receiver_id=bob.id)
        second = chat_store.insert_message(bob.id, "b", from_epoch_ms(5_000), receiver_id=alice.id)

        rows = client.get(f"/api/messages/{bob.id}", headers=auth_headers).json()

        assert [r["id"] for r in rows] == [first.id, second.id]

    def test_other_conversations_excluded(self, client, chat_store, alice, bob, carol, auth_headers):
        chat_store.insert_message(alice.id, "to bob", from_epoch_ms(1_000), receiver_id=bob.id)
        chat_store.insert_message(alice.id, "to carol", from_epoch_ms(2_000), receiver_id=carol.id)
        chat_store.insert_message(bob.id, "bob to carol", from_epoch_ms(3_000), receiver_id=carol.id)

        rows = client.get(f"/api/messages/{bob.id}", headers=auth_headers).json()

        assert [r["content"] for r in rows] == ["to bob"]

    def test_client_token_round_trips(self, client, chat_store, alice, bob):
        chat_store.insert_message(
            alice.id, "tokened", from_epoch_ms(1_000), receiver_id=bob.id, client_token="c-1"
        )

        rows = client.get(f"/api/messages/{alice.id}", headers=headers_for(bob)).json()

        assert rows[0]["client_token"] == "c-1"

    def test_empty_history(self, client, alice, bob, auth_headers):
        assert client.get(f"/api/messages/{bob.id}", headers=auth_headers).json() == []

    def test_requires_token(self, client, bob):
        assert client.get(f"/api/messages/{bob.id}").status_code == 401

    def test_served_from_the_gateway_store(self, client, alice, bob, auth_headers):
        store = MagicMock()
        store.list_messages_between.return_value = [
            StoredMessage(
                id=41, sender_id=bob.id, receiver_id=alice.id, content="from the store",
                created_at=from_epoch_ms(7_000), sender_username="bob",
            )
        ]
        app.dependency_overrides[get_chat_store] = lambda: store

        rows = client.get(f"/api/messages/{bob.id}", headers=auth_headers).json()

        store.list_messages_between.assert_called_once_with(alice.id, bob.id)
        assert [(r["id"], r["content"], r["timestamp"]) for r in rows] == [(41, "from the store", 7_000)]

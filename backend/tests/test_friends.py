"""
Tests for the friends API and its notifications.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from rest_api.main import app
from rest_api.models import FriendEdge
from rest_api.repositories.social import FriendRepository
from shared.utils.schemas import UserInfo
from ws_gateway.components.core.dependencies import get_notifier
from tests.conftest import headers_for, make_friends


@pytest.fixture
def notifier(client):
    """Records notifications instead of publishing them."""
    fake = MagicMock()
    fake.notify_friend_request = AsyncMock(return_value=1)
    fake.notify_friendship_accepted = AsyncMock(return_value=None)
    app.dependency_overrides[get_notifier] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_notifier, None)


class TestFriendRequests:
    """POST /api/friends/request"""

    def test_send_request(self, client, notifier, alice, bob, auth_headers):
        """A new request is pending and the target is notified."""
        response = client.post(
            "/api/friends/request",
            json={"friend_username": "bob"},
            headers=auth_headers,
        )
        assert response.status_code == 201
        data = response.json()
        assert data["user_id"] == alice.id
        assert data["friend_id"] == bob.id
        assert data["status"] == "pending"

        notifier.notify_friend_request.assert_called_once_with(bob.id, alice.id, "alice")

    def test_pending_list_for_target(self, client, notifier, alice, bob, auth_headers, bob_headers):
        client.post("/api/friends/request", json={"friend_username": "bob"}, headers=auth_headers)

        response = client.get("/api/friends/pending", headers=bob_headers)
        assert response.status_code == 200
        [pending] = response.json()
        assert pending["user_id"] == alice.id
        assert pending["username"] == "alice"

        # The sender has nothing to answer
        assert client.get("/api/friends/pending", headers=auth_headers).json() == []

    def test_unknown_user(self, client, notifier, alice, auth_headers):
        response = client.post(
            "/api/friends/request",
            json={"friend_username": "ghost"},
            headers=auth_headers,
        )
        assert response.status_code == 404
        notifier.notify_friend_request.assert_not_called()

    def test_request_to_self(self, client, notifier, alice, auth_headers):
        response = client.post(
            "/api/friends/request",
            json={"friend_username": "alice"},
            headers=auth_headers,
        )
        assert response.status_code == 400

    def test_duplicate_request(self, client, notifier, alice, bob, auth_headers):
        client.post("/api/friends/request", json={"friend_username": "bob"}, headers=auth_headers)

        response = client.post(
            "/api/friends/request",
            json={"friend_username": "bob"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Friend request already pending"

    def test_reverse_request_while_pending(self, client, notifier, alice, bob, auth_headers, bob_headers):
        """One edge per pair, whichever direction it was sent in."""
        client.post("/api/friends/request", json={"friend_username": "bob"}, headers=auth_headers)

        response = client.post(
            "/api/friends/request",
            json={"friend_username": "alice"},
            headers=bob_headers,
        )
        assert response.status_code == 409

    def test_reverse_request_racing_the_check(self, client, notifier, alice, bob, auth_headers, bob_headers):
        """Both directions passing the existence check still leave one edge."""
        client.post("/api/friends/request", json={"friend_username": "bob"}, headers=auth_headers)

        with patch.object(FriendRepository, "find_between", return_value=None):
            response = client.post(
                "/api/friends/request",
                json={"friend_username": "alice"},
                headers=bob_headers,
            )

        assert response.status_code == 409
        assert len(client.get("/api/friends/pending", headers=bob_headers).json()) == 1
        notifier.notify_friend_request.assert_awaited_once()

    def test_pair_is_unique_in_either_direction(self, db_session, alice, bob):
        make_friends(db_session, alice, bob, status="pending")

        db_session.add(FriendEdge(user_id=bob.id, friend_id=alice.id, status="pending"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_request_to_existing_friend(self, client, notifier, db_session, alice, bob, auth_headers):
        make_friends(db_session, alice, bob)

        response = client.post(
            "/api/friends/request",
            json={"friend_username": "bob"},
            headers=auth_headers,
        )
        assert response.status_code == 409
        assert response.json()["detail"] == "Already friends"


class TestAcceptRequest:
    """POST /api/friends/accept"""

    def test_accept(self, client, notifier, db_session, alice, bob, bob_headers):
        edge = make_friends(db_session, alice, bob, status="pending")

        response = client.post(
            "/api/friends/accept",
            json={"request_id": edge.id},
            headers=bob_headers,
        )
        assert response.status_code == 200
        assert response.json()["status"] == "accepted"

        notifier.notify_friendship_accepted.assert_called_once_with(
            UserInfo(id=alice.id, username="alice"),
            UserInfo(id=bob.id, username="bob"),
        )

    def test_friends_listed_both_ways(self, client, notifier, db_session, alice, bob, auth_headers, bob_headers):
        edge = make_friends(db_session, alice, bob, status="pending")
        client.post("/api/friends/accept", json={"request_id": edge.id}, headers=bob_headers)

        assert client.get("/api/friends", headers=auth_headers).json() == [
            {"id": bob.id, "username": "bob"}
        ]
        assert client.get("/api/friends", headers=bob_headers).json() == [
            {"id": alice.id, "username": "alice"}
        ]

    def test_only_target_may_accept(self, client, notifier, db_session, alice, bob, carol, auth_headers):
        edge = make_friends(db_session, alice, bob, status="pending")

        assert client.post(
            "/api/friends/accept", json={"request_id": edge.id}, headers=auth_headers
        ).status_code == 403
        assert client.post(
            "/api/friends/accept", json={"request_id": edge.id}, headers=headers_for(carol)
        ).status_code == 403
        notifier.notify_friendship_accepted.assert_not_called()

    def test_accept_twice(self, client, notifier, db_session, alice, bob, bob_headers):
        edge = make_friends(db_session, alice, bob)

        response = client.post(
            "/api/friends/accept",
            json={"request_id": edge.id},
            headers=bob_headers,
        )
        assert response.status_code == 409

    def test_unknown_request(self, client, notifier, bob, bob_headers):
        response = client.post(
            "/api/friends/accept",
            json={"request_id": 12345},
            headers=bob_headers,
        )
        assert response.status_code == 404

    def test_pending_is_not_a_friend(self, client, db_session, alice, bob, auth_headers):
        make_friends(db_session, alice, bob, status="pending")

        assert client.get("/api/friends", headers=auth_headers).json() == []

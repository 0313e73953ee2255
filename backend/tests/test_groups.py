"""
Tests for the groups API: create, join by code, members, history.
"""

from rest_api.models import from_epoch_ms
from tests.conftest import headers_for, make_group


class TestCreateGroup:
    """POST /api/groups"""

    def test_create_makes_creator_a_member(self, client, alice, auth_headers):
        response = client.post("/api/groups", json={"name": "  Hikers "}, headers=auth_headers)

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Hikers"
        assert data["created_by"] == alice.id
        assert len(data["code"]) == 6
        assert data["code"] == data["code"].upper()

        members = client.get(f"/api/groups/{data['id']}/members", headers=auth_headers).json()
        assert members == [{"id": alice.id, "username": "alice"}]

    def test_blank_name_rejected(self, client, alice, auth_headers):
        response = client.post("/api/groups", json={"name": "   "}, headers=auth_headers)
        assert response.status_code == 422

    def test_codes_are_unique(self, client, alice, auth_headers):
        codes = {
            client.post("/api/groups", json={"name": f"g{i}"}, headers=auth_headers).json()["code"]
            for i in range(5)
        }
        assert len(codes) == 5


class TestJoinGroup:
    """POST /api/groups/join"""

    def test_join_by_code_is_case_insensitive(self, client, db_session, alice, bob, bob_headers):
        group = make_group(db_session, "Hikers", "HIKE01", [alice])

        response = client.post("/api/groups/join", json={"code": "hike01"}, headers=bob_headers)

        assert response.status_code == 200
        assert response.json()["id"] == group.id
        assert [g["id"] for g in client.get("/api/groups", headers=bob_headers).json()] == [group.id]

    def test_invalid_code(self, client, bob, bob_headers):
        response = client.post("/api/groups/join", json={"code": "NOPE99"}, headers=bob_headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Invalid group code"

    def test_already_member(self, client, db_session, alice, auth_headers):
        make_group(db_session, "Hikers", "HIKE01", [alice])

        response = client.post("/api/groups/join", json={"code": "HIKE01"}, headers=auth_headers)

        assert response.status_code == 409
        assert response.json()["detail"] == "Already a member of this group"


class TestGroupAccess:
    """Members-only reads."""

    def test_list_groups_only_mine(self, client, db_session, alice, bob, auth_headers):
        mine = make_group(db_session, "Mine", "MINE01", [alice])
        make_group(db_session, "Theirs", "THEM01", [bob])

        assert [g["id"] for g in client.get("/api/groups", headers=auth_headers).json()] == [mine.id]

    def test_members_requires_membership(self, client, db_session, alice, bob, bob_headers):
        group = make_group(db_session, "Hikers", "HIKE01", [alice])

        assert client.get(f"/api/groups/{group.id}/members", headers=bob_headers).status_code == 403

    def test_missing_group(self, client, alice, auth_headers):
        assert client.get("/api/groups/999/members", headers=auth_headers).status_code == 404
        assert client.get("/api/groups/999/messages", headers=auth_headers).status_code == 404

    def test_history_requires_membership(self, client, db_session, alice, carol):
        group = make_group(db_session, "Hikers", "HIKE01", [alice])

        response = client.get(f"/api/groups/{group.id}/messages", headers=headers_for(carol))
        assert response.status_code == 403


class TestGroupHistory:
    """GET /api/groups/{id}/messages"""

    def test_ordered_oldest_first(self, client, chat_store, db_session, alice, bob, auth_headers):
        group = make_group(db_session, "Hikers", "HIKE01", [alice, bob])
        late = chat_store.insert_message(bob.id, "second", from_epoch_ms(2_000), group_id=group.id)
        early = chat_store.insert_message(alice.id, "first", from_epoch_ms(1_000), group_id=group.id)

        response = client.get(f"/api/groups/{group.id}/messages", headers=auth_headers)

        assert response.status_code == 200
        rows = response.json()
        assert [r["id"] for r in rows] == [early.id, late.id]
        assert rows[0]["timestamp"] == 1_000
        assert rows[0]["sender_username"] == "alice"
        assert rows[1]["sender_username"] == "bob"
        assert all(r["group_id"] == group.id for r in rows)

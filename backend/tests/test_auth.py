"""
Tests for authentication: password hashing, JWT handling, register/login.
"""

import pytest
from fastapi import HTTPException

from shared.security.auth import sign_jwt, sign_user_token, verify_jwt, get_bearer_token
from shared.security.password import hash_password, verify_password, needs_rehash
from tests.conftest import TEST_PASSWORD


class TestPasswordHashing:
    """Test password hashing utilities."""

    def test_hash_password_returns_bcrypt_hash(self):
        """Hash should return bcrypt format."""
        hashed = hash_password("mypassword")
        assert hashed.startswith("$2b$")

    def test_verify_password_correct(self):
        """Correct password should verify."""
        hashed = hash_password("mypassword")
        assert verify_password("mypassword", hashed) is True

    def test_verify_password_incorrect(self):
        """Incorrect password should not verify."""
        hashed = hash_password("mypassword")
        assert verify_password("wrongpassword", hashed) is False

    def test_plain_text_never_verifies(self):
        """A stored value that is not a bcrypt hash never matches."""
        assert verify_password("plaintext", "plaintext") is False

    def test_needs_rehash(self):
        """Non-bcrypt values and other cost factors need rehashing."""
        assert needs_rehash("plaintext") is True
        assert needs_rehash(hash_password("mypassword")) is False


class TestJWT:
    """Token signing and verification."""

    def test_round_trip_claims(self):
        """A user token carries the id as sub and the username."""
        claims = verify_jwt(sign_user_token(7, "alice"))
        assert claims["sub"] == "7"
        assert claims["username"] == "alice"
        assert claims["type"] == "access"

    def test_expired_token_rejected(self):
        """An expired token raises 401."""
        token = sign_jwt({"sub": "1"}, ttl_seconds=-10)
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(token)
        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_garbage_token_rejected(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt("not-a-jwt")
        assert exc_info.value.detail == "Invalid token"

    def test_non_numeric_subject_rejected(self):
        """The subject must be a user id."""
        with pytest.raises(HTTPException):
            verify_jwt(sign_jwt({"sub": "alice"}))

    def test_bearer_header_parsing(self):
        assert get_bearer_token("Bearer abc") == "abc"
        with pytest.raises(HTTPException):
            get_bearer_token("Token abc")
        with pytest.raises(HTTPException):
            get_bearer_token(None)


class TestAuthEndpoints:
    """Test authentication API endpoints."""

    def test_register_creates_account(self, client):
        """Registration returns 201 with the new user's id and name."""
        response = client.post(
            "/api/auth/register",
            json={"username": "dave", "password": TEST_PASSWORD},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "dave"
        assert isinstance(data["id"], int)

    def test_register_duplicate_username(self, client, alice):
        """A taken username is a conflict."""
        response = client.post(
            "/api/auth/register",
            json={"username": "alice", "password": TEST_PASSWORD},
        )
        assert response.status_code == 409

    def test_login_success(self, client, alice):
        """Valid credentials return a token that authenticates the user."""
        response = client.post(
            "/api/auth/login",
            json={"username": "alice", "password": TEST_PASSWORD},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"].lower() == "bearer"
        assert data["user"] == {"id": alice.id, "username": "alice"}
        assert verify_jwt(data["access_token"])["sub"] == str(alice.id)

    def test_login_invalid_password(self, client, alice):
        """Wrong password fails with the generic message."""
        response = client.post(
            "/api/auth/login",
            json={"username": "alice", "password": "wrong-password"},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    def test_login_unknown_user(self, client):
        """Unknown users get the same answer as wrong passwords."""
        response = client.post(
            "/api/auth/login",
            json={"username": "nobody", "password": TEST_PASSWORD},
        )
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid username or password"

    def test_protected_route_requires_token(self, client):
        """REST routes reject requests without a bearer token."""
        response = client.get("/api/friends")
        assert response.status_code == 401

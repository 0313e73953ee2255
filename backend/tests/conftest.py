"""
Pytest configuration and fixtures for backend tests.
"""

import os
from unittest.mock import AsyncMock, MagicMock

# The application engine is built at import time; keep it in memory
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from starlette.websockets import WebSocketState

from rest_api.main import app
from rest_api.models import Base, FriendEdge, Group, GroupMembership, User
from shared.infrastructure.db import get_db
from shared.security.auth import sign_user_token
from shared.security.password import hash_password
from shared.security.rate_limit import limiter
from ws_gateway.components.core.dependencies import get_chat_store
from ws_gateway.components.data.chat_repository import SqlAlchemyChatStore
from ws_gateway.connection_manager import ConnectionManager


# SQLite in-memory database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Login and register limits would trip across tests sharing one client IP
limiter.enabled = False

TEST_PASSWORD = "secret-pass-123"


@pytest.fixture(scope="function")
def db_session():
    """
    Create a fresh database session for each test.
    Uses SQLite in-memory for isolation.
    """
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def chat_store(db_session):
    """ChatStore over the test database."""
    return SqlAlchemyChatStore(TestingSessionLocal)


@pytest.fixture(scope="function")
def client(db_session, chat_store):
    """
    Create a test client with database session override.

    Entering the client runs the lifespan, so the WebSocket gateway's
    ConnectionManager exists for the duration of the test.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_chat_store] = lambda: chat_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def make_user(db_session, username: str, password: str = TEST_PASSWORD) -> User:
    user = User(username=username, password=hash_password(password))
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def make_group(db_session, name: str, code: str, members: list[User]) -> Group:
    group = Group(name=name, code=code, created_by=members[0].id)
    db_session.add(group)
    db_session.flush()
    for member in members:
        db_session.add(GroupMembership(group_id=group.id, user_id=member.id))
    db_session.commit()
    db_session.refresh(group)
    return group


def make_friends(db_session, a: User, b: User, status: str = "accepted") -> FriendEdge:
    edge = FriendEdge(user_id=a.id, friend_id=b.id, status=status)
    db_session.add(edge)
    db_session.commit()
    db_session.refresh(edge)
    return edge


def headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {sign_user_token(user.id, user.username)}"}


def token_for(user: User) -> str:
    return sign_user_token(user.id, user.username)


@pytest.fixture
def alice(db_session) -> User:
    return make_user(db_session, "alice")


@pytest.fixture
def bob(db_session) -> User:
    return make_user(db_session, "bob")


@pytest.fixture
def carol(db_session) -> User:
    return make_user(db_session, "carol")


@pytest.fixture
def auth_headers(alice):
    """Authentication headers for alice."""
    return headers_for(alice)


@pytest.fixture
def bob_headers(bob):
    return headers_for(bob)


def mock_websocket(connected: bool = True) -> MagicMock:
    """A Starlette WebSocket stand-in that records what it was sent."""
    ws = MagicMock()
    state = WebSocketState.CONNECTED if connected else WebSocketState.DISCONNECTED
    ws.client_state = state
    ws.application_state = state
    ws.headers = {}
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock()
    ws.send_text = AsyncMock()
    ws.close = AsyncMock()
    return ws


def sent_events(ws: MagicMock) -> list[dict]:
    return [c.args[0] for c in ws.send_json.await_args_list]


@pytest.fixture
def manager():
    """A ConnectionManager with its own components and small limits."""
    return ConnectionManager(max_connections_per_user=3, max_total_connections=10)

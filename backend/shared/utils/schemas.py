"""
Shared Pydantic schemas used across the application.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# Common Types
# =============================================================================

FriendStatus = Literal["pending", "accepted"]


class ErrorResponse(BaseModel):
    """Standard error body returned by AppException subclasses."""

    detail: str


# =============================================================================
# Authentication Schemas
# =============================================================================


class RegisterRequest(BaseModel):
    """Registration request body."""

    username: str = Field(min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_.-]+$")
    password: str = Field(min_length=6, max_length=128)


class LoginRequest(BaseModel):
    """Login request body."""

    username: str
    password: str


class UserInfo(BaseModel):
    """Public user information."""

    id: int
    username: str


class LoginResponse(BaseModel):
    """Login response with JWT token."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int  # seconds
    user: UserInfo


# =============================================================================
# Friend Schemas
# =============================================================================


class FriendRequestCreate(BaseModel):
    """Send a friend request by the target's username."""

    friend_username: str = Field(min_length=1)


class FriendRequestAccept(BaseModel):
    """Accept a pending friend request."""

    request_id: int


class PendingRequestOutput(BaseModel):
    """A pending friend request addressed to the caller."""

    id: int
    user_id: int
    username: str
    created_at: datetime | None = None


class FriendRequestOutput(BaseModel):
    """Result of creating or accepting a friend request."""

    id: int
    user_id: int
    friend_id: int
    status: FriendStatus


# =============================================================================
# Group Schemas
# =============================================================================


class GroupCreate(BaseModel):
    """Create a group."""

    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Group name cannot be blank")
        return value


class GroupJoin(BaseModel):
    """Join a group by its code."""

    code: str = Field(min_length=1, max_length=16)


class GroupOutput(BaseModel):
    """Group as seen by a member."""

    id: int
    name: str
    code: str
    created_by: int
    created_at: datetime | None = None


# =============================================================================
# Message Schemas
# =============================================================================


class MessageOutput(BaseModel):
    """
    A persisted message with the sender's username joined at read time.

    timestamp is epoch milliseconds, the same unit clients send.
    """

    id: int
    sender_id: int
    receiver_id: int | None = None
    group_id: int | None = None
    content: str
    timestamp: int
    sender_username: str | None = None
    client_token: str | None = None


# =============================================================================
# Health
# =============================================================================


class HealthResponse(BaseModel):
    """Basic health check body."""

    status: str
    service: str
    environment: str

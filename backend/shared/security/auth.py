"""
Access tokens for chat users.

The same HS256 token authenticates REST calls (Authorization: Bearer ...)
and the chat WebSocket (?token=...). Its subject is the user id as a
string; username rides along so the gateway can log without a lookup.
"""

from __future__ import annotations

import time
import uuid
from typing import Any

import jwt
from fastapi import Depends, HTTPException, Header, status

from shared.config.settings import (
    JWT_SECRET,
    JWT_ISSUER,
    JWT_AUDIENCE,
    settings,
)
from shared.config.logging import get_logger

logger = get_logger(__name__)

_ALGORITHM = "HS256"
_TOKEN_TYPE = "access"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """Sign payload plus the standard claims. ttl defaults to jwt_access_token_expire_minutes."""
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60
    issued_at = int(time.time())
    claims = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + ttl_seconds,
        "type": _TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=_ALGORITHM)


def sign_user_token(user_id: int, username: str) -> str:
    return sign_jwt({"sub": str(user_id), "username": username})


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Decode token and check it names a chat user.

    Raises:
        HTTPException: 401 with a short reason. Library error text is only
            logged, never returned.
    """
    try:
        claims = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=[_ALGORITHM],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Token rejected", error=str(e))
        raise _unauthorized("Invalid token")

    if "sub" not in claims:
        raise _unauthorized("Invalid token: missing subject claim")
    if claims.get("type") != _TOKEN_TYPE:
        raise _unauthorized("Invalid token: invalid type claim")
    if not str(claims["sub"]).isdigit():
        raise _unauthorized("Invalid token: malformed subject claim")
    return claims


def get_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise _unauthorized("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme != "Bearer" or not token:
        raise _unauthorized("Invalid Authorization header format. Expected: Bearer <token>")
    return token.strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """Dependency: verified claims of the caller's bearer token."""
    return verify_jwt(get_bearer_token(authorization))


def current_user_id(ctx: dict[str, Any] = Depends(current_user_context)) -> int:
    """Dependency: the caller's user id."""
    return int(ctx["sub"])

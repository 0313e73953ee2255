"""
Authentication router.
Handles account registration and login.
"""

from fastapi import APIRouter, Depends, Request, status
from slowapi.util import get_remote_address
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.rate_limit import limiter, LOGIN_RATE_LIMIT, REGISTER_RATE_LIMIT
from shared.utils.schemas import LoginRequest, LoginResponse, RegisterRequest, UserInfo
from rest_api.services.domain import AccountService


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=UserInfo, status_code=status.HTTP_201_CREATED)
@limiter.limit(REGISTER_RATE_LIMIT)
def register(request: Request, body: RegisterRequest, db: Session = Depends(get_db)) -> UserInfo:
    """
    Create a chat account.

    Returns 409 if the username is already taken.
    """
    return AccountService(db).register(body.username, body.password)


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_RATE_LIMIT)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """
    Authenticate a user and return an access token.

    The token carries:
    - sub: user ID
    - username

    The same token authenticates the WebSocket at /ws/chat?token=...
    """
    return AccountService(db).login(
        body.username,
        body.password,
        ip_address=get_remote_address(request),
    )

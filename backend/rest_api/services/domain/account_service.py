"""
Account Domain Service.

Registration and credential checks for chat users.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger, audit_auth_event, mask_username
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.security.auth import sign_user_token
from shared.security.password import hash_password, verify_password, needs_rehash
from shared.utils.exceptions import AuthenticationError, DuplicateEntityError
from shared.utils.schemas import LoginResponse, UserInfo
from rest_api.models import User
from rest_api.repositories import get_user_repository

logger = get_logger(__name__)


class AccountService:
    """Domain service for account registration and login."""

    def __init__(self, db: Session):
        self._db = db
        self._users = get_user_repository(db)

    def register(self, username: str, password: str) -> UserInfo:
        """
        Create a new account.

        Raises:
            DuplicateEntityError: If the username is taken.
        """
        if self._users.find_by_username(username) is not None:
            raise DuplicateEntityError("Username", username)

        user = User(username=username, password=hash_password(password))
        try:
            self._users.add(user)
            safe_commit(self._db)
        except IntegrityError:
            self._db.rollback()
            # Lost a race with a concurrent registration of the same name
            raise DuplicateEntityError("Username", username)

        logger.info("User registered", user_id=user.id, username=mask_username(username))
        return UserInfo(id=user.id, username=user.username)

    def login(self, username: str, password: str, ip_address: str | None = None) -> LoginResponse:
        """
        Verify credentials and issue an access token.

        Unknown users and wrong passwords produce the same error.
        """
        user = self._users.find_by_username(username)
        if user is None or not verify_password(password, user.password):
            audit_auth_event(
                "LOGIN_FAILED",
                user_id=user.id if user else None,
                username=username,
                success=False,
                reason="user_not_found" if user is None else "invalid_password",
                ip_address=ip_address,
            )
            raise AuthenticationError()

        if needs_rehash(user.password):
            user.password = hash_password(password)
            safe_commit(self._db)

        token = sign_user_token(user.id, user.username)
        audit_auth_event("LOGIN_SUCCESS", user_id=user.id, username=username, ip_address=ip_address)

        return LoginResponse(
            access_token=token,
            expires_in=settings.jwt_access_token_expire_minutes * 60,
            user=UserInfo(id=user.id, username=user.username),
        )

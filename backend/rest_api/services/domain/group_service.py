"""
Group Domain Service.

Groups are joined by a short code. Codes are uppercase alphanumerics,
generated at creation and never changed.
"""

import secrets
import string

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    ConflictError,
    InvalidGroupCodeError,
    NotFoundError,
    NotGroupMemberError,
)
from shared.utils.schemas import GroupOutput, UserInfo
from rest_api.models import Group, GroupMembership
from rest_api.repositories import get_group_repository

logger = get_logger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_CODE_ATTEMPTS = 10


def generate_group_code(length: int | None = None) -> str:
    """Random join code of uppercase letters and digits."""
    length = length or settings.group_code_length
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def _to_output(group: Group) -> GroupOutput:
    return GroupOutput(
        id=group.id,
        name=group.name,
        code=group.code,
        created_by=group.created_by,
        created_at=group.created_at,
    )


class GroupService:
    """Domain service for groups and memberships."""

    def __init__(self, db: Session):
        self._db = db
        self._groups = get_group_repository(db)

    def _unused_code(self) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_group_code()
            if not self._groups.code_exists(code):
                return code
        raise RuntimeError("Could not generate a unique group code")

    def create_group(self, user_id: int, name: str) -> GroupOutput:
        """Create a group and make its creator the first member."""
        for attempt in range(MAX_CODE_ATTEMPTS):
            group = Group(name=name, code=self._unused_code(), created_by=user_id)
            try:
                self._groups.add(group)
                self._groups.add_member(group.id, user_id)
                safe_commit(self._db)
            except IntegrityError:
                self._db.rollback()
                # Code taken between the existence check and the insert
                logger.warning("Group code collision, retrying", attempt=attempt + 1)
                continue
            self._db.refresh(group)
            logger.info("Group created", group_id=group.id, user_id=user_id)
            return _to_output(group)
        raise RuntimeError("Could not generate a unique group code")

    def list_groups(self, user_id: int) -> list[GroupOutput]:
        return [_to_output(g) for g in self._groups.list_for_user(user_id)]

    def join_group(self, user_id: int, code: str) -> GroupOutput:
        """
        Join a group by code (case-insensitive).

        Raises:
            InvalidGroupCodeError: No group carries the code.
            ConflictError: The caller is already a member.
        """
        group = self._groups.find_by_code(code.strip().upper())
        if group is None:
            raise InvalidGroupCodeError(code, user_id=user_id)

        if self._groups.is_member(group.id, user_id):
            raise ConflictError("Already a member of this group", group_id=group.id, user_id=user_id)

        try:
            self._groups.add_membership(GroupMembership(group_id=group.id, user_id=user_id))
            safe_commit(self._db)
        except IntegrityError:
            self._db.rollback()
            raise ConflictError("Already a member of this group", group_id=group.id, user_id=user_id)

        logger.info("Group joined", group_id=group.id, user_id=user_id)
        return _to_output(group)

    def require_member(self, group_id: int, user_id: int) -> Group:
        """
        Return the group if user_id belongs to it.

        Raises:
            NotFoundError: No such group.
            NotGroupMemberError: The caller is not a member.
        """
        group = self._groups.find_by_id(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        if not self._groups.is_member(group_id, user_id):
            raise NotGroupMemberError(group_id, user_id=user_id)
        return group

    def list_members(self, group_id: int, user_id: int) -> list[UserInfo]:
        self.require_member(group_id, user_id)
        return [UserInfo(id=u.id, username=u.username) for u in self._groups.list_members(group_id)]

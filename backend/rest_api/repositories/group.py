"""
Group Repository - Data access for groups and memberships.
"""

from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import Group, GroupMembership, User
from .base import BaseRepository


class GroupRepository(BaseRepository[Group]):
    """Repository for Group and GroupMembership entities."""

    @property
    def model(self) -> type[Group]:
        return Group

    def find_by_code(self, code: str) -> Group | None:
        return self._db.scalar(select(Group).where(Group.code == code))

    def code_exists(self, code: str) -> bool:
        return self._db.scalar(select(Group.id).where(Group.code == code)) is not None

    def is_member(self, group_id: int, user_id: int) -> bool:
        return (
            self._db.scalar(
                select(GroupMembership.id).where(
                    GroupMembership.group_id == group_id,
                    GroupMembership.user_id == user_id,
                )
            )
            is not None
        )

    def add_member(self, group_id: int, user_id: int) -> GroupMembership:
        return self.add_membership(GroupMembership(group_id=group_id, user_id=user_id))

    def add_membership(self, membership: GroupMembership) -> GroupMembership:
        self._db.add(membership)
        self._db.flush()
        return membership

    def member_ids(self, group_id: int) -> set[int]:
        """Current member ids of a group (empty if the group has none)."""
        return set(
            self._db.scalars(
                select(GroupMembership.user_id).where(GroupMembership.group_id == group_id)
            ).all()
        )

    def list_members(self, group_id: int) -> Sequence[User]:
        query = (
            select(User)
            .join(GroupMembership, GroupMembership.user_id == User.id)
            .where(GroupMembership.group_id == group_id)
            .order_by(GroupMembership.joined_at, GroupMembership.id)
        )
        return self._db.scalars(query).all()

    def list_for_user(self, user_id: int) -> Sequence[Group]:
        """Groups the user belongs to, most recently joined first."""
        query = (
            select(Group)
            .join(GroupMembership, GroupMembership.group_id == Group.id)
            .where(GroupMembership.user_id == user_id)
            .order_by(GroupMembership.joined_at.desc(), Group.id.desc())
        )
        return self._db.scalars(query).all()


def get_group_repository(db: Session) -> GroupRepository:
    """Factory function for GroupRepository."""
    return GroupRepository(db)

"""
Groups router - /api/groups/*
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import current_user_id
from shared.utils.schemas import GroupCreate, GroupJoin, GroupOutput, MessageOutput, UserInfo
from rest_api.services.domain import GroupService, HistoryService
from ws_gateway.components.core.dependencies import get_chat_store
from ws_gateway.components.data.ports import ChatStore


router = APIRouter(prefix="/api/groups", tags=["groups"])


@router.post("", response_model=GroupOutput, status_code=status.HTTP_201_CREATED)
def create_group(
    body: GroupCreate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> GroupOutput:
    """Create a group. The caller becomes its first member."""
    return GroupService(db).create_group(user_id, body.name)


@router.get("", response_model=list[GroupOutput])
def list_groups(
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> list[GroupOutput]:
    return GroupService(db).list_groups(user_id)


@router.post("/join", response_model=GroupOutput)
def join_group(
    body: GroupJoin,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> GroupOutput:
    """Join a group by its code. Codes are matched case-insensitively."""
    return GroupService(db).join_group(user_id, body.code)


@router.get("/{group_id}/members", response_model=list[UserInfo])
def list_members(
    group_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> list[UserInfo]:
    return GroupService(db).list_members(group_id, user_id)


@router.get("/{group_id}/messages", response_model=list[MessageOutput])
def group_messages(
    group_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    store: ChatStore = Depends(get_chat_store),
) -> list[MessageOutput]:
    """Group history, oldest first. Members only."""
    return HistoryService(db, store).group_history(group_id, user_id)

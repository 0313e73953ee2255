"""
Direct message history router - /api/messages/*
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import current_user_id
from shared.utils.schemas import MessageOutput
from rest_api.services.domain import HistoryService
from ws_gateway.components.core.dependencies import get_chat_store
from ws_gateway.components.data.ports import ChatStore


router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("/{friend_id}", response_model=list[MessageOutput])
def direct_messages(
    friend_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    store: ChatStore = Depends(get_chat_store),
) -> list[MessageOutput]:
    """Messages exchanged between the caller and friend_id, oldest first."""
    return HistoryService(db, store).direct_history(user_id, friend_id)

"""
Friends router - /api/friends/*

Mutations notify online users through the presence notifier, scheduled as
background tasks so they run after the commit and never fail the request.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from shared.infrastructure.db import get_db
from shared.security.auth import current_user_id
from shared.utils.schemas import (
    FriendRequestAccept,
    FriendRequestCreate,
    FriendRequestOutput,
    PendingRequestOutput,
    UserInfo,
)
from rest_api.services.domain import FriendService
from ws_gateway.components.core.dependencies import get_notifier
from ws_gateway.core.dispatch.notifier import PresenceNotifier


router = APIRouter(prefix="/api/friends", tags=["friends"])


@router.get("", response_model=list[UserInfo])
def list_friends(
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> list[UserInfo]:
    """Accepted friends of the caller."""
    return FriendService(db).list_friends(user_id)


@router.get("/pending", response_model=list[PendingRequestOutput])
def list_pending(
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
) -> list[PendingRequestOutput]:
    """Friend requests waiting for the caller's answer."""
    return FriendService(db).list_pending(user_id)


@router.post("/request", response_model=FriendRequestOutput, status_code=status.HTTP_201_CREATED)
def send_friend_request(
    body: FriendRequestCreate,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    notifier: PresenceNotifier = Depends(get_notifier),
) -> FriendRequestOutput:
    """Send a friend request by username."""
    service = FriendService(db)
    result = service.send_request(user_id, body.friend_username)

    background_tasks.add_task(
        notifier.notify_friend_request,
        result.friend_id,
        user_id,
        service.get_username(user_id),
    )
    return result


@router.post("/accept", response_model=FriendRequestOutput)
def accept_friend_request(
    body: FriendRequestAccept,
    background_tasks: BackgroundTasks,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    notifier: PresenceNotifier = Depends(get_notifier),
) -> FriendRequestOutput:
    """Accept a pending request. Only its target may accept it."""
    service = FriendService(db)
    result = service.accept_request(user_id, body.request_id)

    requester = UserInfo(id=result.user_id, username=service.get_username(result.user_id) or "")
    accepter = UserInfo(id=result.friend_id, username=service.get_username(result.friend_id) or "")
    background_tasks.add_task(notifier.notify_friendship_accepted, requester, accepter)
    return result

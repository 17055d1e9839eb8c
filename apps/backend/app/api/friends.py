from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from app import models
from app.core.database import get_db, unit_of_work
from app.core.deps import get_current_user
from app.schemas import (
    ExternalFriendCreate,
    ExternalFriendOut,
    FriendRequestCreate,
    FriendRequestOut,
    FriendRequestRespond,
    MergeRequestCreate,
    MergeRequestOut,
    MergeRequestRespond,
    TransactionOut,
    UserBrief,
)
from app.services import ExternalFriendService, FriendshipService, MergeRequestService


router = APIRouter(prefix="/friends", tags=["friends"])


@router.get("/external", response_model=list[ExternalFriendOut])
def list_external_friends(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return ExternalFriendService(db).list(current_user.id)


@router.post("/external", response_model=ExternalFriendOut, status_code=201)
def add_external_friend(
    payload: ExternalFriendCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        friend = ExternalFriendService(db).add(current_user.id, payload.name)
    return friend


@router.delete("/external/{friend_id}", status_code=204)
def delete_external_friend(
    friend_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        ExternalFriendService(db).delete(current_user.id, friend_id)
    return Response(status_code=204)


@router.post("/merge-requests", response_model=MergeRequestOut, status_code=201)
def create_merge_request(
    payload: MergeRequestCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        request = MergeRequestService(db).create(
            current_user.id, payload.placeholder_name, payload.target_username
        )
    return request


@router.get("/merge-requests", response_model=list[MergeRequestOut])
def list_received_merge_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return MergeRequestService(db).list_received(current_user.id)


@router.get("/merge-requests/{request_id}", response_model=list[TransactionOut])
def merge_request_details(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return MergeRequestService(db).details(current_user.id, request_id)


@router.post("/merge-requests/{request_id}/respond", response_model=MergeRequestOut)
def respond_to_merge_request(
    request_id: int,
    payload: MergeRequestRespond,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        request = MergeRequestService(db).respond(
            current_user.id, request_id, payload.status.strip().upper()
        )
    return request


# ===== Friend requests =====

@router.post("/requests", response_model=FriendRequestOut, status_code=201)
def send_friend_request(
    payload: FriendRequestCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        friendship = FriendshipService(db).send_request(current_user.id, payload.username)
    return friendship


@router.get("/requests/pending", response_model=list[FriendRequestOut])
def list_pending_friend_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return FriendshipService(db).list_pending(current_user.id)


@router.get("/requests/sent", response_model=list[FriendRequestOut])
def list_sent_friend_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return FriendshipService(db).list_sent(current_user.id)


@router.get("/requests/declined", response_model=list[FriendRequestOut])
def list_declined_friend_requests(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return FriendshipService(db).list_declined(current_user.id)


@router.post("/requests/{request_id}/respond", response_model=FriendRequestOut)
def respond_to_friend_request(
    request_id: int,
    payload: FriendRequestRespond,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        friendship = FriendshipService(db).respond(
            current_user.id, request_id, payload.status.strip().upper()
        )
    return friendship


@router.post("/requests/{request_id}/cancel", response_model=FriendRequestOut)
def cancel_friend_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        friendship = FriendshipService(db).cancel(current_user.id, request_id)
    return friendship


@router.delete("/requests/{request_id}", status_code=204)
def delete_declined_friend_request(
    request_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        FriendshipService(db).delete_declined(current_user.id, request_id)
    return Response(status_code=204)


# ===== Friends =====

@router.get("", response_model=list[UserBrief])
def list_friends(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return FriendshipService(db).list_friends(current_user.id)


@router.delete("/{username}", status_code=204)
def remove_friend(
    username: str,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        FriendshipService(db).remove_friend(current_user.id, username)
    return Response(status_code=204)

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from app import models
from app.core.database import get_db, unit_of_work
from app.core.deps import get_current_user
from app.schemas import (
    InvitationResponse,
    OccurrenceExclude,
    ParticipantOut,
    PendingInvitationOut,
    RecurrenceEnd,
    TransactionCreate,
    TransactionOut,
    TransactionUpdate,
)
from app.services import TransactionLifecycleService, TransactionParticipantService


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=1900, le=9999),
    type: Optional[models.TxnType] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    svc = TransactionLifecycleService(db)
    return svc.list(current_user.id, month=month, year=year, type=type)


@router.post("", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    svc = TransactionLifecycleService(db)
    with unit_of_work(db):
        txn = svc.create(current_user.id, payload)
    db.refresh(txn)
    return txn


# Declared before "/{txn_id}" so the literal path wins
@router.get("/invitations", response_model=list[PendingInvitationOut])
def list_pending_invitations(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return TransactionParticipantService(db).list_pending_invitations(current_user.id)


@router.get("/{txn_id}", response_model=TransactionOut)
def get_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return TransactionLifecycleService(db).get(txn_id, current_user.id)


@router.patch("/{txn_id}", response_model=TransactionOut)
def update_transaction(
    txn_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    svc = TransactionLifecycleService(db)
    with unit_of_work(db):
        txn = svc.update(txn_id, current_user.id, payload)
    db.refresh(txn)
    return txn


@router.delete("/{txn_id}", status_code=204)
def delete_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        TransactionLifecycleService(db).delete(txn_id, current_user.id)
    return Response(status_code=204)


@router.post("/{txn_id}/respond", response_model=ParticipantOut)
def respond_to_invitation(
    txn_id: int,
    payload: InvitationResponse,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        participant = TransactionParticipantService(db).respond_to_invitation(
            txn_id, current_user.id, payload.status.strip().upper()
        )
    return participant


@router.post("/{txn_id}/leave", response_model=ParticipantOut)
def leave_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        participant = TransactionParticipantService(db).leave_transaction(txn_id, current_user.id)
    return participant


@router.post("/{txn_id}/exclude-occurrence", response_model=TransactionOut)
def exclude_occurrence(
    txn_id: int,
    payload: OccurrenceExclude,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        txn = TransactionLifecycleService(db).exclude_occurrence(txn_id, current_user.id, payload.date)
    return txn


@router.post("/{txn_id}/end-recurrence", response_model=TransactionOut)
def end_recurrence(
    txn_id: int,
    payload: RecurrenceEnd,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        txn = TransactionLifecycleService(db).end_recurrence(txn_id, current_user.id, payload.ends_at)
    return txn

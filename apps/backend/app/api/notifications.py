from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from app import models
from app.core.database import get_db, unit_of_work
from app.core.deps import get_current_user
from app.schemas import NotificationOut
from app.services import NotificationService


router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    # Listing prunes expired rows, so it runs as a write
    with unit_of_work(db):
        rows = NotificationService(db).list_for_user(current_user.id)
    return rows


@router.patch("/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        row = NotificationService(db).mark_as_read(current_user.id, notification_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Notification not found")
    return row


@router.delete("/{notification_id}", status_code=204)
def delete_notification(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    with unit_of_work(db):
        deleted = NotificationService(db).delete(current_user.id, notification_id)
        if not deleted:
            raise HTTPException(status_code=404, detail="Notification not found")
    return Response(status_code=204)

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from app import models
from app.core.config import settings

logger = logging.getLogger(__name__)

TRANSACTION_INVITATION = "transaction_invitation"
TRANSACTION_UPDATE = "transaction_update"
MERGE_REQUEST = "merge_request"
MERGE_REQUEST_ACCEPTED = "merge_request_accepted"
MERGE_REQUEST_REJECTED = "merge_request_rejected"
FRIEND_REQUEST = "friend_request"
FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
FRIEND_REQUEST_DECLINED = "friend_request_declined"

Publisher = Callable[[int, models.Notification], None]


class NotificationService:
    """Store user notifications and hand them to an optional live publisher.

    Rows are written in the caller's unit of work and never committed here.
    Delivery (socket, push, email) belongs to ``publisher``.
    """

    def __init__(self, db: Session, publisher: Optional[Publisher] = None) -> None:
        self.db = db
        self.publisher = publisher

    def notify(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        payload: Optional[dict[str, Any]] = None,
    ) -> models.Notification:
        logger.info("notify user %s: %s", user_id, title)
        row = models.Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            data=dict(payload or {}),
        )
        self.db.add(row)
        self.db.flush()
        if self.publisher is not None:
            self.publisher(user_id, row)
        return row

    def list_for_user(self, user_id: int) -> list[models.Notification]:
        """Newest first; rows past the retention window are pruned on read."""
        cutoff = models.now_local_naive() - timedelta(days=settings.NOTIFICATION_RETENTION_DAYS)
        (
            self.db.query(models.Notification)
            .filter(models.Notification.user_id == user_id, models.Notification.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        return (
            self.db.query(models.Notification)
            .filter(models.Notification.user_id == user_id)
            .order_by(models.Notification.created_at.desc(), models.Notification.id.desc())
            .all()
        )

    def mark_as_read(self, user_id: int, notification_id: int) -> models.Notification | None:
        row = self._owned(user_id, notification_id)
        if row is None:
            return None
        row.is_read = True
        return row

    def delete(self, user_id: int, notification_id: int) -> bool:
        row = self._owned(user_id, notification_id)
        if row is None:
            return False
        self.db.delete(row)
        return True

    def _owned(self, user_id: int, notification_id: int) -> models.Notification | None:
        row = self.db.get(models.Notification, notification_id)
        if row is None or row.user_id != user_id:
            return None
        return row

"""
Friend relationships between registered users

A friendship row is also the friend request: it starts PENDING, the addressee
accepts or declines it, the requester may cancel it while pending. Declined
and cancelled rows are kept so the requester sees the outcome; the stale ones
are removed by ``cleanup_stale``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, joinedload

from app import models
from app.core.config import settings
from app.core.errors import AuthorizationError, BusinessRuleError, NotFoundError
from app.services.notification_service import (
    FRIEND_REQUEST,
    FRIEND_REQUEST_ACCEPTED,
    FRIEND_REQUEST_DECLINED,
    NotificationService,
)
from app.services.user_directory import UserDirectory

logger = logging.getLogger(__name__)

_RESPONSES = {
    "ACCEPTED": models.FriendshipStatus.ACCEPTED,
    "DECLINED": models.FriendshipStatus.DECLINED,
}


def find_friendship(db: Session, user_a: int, user_b: int) -> models.Friendship | None:
    """The friendship row between two users, in either direction."""
    return (
        db.query(models.Friendship)
        .filter(
            or_(
                and_(models.Friendship.requester_id == user_a, models.Friendship.addressee_id == user_b),
                and_(models.Friendship.requester_id == user_b, models.Friendship.addressee_id == user_a),
            )
        )
        .first()
    )


class FriendshipService:
    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationService] = None,
        users: Optional[UserDirectory] = None,
    ) -> None:
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.users = users or UserDirectory(db)

    # ==================== Requests ====================

    def send_request(self, requester_id: int, username: str) -> models.Friendship:
        """Ask ``username`` to become a friend of ``requester_id``.

        A declined or cancelled row between the pair is reopened as a new
        PENDING request in the sender's direction.

        Raises:
            NotFoundError: no user with that username.
            BusinessRuleError: self request, hourly cap reached, already
                friends or a request already pending.
        """
        addressee_id = self.users.lookup_by_username(username)
        if addressee_id is None:
            raise NotFoundError("User not found")
        if addressee_id == requester_id:
            raise BusinessRuleError("You cannot add yourself")

        since = models.now_local_naive() - timedelta(hours=1)
        recent = (
            self.db.query(models.FriendRequestLog)
            .filter(
                models.FriendRequestLog.requester_id == requester_id,
                models.FriendRequestLog.addressee_id == addressee_id,
                models.FriendRequestLog.created_at >= since,
            )
            .count()
        )
        if recent >= settings.FRIEND_REQUEST_HOURLY_LIMIT:
            raise BusinessRuleError(
                "You have reached the limit of friend requests to this user. Please try again later."
            )

        friendship = find_friendship(self.db, requester_id, addressee_id)
        if friendship is not None:
            if friendship.status == models.FriendshipStatus.ACCEPTED:
                raise BusinessRuleError("You are already friends")
            if friendship.status == models.FriendshipStatus.PENDING:
                raise BusinessRuleError("Friend request already pending")
            friendship.requester_id = requester_id
            friendship.addressee_id = addressee_id
            friendship.status = models.FriendshipStatus.PENDING
        else:
            friendship = models.Friendship(
                requester_id=requester_id,
                addressee_id=addressee_id,
                status=models.FriendshipStatus.PENDING,
            )
            self.db.add(friendship)
        self.db.add(models.FriendRequestLog(requester_id=requester_id, addressee_id=addressee_id))
        self.db.flush()
        self.db.refresh(friendship)

        self.notifications.notify(
            addressee_id,
            FRIEND_REQUEST,
            "Friend Request",
            f"{friendship.requester.name} sent you a friend request",
            {"friendship_id": friendship.id},
        )
        return friendship

    def respond(self, user_id: int, request_id: int, status: Any) -> models.Friendship:
        new_status = _RESPONSES.get(getattr(status, "value", status))
        if new_status is None:
            raise BusinessRuleError("Invalid status")
        friendship = self._get(request_id)
        if friendship.addressee_id != user_id:
            raise AuthorizationError("This request is not for you")
        if friendship.status != models.FriendshipStatus.PENDING:
            raise BusinessRuleError("Friend request is not pending")

        friendship.status = new_status
        self.db.flush()

        addressee = friendship.addressee
        if new_status == models.FriendshipStatus.ACCEPTED:
            self.notifications.notify(
                friendship.requester_id,
                FRIEND_REQUEST_ACCEPTED,
                "Friend Request Accepted",
                f"{addressee.name} accepted your friend request",
                {"friendship_id": friendship.id},
            )
        else:
            self.notifications.notify(
                friendship.requester_id,
                FRIEND_REQUEST_DECLINED,
                "Friend Request Declined",
                f"Your friend request to {addressee.username} was declined",
                {"friendship_id": friendship.id},
            )
        return friendship

    def cancel(self, user_id: int, request_id: int) -> models.Friendship:
        friendship = self._get(request_id)
        if friendship.requester_id != user_id:
            raise AuthorizationError("You can only cancel your own requests")
        if friendship.status != models.FriendshipStatus.PENDING:
            raise BusinessRuleError("Cannot cancel a non-pending request")
        # Kept as CANCELLED so the hourly cap still sees the pair
        friendship.status = models.FriendshipStatus.CANCELLED
        self.db.flush()
        return friendship

    def delete_declined(self, user_id: int, request_id: int) -> None:
        friendship = self._get(request_id)
        if friendship.requester_id != user_id:
            raise AuthorizationError("You can only delete your own requests")
        if friendship.status != models.FriendshipStatus.DECLINED:
            raise BusinessRuleError("Cannot delete a non-declined request")
        self.db.delete(friendship)
        self.db.flush()

    def list_pending(self, user_id: int) -> list[models.Friendship]:
        """Requests waiting for ``user_id`` to answer."""
        return self._query(models.Friendship.addressee_id == user_id, models.FriendshipStatus.PENDING)

    def list_sent(self, user_id: int) -> list[models.Friendship]:
        return self._query(models.Friendship.requester_id == user_id, models.FriendshipStatus.PENDING)

    def list_declined(self, user_id: int) -> list[models.Friendship]:
        return self._query(models.Friendship.requester_id == user_id, models.FriendshipStatus.DECLINED)

    # ==================== Friends ====================

    def list_friends(self, user_id: int) -> list[models.User]:
        rows = self._query(
            or_(models.Friendship.requester_id == user_id, models.Friendship.addressee_id == user_id),
            models.FriendshipStatus.ACCEPTED,
        )
        friends = [f.addressee if f.requester_id == user_id else f.requester for f in rows]
        return sorted(friends, key=lambda u: u.name.lower())

    def remove_friend(self, user_id: int, username: str) -> None:
        friend_id = self.users.lookup_by_username(username)
        if friend_id is None:
            raise NotFoundError("User not found")
        friendship = find_friendship(self.db, user_id, friend_id)
        if friendship is None or friendship.status != models.FriendshipStatus.ACCEPTED:
            raise NotFoundError("Friendship not found")
        self.db.delete(friendship)
        self.db.flush()

    # ==================== Maintenance ====================

    def cleanup_stale(self, now: datetime | None = None) -> dict[str, int]:
        """Drop expired pending requests, old cancelled requests and old request logs."""
        now = now or models.now_local_naive()
        pending = (
            self.db.query(models.Friendship)
            .filter(
                models.Friendship.status == models.FriendshipStatus.PENDING,
                models.Friendship.updated_at < now - timedelta(days=settings.FRIEND_REQUEST_PENDING_DAYS),
            )
            .delete(synchronize_session=False)
        )
        cancelled = (
            self.db.query(models.Friendship)
            .filter(
                models.Friendship.status == models.FriendshipStatus.CANCELLED,
                models.Friendship.updated_at < now - timedelta(hours=settings.FRIEND_REQUEST_CANCELLED_HOURS),
            )
            .delete(synchronize_session=False)
        )
        logs = (
            self.db.query(models.FriendRequestLog)
            .filter(models.FriendRequestLog.created_at < now - timedelta(days=settings.FRIEND_REQUEST_LOG_DAYS))
            .delete(synchronize_session=False)
        )
        logger.info("friendship cleanup: %d pending, %d cancelled, %d request logs", pending, cancelled, logs)
        return {"pending": pending, "cancelled": cancelled, "logs": logs}

    # ==================== Helpers ====================

    def _get(self, request_id: int) -> models.Friendship:
        friendship = self.db.get(models.Friendship, request_id)
        if friendship is None:
            raise NotFoundError("Request not found")
        return friendship

    def _query(self, condition, status: models.FriendshipStatus) -> list[models.Friendship]:
        return (
            self.db.query(models.Friendship)
            .options(joinedload(models.Friendship.requester), joinedload(models.Friendship.addressee))
            .filter(condition, models.Friendship.status == status)
            .order_by(models.Friendship.id.desc())
            .all()
        )

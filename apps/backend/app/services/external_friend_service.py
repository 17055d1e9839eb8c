"""
External friends and merge requests

An external friend is a name a user splits expenses with before that person
has an account. A merge request proposes linking such a name to a registered
user; accepting it moves every placeholder participant of the requester's
transactions onto the target user.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app import models
from app.core.errors import AuthorizationError, BusinessRuleError, NotFoundError
from app.services.friendship_service import find_friendship
from app.services.notification_service import (
    MERGE_REQUEST,
    MERGE_REQUEST_ACCEPTED,
    MERGE_REQUEST_REJECTED,
    NotificationService,
)
from app.services.participant_service import load_transaction_for_update
from app.services.share_redistribution_service import ShareRedistributionService
from app.services.user_directory import UserDirectory
from app.utils.money import quantize_money, quantize_percent, to_decimal

logger = logging.getLogger(__name__)


class ExternalFriendService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list(self, user_id: int) -> list[dict[str, Any]]:
        """Stored names plus placeholder names used on the user's transactions."""
        stored = (
            self.db.query(models.ExternalFriend)
            .filter(models.ExternalFriend.user_id == user_id)
            .order_by(models.ExternalFriend.name)
            .all()
        )
        friends: dict[str, dict[str, Any]] = {f.name: {"id": f.id, "name": f.name} for f in stored}

        placeholders = (
            self.db.query(models.TransactionParticipant.placeholder_name)
            .join(models.Transaction)
            .filter(
                models.Transaction.creator_id == user_id,
                models.TransactionParticipant.user_id.is_(None),
                models.TransactionParticipant.placeholder_name.isnot(None),
            )
            .distinct()
            .all()
        )
        for (name,) in placeholders:
            friends.setdefault(name, {"id": None, "name": name})
        return list(friends.values())

    def add(self, user_id: int, name: str) -> models.ExternalFriend:
        name = (name or "").strip()
        if not name:
            raise BusinessRuleError("Name is required")
        existing = (
            self.db.query(models.ExternalFriend)
            .filter(models.ExternalFriend.user_id == user_id, models.ExternalFriend.name == name)
            .first()
        )
        if existing:
            raise BusinessRuleError("External friend already exists")
        friend = models.ExternalFriend(user_id=user_id, name=name)
        self.db.add(friend)
        self.db.flush()
        return friend

    def delete(self, user_id: int, friend_id: int) -> None:
        friend = self.db.get(models.ExternalFriend, friend_id)
        if friend is None:
            raise NotFoundError("External friend not found")
        if friend.user_id != user_id:
            raise AuthorizationError("Not authorized")
        self.db.delete(friend)
        self.db.flush()


class MergeRequestService:
    def __init__(
        self,
        db: Session,
        notifications: Optional[NotificationService] = None,
        redistribution: Optional[ShareRedistributionService] = None,
        users: Optional[UserDirectory] = None,
    ) -> None:
        self.db = db
        self.notifications = notifications or NotificationService(db)
        self.redistribution = redistribution or ShareRedistributionService(db)
        self.users = users or UserDirectory(db)

    def create(self, requester_id: int, placeholder_name: str, target_username: str) -> models.MergeRequest:
        target_id = self.users.lookup_by_username(target_username)
        if target_id is None:
            raise NotFoundError("Target user not found")
        if target_id == requester_id:
            raise BusinessRuleError("Cannot link a name to your own account")
        placeholder_name = (placeholder_name or "").strip()
        if not placeholder_name:
            raise BusinessRuleError("Placeholder name is required")

        duplicate = (
            self.db.query(models.MergeRequest)
            .filter(
                models.MergeRequest.requester_id == requester_id,
                models.MergeRequest.target_user_id == target_id,
                models.MergeRequest.placeholder_name == placeholder_name,
                models.MergeRequest.status == models.MergeRequestStatus.PENDING,
            )
            .first()
        )
        if duplicate:
            raise BusinessRuleError("Merge request already pending")

        request = models.MergeRequest(
            requester_id=requester_id,
            target_user_id=target_id,
            placeholder_name=placeholder_name,
            status=models.MergeRequestStatus.PENDING,
        )
        self.db.add(request)
        self.db.flush()

        self.notifications.notify(
            target_id,
            MERGE_REQUEST,
            "Merge Request",
            f'{request.requester.name} wants to link "External Friend: {placeholder_name}" to your account',
            {"request_id": request.id},
        )
        return request

    def list_received(self, user_id: int) -> list[models.MergeRequest]:
        return (
            self.db.query(models.MergeRequest)
            .filter(
                models.MergeRequest.target_user_id == user_id,
                models.MergeRequest.status == models.MergeRequestStatus.PENDING,
            )
            .order_by(models.MergeRequest.id.desc())
            .all()
        )

    def details(self, user_id: int, request_id: int) -> list[models.Transaction]:
        """Requester's transactions that carry the placeholder; visible to the target only."""
        request = self._addressed_to(user_id, request_id)
        return (
            self.db.query(models.Transaction)
            .filter(
                models.Transaction.creator_id == request.requester_id,
                models.Transaction.participants.any(
                    and_(
                        models.TransactionParticipant.user_id.is_(None),
                        models.TransactionParticipant.placeholder_name == request.placeholder_name,
                    )
                ),
            )
            .order_by(models.Transaction.date.desc(), models.Transaction.id.desc())
            .all()
        )

    def respond(self, user_id: int, request_id: int, status: Any) -> models.MergeRequest:
        try:
            decision = models.MergeRequestStatus(getattr(status, "value", status))
        except ValueError:
            raise BusinessRuleError("Invalid status") from None
        if decision == models.MergeRequestStatus.PENDING:
            raise BusinessRuleError("Invalid status")

        request = self._addressed_to(user_id, request_id)
        if request.status != models.MergeRequestStatus.PENDING:
            raise BusinessRuleError("Merge request is not pending")

        if decision == models.MergeRequestStatus.ACCEPTED:
            self._merge(request)
            request.status = models.MergeRequestStatus.ACCEPTED
            self.db.flush()
            self.notifications.notify(
                request.requester_id,
                MERGE_REQUEST_ACCEPTED,
                "Merge Request Accepted",
                f'{request.target_user.name} accepted the merge for "{request.placeholder_name}"',
                {"request_id": request.id},
            )
        else:
            request.status = models.MergeRequestStatus.REJECTED
            self.db.flush()
            self.notifications.notify(
                request.requester_id,
                MERGE_REQUEST_REJECTED,
                "Merge Request Rejected",
                f'{request.target_user.name} rejected the merge for "{request.placeholder_name}"',
                {"request_id": request.id},
            )
        return request

    def _addressed_to(self, user_id: int, request_id: int) -> models.MergeRequest:
        request = self.db.get(models.MergeRequest, request_id)
        if request is None:
            raise NotFoundError("Merge request not found")
        if request.target_user_id != user_id:
            raise AuthorizationError("Not authorized to respond to this request")
        return request

    def _merge(self, request: models.MergeRequest) -> None:
        requester_id = request.requester_id
        target_id = request.target_user_id
        self._ensure_friendship(requester_id, target_id)

        placeholders = (
            self.db.query(models.TransactionParticipant)
            .join(models.Transaction)
            .filter(
                models.Transaction.creator_id == requester_id,
                models.TransactionParticipant.user_id.is_(None),
                models.TransactionParticipant.placeholder_name == request.placeholder_name,
            )
            .order_by(models.TransactionParticipant.id)
            .all()
        )

        touched: list[int] = []
        for p in placeholders:
            transaction_id = p.transaction_id
            load_transaction_for_update(self.db, transaction_id)
            existing = (
                self.db.query(models.TransactionParticipant)
                .filter(
                    models.TransactionParticipant.transaction_id == transaction_id,
                    models.TransactionParticipant.user_id == target_id,
                )
                .first()
            )
            if existing is not None:
                existing.share_amount = quantize_money(to_decimal(existing.share_amount) + to_decimal(p.share_amount))
                existing.share_percent = quantize_percent(to_decimal(existing.share_percent) + to_decimal(p.share_percent))
                existing.base_share_amount = quantize_money(_base_amount(existing) + _base_amount(p))
                existing.base_share_percent = quantize_percent(_base_percent(existing) + _base_percent(p))
                existing.status = models.ParticipantStatus.ACCEPTED
                self.db.delete(p)
            else:
                p.user_id = target_id
                p.placeholder_name = None
                p.status = models.ParticipantStatus.ACCEPTED
            if transaction_id not in touched:
                touched.append(transaction_id)
        self.db.flush()

        friend = (
            self.db.query(models.ExternalFriend)
            .filter(
                models.ExternalFriend.user_id == requester_id,
                models.ExternalFriend.name == request.placeholder_name,
            )
            .first()
        )
        if friend is not None:
            self.db.delete(friend)

        for transaction_id in touched:
            self.redistribution.recalculate(transaction_id)
        logger.info(
            "merge request %s: placeholder %r linked to user %s on %d transactions",
            request.id,
            request.placeholder_name,
            target_id,
            len(touched),
        )

    def _ensure_friendship(self, requester_id: int, target_id: int) -> None:
        friendship = find_friendship(self.db, requester_id, target_id)
        if friendship is None:
            self.db.add(
                models.Friendship(
                    requester_id=requester_id,
                    addressee_id=target_id,
                    status=models.FriendshipStatus.ACCEPTED,
                )
            )
        else:
            friendship.status = models.FriendshipStatus.ACCEPTED
        self.db.flush()


def _base_amount(p: models.TransactionParticipant):
    return to_decimal(p.base_share_amount if p.base_share_amount is not None else p.share_amount)


def _base_percent(p: models.TransactionParticipant):
    return to_decimal(p.base_share_percent if p.base_share_percent is not None else p.share_percent)

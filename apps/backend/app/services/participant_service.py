"""
Participant ledger

Owns the participant rows of a transaction: creation with the initial split,
reconciliation on update, invitation responses and leaving. Every mutation
keeps the ledger rules (creator always ACCEPTED, effective share zero unless
ACCEPTED, base share never cleared) and ends with a redistribution pass.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

from sqlalchemy.orm import Session, joinedload

from app import models
from app.core.config import settings
from app.core.errors import AppError, BusinessRuleError, NotFoundError
from app.services.notification_service import (
    NotificationService,
    TRANSACTION_INVITATION,
    TRANSACTION_UPDATE,
)
from app.services.share_redistribution_service import ShareRedistributionService
from app.services.split_calculator import ShareRequest, compute_split, creator_residual
from app.services.user_directory import UserDirectory
from app.utils.money import (
    ZERO,
    amount_of,
    effectively_equal,
    percent_of,
    quantize_money,
    quantize_percent,
    to_decimal,
)

_LIVE_STATUSES = (models.ParticipantStatus.PENDING, models.ParticipantStatus.ACCEPTED)


def load_transaction_for_update(db: Session, transaction_id: int) -> models.Transaction:
    """Fetch a transaction row locked for the rest of the unit of work.

    Serializes concurrent participant mutations on the same transaction.
    SQLite ignores the lock clause; its database-level write lock applies.
    """
    db.flush()
    transaction = (
        db.query(models.Transaction)
        .filter(models.Transaction.id == transaction_id)
        .with_for_update()
        .first()
    )
    if transaction is None:
        raise NotFoundError("Transaction not found")
    return transaction


def _describe(transaction: models.Transaction) -> str:
    return transaction.description or "No description"


def _percent_for(amount: Decimal, percent: Decimal, total: Decimal) -> Decimal:
    """Keep a stored percent only while it still describes ``amount`` of ``total``."""
    if effectively_equal(amount_of(percent, total), amount):
        return percent
    return percent_of(amount, total)


class TransactionParticipantService:
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

    # ==================== Creation ====================

    def create_participants(
        self,
        transaction: models.Transaction,
        requests: Optional[Sequence[Any]],
        amount: Any,
        transaction_date: date,
    ) -> list[models.TransactionParticipant]:
        """Write the initial ledger of a freshly created transaction.

        The creator row is always written, last, so it absorbs rounding in
        the redistribution pass. On a rule violation the transaction row is
        deleted before the error propagates.
        """
        requests = list(requests or [])
        try:
            resolved = [self._resolve(r) for r in requests]
            self._check_identities(transaction, [user_id for user_id, _ in resolved])
            split = compute_split(amount, [ShareRequest.from_payload(r) for r in requests])
        except AppError:
            self.db.delete(transaction)
            self.db.flush()
            raise

        rows: list[models.TransactionParticipant] = []
        for (user_id, placeholder), share in zip(resolved, split.participants):
            rows.append(
                models.TransactionParticipant(
                    transaction_id=transaction.id,
                    user_id=user_id,
                    placeholder_name=placeholder,
                    share_amount=share.amount,
                    share_percent=share.percent,
                    base_share_amount=share.amount,
                    base_share_percent=share.percent,
                    status=models.ParticipantStatus.PENDING if user_id else models.ParticipantStatus.ACCEPTED,
                )
            )
        rows.append(
            models.TransactionParticipant(
                transaction_id=transaction.id,
                user_id=transaction.creator_id,
                share_amount=split.creator.amount,
                share_percent=split.creator.percent,
                base_share_amount=split.creator.amount,
                base_share_percent=split.creator.percent,
                status=models.ParticipantStatus.ACCEPTED,
            )
        )
        self.db.add_all(rows)
        self.db.flush()

        creator_name = transaction.creator.name
        when = transaction_date.strftime(settings.DATE_DISPLAY_FORMAT)
        for row in rows:
            if row.user_id and row.user_id != transaction.creator_id:
                self.notifications.notify(
                    row.user_id,
                    TRANSACTION_INVITATION,
                    "Shared Transaction Invitation",
                    f"{creator_name} invited you to split an expense: {_describe(transaction)} on {when}",
                    {"transaction_id": transaction.id},
                )

        self.redistribution.recalculate(transaction.id)
        return rows

    # ==================== Update ====================

    def update_participants(
        self,
        transaction: models.Transaction,
        requests: Optional[Sequence[Any]],
        total_amount: Any,
        is_critical_update: bool,
    ) -> None:
        """Reconcile the stored ledger with the participant list of an update.

        ``requests is None`` means the caller did not touch participants; a
        critical update then sends every registered participant back to
        review.
        """
        if requests is None:
            if is_critical_update:
                self._reset_for_review(transaction)
                self.redistribution.recalculate(transaction.id)
            return

        total = to_decimal(total_amount)
        participants = self._participants(transaction.id)
        creator_row = next((p for p in participants if p.user_id == transaction.creator_id), None)
        others = [p for p in participants if p is not creator_row]
        by_id = {p.id: p for p in others}
        by_user = {p.user_id: p for p in others if p.user_id is not None}

        kept: set[int] = set()
        matched: list[tuple[models.TransactionParticipant, Any]] = []
        created: list[tuple[Any, int | None, str | None]] = []
        for req in requests:
            user_id, placeholder = self._resolve(req)
            existing = by_id.get(getattr(req, "id", None))
            if existing is None and user_id is not None:
                existing = by_user.get(user_id)
            if existing is not None and existing.id not in kept:
                kept.add(existing.id)
                matched.append((existing, req))
            else:
                created.append((req, user_id, placeholder))

        self._check_identities(
            transaction,
            [p.user_id for p, _ in matched] + [user_id for _, user_id, _ in created],
        )

        removed = [p for p in others if p.id not in kept]
        for p in removed:
            if p.user_id:
                self.notifications.notify(
                    p.user_id,
                    TRANSACTION_UPDATE,
                    "Removed from Transaction",
                    f"You were removed from the transaction: {_describe(transaction)}",
                    {"transaction_id": transaction.id},
                )
            self.db.delete(p)
        self.db.flush()

        creator_name = transaction.creator.name
        others_total = ZERO
        for existing, req in matched:
            old_amount = quantize_money(
                existing.base_share_amount if existing.base_share_amount is not None else existing.share_amount
            )
            old_percent = quantize_percent(
                existing.base_share_percent if existing.base_share_percent is not None else existing.share_percent
            )
            new_amount, new_percent = self._requested_share(req, total, old_amount, old_percent)
            changed = not (
                effectively_equal(new_amount, old_amount) and effectively_equal(new_percent, old_percent)
            )

            reset = False
            if existing.user_id is not None:
                if is_critical_update or changed:
                    existing.status = models.ParticipantStatus.PENDING
                    reset = True
            elif existing.status == models.ParticipantStatus.PENDING:
                existing.status = models.ParticipantStatus.ACCEPTED

            existing.base_share_amount = new_amount
            existing.base_share_percent = new_percent
            if existing.status in _LIVE_STATUSES:
                existing.share_amount = new_amount
                existing.share_percent = new_percent
                others_total += new_amount
            else:
                self._zero_share(existing)

            if reset:
                self.notifications.notify(
                    existing.user_id,
                    TRANSACTION_UPDATE,
                    "Transaction Updated",
                    f'{creator_name} changed the values of "{_describe(transaction)}". Do you accept this update?',
                    {"transaction_id": transaction.id},
                )

        default_amount = quantize_money(total / (len(requests) + 1))
        default_percent = percent_of(default_amount, total)
        for req, user_id, placeholder in created:
            amount, percent = self._requested_share(req, total, default_amount, default_percent)
            others_total += amount
            self.db.add(
                models.TransactionParticipant(
                    transaction_id=transaction.id,
                    user_id=user_id,
                    placeholder_name=placeholder,
                    share_amount=amount,
                    share_percent=percent,
                    base_share_amount=amount,
                    base_share_percent=percent,
                    status=models.ParticipantStatus.PENDING if user_id else models.ParticipantStatus.ACCEPTED,
                )
            )
            if user_id:
                self.notifications.notify(
                    user_id,
                    TRANSACTION_INVITATION,
                    "Shared Transaction Invitation",
                    f"{creator_name} invited you to split an expense: {_describe(transaction)}",
                    {"transaction_id": transaction.id},
                )

        residual = creator_residual(total, others_total)
        if creator_row is None:
            creator_row = models.TransactionParticipant(
                transaction_id=transaction.id,
                user_id=transaction.creator_id,
                status=models.ParticipantStatus.ACCEPTED,
            )
            self.db.add(creator_row)
        creator_row.share_amount = residual.amount
        creator_row.share_percent = residual.percent
        creator_row.base_share_amount = residual.amount
        creator_row.base_share_percent = residual.percent
        self.db.flush()

        self.redistribution.recalculate(transaction.id)

    def _reset_for_review(self, transaction: models.Transaction) -> None:
        for p in self._participants(transaction.id):
            if p.user_id is None or p.user_id == transaction.creator_id:
                continue
            p.status = models.ParticipantStatus.PENDING
            self.notifications.notify(
                p.user_id,
                TRANSACTION_UPDATE,
                "Transaction Updated",
                f'The transaction "{_describe(transaction)}" has been updated. Please review and accept/reject again.',
                {"transaction_id": transaction.id},
            )
        self.db.flush()

    @staticmethod
    def _requested_share(
        req: Any,
        total: Decimal,
        fallback_amount: Decimal,
        fallback_percent: Decimal,
    ) -> tuple[Decimal, Decimal]:
        amount = getattr(req, "amount", None)
        percent = getattr(req, "percent", None)
        if amount is not None and percent is not None:
            return quantize_money(amount), quantize_percent(percent)
        if amount is not None:
            amount = quantize_money(amount)
            if amount == fallback_amount:
                return amount, _percent_for(amount, fallback_percent, total)
            return amount, percent_of(amount, total)
        if percent is not None:
            return amount_of(percent, total), quantize_percent(percent)
        return fallback_amount, _percent_for(fallback_amount, fallback_percent, total)

    # ==================== Responses ====================

    def respond_to_invitation(
        self,
        transaction_id: int,
        user_id: int,
        status: Any,
    ) -> models.TransactionParticipant:
        new_status = self._parse_response(status)
        transaction = load_transaction_for_update(self.db, transaction_id)
        participants = self._participants(transaction_id)
        participant = self._participant_of(participants, user_id)
        if user_id == transaction.creator_id:
            raise BusinessRuleError("The creator cannot respond to their own transaction")

        previous = {p.id: p.status for p in participants}
        share_before = to_decimal(participant.share_amount)
        accepted = new_status == models.ParticipantStatus.ACCEPTED
        if not accepted:
            self._zero_share(participant)
        elif not transaction.is_shared:
            # Late acceptance after the transaction was demoted
            transaction.is_shared = True
        participant.status = new_status
        self.db.flush()

        if (accepted and share_before == 0) or (not accepted and share_before != 0):
            self.redistribution.recalculate(transaction.id)

        action = "accepted" if accepted else "rejected"
        self._broadcast(
            transaction,
            participants,
            participant,
            previous,
            "Transaction Update",
            f"{participant.display_name} {action} the shared transaction: {_describe(transaction)}",
        )
        if not accepted:
            self._demote_if_abandoned(transaction, participants, participant, previous)
        return participant

    def leave_transaction(self, transaction_id: int, user_id: int) -> models.TransactionParticipant:
        transaction = load_transaction_for_update(self.db, transaction_id)
        participants = self._participants(transaction_id)
        participant = self._participant_of(participants, user_id)
        if user_id == transaction.creator_id:
            raise BusinessRuleError("The creator cannot leave their own transaction")

        previous = {p.id: p.status for p in participants}
        share_before = to_decimal(participant.share_amount)
        self._zero_share(participant)
        participant.status = models.ParticipantStatus.EXITED
        self.db.flush()

        if share_before > 0:
            self.redistribution.recalculate(transaction.id)

        self._broadcast(
            transaction,
            participants,
            participant,
            previous,
            "Participant Left",
            f"{participant.display_name} left the shared transaction: {_describe(transaction)}",
        )
        self._demote_if_abandoned(transaction, participants, participant, previous)
        return participant

    def list_pending_invitations(self, user_id: int) -> list[models.TransactionParticipant]:
        return (
            self.db.query(models.TransactionParticipant)
            .options(joinedload(models.TransactionParticipant.transaction))
            .filter(
                models.TransactionParticipant.user_id == user_id,
                models.TransactionParticipant.status == models.ParticipantStatus.PENDING,
            )
            .order_by(models.TransactionParticipant.id.desc())
            .all()
        )

    def _broadcast(
        self,
        transaction: models.Transaction,
        participants: Iterable[models.TransactionParticipant],
        actor: models.TransactionParticipant,
        previous: dict[int, models.ParticipantStatus],
        title: str,
        message: str,
    ) -> None:
        """Tell the creator and every other already-ACCEPTED registered participant."""
        payload = {"transaction_id": transaction.id}
        self.notifications.notify(transaction.creator_id, TRANSACTION_UPDATE, title, message, payload)
        for p in participants:
            if p.id == actor.id or p.user_id is None or p.user_id == transaction.creator_id:
                continue
            if previous.get(p.id) == models.ParticipantStatus.ACCEPTED:
                self.notifications.notify(p.user_id, TRANSACTION_UPDATE, title, message, payload)

    def _demote_if_abandoned(
        self,
        transaction: models.Transaction,
        participants: Iterable[models.TransactionParticipant],
        actor: models.TransactionParticipant,
        previous: dict[int, models.ParticipantStatus],
    ) -> None:
        if not transaction.is_shared:
            return
        remaining = [
            p
            for p in participants
            if p.id != actor.id
            and p.user_id != transaction.creator_id
            and previous.get(p.id) in _LIVE_STATUSES
        ]
        if remaining:
            return
        transaction.is_shared = False
        self.db.flush()
        self.notifications.notify(
            transaction.creator_id,
            TRANSACTION_UPDATE,
            "Transaction Converted",
            f'Your transaction "{_describe(transaction)}" is no longer shared because all participants rejected or left.',
            {"transaction_id": transaction.id},
        )

    # ==================== Helpers ====================

    @staticmethod
    def _zero_share(participant: models.TransactionParticipant) -> None:
        # Base share survives so the participant can be reinstated later
        if participant.base_share_amount is None:
            participant.base_share_amount = quantize_money(participant.share_amount)
        if participant.base_share_percent is None:
            participant.base_share_percent = quantize_percent(participant.share_percent)
        participant.share_amount = quantize_money(ZERO)
        participant.share_percent = quantize_percent(ZERO)

    def _participants(self, transaction_id: int) -> list[models.TransactionParticipant]:
        self.db.flush()
        return (
            self.db.query(models.TransactionParticipant)
            .filter(models.TransactionParticipant.transaction_id == transaction_id)
            .order_by(models.TransactionParticipant.id)
            .all()
        )

    @staticmethod
    def _participant_of(
        participants: Iterable[models.TransactionParticipant],
        user_id: int,
    ) -> models.TransactionParticipant:
        participant = next((p for p in participants if p.user_id == user_id), None)
        if participant is None:
            raise NotFoundError("Participant not found")
        return participant

    @staticmethod
    def _parse_response(status: Any) -> models.ParticipantStatus:
        try:
            parsed = models.ParticipantStatus(getattr(status, "value", status))
        except ValueError:
            raise BusinessRuleError("Invalid status") from None
        if parsed not in (models.ParticipantStatus.ACCEPTED, models.ParticipantStatus.REJECTED):
            raise BusinessRuleError("Invalid status")
        return parsed

    def _resolve(self, request: Any) -> tuple[int | None, str | None]:
        """Return ``(user_id, placeholder_name)``; exactly one is set."""
        user_id = getattr(request, "user_id", None)
        if user_id is not None:
            if self.users.get(user_id) is None:
                raise NotFoundError("User not found")
            return user_id, None
        username = getattr(request, "username", None)
        found = self.users.lookup_by_username(username)
        if found is not None:
            return found, None
        name = (getattr(request, "name", None) or username or "").strip()
        if not name:
            raise BusinessRuleError("Participant requires a user, a username or a name")
        return None, name

    @staticmethod
    def _check_identities(transaction: models.Transaction, user_ids: Iterable[int | None]) -> None:
        seen: set[int] = set()
        for user_id in user_ids:
            if user_id is None:
                continue
            if user_id == transaction.creator_id:
                raise BusinessRuleError("The creator is already part of the transaction")
            if user_id in seen:
                raise BusinessRuleError("A user can take part in a transaction only once")
            seen.add(user_id)

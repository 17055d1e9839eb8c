from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Any, Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from app import models
from app.core.errors import AuthorizationError, BusinessRuleError, NotFoundError
from app.services.installment_service import InstallmentService
from app.services.participant_service import TransactionParticipantService, load_transaction_for_update
from app.utils.money import quantize_money

logger = logging.getLogger(__name__)

_HIDDEN_STATUSES = (models.ParticipantStatus.REJECTED, models.ParticipantStatus.EXITED)


class TransactionLifecycleService:
    """Create, edit and remove transactions together with their ledger.

    Callers wrap each method in one unit of work; nothing here commits.
    """

    def __init__(
        self,
        db: Session,
        participants: Optional[TransactionParticipantService] = None,
        installments: Optional[InstallmentService] = None,
    ) -> None:
        self.db = db
        self.participants = participants or TransactionParticipantService(db)
        self.installments = installments or InstallmentService(db)

    def create(self, user_id: int, payload: Any) -> models.Transaction:
        category = self._resolve_category(user_id, payload.category_id, payload.category_name)
        amount = quantize_money(payload.amount)
        if amount <= 0:
            raise BusinessRuleError("Transaction amount must be positive")
        requests = list(payload.participants or [])

        transaction = models.Transaction(
            creator_id=user_id,
            category_id=category.id,
            type=payload.type,
            amount=amount,
            currency=payload.currency,
            description=payload.description,
            date=payload.date,
            is_shared=bool(requests),
            is_fixed=payload.is_fixed,
            recurrence_ends_at=payload.recurrence_ends_at,
            excluded_dates=[],
        )
        self.db.add(transaction)
        self.db.flush()
        logger.info("transaction %s created by user %s (%s participants)", transaction.id, user_id, len(requests))

        self.installments.create_installments(transaction, payload.installments_count, amount)
        self.participants.create_participants(transaction, requests, amount, transaction.date)
        return transaction

    def update(self, transaction_id: int, user_id: int, payload: Any) -> models.Transaction:
        """Apply a partial edit; money-affecting changes send participants back to review."""
        transaction = self._owned(transaction_id, user_id)
        fields = payload.model_dump(exclude_unset=True)

        critical = False
        if fields.get("amount") is not None:
            amount = quantize_money(fields["amount"])
            if amount <= 0:
                raise BusinessRuleError("Transaction amount must be positive")
            if amount != quantize_money(transaction.amount):
                transaction.amount = amount
                critical = True
        if fields.get("date") is not None and fields["date"] != transaction.date:
            transaction.date = fields["date"]
            critical = True
        if "description" in fields and fields["description"] != transaction.description:
            transaction.description = fields["description"]
            critical = True
        if fields.get("category_id") is not None or fields.get("category_name"):
            category = self._resolve_category(user_id, fields.get("category_id"), fields.get("category_name"))
            if category.id != transaction.category_id:
                transaction.category_id = category.id
                critical = True

        if fields.get("type") is not None:
            transaction.type = fields["type"]
        if fields.get("currency") is not None:
            transaction.currency = fields["currency"]
        if fields.get("is_fixed") is not None:
            transaction.is_fixed = fields["is_fixed"]
        if "recurrence_ends_at" in fields:
            transaction.recurrence_ends_at = fields["recurrence_ends_at"]

        requests = None
        if "participants" in fields:
            requests = list(payload.participants or [])
            transaction.is_shared = bool(requests)
        self.db.flush()

        logger.info("transaction %s updated by user %s (critical=%s)", transaction.id, user_id, critical)
        self.participants.update_participants(transaction, requests, transaction.amount, critical)
        return transaction

    def delete(self, transaction_id: int, user_id: int) -> None:
        transaction = self._owned(transaction_id, user_id)
        self.db.delete(transaction)
        self.db.flush()
        logger.info("transaction %s deleted by user %s", transaction_id, user_id)

    def get(self, transaction_id: int, user_id: int) -> models.Transaction:
        transaction = self.db.get(models.Transaction, transaction_id)
        if transaction is None:
            raise NotFoundError("Transaction not found")
        if transaction.creator_id != user_id and not any(p.user_id == user_id for p in transaction.participants):
            raise NotFoundError("Transaction not found")
        return transaction

    def list(
        self,
        user_id: int,
        month: int | None = None,
        year: int | None = None,
        type: models.TxnType | None = None,
    ) -> list[models.Transaction]:
        """Transactions the user created or takes part in, newest first.

        With a month/year window, fixed transactions dated up to the window end
        are included unless their recurrence ended before the window or the
        month's occurrence was excluded.
        """
        joined = (
            self.db.query(models.TransactionParticipant.transaction_id)
            .filter(
                models.TransactionParticipant.user_id == user_id,
                models.TransactionParticipant.status.notin_(_HIDDEN_STATUSES),
            )
        )
        q = self.db.query(models.Transaction).filter(
            or_(models.Transaction.creator_id == user_id, models.Transaction.id.in_(joined))
        )
        if type is not None:
            q = q.filter(models.Transaction.type == type)

        window = _window(month, year)
        if window is not None:
            start, end = window
            q = q.filter(
                or_(
                    and_(
                        models.Transaction.is_fixed.is_(False),
                        models.Transaction.date >= start,
                        models.Transaction.date <= end,
                    ),
                    and_(
                        models.Transaction.is_fixed.is_(True),
                        models.Transaction.date <= end,
                        or_(
                            models.Transaction.recurrence_ends_at.is_(None),
                            models.Transaction.recurrence_ends_at >= start,
                        ),
                    ),
                )
            )

        rows = q.order_by(models.Transaction.date.desc(), models.Transaction.id.desc()).all()
        if window is not None and month is not None:
            rows = [t for t in rows if not _occurrence_excluded(t, window[0])]
        return rows

    def exclude_occurrence(self, transaction_id: int, user_id: int, occurrence: date) -> models.Transaction:
        transaction = self._owned(transaction_id, user_id)
        if not transaction.is_fixed:
            raise BusinessRuleError("Only fixed transactions have occurrences")
        key = occurrence.isoformat()
        if key not in transaction.excluded_dates:
            transaction.excluded_dates.append(key)
        self.db.flush()
        return transaction

    def end_recurrence(self, transaction_id: int, user_id: int, ends_at: date) -> models.Transaction:
        transaction = self._owned(transaction_id, user_id)
        if not transaction.is_fixed:
            raise BusinessRuleError("Only fixed transactions can end a recurrence")
        if ends_at < transaction.date:
            raise BusinessRuleError("Recurrence cannot end before the transaction date")
        transaction.recurrence_ends_at = ends_at
        self.db.flush()
        return transaction

    def _owned(self, transaction_id: int, user_id: int) -> models.Transaction:
        transaction = load_transaction_for_update(self.db, transaction_id)
        if transaction.creator_id != user_id:
            raise AuthorizationError("Only the creator can change this transaction")
        return transaction

    def _resolve_category(
        self,
        user_id: int,
        category_id: int | None,
        category_name: str | None,
    ) -> models.Category:
        if category_id is not None:
            category = self.db.get(models.Category, category_id)
            if category is None or category.user_id not in (None, user_id):
                raise NotFoundError("Category not found")
            return category

        name = (category_name or "").strip()
        if not name:
            raise BusinessRuleError("A category id or name is required")
        category = (
            self.db.query(models.Category)
            .filter(
                func.lower(models.Category.name) == name.lower(),
                or_(models.Category.user_id == user_id, models.Category.user_id.is_(None)),
            )
            .order_by(models.Category.user_id.is_(None), models.Category.id)
            .first()
        )
        if category is None:
            category = models.Category(name=name, user_id=user_id, is_system=False)
            self.db.add(category)
            self.db.flush()
        return category


def _window(month: int | None, year: int | None) -> tuple[date, date] | None:
    if year is None:
        return None
    if month is None:
        return date(year, 1, 1), date(year, 12, 31)
    if not 1 <= month <= 12:
        raise BusinessRuleError("Month must be between 1 and 12")
    return date(year, month, 1), date(year, month, calendar.monthrange(year, month)[1])


def _occurrence_excluded(transaction: models.Transaction, month_start: date) -> bool:
    if not transaction.is_fixed or not transaction.excluded_dates:
        return False
    last_day = calendar.monthrange(month_start.year, month_start.month)[1]
    occurrence = month_start.replace(day=min(transaction.date.day, last_day))
    return occurrence.isoformat() in transaction.excluded_dates

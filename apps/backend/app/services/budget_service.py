"""
Category budgets

A budget caps what one user spends on one category per month or per year.
Spending is the user's own effective share of the EXPENSE transactions they
created or accepted, so a shared dinner counts only the part the user pays.
"""

from __future__ import annotations

import calendar
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy.orm import Session, joinedload

from app import models
from app.core.config import settings
from app.core.errors import BusinessRuleError, NotFoundError
from app.services.transaction_service import TransactionLifecycleService
from app.utils.money import HUNDRED, ZERO, quantize_money, quantize_percent, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class BudgetStatus:
    budget: models.Budget
    period_start: date
    period_end: date
    spent: Decimal
    limit: Decimal
    remaining: Decimal
    percentage: Decimal
    color: str


class BudgetService:
    def __init__(self, db: Session, transactions: Optional[TransactionLifecycleService] = None) -> None:
        self.db = db
        self.transactions = transactions or TransactionLifecycleService(db)

    def create(self, user_id: int, payload: Any) -> models.Budget:
        """Create a budget; an existing one for the same category and period gets the new limits."""
        self._check_category(user_id, payload.category_id)
        period = payload.period or models.BudgetPeriod.MONTHLY
        existing = (
            self.db.query(models.Budget)
            .filter(
                models.Budget.user_id == user_id,
                models.Budget.category_id == payload.category_id,
                models.Budget.period == period,
            )
            .first()
        )
        if existing is not None:
            existing.amount = quantize_money(payload.amount)
            existing.soft_limit = _optional_money(payload.soft_limit)
            self.db.flush()
            return existing

        budget = models.Budget(
            user_id=user_id,
            category_id=payload.category_id,
            period=period,
            amount=quantize_money(payload.amount),
            soft_limit=_optional_money(payload.soft_limit),
        )
        self.db.add(budget)
        self.db.flush()
        logger.info("budget %s created for user %s (category %s)", budget.id, user_id, budget.category_id)
        return budget

    def list(self, user_id: int) -> list[models.Budget]:
        return (
            self.db.query(models.Budget)
            .options(joinedload(models.Budget.category))
            .filter(models.Budget.user_id == user_id)
            .order_by(models.Budget.id)
            .all()
        )

    def get(self, user_id: int, budget_id: int) -> models.Budget:
        budget = self.db.get(models.Budget, budget_id)
        if budget is None or budget.user_id != user_id:
            raise NotFoundError("Budget not found")
        return budget

    def update(self, user_id: int, budget_id: int, payload: Any) -> models.Budget:
        budget = self.get(user_id, budget_id)
        fields = payload.model_dump(exclude_unset=True)
        if fields.get("category_id") is not None:
            self._check_category(user_id, fields["category_id"])
            budget.category_id = fields["category_id"]
        if fields.get("period") is not None:
            budget.period = fields["period"]
        if fields.get("amount") is not None:
            budget.amount = quantize_money(fields["amount"])
        if "soft_limit" in fields:
            budget.soft_limit = _optional_money(fields["soft_limit"])

        clash = (
            self.db.query(models.Budget.id)
            .filter(
                models.Budget.user_id == user_id,
                models.Budget.category_id == budget.category_id,
                models.Budget.period == budget.period,
                models.Budget.id != budget.id,
            )
            .first()
        )
        if clash is not None:
            raise BusinessRuleError("A budget already exists for this category and period")
        self.db.flush()
        return budget

    def delete(self, user_id: int, budget_id: int) -> None:
        budget = self.get(user_id, budget_id)
        self.db.delete(budget)
        self.db.flush()

    def status(self, user_id: int, month: int | None = None, year: int | None = None) -> list[BudgetStatus]:
        """Spending against every budget of the user for the month (or year) containing the given date.

        Defaults to the current local month.
        """
        today = models.now_local_naive().date()
        year = year or today.year
        month = month or today.month
        if not 1 <= month <= 12:
            raise BusinessRuleError("Month must be between 1 and 12")

        monthly: dict[int, dict[int, Decimal]] = {}

        def spent_in(m: int) -> dict[int, Decimal]:
            if m not in monthly:
                monthly[m] = self._spending_by_category(user_id, m, year)
            return monthly[m]

        result: list[BudgetStatus] = []
        for budget in self.list(user_id):
            if budget.period == models.BudgetPeriod.YEARLY:
                start, end = date(year, 1, 1), date(year, 12, 31)
                spent = sum((spent_in(m).get(budget.category_id, ZERO) for m in range(1, 13)), ZERO)
            else:
                start = date(year, month, 1)
                end = date(year, month, calendar.monthrange(year, month)[1])
                spent = spent_in(month).get(budget.category_id, ZERO)
            result.append(_status(budget, start, end, quantize_money(spent)))
        return result

    def _spending_by_category(self, user_id: int, month: int, year: int) -> dict[int, Decimal]:
        totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for txn in self.transactions.list(user_id, month, year, models.TxnType.EXPENSE):
            totals[txn.category_id] += _own_share(txn, user_id)
        return totals

    def _check_category(self, user_id: int, category_id: int) -> None:
        category = self.db.get(models.Category, category_id)
        if category is None or category.user_id not in (None, user_id):
            raise NotFoundError("Category not found")


def _own_share(transaction: models.Transaction, user_id: int) -> Decimal:
    for p in transaction.participants:
        if p.user_id == user_id:
            if p.status == models.ParticipantStatus.ACCEPTED:
                return to_decimal(p.share_amount)
            return ZERO
    # Rows written before participant ledgers existed
    if transaction.creator_id == user_id:
        return to_decimal(transaction.amount)
    return ZERO


def _optional_money(value: Any) -> Decimal | None:
    return quantize_money(value) if value is not None else None


def _status(budget: models.Budget, start: date, end: date, spent: Decimal) -> BudgetStatus:
    limit = quantize_money(budget.amount)
    percentage = quantize_percent(spent / limit * HUNDRED)
    warning = budget.soft_limit
    if warning is None:
        warning = limit * settings.BUDGET_WARNING_PERCENT / HUNDRED
    if spent >= limit:
        color = "RED"
    elif spent >= to_decimal(warning):
        color = "YELLOW"
    else:
        color = "GREEN"
    return BudgetStatus(
        budget=budget,
        period_start=start,
        period_end=end,
        spent=spent,
        limit=limit,
        remaining=quantize_money(limit - spent),
        percentage=percentage,
        color=color,
    )

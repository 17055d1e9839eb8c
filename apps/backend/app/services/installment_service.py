from __future__ import annotations

import calendar
from datetime import date
from typing import Any

from sqlalchemy.orm import Session

from app import models
from app.core.errors import BusinessRuleError
from app.utils.money import from_cents, to_cents


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the last day of the target month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class InstallmentService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create_installments(
        self,
        transaction: models.Transaction,
        count: int | None,
        amount: Any,
    ) -> list[models.Installment]:
        """Split ``amount`` into ``count`` monthly installments.

        Every installment gets the floor of the cent division; the last one
        takes the remainder. Nothing is created for a count below two.
        """
        if not count or count <= 1:
            return []
        total_cents = to_cents(amount)
        if total_cents < count:
            raise BusinessRuleError("Amount is too small for the number of installments")

        each = total_cents // count
        rows = []
        for number in range(1, count + 1):
            cents = each if number < count else total_cents - each * (count - 1)
            rows.append(
                models.Installment(
                    transaction_id=transaction.id,
                    number=number,
                    amount=from_cents(cents),
                    due_date=add_months(transaction.date, number - 1),
                    status=models.InstallmentStatus.PENDING,
                )
            )
        self.db.add_all(rows)
        self.db.flush()
        return rows

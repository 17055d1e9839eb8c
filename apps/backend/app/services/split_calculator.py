"""
Split calculator

Pure functions that turn a transaction total and the participants' requested
shares into a consistent set of (amount, percent) pairs, plus the creator's
residual share. Nothing here touches the database.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Sequence

from app.core.errors import BusinessRuleError
from app.utils.money import (
    HUNDRED,
    ZERO,
    amount_of,
    exceeds,
    percent_of,
    quantize_money,
    quantize_percent,
    to_decimal,
)

SHARES_EXCEED_AMOUNT = "Total participant shares exceed transaction amount"
PERCENTS_EXCEED_TOTAL = "Total participant percentages exceed 100%"


@dataclass
class ShareRequest:
    """Requested split for one non-creator participant; both fields optional."""

    amount: Decimal | None = None
    percent: Decimal | None = None

    @classmethod
    def from_payload(cls, payload: Any) -> "ShareRequest":
        amount = getattr(payload, "amount", None)
        percent = getattr(payload, "percent", None)
        return cls(
            amount=to_decimal(amount) if amount is not None else None,
            percent=to_decimal(percent) if percent is not None else None,
        )

    @property
    def has_amount(self) -> bool:
        return bool(self.amount)

    @property
    def has_percent(self) -> bool:
        return bool(self.percent)


@dataclass
class ShareSplit:
    amount: Decimal
    percent: Decimal


@dataclass
class SplitResult:
    participants: list[ShareSplit] = field(default_factory=list)
    creator: ShareSplit = field(default_factory=lambda: ShareSplit(ZERO, ZERO))
    has_custom_splits: bool = False


def compute_split(total: Any, requests: Sequence[ShareRequest]) -> SplitResult:
    """
    Compute base shares for a new shared transaction

    - No explicit amount or percent anywhere: equal split over
      ``len(requests) + 1`` parties, creator included.
    - Explicit amounts: the creator keeps the remainder; percents are derived
      from amounts unless some percents were given, in which case the creator
      percent is ``100 - sum(percents)``.
    - Only explicit percents: mirror of the above with percent as primary.

    Raises:
        BusinessRuleError: explicit amounts above ``total`` or explicit
            percents above 100.
    """
    amount = to_decimal(total)
    if amount <= 0:
        raise BusinessRuleError("Transaction amount must be positive")

    total_amount = sum((r.amount for r in requests if r.has_amount), ZERO)
    total_percent = sum((r.percent for r in requests if r.has_percent), ZERO)

    if total_amount > amount:
        raise BusinessRuleError(SHARES_EXCEED_AMOUNT)
    if total_percent > HUNDRED:
        raise BusinessRuleError(PERCENTS_EXCEED_TOTAL)

    if total_amount > 0:
        creator_amount = quantize_money(amount - total_amount)
        if total_percent == 0:
            creator_percent = percent_of(creator_amount, amount)
        else:
            creator_percent = quantize_percent(HUNDRED - total_percent)
        splits = [_derive(r, amount) for r in requests]
        return SplitResult(splits, ShareSplit(creator_amount, creator_percent), has_custom_splits=True)

    if total_percent > 0:
        creator_percent = quantize_percent(HUNDRED - total_percent)
        creator_amount = amount_of(creator_percent, amount)
        splits = [_derive(r, amount) for r in requests]
        return SplitResult(splits, ShareSplit(creator_amount, creator_percent), has_custom_splits=True)

    parties = len(requests) + 1
    equal = ShareSplit(quantize_money(amount / parties), quantize_percent(HUNDRED / parties))
    return SplitResult([ShareSplit(equal.amount, equal.percent) for _ in requests], equal)


def _derive(request: ShareRequest, total: Decimal) -> ShareSplit:
    if request.has_amount and request.has_percent:
        return ShareSplit(quantize_money(request.amount), quantize_percent(request.percent))
    if request.has_amount:
        return ShareSplit(quantize_money(request.amount), percent_of(request.amount, total))
    if request.has_percent:
        return ShareSplit(amount_of(request.percent, total), quantize_percent(request.percent))
    return ShareSplit(quantize_money(ZERO), quantize_percent(ZERO))


def creator_residual(total: Any, others_total: Any) -> ShareSplit:
    """
    Creator's share after an update: whatever the other parties do not cover

    Raises:
        BusinessRuleError: the other parties' shares exceed the total beyond
            the money tolerance.
    """
    amount = to_decimal(total)
    others = to_decimal(others_total)
    if exceeds(others, amount):
        raise BusinessRuleError(SHARES_EXCEED_AMOUNT)
    residual = quantize_money(max(ZERO, amount - others))
    return ShareSplit(residual, percent_of(residual, amount))

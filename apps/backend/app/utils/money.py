"""
Fixed-point money helpers

Amounts are handled as ``Decimal`` with two places (cents); percentages are
also kept at two places. Floats coming from clients are converted through
``str`` so binary noise never reaches stored values.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from app.core.config import settings

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a client or database value to ``Decimal``

    Example:
        >>> to_decimal(0.1)
        Decimal('0.1')
        >>> to_decimal(None)
        Decimal('0')
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Any) -> Decimal:
    """Round to cents, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def quantize_percent(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value: Any) -> int:
    return int(quantize_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def percent_of(part: Any, total: Any) -> Decimal:
    """``part`` as a percentage of ``total``; zero when ``total`` is zero."""
    total_dec = to_decimal(total)
    if total_dec == 0:
        return ZERO.quantize(CENT)
    return quantize_percent(to_decimal(part) / total_dec * HUNDRED)


def amount_of(percent: Any, total: Any) -> Decimal:
    """Money value of ``percent`` of ``total``."""
    return quantize_money(to_decimal(percent) / HUNDRED * to_decimal(total))


def exceeds(value: Any, limit: Any, tolerance: Decimal | None = None) -> bool:
    """True when ``value`` is above ``limit`` by more than the tolerance."""
    tol = settings.MONEY_TOLERANCE if tolerance is None else tolerance
    return to_decimal(value) - to_decimal(limit) > tol


def effectively_equal(a: Any, b: Any, tolerance: Decimal | None = None) -> bool:
    tol = settings.MONEY_TOLERANCE if tolerance is None else tolerance
    return abs(to_decimal(a) - to_decimal(b)) < tol


def split_evenly(total: Any, count: int) -> list[Decimal]:
    """
    Exact-penny equal split

    Every part gets ``floor(total / count)`` cents; the leftover cents go one
    by one to the first parts.

    Example:
        >>> split_evenly(Decimal("10.00"), 3)
        [Decimal('3.34'), Decimal('3.33'), Decimal('3.33')]
    """
    if count <= 0:
        return []
    total_cents = to_cents(total)
    base, leftover = divmod(total_cents, count)
    return [from_cents(base + (1 if i < leftover else 0)) for i in range(count)]

"""
Split calculator tests (pure, no database)
"""

from decimal import Decimal

import pytest

from app.core.errors import BusinessRuleError
from app.services.split_calculator import (
    PERCENTS_EXCEED_TOTAL,
    SHARES_EXCEED_AMOUNT,
    ShareRequest,
    compute_split,
    creator_residual,
)


def _req(amount=None, percent=None) -> ShareRequest:
    return ShareRequest(
        amount=Decimal(amount) if amount is not None else None,
        percent=Decimal(percent) if percent is not None else None,
    )


class TestEqualSplit:
    def test_everyone_including_creator_gets_the_same(self):
        result = compute_split(Decimal("100"), [_req(), _req()])

        assert not result.has_custom_splits
        assert [s.amount for s in result.participants] == [Decimal("33.33"), Decimal("33.33")]
        assert result.creator.amount == Decimal("33.33")
        assert result.creator.percent == Decimal("33.33")

    def test_no_participants_gives_creator_everything(self):
        result = compute_split(Decimal("42.50"), [])

        assert result.participants == []
        assert result.creator.amount == Decimal("42.50")
        assert result.creator.percent == Decimal("100.00")


class TestExplicitAmounts:
    def test_creator_keeps_remainder(self):
        result = compute_split(Decimal("300"), [_req(100), _req(100)])

        assert result.has_custom_splits
        assert [s.amount for s in result.participants] == [Decimal("100.00"), Decimal("100.00")]
        assert [s.percent for s in result.participants] == [Decimal("33.33"), Decimal("33.33")]
        assert result.creator.amount == Decimal("100.00")
        assert result.creator.percent == Decimal("33.33")

    def test_full_amount_leaves_creator_zero(self):
        result = compute_split(Decimal("100"), [_req(100), _req()])

        assert result.creator.amount == Decimal("0.00")
        assert result.creator.percent == Decimal("0.00")

    def test_creator_percent_uses_explicit_percents_when_given(self):
        result = compute_split(Decimal("200"), [_req(50, 30)])

        assert result.participants[0].amount == Decimal("50.00")
        assert result.participants[0].percent == Decimal("30.00")
        assert result.creator.amount == Decimal("150.00")
        assert result.creator.percent == Decimal("70.00")

    def test_shares_above_total_are_rejected(self):
        with pytest.raises(BusinessRuleError) as exc:
            compute_split(Decimal("100"), [_req(100), _req(50)])
        assert exc.value.detail == SHARES_EXCEED_AMOUNT

    def test_shares_equal_to_total_are_accepted(self):
        result = compute_split(Decimal("100"), [_req(60), _req(40)])
        assert result.creator.amount == Decimal("0.00")


class TestExplicitPercents:
    def test_amounts_derived_from_percents(self):
        result = compute_split(Decimal("80"), [_req(percent=25), _req(percent=25)])

        assert [s.amount for s in result.participants] == [Decimal("20.00"), Decimal("20.00")]
        assert result.creator.percent == Decimal("50.00")
        assert result.creator.amount == Decimal("40.00")

    def test_percents_above_hundred_are_rejected(self):
        with pytest.raises(BusinessRuleError) as exc:
            compute_split(Decimal("80"), [_req(percent=60), _req(percent=50)])
        assert exc.value.detail == PERCENTS_EXCEED_TOTAL


class TestCreatorResidual:
    def test_residual(self):
        share = creator_residual(Decimal("90"), Decimal("60"))
        assert share.amount == Decimal("30.00")
        assert share.percent == Decimal("33.33")

    def test_rounding_overshoot_is_clamped_to_zero(self):
        share = creator_residual(Decimal("100"), Decimal("100.01"))
        assert share.amount == Decimal("0.00")

    def test_overshoot_beyond_tolerance_is_rejected(self):
        with pytest.raises(BusinessRuleError):
            creator_residual(Decimal("100"), Decimal("100.50"))


def test_non_positive_amount_is_rejected():
    with pytest.raises(BusinessRuleError):
        compute_split(Decimal("0"), [])

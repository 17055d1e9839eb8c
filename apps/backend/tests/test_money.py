"""
Money helper tests
"""

from decimal import Decimal

from app.utils.money import (
    amount_of,
    effectively_equal,
    exceeds,
    percent_of,
    quantize_money,
    split_evenly,
    to_cents,
    to_decimal,
)


class TestConversion:
    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_none_is_zero(self):
        assert to_decimal(None) == Decimal("0")

    def test_quantize_rounds_half_up(self):
        assert quantize_money("2.345") == Decimal("2.35")
        assert quantize_money("2.344") == Decimal("2.34")

    def test_to_cents(self):
        assert to_cents("10.005") == 1001


class TestPercent:
    def test_percent_of(self):
        assert percent_of(100, 300) == Decimal("33.33")

    def test_percent_of_zero_total(self):
        assert percent_of(5, 0) == Decimal("0.00")

    def test_amount_of(self):
        assert amount_of(25, "80.00") == Decimal("20.00")


class TestTolerance:
    """Single named tolerance for client-submitted values"""

    def test_within_tolerance_does_not_exceed(self):
        assert not exceeds("100.01", "100")

    def test_above_tolerance_exceeds(self):
        assert exceeds("100.02", "100")

    def test_effectively_equal(self):
        assert effectively_equal("33.333", "33.33")
        assert not effectively_equal("33.35", "33.33")


class TestSplitEvenly:
    def test_first_parts_take_leftover_cents(self):
        assert split_evenly(Decimal("10.00"), 3) == [Decimal("3.34"), Decimal("3.33"), Decimal("3.33")]

    def test_sum_is_exact(self):
        parts = split_evenly(Decimal("100.00"), 7)
        assert sum(parts) == Decimal("100.00")
        assert max(parts) - min(parts) == Decimal("0.01")

    def test_no_parts(self):
        assert split_evenly(Decimal("10"), 0) == []

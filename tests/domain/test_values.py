"""
Tests for the money/percentage reconciliation helpers.

Covers:
- Decimal coercion and float rejection
- Percent <-> amount conversion and its idempotence
- Display rounding
- Strict and inclusive tolerance checks
"""

from decimal import Decimal

import pytest

from sales_kernel.domain.values import (
    COMMISSION_TOLERANCE,
    MONEY_TOLERANCE,
    display_percent,
    is_zero,
    round_money,
    to_amount,
    to_decimal,
    to_percent,
    within_tolerance,
)


class TestToDecimal:
    """Boundary coercion of numeric inputs."""

    def test_accepts_int_str_and_decimal(self):
        assert to_decimal(5) == Decimal("5")
        assert to_decimal(" 12.50 ") == Decimal("12.50")
        assert to_decimal(Decimal("1.1")) == Decimal("1.1")

    def test_rejects_float(self):
        """Floats would leak binary rounding into money math."""
        with pytest.raises(TypeError):
            to_decimal(0.1)

    def test_rejects_bool(self):
        with pytest.raises(TypeError):
            to_decimal(True)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_decimal("abc")


class TestConversion:
    """Percent and amount are two views of the same share."""

    def test_percent_of_total(self):
        assert to_percent(Decimal("2500"), Decimal("10000")) == Decimal("25")

    def test_amount_of_percent(self):
        assert to_amount(Decimal("25"), Decimal("10000")) == Decimal("2500")

    def test_zero_total_gives_zero_percent(self):
        """A non-positive total never divides by zero."""
        assert to_percent(Decimal("100"), Decimal("0")) == Decimal("0")
        assert to_percent(Decimal("100"), Decimal("-5")) == Decimal("0")

    def test_round_trip_is_stable(self):
        """amount -> percent -> amount returns the amount within a cent."""
        total = Decimal("12345.67")
        amount = Decimal("4321.09")
        back = to_amount(to_percent(amount, total), total)
        assert abs(back - amount) < MONEY_TOLERANCE

    def test_percent_is_not_rounded(self):
        """Thirds stay exact-ish internally; rounding is display only."""
        pct = to_percent(Decimal("1"), Decimal("3"))
        assert pct != display_percent(pct)
        assert display_percent(pct) == Decimal("33.33")


class TestRounding:

    def test_display_percent_half_up(self):
        assert display_percent(Decimal("12.345")) == Decimal("12.35")
        assert display_percent(Decimal("12.344")) == Decimal("12.34")

    def test_round_money_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("15833.3333")) == Decimal("15833.33")


class TestTolerances:
    """Monetary closure is strict; commission closure is inclusive."""

    def test_is_zero_is_strict(self):
        assert is_zero(Decimal("0.009"))
        assert not is_zero(Decimal("0.01"))
        assert not is_zero(Decimal("-0.01"))

    def test_within_tolerance_is_inclusive(self):
        assert within_tolerance(Decimal("100.05"), Decimal("100"), COMMISSION_TOLERANCE)
        assert not within_tolerance(Decimal("100.06"), Decimal("100"), COMMISSION_TOLERANCE)

    def test_tolerances_are_distinct(self):
        assert COMMISSION_TOLERANCE == Decimal("0.05")
        assert MONEY_TOLERANCE == Decimal("0.01")

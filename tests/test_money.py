"""
Unit tests for monetary rounding, summation and formatting.
"""

import math
from decimal import Decimal

import pytest

from exceptions import ValidationError
from money import (
    format_currency,
    format_signed,
    quantize_cents,
    require_non_negative,
    require_positive,
    round_to_cents,
    sum_monetary_values,
    to_decimal,
)


class TestRoundToCents:
    """Test round_to_cents."""

    def test_half_cent_rounds_away_from_zero(self):
        assert round_to_cents(19.005) == 19.01
        assert round_to_cents(-19.005) == -19.01

    def test_float_drift_removed(self):
        assert round_to_cents(0.1 + 0.2) == 0.3

    @pytest.mark.parametrize("value", [0, 1.234, 19.005, -2.675, 1e6 + 0.125, Decimal("3.14159")])
    def test_idempotent(self, value):
        once = round_to_cents(value)
        assert round_to_cents(once) == once

    def test_no_negative_zero(self):
        result = round_to_cents(-0.001)
        assert result == 0.0
        assert math.copysign(1.0, result) == 1.0

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValidationError):
            round_to_cents(value)

    def test_non_number_rejected(self):
        with pytest.raises(ValidationError):
            round_to_cents("12.50")
        with pytest.raises(ValidationError):
            round_to_cents(True)


class TestDecimalHelpers:
    """Test to_decimal and quantize_cents."""

    def test_to_decimal_uses_shortest_repr(self):
        assert to_decimal(0.1) == Decimal("0.1")

    def test_quantize_returns_decimal(self):
        assert quantize_cents(2.5) == Decimal("2.50")


class TestSumMonetaryValues:
    """Test sum_monetary_values."""

    def test_empty_is_zero(self):
        assert sum_monetary_values([]) == 0.0

    def test_sums_exactly(self):
        assert sum_monetary_values([0.1] * 10) == 1.0
        assert sum_monetary_values([19.99, 0.01, -5]) == 15.0


class TestValidation:
    """Test amount validators."""

    def test_require_positive(self):
        assert require_positive(12.345) == 12.35
        with pytest.raises(ValidationError):
            require_positive(0)
        with pytest.raises(ValidationError):
            require_positive(-1)

    def test_require_non_negative(self):
        assert require_non_negative(0) == 0.0
        with pytest.raises(ValidationError) as exc_info:
            require_non_negative(-0.5, "allocated amount")
        assert "allocated amount" in str(exc_info.value)


class TestFormatting:
    """Test currency formatting."""

    def test_format_currency(self):
        assert format_currency(1234.5) == "$1,234.50"
        assert format_currency(-12) == "-$12.00"
        assert format_currency(5, symbol="€") == "€5.00"

    def test_format_signed(self):
        assert format_signed(3) == "+$3.00"
        assert format_signed(-3) == "-$3.00"

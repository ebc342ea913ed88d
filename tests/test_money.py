"""
Tests for fixed-point money handling.

These tests verify:
  - Major units convert to exact integer minor units per currency exponent
  - Zero, negative, non-finite and over-precise amounts are rejected
  - Unknown currency codes are rejected rather than guessed
  - Stored minor units read back as the same Decimal
"""

from decimal import Decimal

import pytest

from marketplace_payments.exceptions import InvalidAmountError, InvalidCurrencyError
from marketplace_payments.money import (
    from_minor_units,
    normalize_currency,
    to_minor_units,
)


class TestToMinorUnits:

    @pytest.mark.parametrize(
        "amount, currency, expected",
        [
            (Decimal("25.50"), "USD", 2550),
            (Decimal("0.01"), "USD", 1),
            (Decimal("1500"), "NGN", 150000),
            (Decimal("1500"), "JPY", 1500),
            (Decimal("1.234"), "KWD", 1234),
        ],
    )
    def test_exact_conversion(self, amount, currency, expected):
        assert to_minor_units(amount, currency) == expected

    def test_float_artifacts_never_appear(self):
        """0.1 + 0.2 style errors are impossible with Decimal input."""
        assert to_minor_units(Decimal("0.10") + Decimal("0.20"), "USD") == 30

    def test_currency_is_case_insensitive(self):
        assert to_minor_units(Decimal("10"), "usd") == 1000

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5.00")])
    def test_non_positive_rejected(self, amount):
        with pytest.raises(InvalidAmountError):
            to_minor_units(amount, "USD")

    @pytest.mark.parametrize("amount", [Decimal("NaN"), Decimal("Infinity")])
    def test_non_finite_rejected(self, amount):
        with pytest.raises(InvalidAmountError):
            to_minor_units(amount, "USD")

    def test_too_many_decimals_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            to_minor_units(Decimal("10.005"), "USD")
        assert "2 decimal places" in exc_info.value.detail

    def test_fractional_yen_rejected(self):
        with pytest.raises(InvalidAmountError):
            to_minor_units(Decimal("100.5"), "JPY")

    def test_trailing_zeros_accepted(self):
        assert to_minor_units(Decimal("10.500"), "USD") == 1050

    def test_unknown_currency_rejected(self):
        with pytest.raises(InvalidCurrencyError):
            to_minor_units(Decimal("10"), "XYZ")


class TestFromMinorUnits:

    def test_two_decimal_currency(self):
        assert from_minor_units(2550, "USD") == Decimal("25.50")
        assert str(from_minor_units(2550, "USD")) == "25.50"

    def test_zero_decimal_currency(self):
        assert str(from_minor_units(1500, "JPY")) == "1500"

    def test_reads_back_what_was_stored(self):
        minor = to_minor_units(Decimal("1234.56"), "NGN")
        assert from_minor_units(minor, "NGN") == Decimal("1234.56")


def test_normalize_currency_strips_and_uppercases():
    assert normalize_currency(" ngn ") == "NGN"

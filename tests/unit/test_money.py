"""
Unit tests for Money and currency handling.

Verifies:
- Decimal-only amounts (floats go through str)
- Currency-derived rounding (IDR has no minor unit)
- Same-currency arithmetic and comparison
- Boundary coercion helpers
"""

from decimal import ROUND_DOWN, Decimal

import pytest

from fincalc_kernel.domain.currency import CurrencyRegistry
from fincalc_kernel.domain.values import Currency, Money, as_money, sum_money


class TestConstruction:
    """Money.of and the dataclass constructor."""

    def test_default_currency_is_idr(self):
        assert Money.of(100).currency == Currency("IDR")

    def test_float_goes_through_str(self):
        assert Money(0.1, "USD").amount == Decimal("0.1")

    def test_string_amount_stripped(self):
        assert Money.of(" 1500000 ").amount == Decimal("1500000")

    def test_invalid_amount(self):
        with pytest.raises(ValueError):
            Money.of("abc")

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            Money.of("NaN")

    def test_unknown_currency(self):
        with pytest.raises(ValueError):
            Money.of(1, "XYZ")

    def test_currency_normalized(self):
        assert Currency(" idr ").code == "IDR"


class TestRounding:
    """Precision comes from the currency."""

    def test_idr_rounds_to_whole_rupiah(self):
        assert Money.of("325000.5").round() == Money.of(325_001)

    def test_usd_rounds_to_cents(self):
        assert Money.of("10.005", "USD").round() == Money.of("10.01", "USD")

    def test_explicit_rounding_mode(self):
        assert Money.of("99.9").round(ROUND_DOWN) == Money.of(99)

    def test_floor_to_unit(self):
        assert Money.of(66_000_600).floor_to(1000) == Money.of(66_000_000)

    def test_floor_to_rejects_zero_unit(self):
        with pytest.raises(ValueError):
            Money.of(1).floor_to(0)

    def test_registry_places(self):
        assert CurrencyRegistry.get_decimal_places("IDR") == 0
        assert Currency("USD").quantum == Decimal("0.01")
        assert Currency("IDR").quantum == Decimal("1")


class TestArithmetic:
    """Operations keep the currency and refuse to mix."""

    def test_add_sub(self):
        assert Money.of(5) + Money.of(3) - Money.of(2) == Money.of(6)

    def test_mixed_currency_add(self):
        with pytest.raises(ValueError):
            Money.of(1) + Money.of(1, "USD")

    def test_mixed_currency_compare(self):
        with pytest.raises(ValueError):
            Money.of(1) < Money.of(1, "USD")

    def test_scalar_ops(self):
        assert Money.of(10) * Decimal("0.15") == Money.of("1.5")
        assert Money.of(12) / 12 == Money.of(1)
        assert 2 * Money.of(3) == Money.of(6)

    def test_abs_and_neg(self):
        assert abs(Money.of(-7)) == Money.of(7)
        assert -Money.of(7) == Money.of(-7)

    def test_clamp(self):
        assert Money.of(-1).clamp_non_negative().is_zero
        assert Money.of(1).clamp_non_negative() == Money.of(1)

    def test_large_amounts_exact(self):
        total = Money.of("999999999999") + Money.of("0.000000001")
        assert total.amount == Decimal("999999999999.000000001")


class TestHelpers:
    """as_money / sum_money."""

    def test_as_money_none_is_zero(self):
        assert as_money(None).is_zero

    def test_as_money_passthrough(self):
        m = Money.of(5, "USD")
        assert as_money(m) is m

    def test_sum_empty(self):
        assert sum_money([], "USD") == Money.zero("USD")

    def test_sum(self):
        assert sum_money([Money.of(1), Money.of(2)]) == Money.of(3)

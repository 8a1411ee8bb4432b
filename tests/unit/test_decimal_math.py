"""Unit tests for decimal helpers."""
from __future__ import annotations

from decimal import Decimal

import pytest

from scallop_risk.decimal_math import (
    apr_to_apy,
    apy_to_apr,
    ceil,
    div,
    dsum,
    floor,
    from_fixed_point,
    shift,
    to_amount,
    to_coin,
    to_decimal,
)


class TestToDecimal:
    def test_float_goes_through_repr(self) -> None:
        assert to_decimal(0.1) == Decimal("0.1")

    def test_none_is_zero(self) -> None:
        assert to_decimal(None) == 0

    def test_large_integers_stay_exact(self) -> None:
        raw = "18446744073709551615123"
        assert to_decimal(raw) == Decimal(raw)
        assert str(to_decimal(int(raw))) == raw


class TestDivision:
    def test_zero_divisor_raises_without_default(self) -> None:
        with pytest.raises(ZeroDivisionError):
            div(1, 0)

    def test_zero_divisor_returns_default(self) -> None:
        assert div(1, 0, default=Decimal(7)) == 7

    def test_precision_beyond_float(self) -> None:
        third = div(1, 3)
        assert len(third.as_tuple().digits) >= 50


class TestUnits:
    def test_coin_amount_conversion(self) -> None:
        assert to_coin(1_500_000_000, 9) == Decimal("1.5")
        assert to_amount(Decimal("1.5"), 9) == Decimal(1_500_000_000)

    def test_to_amount_truncates(self) -> None:
        assert to_amount(Decimal("0.0000000019"), 9) == 1

    def test_shift_negative_exponent(self) -> None:
        assert shift(350_000_000, -8) == Decimal("3.5")

    def test_floor_and_ceil(self) -> None:
        assert floor(Decimal("2.9")) == 2
        assert ceil(Decimal("2.1")) == 3
        assert ceil(Decimal(2)) == 2

    def test_dsum_of_empty_is_zero(self) -> None:
        assert dsum([]) == 0


class TestRates:
    def test_fixed_point_decoding(self) -> None:
        assert from_fixed_point(2**31) == Decimal("0.5")
        assert from_fixed_point(3 * 2**32) == 3

    def test_zero_apr_has_zero_apy(self) -> None:
        assert apr_to_apy(0) == 0

    def test_apy_exceeds_apr(self) -> None:
        apr = Decimal("0.1")
        assert apr_to_apy(apr) > apr

    def test_apy_to_apr_inverts(self) -> None:
        apr = Decimal("0.08")
        assert apy_to_apr(apr_to_apy(apr)) == pytest.approx(apr, abs=Decimal("1e-40"))

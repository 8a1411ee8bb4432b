"""Arbitrary-precision decimal helpers for ledger amounts, prices and indices.

Every amount, price, rate and index flowing through the calculators is a
:class:`decimal.Decimal`. On-ledger integers routinely exceed 2**53, so
nothing here ever round-trips through ``float``.
"""
from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_UP, Context, Decimal, localcontext
from typing import Iterable, Union

Number = Union[Decimal, int, str]

PRECISION = 60

ZERO = Decimal(0)
ONE = Decimal(1)

# Raw ledger fractions are Q32.32 fixed point.
FIXED_POINT_SCALE = Decimal(2**32)

SECONDS_PER_YEAR = 365 * 24 * 60 * 60
COMPOUNDING_PERIODS = 365

_CONTEXT = Context(prec=PRECISION)


def to_decimal(value: Number | float | None) -> Decimal:
    """Coerce a raw ledger value into a Decimal.

    Strings and ints are converted exactly. Floats are routed through
    ``repr`` so ``0.1`` becomes ``Decimal("0.1")`` rather than its binary
    expansion. ``None`` is treated as zero.
    """
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def add(a: Number, b: Number) -> Decimal:
    return _CONTEXT.add(to_decimal(a), to_decimal(b))


def sub(a: Number, b: Number) -> Decimal:
    return _CONTEXT.subtract(to_decimal(a), to_decimal(b))


def mul(a: Number, b: Number) -> Decimal:
    return _CONTEXT.multiply(to_decimal(a), to_decimal(b))


def div(a: Number, b: Number, default: Decimal | None = None) -> Decimal:
    """Divide ``a`` by ``b``.

    A zero divisor returns ``default`` when one is given and raises
    :class:`ZeroDivisionError` otherwise.
    """
    divisor = to_decimal(b)
    if divisor == 0:
        if default is not None:
            return default
        raise ZeroDivisionError(f"division of {a} by zero")
    return _CONTEXT.divide(to_decimal(a), divisor)


def shift(value: Number, exponent: int) -> Decimal:
    """Multiply ``value`` by ``10**exponent`` exactly."""
    return _CONTEXT.scaleb(to_decimal(value), exponent)


def to_coin(amount: Number, decimals: int) -> Decimal:
    """Raw integer amount → human coin units."""
    return shift(amount, -decimals)


def to_amount(coin: Number, decimals: int) -> Decimal:
    """Human coin units → raw amount, truncated toward zero."""
    return floor(shift(coin, decimals))


def floor(value: Number) -> Decimal:
    """Truncate toward zero, keeping the Decimal type."""
    return to_decimal(value).quantize(ONE, rounding=ROUND_DOWN, context=_CONTEXT)


def ceil(value: Number) -> Decimal:
    """Round away from zero to a whole unit."""
    return to_decimal(value).quantize(ONE, rounding=ROUND_UP, context=_CONTEXT)


def dmin(*values: Number) -> Decimal:
    return min(to_decimal(v) for v in values)


def dmax(*values: Number) -> Decimal:
    return max(to_decimal(v) for v in values)


def clamp_non_negative(value: Number) -> Decimal:
    return dmax(value, ZERO)


def dsum(values: Iterable[Number]) -> Decimal:
    total = ZERO
    for v in values:
        total = add(total, v)
    return total


def from_fixed_point(raw: Number) -> Decimal:
    """Decode a Q32.32 fixed-point ledger fraction."""
    return div(raw, FIXED_POINT_SCALE)


def apr_to_apy(apr: Number, periods: int = COMPOUNDING_PERIODS) -> Decimal:
    """Compound an annual rate ``periods`` times a year."""
    with localcontext(_CONTEXT):
        return (ONE + to_decimal(apr) / periods) ** periods - ONE


def apy_to_apr(apy: Number, periods: int = COMPOUNDING_PERIODS) -> Decimal:
    with localcontext(_CONTEXT):
        return ((ONE + to_decimal(apy)) ** (ONE / periods) - ONE) * periods

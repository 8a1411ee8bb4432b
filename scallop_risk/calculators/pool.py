"""Pool valuation: utilization, interest curve, yields and claim-share rate."""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ..decimal_math import (
    ONE,
    SECONDS_PER_YEAR,
    ZERO,
    add,
    apr_to_apy,
    clamp_non_negative,
    div,
    dmin,
    from_fixed_point,
    mul,
    sub,
    to_coin,
)
from ..errors import PoolDataUnavailable, require
from ..models import CollateralMetrics, PoolMetrics, RawMarketPool, TotalValueLocked

REQUIRED_POOL_FIELDS = (
    "cash",
    "debt",
    "reserve",
    "market_coin_supply",
    "borrow_index",
    "last_updated",
    "interest_rate_scale",
    "base_borrow_rate_per_sec",
    "borrow_rate_on_mid_kink",
    "borrow_rate_on_high_kink",
    "max_borrow_rate",
    "mid_kink",
    "high_kink",
    "reserve_factor",
    "borrow_weight",
)

FLASHLOAN_FEE_SCALE = Decimal(10_000)


@dataclass(frozen=True)
class InterestCurve:
    """Decoded kinked rate curve. Rates are per second, before ``scale``."""

    base_rate: Decimal
    rate_on_mid_kink: Decimal
    rate_on_high_kink: Decimal
    max_rate: Decimal
    mid_kink: Decimal
    high_kink: Decimal
    scale: Decimal

    @classmethod
    def from_raw(cls, pool: RawMarketPool) -> "InterestCurve":
        return cls(
            base_rate=from_fixed_point(pool.base_borrow_rate_per_sec),
            rate_on_mid_kink=from_fixed_point(pool.borrow_rate_on_mid_kink),
            rate_on_high_kink=from_fixed_point(pool.borrow_rate_on_high_kink),
            max_rate=from_fixed_point(pool.max_borrow_rate),
            mid_kink=from_fixed_point(pool.mid_kink),
            high_kink=from_fixed_point(pool.high_kink),
            scale=pool.interest_rate_scale,
        )

    def rate_per_sec(self, utilization: Decimal) -> Decimal:
        """Borrow rate at ``utilization`` on the three-segment curve."""
        if utilization <= self.mid_kink:
            return _interpolate(
                utilization, ZERO, self.mid_kink, self.base_rate, self.rate_on_mid_kink
            )
        if utilization <= self.high_kink:
            return _interpolate(
                utilization,
                self.mid_kink,
                self.high_kink,
                self.rate_on_mid_kink,
                self.rate_on_high_kink,
            )
        return _interpolate(
            utilization, self.high_kink, ONE, self.rate_on_high_kink, self.max_rate
        )

    def to_apr(self, rate_per_sec: Decimal) -> Decimal:
        return div(mul(rate_per_sec, SECONDS_PER_YEAR), self.scale)


def _interpolate(
    x: Decimal, x0: Decimal, x1: Decimal, y0: Decimal, y1: Decimal
) -> Decimal:
    # A zero-width segment sits at its upper rate.
    span = sub(x1, x0)
    if span <= 0:
        return y1
    return add(y0, div(mul(sub(y1, y0), sub(x, x0)), span))


def utilization_rate(cash: Decimal, debt: Decimal) -> Decimal:
    return div(debt, add(cash, debt), default=ZERO)


def conversion_rate(
    cash: Decimal, debt: Decimal, reserve: Decimal, market_coin_supply: Decimal
) -> Decimal:
    """Redemption value of one claim share; 1 before any share is minted."""
    return div(sub(add(cash, debt), reserve), market_coin_supply, default=ONE)


def _check_pool_invariants(pool: RawMarketPool) -> None:
    name = pool.coin_name
    for field_name in ("cash", "debt", "reserve", "market_coin_supply"):
        value = getattr(pool, field_name)
        require(value >= 0, f"{name}: negative {field_name} {value}")
    require(
        add(pool.cash, pool.debt) >= pool.reserve,
        f"{name}: cash + debt below reserve",
    )
    require(pool.borrow_index > 0, f"{name}: non-positive borrow index")
    require(pool.interest_rate_scale > 0, f"{name}: non-positive rate scale")
    for field_name in ("mid_kink", "high_kink", "reserve_factor"):
        fraction = from_fixed_point(getattr(pool, field_name))
        require(
            ZERO <= fraction <= ONE,
            f"{name}: {field_name} {fraction} outside [0, 1]",
        )
    require(pool.mid_kink <= pool.high_kink, f"{name}: mid kink above high kink")
    require(pool.borrow_weight > 0, f"{name}: non-positive borrow weight")


def calculate_pool_metrics(
    pool: RawMarketPool,
    coin_price: Decimal,
    now: int | None = None,
) -> PoolMetrics | PoolDataUnavailable:
    """Value one pool at ``coin_price``.

    When ``now`` is given and later than the pool's last update the borrow
    index, debt and reserve are projected forward with the current rate.
    Utilization and the reported rates stay at their snapshot values.
    Missing balance-sheet or curve fields yield :class:`PoolDataUnavailable`.
    """
    missing = [f for f in REQUIRED_POOL_FIELDS if getattr(pool, f) is None]
    if missing:
        return PoolDataUnavailable(
            pool.coin_name, "missing fields: " + ", ".join(missing)
        )
    _check_pool_invariants(pool)

    curve = InterestCurve.from_raw(pool)
    reserve_factor = from_fixed_point(pool.reserve_factor)

    # Rates follow the snapshot utilization; projection only moves the balances.
    utilization = utilization_rate(pool.cash, pool.debt)
    rate = curve.rate_per_sec(utilization)
    max_borrow_apr = curve.to_apr(curve.max_rate)
    borrow_apr = dmin(curve.to_apr(rate), max_borrow_apr)

    borrow_index = pool.borrow_index
    debt = pool.debt
    reserve = pool.reserve
    growth_interest = ZERO
    if now is not None and now > pool.last_updated:
        growth_interest = div(mul(rate, now - pool.last_updated), curve.scale)
        borrow_index = mul(borrow_index, add(ONE, growth_interest))
        increased_debt = mul(debt, growth_interest)
        debt = add(debt, increased_debt)
        reserve = add(reserve, mul(increased_debt, reserve_factor))

    cash = pool.cash
    supply_apr = mul(mul(borrow_apr, utilization), sub(ONE, reserve_factor))
    supply_amount = sub(add(cash, debt), reserve)

    supply_headroom = None
    if pool.supply_limit is not None:
        supply_headroom = clamp_non_negative(sub(pool.supply_limit, supply_amount))
    borrow_headroom = None
    if pool.borrow_limit is not None:
        borrow_headroom = clamp_non_negative(sub(pool.borrow_limit, debt))

    decimals = pool.decimals
    supply_coin = to_coin(supply_amount, decimals)
    borrow_coin = to_coin(debt, decimals)
    base_borrow_apr = curve.to_apr(curve.base_rate)
    borrow_apr_on_mid_kink = curve.to_apr(curve.rate_on_mid_kink)
    borrow_apr_on_high_kink = curve.to_apr(curve.rate_on_high_kink)

    return PoolMetrics(
        coin_name=pool.coin_name,
        symbol=pool.symbol or pool.coin_name.upper(),
        coin_type=pool.coin_type,
        decimals=decimals,
        coin_price=coin_price,
        utilization=utilization,
        borrow_apr=borrow_apr,
        borrow_apy=apr_to_apy(borrow_apr),
        supply_apr=supply_apr,
        supply_apy=apr_to_apy(supply_apr),
        base_borrow_apr=base_borrow_apr,
        borrow_apr_on_mid_kink=borrow_apr_on_mid_kink,
        borrow_apr_on_high_kink=borrow_apr_on_high_kink,
        max_borrow_apr=max_borrow_apr,
        conversion_rate=conversion_rate(cash, debt, reserve, pool.market_coin_supply),
        borrow_fee=from_fixed_point(pool.borrow_fee_rate),
        flashloan_fee=div(pool.flashloan_fee_bps, FLASHLOAN_FEE_SCALE),
        borrow_index=borrow_index,
        growth_interest=growth_interest,
        supply_amount=supply_amount,
        supply_coin=supply_coin,
        supply_value=mul(supply_coin, coin_price),
        borrow_amount=debt,
        borrow_coin=borrow_coin,
        borrow_value=mul(borrow_coin, coin_price),
        reserve_amount=reserve,
        cash_amount=cash,
        market_coin_supply=pool.market_coin_supply,
        min_borrow_amount=pool.min_borrow_amount,
        borrow_weight=from_fixed_point(pool.borrow_weight),
        reserve_factor=reserve_factor,
        mid_kink=curve.mid_kink,
        high_kink=curve.high_kink,
        available_borrow_liquidity=clamp_non_negative(sub(cash, reserve)),
        supply_limit=pool.supply_limit,
        supply_headroom=supply_headroom,
        borrow_limit=pool.borrow_limit,
        borrow_headroom=borrow_headroom,
        is_isolated=pool.is_isolated,
        last_updated=pool.last_updated,
    )


def calculate_total_value_locked(
    pools: dict[str, PoolMetrics],
    collaterals: dict[str, CollateralMetrics],
) -> TotalValueLocked:
    supply_lending = ZERO
    borrow = ZERO
    for metrics in pools.values():
        supply_lending = add(supply_lending, metrics.supply_value)
        borrow = add(borrow, metrics.borrow_value)
    supply_collateral = ZERO
    for metrics in collaterals.values():
        supply_collateral = add(supply_collateral, metrics.deposit_value)
    supply = add(supply_lending, supply_collateral)
    return TotalValueLocked(
        supply_lending_value=supply_lending,
        supply_collateral_value=supply_collateral,
        supply_value=supply,
        borrow_value=borrow,
        total_value=sub(supply, borrow),
    )

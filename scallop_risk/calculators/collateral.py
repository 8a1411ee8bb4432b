"""Collateral risk parameters and deposit headroom."""
from __future__ import annotations

from decimal import Decimal

from ..decimal_math import ONE, ZERO, clamp_non_negative, from_fixed_point, mul, sub, to_coin
from ..errors import PoolDataUnavailable, require
from ..models import CollateralMetrics, RawMarketCollateral

REQUIRED_COLLATERAL_FIELDS = (
    "collateral_factor",
    "liquidation_factor",
    "liquidation_discount",
    "liquidation_penalty",
    "liquidation_reserve_factor",
    "max_collateral_amount",
)


def calculate_collateral_metrics(
    collateral: RawMarketCollateral,
    coin_price: Decimal,
) -> CollateralMetrics | PoolDataUnavailable:
    missing = [
        f for f in REQUIRED_COLLATERAL_FIELDS if getattr(collateral, f) is None
    ]
    if missing:
        return PoolDataUnavailable(
            collateral.coin_name, "missing fields: " + ", ".join(missing)
        )

    name = collateral.coin_name
    factors = {
        f: from_fixed_point(getattr(collateral, f))
        for f in REQUIRED_COLLATERAL_FIELDS[:-1]
    }
    for field_name, value in factors.items():
        require(ZERO <= value <= ONE, f"{name}: {field_name} {value} outside [0, 1]")
    require(
        factors["collateral_factor"] <= factors["liquidation_factor"],
        f"{name}: collateral factor above liquidation factor",
    )

    # An absent stat means nothing has been deposited yet.
    deposit_amount = collateral.total_collateral_amount or ZERO
    cap = collateral.max_collateral_amount
    require(deposit_amount >= 0, f"{name}: negative collateral amount")
    require(cap >= 0, f"{name}: negative collateral cap")

    deposit_coin = to_coin(deposit_amount, collateral.decimals)
    return CollateralMetrics(
        coin_name=name,
        symbol=collateral.symbol or name.upper(),
        coin_type=collateral.coin_type,
        decimals=collateral.decimals,
        coin_price=coin_price,
        collateral_factor=factors["collateral_factor"],
        liquidation_factor=factors["liquidation_factor"],
        liquidation_discount=factors["liquidation_discount"],
        liquidation_penalty=factors["liquidation_penalty"],
        liquidation_reserve_factor=factors["liquidation_reserve_factor"],
        deposit_amount=deposit_amount,
        deposit_coin=deposit_coin,
        deposit_value=mul(deposit_coin, coin_price),
        deposit_cap=cap,
        available_deposit_headroom=clamp_non_negative(sub(cap, deposit_amount)),
    )

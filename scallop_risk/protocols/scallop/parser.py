"""Pure parsing functions for Scallop on-chain objects: no I/O.

Inputs are the ``data`` part of ``sui_getObject`` /
``suix_getDynamicFieldObject`` responses (or their ``content.fields``).
Integers stay integers and Q32.32 fractions stay undecoded; absent fields
become ``None`` so the calculators can tell "missing" from "zero".
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable

from ...decimal_math import to_decimal
from ...models import (
    IncentiveAccount,
    IncentiveAccountPoint,
    ObligationKey,
    RawBorrowIncentivePool,
    RawCollateralEntry,
    RawDebtEntry,
    RawIncentivePoolPoint,
    RawMarketCollateral,
    RawMarketPool,
    RawObligation,
    RawRewardPool,
    RawStakePool,
    RawVeSca,
    StakeAccount,
)

TYPE_NAME = "0x1::type_name::TypeName"
OBJECT_ID = "0x2::object::ID"

# coin type → coin name; unknown types resolve to None
CoinResolver = Callable[[str], str | None]


@dataclass(frozen=True)
class MarketTables:
    """Ids of the per-coin tables hanging off the market object."""

    balance_sheets: str
    borrow_dynamics: str
    interest_models: str
    risk_models: str
    collateral_stats: str


@dataclass(frozen=True)
class PoolExtras:
    """Per-pool settings stored as market dynamic fields."""

    supply_limit: Decimal | None = None
    borrow_limit: Decimal | None = None
    borrow_fee_rate: Decimal | None = None
    flashloan_fee_bps: Decimal | None = None
    is_isolated: bool = False


# ---------------------------------------------------------------------------
# Generic helpers
# ---------------------------------------------------------------------------


def strip_0x(coin_type: str) -> str:
    """Move ``TypeName`` values carry the coin type without the 0x prefix."""
    return coin_type[2:] if coin_type.startswith("0x") else coin_type


def with_0x(coin_type: str) -> str:
    return coin_type if coin_type.startswith("0x") else "0x" + coin_type


def object_fields(obj: dict[str, Any]) -> dict[str, Any]:
    return obj.get("content", {}).get("fields", {}) or {}


def dynamic_field_value(obj: dict[str, Any]) -> Any:
    """The raw ``value`` of a dynamic field object (scalar or struct)."""
    return object_fields(obj).get("value")


def dynamic_field_fields(obj: dict[str, Any]) -> dict[str, Any]:
    value = dynamic_field_value(obj)
    if isinstance(value, dict):
        return value.get("fields", {}) or {}
    return {}


def dynamic_field_type_name(obj: dict[str, Any]) -> str:
    """Coin type encoded in a ``TypeName`` dynamic field key, with 0x."""
    name = object_fields(obj).get("name", {})
    if isinstance(name, dict):
        return type_name(name)
    return ""


def type_name(value: Any) -> str:
    """Decode ``{"fields": {"name": ...}}`` or ``{"name": ...}`` to a coin type."""
    if isinstance(value, dict):
        inner = value.get("fields", value)
        name = inner.get("name", "")
        return with_0x(name) if name else ""
    return ""


def integer(fields: dict[str, Any], name: str) -> Decimal | None:
    raw = fields.get(name)
    if raw is None or isinstance(raw, dict):
        return None
    return to_decimal(raw)


def fixed_point(fields: dict[str, Any], name: str) -> Decimal | None:
    """Raw Q32.32 value of a ``FixedPoint32``-style field."""
    raw = fields.get(name)
    if isinstance(raw, dict):
        raw = raw.get("fields", {}).get("value")
    if raw is None:
        return None
    return to_decimal(raw)


def timestamp(fields: dict[str, Any], name: str) -> int | None:
    raw = fields.get(name)
    if raw is None:
        return None
    return int(raw)


def table_id(fields: dict[str, Any], *path: str) -> str:
    """Follow ``path`` through nested ``fields`` to a ``Table``'s object id."""
    node: Any = fields
    for key in path:
        node = node.get(key, {}).get("fields", {})
    table = node.get("table", {}).get("fields", {})
    return table.get("id", {}).get("id", "")


# ---------------------------------------------------------------------------
# Market
# ---------------------------------------------------------------------------


def parse_market_tables(market_fields: dict[str, Any]) -> MarketTables:
    return MarketTables(
        balance_sheets=table_id(market_fields, "vault", "balance_sheets"),
        borrow_dynamics=table_id(market_fields, "borrow_dynamics"),
        interest_models=table_id(market_fields, "interest_models"),
        risk_models=table_id(market_fields, "risk_models"),
        collateral_stats=table_id(market_fields, "collateral_stats"),
    )


def parse_market_pool(
    coin_name: str,
    coin_type: str,
    decimals: int,
    symbol: str,
    balance_sheet: dict[str, Any],
    borrow_dynamic: dict[str, Any],
    interest_model: dict[str, Any],
    extras: PoolExtras | None = None,
) -> RawMarketPool:
    extras = extras or PoolExtras()
    return RawMarketPool(
        coin_name=coin_name,
        coin_type=coin_type,
        decimals=decimals,
        symbol=symbol,
        cash=integer(balance_sheet, "cash"),
        debt=integer(balance_sheet, "debt"),
        reserve=integer(balance_sheet, "revenue"),
        market_coin_supply=integer(balance_sheet, "market_coin_supply"),
        borrow_index=integer(borrow_dynamic, "borrow_index"),
        last_updated=timestamp(borrow_dynamic, "last_updated"),
        interest_rate_scale=(
            integer(borrow_dynamic, "interest_rate_scale")
            or integer(interest_model, "interest_rate_scale")
        ),
        base_borrow_rate_per_sec=fixed_point(interest_model, "base_borrow_rate_per_sec"),
        borrow_rate_on_mid_kink=fixed_point(interest_model, "borrow_rate_on_mid_kink"),
        borrow_rate_on_high_kink=fixed_point(interest_model, "borrow_rate_on_high_kink"),
        max_borrow_rate=fixed_point(interest_model, "max_borrow_rate"),
        mid_kink=fixed_point(interest_model, "mid_kink"),
        high_kink=fixed_point(interest_model, "high_kink"),
        reserve_factor=fixed_point(interest_model, "revenue_factor"),
        borrow_weight=fixed_point(interest_model, "borrow_weight"),
        min_borrow_amount=integer(interest_model, "min_borrow_amount") or Decimal(0),
        borrow_fee_rate=extras.borrow_fee_rate or Decimal(0),
        flashloan_fee_bps=extras.flashloan_fee_bps or Decimal(0),
        supply_limit=extras.supply_limit,
        borrow_limit=extras.borrow_limit,
        is_isolated=extras.is_isolated,
    )


def parse_market_collateral(
    coin_name: str,
    coin_type: str,
    decimals: int,
    symbol: str,
    risk_model: dict[str, Any],
    collateral_stat: dict[str, Any],
) -> RawMarketCollateral:
    return RawMarketCollateral(
        coin_name=coin_name,
        coin_type=coin_type,
        decimals=decimals,
        symbol=symbol,
        collateral_factor=fixed_point(risk_model, "collateral_factor"),
        liquidation_factor=fixed_point(risk_model, "liquidation_factor"),
        liquidation_discount=fixed_point(risk_model, "liquidation_discount"),
        liquidation_penalty=fixed_point(risk_model, "liquidation_penalty"),
        liquidation_reserve_factor=fixed_point(risk_model, "liquidation_revenue_factor"),
        max_collateral_amount=integer(risk_model, "max_collateral_amount"),
        total_collateral_amount=integer(collateral_stat, "amount"),
    )


def parse_scalar(obj: dict[str, Any]) -> Decimal | None:
    """A dynamic field whose value is a bare integer or a fixed-point struct."""
    value = dynamic_field_value(obj)
    if value is None:
        return None
    if isinstance(value, dict):
        value = value.get("fields", {}).get("value")
        if value is None:
            return None
    return to_decimal(value)


# ---------------------------------------------------------------------------
# Obligations
# ---------------------------------------------------------------------------


def parse_obligation_key(obj: dict[str, Any]) -> ObligationKey | None:
    data = obj.get("data", obj)
    fields = object_fields(data)
    obligation_id = fields.get("ownership", {}).get("fields", {}).get("of")
    key_id = data.get("objectId", "")
    if not obligation_id or not key_id:
        return None
    return ObligationKey(obligation_id=obligation_id, key_id=key_id)


def obligation_table_ids(obligation_fields: dict[str, Any]) -> tuple[str, str]:
    """(collateral table id, debt table id) of an obligation object."""
    return (
        table_id(obligation_fields, "collaterals"),
        table_id(obligation_fields, "debts"),
    )


def parse_obligation(
    obligation_id: str,
    obligation_fields: dict[str, Any],
    collateral_objects: list[dict[str, Any]],
    debt_objects: list[dict[str, Any]],
    resolve: CoinResolver,
) -> RawObligation:
    """Build a raw obligation from its table entries.

    Coin types the resolver does not know keep their full type as name, so
    they surface later as present-but-unvalued.
    """
    collaterals = []
    for obj in collateral_objects:
        coin_type = dynamic_field_type_name(obj)
        amount = integer(dynamic_field_fields(obj), "amount")
        if not coin_type or amount is None:
            continue
        collaterals.append(
            RawCollateralEntry(
                coin_name=resolve(coin_type) or coin_type,
                coin_type=coin_type,
                amount=amount,
            )
        )

    debts = []
    for obj in debt_objects:
        coin_type = dynamic_field_type_name(obj)
        value = dynamic_field_fields(obj)
        amount = integer(value, "amount")
        borrow_index = integer(value, "borrow_index")
        if not coin_type or amount is None or borrow_index is None:
            continue
        debts.append(
            RawDebtEntry(
                coin_name=resolve(coin_type) or coin_type,
                coin_type=coin_type,
                amount=amount,
                borrow_index=borrow_index,
            )
        )

    return RawObligation(
        obligation_id=obligation_id,
        collaterals=tuple(collaterals),
        debts=tuple(debts),
        locked=obligation_fields.get("lock_key") is not None,
    )


# ---------------------------------------------------------------------------
# Spool
# ---------------------------------------------------------------------------


def parse_stake_account(obj: dict[str, Any], market_coin_name: str) -> StakeAccount | None:
    data = obj.get("data", obj)
    fields = object_fields(data)
    staked = integer(fields, "stakes")
    if staked is None:
        return None
    return StakeAccount(
        id=data.get("objectId", ""),
        market_coin_name=market_coin_name,
        spool_id=fields.get("spool_id", ""),
        staked=staked,
        index=integer(fields, "index") or Decimal(0),
        points=integer(fields, "points") or Decimal(0),
    )


def parse_stake_pool(obj: dict[str, Any], market_coin_name: str) -> RawStakePool | None:
    fields = object_fields(obj)
    if not fields:
        return None
    return RawStakePool(
        id=obj.get("objectId", ""),
        market_coin_name=market_coin_name,
        index=to_decimal(fields.get("index", 0)),
        total_staked=to_decimal(fields.get("stakes", 0)),
        max_stake=to_decimal(fields.get("max_stakes", 0)),
        distributed_point=to_decimal(fields.get("distributed_point", 0)),
        max_point=to_decimal(fields.get("max_distributed_point", 0)),
        point_per_period=to_decimal(fields.get("distributed_point_per_period", 0)),
        period=to_decimal(fields.get("point_distribution_time", 0)),
        last_update=int(fields.get("last_update", 0)),
        created_at=int(fields.get("created_at", 0)),
    )


def parse_reward_pool(obj: dict[str, Any], reward_coin_name: str) -> RawRewardPool | None:
    fields = object_fields(obj)
    if not fields:
        return None
    return RawRewardPool(
        id=obj.get("objectId", ""),
        stake_pool_id=fields.get("spool_id", ""),
        reward_coin_name=reward_coin_name,
        exchange_rate_numerator=to_decimal(fields.get("exchange_rate_numerator", 1)),
        exchange_rate_denominator=to_decimal(fields.get("exchange_rate_denominator", 1)),
        rewards=to_decimal(fields.get("rewards", 0)),
        claimed_rewards=to_decimal(fields.get("claimed_rewards", 0)),
    )


# ---------------------------------------------------------------------------
# Borrow incentive
# ---------------------------------------------------------------------------


def _vec_map_entries(value: Any) -> list[tuple[Any, dict[str, Any]]]:
    """Entries of a Move ``VecMap`` as (key, value fields) pairs."""
    contents = value.get("fields", {}).get("contents", []) if isinstance(value, dict) else []
    entries = []
    for item in contents:
        item_fields = item.get("fields", {})
        entries.append((item_fields.get("key"), item_fields.get("value", {}).get("fields", {})))
    return entries


def parse_borrow_incentive_pool(
    coin_name: str, pool_fields: dict[str, Any], resolve: CoinResolver
) -> RawBorrowIncentivePool:
    points = []
    for key, point in _vec_map_entries(pool_fields.get("points")):
        reward_type = type_name(key) or type_name(point.get("point_type"))
        reward_coin = resolve(reward_type) if reward_type else None
        if reward_coin is None:
            continue
        points.append(
            RawIncentivePoolPoint(
                reward_coin_name=reward_coin,
                point_per_period=to_decimal(point.get("distributed_point_per_period", 0)),
                period=to_decimal(point.get("point_distribution_time", 0)),
                distributed_point=to_decimal(point.get("distributed_point", 0)),
                max_point=to_decimal(point.get("points", 0)),
                index=to_decimal(point.get("index", 0)),
                base_weight=to_decimal(point.get("base_weight", 0)),
                weighted_amount=to_decimal(point.get("weighted_amount", 0)),
                last_update=int(point.get("last_update", 0)),
                exchange_rate_numerator=to_decimal(point.get("exchange_rate_numerator", 1)),
                exchange_rate_denominator=to_decimal(
                    point.get("exchange_rate_denominator", 1)
                ),
            )
        )
    return RawBorrowIncentivePool(
        coin_name=coin_name,
        points=tuple(points),
        staked=to_decimal(pool_fields.get("stakes", 0)),
        min_stakes=to_decimal(pool_fields.get("min_stakes", 0)),
        max_stakes=to_decimal(pool_fields.get("max_stakes", 0)),
        created_at=int(pool_fields.get("created_at", 0)),
    )


def parse_incentive_accounts(
    account_fields: dict[str, Any], resolve: CoinResolver
) -> list[IncentiveAccount]:
    accounts = []
    for record in account_fields.get("pool_records", []):
        record_fields = record.get("fields", {})
        coin_name = resolve(type_name(record_fields.get("pool_type")))
        if coin_name is None:
            continue
        points = []
        for item in record_fields.get("points_list", []):
            item_fields = item.get("fields", {})
            reward_coin = resolve(type_name(item_fields.get("point_type")))
            if reward_coin is None:
                continue
            points.append(
                IncentiveAccountPoint(
                    reward_coin_name=reward_coin,
                    index=to_decimal(item_fields.get("index", 0)),
                    points=to_decimal(item_fields.get("points", 0)),
                    weighted_amount=to_decimal(item_fields.get("weighted_amount", 0)),
                )
            )
        accounts.append(
            IncentiveAccount(
                coin_name=coin_name,
                debt_amount=to_decimal(record_fields.get("amount", 0)),
                points=tuple(points),
            )
        )
    return accounts


# ---------------------------------------------------------------------------
# veSCA
# ---------------------------------------------------------------------------


def parse_vesca(key_id: str, obj: dict[str, Any]) -> RawVeSca | None:
    value = dynamic_field_fields(obj)
    locked = integer(value, "locked_sca_amount")
    unlock_at = timestamp(value, "unlock_at")
    if locked is None or unlock_at is None:
        return None
    return RawVeSca(
        key_id=key_id,
        object_id=obj.get("objectId", ""),
        locked_amount=locked,
        unlock_at=unlock_at,
    )

"""Obligation account builder.

Combines one raw obligation with pool and collateral metrics into the
consolidated risk view used for reporting and for sizing follow-up
transactions. Available-action estimates are scaled down (or up, for
repay) by a :class:`SafetyMarginPolicy` so that prices and indices moving
between estimation and execution do not make the transaction fail.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from ..decimal_math import (
    ONE,
    ZERO,
    add,
    ceil,
    clamp_non_negative,
    div,
    dmin,
    floor,
    mul,
    sub,
    to_amount,
    to_coin,
)
from ..errors import require
from ..models import (
    AvailableAction,
    CollateralMetrics,
    ObligationAccount,
    ObligationCollateral,
    ObligationDebt,
    PoolMetrics,
    RawObligation,
)

# (minimum action value in USD, haircut)
DEFAULT_SAFETY_TIERS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal(0), Decimal("0.001")),
    (Decimal(1_000), Decimal("0.002")),
    (Decimal(100_000), Decimal("0.003")),
)

NO_ACTION = AvailableAction(estimated_amount=ZERO, max_amount=ZERO)


class SafetyMarginPolicy:
    """Tiered haircut keyed on the USD value of the action being sized.

    Larger actions take a larger haircut. Amounts that reduce the account's
    headroom (borrow, withdraw) are scaled by ``1 - haircut``; repay is
    scaled by ``1 + haircut`` so that a full repay still covers interest
    accrued before execution.
    """

    def __init__(self, tiers: Sequence[tuple[Decimal, Decimal]] = DEFAULT_SAFETY_TIERS):
        if not tiers:
            raise ValueError("Safety margin needs at least one tier")
        previous = None
        for threshold, haircut in tiers:
            if previous is not None and threshold <= previous:
                raise ValueError("Safety margin tiers must be strictly ascending")
            if not ZERO <= haircut < ONE:
                raise ValueError(f"Safety margin haircut {haircut} outside [0, 1)")
            previous = threshold
        self.tiers = tuple((Decimal(t), Decimal(h)) for t, h in tiers)

    def haircut(self, value_usd: Decimal) -> Decimal:
        selected = self.tiers[0][1]
        for threshold, haircut in self.tiers:
            if value_usd >= threshold:
                selected = haircut
        return selected

    def decrease(self, amount: Decimal, value_usd: Decimal) -> Decimal:
        return mul(amount, sub(ONE, self.haircut(value_usd)))

    def increase(self, amount: Decimal, value_usd: Decimal) -> Decimal:
        return mul(amount, add(ONE, self.haircut(value_usd)))


def accrue_debt(amount: Decimal, snapshot_index: Decimal, current_index: Decimal) -> Decimal:
    """Apply the pool's borrow-index growth since the debt was last touched."""
    require(snapshot_index > 0, f"non-positive borrow index snapshot {snapshot_index}")
    return div(mul(amount, current_index), snapshot_index)


def estimate_borrow(
    available_collateral_value: Decimal,
    pool: PoolMetrics,
    policy: SafetyMarginPolicy,
) -> AvailableAction:
    """How much more of ``pool``'s coin the account could borrow."""
    if available_collateral_value <= 0 or pool.coin_price <= 0:
        return NO_ACTION
    theoretical_coin = div(
        available_collateral_value, mul(pool.coin_price, pool.borrow_weight)
    )
    theoretical = to_amount(theoretical_coin, pool.decimals)
    caps = [pool.available_borrow_liquidity]
    if pool.borrow_headroom is not None:
        caps.append(pool.borrow_headroom)

    maximum = dmin(theoretical, *caps)
    estimated = dmin(
        floor(policy.decrease(theoretical, mul(theoretical_coin, pool.coin_price))),
        *caps,
    )
    if estimated < pool.min_borrow_amount:
        estimated = ZERO
    return AvailableAction(estimated_amount=estimated, max_amount=maximum)


def estimate_withdraw(
    available_collateral_value: Decimal,
    has_debt: bool,
    deposited_amount: Decimal,
    collateral: CollateralMetrics,
    policy: SafetyMarginPolicy,
) -> AvailableAction:
    """How much of one collateral could leave without breaching capacity."""
    caps = (deposited_amount, collateral.deposit_amount)
    if not has_debt:
        everything = dmin(*caps)
        return AvailableAction(estimated_amount=everything, max_amount=everything)
    if collateral.collateral_factor == 0:
        # Contributes no borrow capacity, so withdrawing it frees nothing.
        theoretical = deposited_amount
    else:
        theoretical_coin = div(
            div(available_collateral_value, collateral.collateral_factor),
            collateral.coin_price,
        )
        theoretical = to_amount(theoretical_coin, collateral.decimals)

    value_usd = mul(to_coin(theoretical, collateral.decimals), collateral.coin_price)
    return AvailableAction(
        estimated_amount=dmin(floor(policy.decrease(theoretical, value_usd)), *caps),
        max_amount=dmin(theoretical, *caps),
    )


def _is_valued(metrics: PoolMetrics | CollateralMetrics | None) -> bool:
    return metrics is not None and metrics.coin_price > 0


def build_obligation_account(
    obligation: RawObligation,
    pools: Mapping[str, PoolMetrics],
    collaterals: Mapping[str, CollateralMetrics],
    coin_balances: Mapping[str, Decimal] | None = None,
    policy: SafetyMarginPolicy | None = None,
) -> ObligationAccount:
    """Consolidate ``obligation`` into an :class:`ObligationAccount`.

    Coins with no metrics or no positive price are listed in
    ``unvalued_coins`` and left out of every aggregate.
    While an outstanding debt is unvalued no withdraw or borrow is offered.
    """
    policy = policy or SafetyMarginPolicy()
    coin_balances = coin_balances or {}
    unvalued: list[str] = []

    total_deposited = ZERO
    total_capacity = ZERO
    total_required = ZERO
    deposited_pools = 0
    valued_collaterals = []
    for entry in obligation.collaterals:
        require(entry.amount >= 0, f"{entry.coin_name}: negative collateral amount")
        metrics = collaterals.get(entry.coin_name)
        if not _is_valued(metrics):
            unvalued.append(entry.coin_name)
            continue
        deposited_coin = to_coin(entry.amount, metrics.decimals)
        deposited_value = mul(deposited_coin, metrics.coin_price)
        capacity = mul(deposited_value, metrics.collateral_factor)
        required = mul(deposited_value, metrics.liquidation_factor)
        total_deposited = add(total_deposited, deposited_value)
        total_capacity = add(total_capacity, capacity)
        total_required = add(total_required, required)
        if entry.amount > 0:
            deposited_pools += 1
        valued_collaterals.append(
            (entry, metrics, deposited_coin, deposited_value, capacity, required)
        )

    total_borrowed = ZERO
    total_weighted = ZERO
    borrowed_pools = 0
    valued_debts = []
    debt_unvalued = False
    for entry in obligation.debts:
        require(entry.amount >= 0, f"{entry.coin_name}: negative debt amount")
        pool = pools.get(entry.coin_name)
        if not _is_valued(pool):
            unvalued.append(entry.coin_name)
            debt_unvalued = debt_unvalued or entry.amount > 0
            continue
        require(
            pool.borrow_index >= entry.borrow_index,
            f"{entry.coin_name}: pool borrow index below debt snapshot",
        )
        accrued = accrue_debt(entry.amount, entry.borrow_index, pool.borrow_index)
        accrued_coin = to_coin(accrued, pool.decimals)
        borrowed_value = mul(accrued_coin, pool.coin_price)
        weighted_value = mul(borrowed_value, pool.borrow_weight)
        total_borrowed = add(total_borrowed, borrowed_value)
        total_weighted = add(total_weighted, weighted_value)
        if entry.amount > 0:
            borrowed_pools += 1
        valued_debts.append((entry, pool, accrued, accrued_coin, borrowed_value, weighted_value))

    if total_required == 0:
        risk_level = ONE if total_weighted > 0 else ZERO
    else:
        risk_level = dmin(ONE, div(total_weighted, total_required))
    has_debt = total_weighted > 0
    reported_required = total_required if has_debt else ZERO
    available_collateral = clamp_non_negative(sub(total_capacity, total_weighted))

    collateral_views = {}
    for entry, metrics, deposited_coin, deposited_value, capacity, required in valued_collaterals:
        wallet_amount = coin_balances.get(entry.coin_name, ZERO)
        available_deposit = dmin(wallet_amount, metrics.available_deposit_headroom)
        collateral_views[entry.coin_name] = ObligationCollateral(
            coin_name=entry.coin_name,
            symbol=metrics.symbol,
            coin_type=entry.coin_type,
            decimals=metrics.decimals,
            coin_price=metrics.coin_price,
            deposited_amount=entry.amount,
            deposited_coin=deposited_coin,
            deposited_value=deposited_value,
            borrow_capacity_value=capacity,
            required_collateral_value=required,
            available_deposit_amount=available_deposit,
            available_deposit_coin=to_coin(available_deposit, metrics.decimals),
            available_withdraw=(
                NO_ACTION
                if debt_unvalued
                else estimate_withdraw(
                    available_collateral, has_debt, entry.amount, metrics, policy
                )
            ),
        )

    debt_views = {}
    for entry, pool, accrued, accrued_coin, borrowed_value, weighted_value in valued_debts:
        debt_views[entry.coin_name] = ObligationDebt(
            coin_name=entry.coin_name,
            symbol=pool.symbol,
            coin_type=entry.coin_type,
            decimals=pool.decimals,
            coin_price=pool.coin_price,
            borrowed_amount=entry.amount,
            borrowed_coin=to_coin(entry.amount, pool.decimals),
            borrowed_value=borrowed_value,
            borrowed_value_with_weight=weighted_value,
            borrow_index=entry.borrow_index,
            required_repay_amount=accrued,
            required_repay_coin=accrued_coin,
            available_repay_amount=ceil(policy.increase(accrued, borrowed_value)),
            available_borrow=(
                NO_ACTION
                if debt_unvalued
                else estimate_borrow(available_collateral, pool, policy)
            ),
        )

    return ObligationAccount(
        obligation_id=obligation.obligation_id,
        total_deposited_value=total_deposited,
        total_borrowed_value=total_borrowed,
        total_balance_value=clamp_non_negative(sub(total_deposited, total_borrowed)),
        total_borrow_capacity_value=total_capacity,
        total_available_collateral_value=available_collateral,
        total_borrowed_value_with_weight=total_weighted,
        total_required_collateral_value=reported_required,
        total_unhealthy_collateral_value=clamp_non_negative(
            sub(total_weighted, reported_required)
        ),
        total_risk_level=risk_level,
        total_deposited_pools=deposited_pools,
        total_borrowed_pools=borrowed_pools,
        collaterals=collateral_views,
        debts=debt_views,
        unvalued_coins=_unique(unvalued),
        locked=obligation.locked,
    )


def _unique(names: Iterable[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(names))

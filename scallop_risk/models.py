"""Data models: all frozen (immutable).

Raw records mirror what the ledger stores, with integers kept as Decimal and
Q32.32 fixed-point fractions left undecoded. Derived records are rebuilt by
the calculators on every query and never persisted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

ZERO = Decimal(0)


# ---------------------------------------------------------------------------
# Raw ledger records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawMarketPool:
    """Balance sheet, borrow dynamics and interest model of one pool.

    ``None`` marks a field the fetcher could not resolve.
    """

    coin_name: str
    coin_type: str
    decimals: int
    symbol: str = ""
    cash: Decimal | None = None
    debt: Decimal | None = None
    reserve: Decimal | None = None
    market_coin_supply: Decimal | None = None
    borrow_index: Decimal | None = None
    last_updated: int | None = None
    interest_rate_scale: Decimal | None = None
    # Q32.32 fixed point
    base_borrow_rate_per_sec: Decimal | None = None
    borrow_rate_on_mid_kink: Decimal | None = None
    borrow_rate_on_high_kink: Decimal | None = None
    max_borrow_rate: Decimal | None = None
    mid_kink: Decimal | None = None
    high_kink: Decimal | None = None
    reserve_factor: Decimal | None = None
    borrow_weight: Decimal | None = None
    borrow_fee_rate: Decimal = ZERO
    # plain integers
    min_borrow_amount: Decimal = ZERO
    flashloan_fee_bps: Decimal = ZERO
    supply_limit: Decimal | None = None
    borrow_limit: Decimal | None = None
    is_isolated: bool = False


@dataclass(frozen=True)
class RawMarketCollateral:
    """Risk model and aggregate deposit stat of one collateral coin."""

    coin_name: str
    coin_type: str
    decimals: int
    symbol: str = ""
    # Q32.32 fixed point
    collateral_factor: Decimal | None = None
    liquidation_factor: Decimal | None = None
    liquidation_discount: Decimal | None = None
    liquidation_penalty: Decimal | None = None
    liquidation_reserve_factor: Decimal | None = None
    max_collateral_amount: Decimal | None = None
    total_collateral_amount: Decimal | None = None


@dataclass(frozen=True)
class RawCollateralEntry:
    coin_name: str
    coin_type: str
    amount: Decimal


@dataclass(frozen=True)
class RawDebtEntry:
    coin_name: str
    coin_type: str
    amount: Decimal
    borrow_index: Decimal


@dataclass(frozen=True)
class RawObligation:
    """One borrower position as stored on the ledger."""

    obligation_id: str
    collaterals: tuple[RawCollateralEntry, ...] = ()
    debts: tuple[RawDebtEntry, ...] = ()
    locked: bool = False


@dataclass(frozen=True)
class ObligationKey:
    obligation_id: str
    key_id: str


@dataclass(frozen=True)
class StakeAccount:
    """A spool account: staked market coins plus its reward checkpoint."""

    id: str
    market_coin_name: str
    spool_id: str
    staked: Decimal
    index: Decimal
    points: Decimal


@dataclass(frozen=True)
class RawStakePool:
    id: str
    market_coin_name: str
    index: Decimal
    total_staked: Decimal
    max_stake: Decimal
    distributed_point: Decimal
    max_point: Decimal
    point_per_period: Decimal
    period: Decimal
    last_update: int
    created_at: int


@dataclass(frozen=True)
class RawRewardPool:
    id: str
    stake_pool_id: str
    reward_coin_name: str
    exchange_rate_numerator: Decimal
    exchange_rate_denominator: Decimal
    rewards: Decimal = ZERO
    claimed_rewards: Decimal = ZERO


@dataclass(frozen=True)
class RawIncentivePoolPoint:
    """Distribution state of one reward coin inside a borrow-incentive pool."""

    reward_coin_name: str
    point_per_period: Decimal
    period: Decimal
    distributed_point: Decimal
    max_point: Decimal
    index: Decimal
    base_weight: Decimal
    weighted_amount: Decimal
    last_update: int
    exchange_rate_numerator: Decimal = Decimal(1)
    exchange_rate_denominator: Decimal = Decimal(1)


@dataclass(frozen=True)
class RawBorrowIncentivePool:
    coin_name: str
    points: tuple[RawIncentivePoolPoint, ...]
    staked: Decimal
    min_stakes: Decimal = ZERO
    max_stakes: Decimal = ZERO
    created_at: int = 0


@dataclass(frozen=True)
class IncentiveAccountPoint:
    reward_coin_name: str
    index: Decimal
    points: Decimal
    weighted_amount: Decimal


@dataclass(frozen=True)
class IncentiveAccount:
    """Borrow-incentive checkpoint of one obligation for one debt pool."""

    coin_name: str
    debt_amount: Decimal
    points: tuple[IncentiveAccountPoint, ...] = ()


@dataclass(frozen=True)
class RawVeSca:
    key_id: str
    object_id: str
    locked_amount: Decimal
    unlock_at: int


# ---------------------------------------------------------------------------
# Derived metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PoolMetrics:
    """Valuation of one lending pool."""

    coin_name: str
    symbol: str
    coin_type: str
    decimals: int
    coin_price: Decimal
    utilization: Decimal
    borrow_apr: Decimal
    borrow_apy: Decimal
    supply_apr: Decimal
    supply_apy: Decimal
    base_borrow_apr: Decimal
    borrow_apr_on_mid_kink: Decimal
    borrow_apr_on_high_kink: Decimal
    max_borrow_apr: Decimal
    conversion_rate: Decimal
    borrow_fee: Decimal
    flashloan_fee: Decimal
    borrow_index: Decimal
    growth_interest: Decimal
    supply_amount: Decimal
    supply_coin: Decimal
    supply_value: Decimal
    borrow_amount: Decimal
    borrow_coin: Decimal
    borrow_value: Decimal
    reserve_amount: Decimal
    cash_amount: Decimal
    market_coin_supply: Decimal
    min_borrow_amount: Decimal
    borrow_weight: Decimal
    reserve_factor: Decimal
    mid_kink: Decimal
    high_kink: Decimal
    available_borrow_liquidity: Decimal
    supply_limit: Decimal | None = None
    supply_headroom: Decimal | None = None
    borrow_limit: Decimal | None = None
    borrow_headroom: Decimal | None = None
    is_isolated: bool = False
    last_updated: int = 0

    @property
    def market_coin_price(self) -> Decimal:
        return self.coin_price * self.conversion_rate


@dataclass(frozen=True)
class CollateralMetrics:
    """Risk parameters and deposit headroom of one collateral coin."""

    coin_name: str
    symbol: str
    coin_type: str
    decimals: int
    coin_price: Decimal
    collateral_factor: Decimal
    liquidation_factor: Decimal
    liquidation_discount: Decimal
    liquidation_penalty: Decimal
    liquidation_reserve_factor: Decimal
    deposit_amount: Decimal
    deposit_coin: Decimal
    deposit_value: Decimal
    deposit_cap: Decimal
    available_deposit_headroom: Decimal


@dataclass(frozen=True)
class Market:
    pools: dict[str, PoolMetrics] = field(default_factory=dict)
    collaterals: dict[str, CollateralMetrics] = field(default_factory=dict)
    unavailable: tuple[str, ...] = ()


@dataclass(frozen=True)
class TotalValueLocked:
    supply_lending_value: Decimal
    supply_collateral_value: Decimal
    supply_value: Decimal
    borrow_value: Decimal
    total_value: Decimal


@dataclass(frozen=True)
class AvailableAction:
    """A safety-adjusted amount next to the unadjusted ceiling it came from."""

    estimated_amount: Decimal
    max_amount: Decimal


@dataclass(frozen=True)
class ObligationCollateral:
    coin_name: str
    symbol: str
    coin_type: str
    decimals: int
    coin_price: Decimal
    deposited_amount: Decimal
    deposited_coin: Decimal
    deposited_value: Decimal
    borrow_capacity_value: Decimal
    required_collateral_value: Decimal
    available_deposit_amount: Decimal
    available_deposit_coin: Decimal
    available_withdraw: AvailableAction


@dataclass(frozen=True)
class ObligationDebt:
    coin_name: str
    symbol: str
    coin_type: str
    decimals: int
    coin_price: Decimal
    borrowed_amount: Decimal
    borrowed_coin: Decimal
    borrowed_value: Decimal
    borrowed_value_with_weight: Decimal
    borrow_index: Decimal
    required_repay_amount: Decimal
    required_repay_coin: Decimal
    available_repay_amount: Decimal
    available_borrow: AvailableAction


@dataclass(frozen=True)
class ObligationAccount:
    """Consolidated risk view of one obligation."""

    obligation_id: str
    total_deposited_value: Decimal
    total_borrowed_value: Decimal
    total_balance_value: Decimal
    total_borrow_capacity_value: Decimal
    total_available_collateral_value: Decimal
    total_borrowed_value_with_weight: Decimal
    total_required_collateral_value: Decimal
    total_unhealthy_collateral_value: Decimal
    total_risk_level: Decimal
    total_deposited_pools: int
    total_borrowed_pools: int
    collaterals: dict[str, ObligationCollateral] = field(default_factory=dict)
    debts: dict[str, ObligationDebt] = field(default_factory=dict)
    unvalued_coins: tuple[str, ...] = ()
    locked: bool = False


@dataclass(frozen=True)
class StakePoolMetrics:
    """A spool (staking pool for market coins) and its reward pool."""

    id: str
    market_coin_name: str
    coin_name: str
    reward_coin_name: str
    market_coin_price: Decimal
    reward_coin_price: Decimal
    index: Decimal
    current_point_index: Decimal
    accumulated_points: Decimal
    current_total_distributed_point: Decimal
    distributed_point_per_sec: Decimal
    total_staked: Decimal
    total_staked_value: Decimal
    max_stake: Decimal
    max_point: Decimal
    start_time: int
    end_time: int
    exchange_rate_numerator: Decimal
    exchange_rate_denominator: Decimal
    reward_per_sec: Decimal
    total_reward_value_per_year: Decimal
    stake_apr: Decimal


@dataclass(frozen=True)
class IncentivePointMetrics:
    reward_coin_name: str
    reward_coin_price: Decimal
    reward_coin_decimals: int
    base_weight: Decimal
    weighted_amount: Decimal
    current_point_index: Decimal
    accumulated_points: Decimal
    distributed_point_per_sec: Decimal
    reward_per_sec: Decimal
    reward_apr: Decimal
    exchange_rate_numerator: Decimal
    exchange_rate_denominator: Decimal


@dataclass(frozen=True)
class BorrowIncentivePoolMetrics:
    coin_name: str
    coin_price: Decimal
    decimals: int
    staked_amount: Decimal
    staked_coin: Decimal
    staked_value: Decimal
    points: dict[str, IncentivePointMetrics] = field(default_factory=dict)


@dataclass(frozen=True)
class IncentiveReward:
    reward_coin_name: str
    amount: Decimal
    boost_value: Decimal


@dataclass(frozen=True)
class VeScaMetrics:
    key_id: str
    object_id: str
    locked_amount: Decimal
    locked_coin: Decimal
    current_balance: Decimal
    unlock_at: int
    remaining_seconds: int


@dataclass(frozen=True)
class PendingReward:
    coin_name: str
    symbol: str
    amount: Decimal
    coin: Decimal
    value: Decimal


@dataclass(frozen=True)
class Lending:
    """What one wallet has supplied to one pool, staked or not."""

    coin_name: str
    symbol: str
    coin_type: str
    decimals: int
    coin_price: Decimal
    conversion_rate: Decimal
    supply_apr: Decimal
    supply_apy: Decimal
    reward_apr: Decimal
    supplied_amount: Decimal
    supplied_coin: Decimal
    supplied_value: Decimal
    staked_market_amount: Decimal
    staked_amount: Decimal
    staked_coin: Decimal
    staked_value: Decimal
    unstaked_market_amount: Decimal
    unstaked_amount: Decimal
    unstaked_coin: Decimal
    unstaked_value: Decimal
    available_supply_amount: Decimal
    available_withdraw_amount: Decimal
    available_stake_amount: Decimal
    available_unstake_amount: Decimal
    available_claim_amount: Decimal
    reward_coin_name: str = ""


@dataclass(frozen=True)
class Borrowing:
    obligation_id: str
    account: ObligationAccount
    incentive_rewards: tuple[PendingReward, ...] = ()

    @property
    def locked(self) -> bool:
        return self.account.locked


@dataclass(frozen=True)
class Portfolio:
    owner: str
    lendings: dict[str, Lending] = field(default_factory=dict)
    borrowings: tuple[Borrowing, ...] = ()
    pending_staking_rewards: dict[str, PendingReward] = field(default_factory=dict)
    pending_borrow_incentive_rewards: dict[str, PendingReward] = field(
        default_factory=dict
    )
    vescas: tuple[VeScaMetrics, ...] = ()
    total_supply_value: Decimal = ZERO
    total_collateral_value: Decimal = ZERO
    total_debt_value: Decimal = ZERO
    total_locked_value: Decimal = ZERO
    total_pending_reward_value: Decimal = ZERO
    net_value: Decimal = ZERO
    omitted_coins: tuple[str, ...] = ()

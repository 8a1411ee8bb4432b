"""Index-based reward accounting shared by spools and borrow incentives.

A pool keeps a global index that grows by ``index_scale * points /
total_weight`` each time points are distributed. An account stores the
index it last saw, so its claimable points are its weight times the index
delta plus whatever it had already accumulated.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping

from ..decimal_math import (
    ONE,
    SECONDS_PER_YEAR,
    ZERO,
    add,
    clamp_non_negative,
    div,
    dmin,
    floor,
    mul,
    sub,
    to_coin,
)
from ..errors import require
from ..models import (
    BorrowIncentivePoolMetrics,
    IncentiveAccount,
    IncentivePointMetrics,
    IncentiveReward,
    RawBorrowIncentivePool,
    RawRewardPool,
    RawStakePool,
    StakeAccount,
    StakePoolMetrics,
)

INDEX_SCALE = Decimal(1_000_000_000)
WEIGHT_SCALE = Decimal(1_000_000_000_000)


def accrue_claimable(
    weighted_amount: Decimal,
    index_snapshot: Decimal,
    accumulated_points: Decimal,
    pool_index: Decimal,
    index_scale: Decimal = INDEX_SCALE,
) -> Decimal:
    """Points claimable by an account checkpointed at ``index_snapshot``."""
    delta = clamp_non_negative(sub(pool_index, index_snapshot))
    return add(div(mul(weighted_amount, delta), index_scale), accumulated_points)


def boost_value(
    weighted_amount: Decimal,
    debt_amount: Decimal,
    base_weight: Decimal,
    weight_scale: Decimal = WEIGHT_SCALE,
) -> Decimal:
    """Ratio of an account's weighted stake to its unboosted weight.

    1 when the account has no debt to weigh against.
    """
    unboosted = div(mul(debt_amount, base_weight), weight_scale)
    return div(weighted_amount, unboosted, default=ONE)


@dataclass(frozen=True)
class IndexProjection:
    accumulated_points: Decimal
    current_index: Decimal
    current_distributed_point: Decimal
    distributed_point_per_sec: Decimal
    end_time: int


def project_pool_index(
    index: Decimal,
    total_weight: Decimal,
    distributed_point: Decimal,
    max_point: Decimal,
    point_per_period: Decimal,
    period: Decimal,
    last_update: int,
    now: int | None = None,
    index_scale: Decimal = INDEX_SCALE,
) -> IndexProjection:
    """Replay whole distribution periods elapsed between ``last_update`` and ``now``.

    Without ``now`` the stored index is returned unchanged.
    """
    require(period > 0, f"non-positive distribution period {period}")
    point_per_sec = div(point_per_period, period)
    remaining = clamp_non_negative(sub(max_point, distributed_point))

    accumulated = ZERO
    if now is not None and now > last_update:
        periods = floor(div(now - last_update, period))
        accumulated = dmin(mul(periods, point_per_period), remaining)

    current_index = index
    if total_weight > 0:
        current_index = add(index, div(mul(index_scale, accumulated), total_weight))

    end_time = last_update
    if point_per_sec > 0:
        end_time = last_update + int(floor(div(remaining, point_per_sec)))

    return IndexProjection(
        accumulated_points=accumulated,
        current_index=current_index,
        current_distributed_point=add(distributed_point, accumulated),
        distributed_point_per_sec=point_per_sec,
        end_time=end_time,
    )


def _reward_apr(
    point_per_sec: Decimal,
    numerator: Decimal,
    denominator: Decimal,
    reward_price: Decimal,
    reward_decimals: int,
    staked_value: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    reward_per_sec = div(mul(point_per_sec, numerator), denominator)
    yearly_value = mul(
        mul(to_coin(reward_per_sec, reward_decimals), SECONDS_PER_YEAR), reward_price
    )
    return reward_per_sec, yearly_value, div(yearly_value, staked_value, default=ZERO)


def calculate_stake_pool_metrics(
    stake_pool: RawStakePool,
    reward_pool: RawRewardPool,
    coin_name: str,
    market_coin_price: Decimal,
    market_coin_decimals: int,
    reward_coin_price: Decimal,
    reward_coin_decimals: int,
    now: int | None = None,
) -> StakePoolMetrics:
    """Value a spool and its reward pool.

    ``market_coin_price`` is the price of one claim share, i.e. the
    underlying coin price times the pool's conversion rate.
    """
    projection = project_pool_index(
        index=stake_pool.index,
        total_weight=stake_pool.total_staked,
        distributed_point=stake_pool.distributed_point,
        max_point=stake_pool.max_point,
        point_per_period=stake_pool.point_per_period,
        period=stake_pool.period,
        last_update=stake_pool.last_update,
        now=now,
    )
    total_staked_value = mul(
        to_coin(stake_pool.total_staked, market_coin_decimals), market_coin_price
    )
    reward_per_sec, yearly_value, apr = _reward_apr(
        projection.distributed_point_per_sec,
        reward_pool.exchange_rate_numerator,
        reward_pool.exchange_rate_denominator,
        reward_coin_price,
        reward_coin_decimals,
        total_staked_value,
    )
    return StakePoolMetrics(
        id=stake_pool.id,
        market_coin_name=stake_pool.market_coin_name,
        coin_name=coin_name,
        reward_coin_name=reward_pool.reward_coin_name,
        market_coin_price=market_coin_price,
        reward_coin_price=reward_coin_price,
        index=stake_pool.index,
        current_point_index=projection.current_index,
        accumulated_points=projection.accumulated_points,
        current_total_distributed_point=projection.current_distributed_point,
        distributed_point_per_sec=projection.distributed_point_per_sec,
        total_staked=stake_pool.total_staked,
        total_staked_value=total_staked_value,
        max_stake=stake_pool.max_stake,
        max_point=stake_pool.max_point,
        start_time=stake_pool.created_at,
        end_time=projection.end_time,
        exchange_rate_numerator=reward_pool.exchange_rate_numerator,
        exchange_rate_denominator=reward_pool.exchange_rate_denominator,
        reward_per_sec=reward_per_sec,
        total_reward_value_per_year=yearly_value,
        stake_apr=apr,
    )


def calculate_stake_account_reward(
    account: StakeAccount, spool: StakePoolMetrics
) -> Decimal:
    """Raw reward-coin amount claimable by ``account``, truncated."""
    points = accrue_claimable(
        account.staked, account.index, account.points, spool.current_point_index
    )
    return floor(
        div(mul(points, spool.exchange_rate_numerator), spool.exchange_rate_denominator)
    )


def calculate_borrow_incentive_pool_metrics(
    pool: RawBorrowIncentivePool,
    coin_price: Decimal,
    coin_decimals: int,
    reward_prices: Mapping[str, Decimal],
    reward_decimals: Mapping[str, int],
    now: int | None = None,
) -> BorrowIncentivePoolMetrics:
    """Value every reward point of one borrow-incentive pool.

    Reward coins without a known price are still projected but report a
    zero price and APR.
    """
    staked_coin = to_coin(pool.staked, coin_decimals)
    staked_value = mul(staked_coin, coin_price)
    points = {}
    for point in pool.points:
        projection = project_pool_index(
            index=point.index,
            total_weight=point.weighted_amount,
            distributed_point=point.distributed_point,
            max_point=point.max_point,
            point_per_period=point.point_per_period,
            period=point.period,
            last_update=point.last_update,
            now=now,
        )
        price = reward_prices.get(point.reward_coin_name, ZERO)
        decimals = reward_decimals.get(point.reward_coin_name, 0)
        reward_per_sec, _, apr = _reward_apr(
            projection.distributed_point_per_sec,
            point.exchange_rate_numerator,
            point.exchange_rate_denominator,
            price,
            decimals,
            staked_value,
        )
        points[point.reward_coin_name] = IncentivePointMetrics(
            reward_coin_name=point.reward_coin_name,
            reward_coin_price=price,
            reward_coin_decimals=decimals,
            base_weight=point.base_weight,
            weighted_amount=point.weighted_amount,
            current_point_index=projection.current_index,
            accumulated_points=projection.accumulated_points,
            distributed_point_per_sec=projection.distributed_point_per_sec,
            reward_per_sec=reward_per_sec,
            reward_apr=apr,
            exchange_rate_numerator=point.exchange_rate_numerator,
            exchange_rate_denominator=point.exchange_rate_denominator,
        )
    return BorrowIncentivePoolMetrics(
        coin_name=pool.coin_name,
        coin_price=coin_price,
        decimals=coin_decimals,
        staked_amount=pool.staked,
        staked_coin=staked_coin,
        staked_value=staked_value,
        points=points,
    )


def calculate_incentive_rewards(
    account: IncentiveAccount, pool: BorrowIncentivePoolMetrics
) -> dict[str, IncentiveReward]:
    """Claimable reward and boost per reward coin for one incentive account.

    Account points whose reward coin the pool no longer distributes are
    skipped.
    """
    rewards = {}
    for point in account.points:
        pool_point = pool.points.get(point.reward_coin_name)
        if pool_point is None:
            continue
        claimable = accrue_claimable(
            point.weighted_amount,
            point.index,
            point.points,
            pool_point.current_point_index,
        )
        amount = floor(
            div(
                mul(claimable, pool_point.exchange_rate_numerator),
                pool_point.exchange_rate_denominator,
            )
        )
        rewards[point.reward_coin_name] = IncentiveReward(
            reward_coin_name=point.reward_coin_name,
            amount=amount,
            boost_value=boost_value(
                point.weighted_amount, account.debt_amount, pool_point.base_weight
            ),
        )
    return rewards

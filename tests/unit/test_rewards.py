"""Unit tests for index-based reward accounting."""
from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

import pytest

from scallop_risk.calculators.rewards import (
    accrue_claimable,
    boost_value,
    calculate_borrow_incentive_pool_metrics,
    calculate_incentive_rewards,
    calculate_stake_account_reward,
    calculate_stake_pool_metrics,
    project_pool_index,
)
from scallop_risk.errors import InvariantViolation
from scallop_risk.models import IncentiveAccount, IncentiveAccountPoint

from conftest import LAST_UPDATE, NOW


class TestAccrueClaimable:
    def test_weight_times_index_delta(self) -> None:
        assert accrue_claimable(
            Decimal(100), Decimal(0), Decimal(0), Decimal(2_000_000_000)
        ) == Decimal(200)

    def test_adds_previously_accumulated(self) -> None:
        assert accrue_claimable(
            Decimal(100), Decimal(1_000_000_000), Decimal(7), Decimal(2_000_000_000)
        ) == Decimal(107)

    def test_stale_pool_index_never_goes_negative(self) -> None:
        assert accrue_claimable(
            Decimal(100), Decimal(5), Decimal(3), Decimal(1)
        ) == Decimal(3)


class TestBoostValue:
    def test_boosted_weight(self) -> None:
        assert boost_value(
            Decimal(150_000_000), Decimal(100_000_000), Decimal(10**12)
        ) == Decimal("1.5")

    def test_no_debt_is_unboosted(self) -> None:
        assert boost_value(Decimal(5), Decimal(0), Decimal(10**12)) == 1


class TestProjectPoolIndex:
    def _project(self, now: int | None, **overrides):
        params = dict(
            index=Decimal(0),
            total_weight=Decimal(100_000_000_000),
            distributed_point=Decimal(0),
            max_point=Decimal(1_000_000_000_000),
            point_per_period=Decimal(1000),
            period=Decimal(10),
            last_update=LAST_UPDATE,
            now=now,
        )
        params.update(overrides)
        return project_pool_index(**params)

    def test_whole_periods_only(self) -> None:
        projection = self._project(LAST_UPDATE + 105)
        assert projection.accumulated_points == Decimal(10_000)
        assert projection.current_index == Decimal(100)
        assert projection.current_distributed_point == Decimal(10_000)
        assert projection.distributed_point_per_sec == Decimal(100)

    def test_capped_at_remaining_points(self) -> None:
        projection = self._project(
            LAST_UPDATE + 1000,
            distributed_point=Decimal(999_999_999_500),
        )
        assert projection.accumulated_points == Decimal(500)

    def test_without_now_the_stored_index_is_kept(self) -> None:
        projection = self._project(None, index=Decimal(42))
        assert projection.current_index == Decimal(42)
        assert projection.accumulated_points == 0

    def test_empty_pool_keeps_index(self) -> None:
        projection = self._project(LAST_UPDATE + 100, total_weight=Decimal(0))
        assert projection.current_index == 0

    def test_end_time(self) -> None:
        projection = self._project(None)
        assert projection.end_time == LAST_UPDATE + 10_000_000_000

    def test_zero_period_raises(self) -> None:
        with pytest.raises(InvariantViolation):
            self._project(None, period=Decimal(0))


class TestStakePoolMetrics:
    def test_projection_and_apr(
        self, sample_stake_pool, sample_reward_pool, sample_stake_account
    ) -> None:
        spool = calculate_stake_pool_metrics(
            sample_stake_pool,
            sample_reward_pool,
            coin_name="sui",
            market_coin_price=Decimal(2),
            market_coin_decimals=9,
            reward_coin_price=Decimal("0.5"),
            reward_coin_decimals=9,
            now=NOW,
        )
        assert spool.current_point_index == Decimal(100)
        assert spool.total_staked_value == Decimal(200)
        assert spool.reward_per_sec == Decimal(100)
        # 100e-9 SCA/s over a year at $0.5
        assert spool.total_reward_value_per_year == Decimal("1.5768")
        assert spool.stake_apr == Decimal("0.007884")
        assert calculate_stake_account_reward(sample_stake_account, spool) == Decimal(1000)

    def test_empty_pool_has_zero_apr(self, sample_stake_pool, sample_reward_pool) -> None:
        spool = calculate_stake_pool_metrics(
            replace(sample_stake_pool, total_staked=Decimal(0)),
            sample_reward_pool,
            coin_name="sui",
            market_coin_price=Decimal(2),
            market_coin_decimals=9,
            reward_coin_price=Decimal("0.5"),
            reward_coin_decimals=9,
            now=NOW,
        )
        assert spool.stake_apr == 0


class TestBorrowIncentive:
    def test_pool_metrics_and_account_rewards(
        self, sample_incentive_pool, sample_incentive_account
    ) -> None:
        pool = calculate_borrow_incentive_pool_metrics(
            sample_incentive_pool,
            coin_price=Decimal(1),
            coin_decimals=6,
            reward_prices={"sca": Decimal("0.5")},
            reward_decimals={"sca": 9},
            now=NOW,
        )
        point = pool.points["sca"]
        assert pool.staked_value == Decimal(100)
        assert point.current_point_index == Decimal(50_000)
        assert point.reward_apr == Decimal("0.007884")

        rewards = calculate_incentive_rewards(sample_incentive_account, pool)
        assert rewards["sca"].amount == Decimal(5000)
        assert rewards["sca"].boost_value == 1

    def test_unpriced_reward_reports_zero_apr(self, sample_incentive_pool) -> None:
        pool = calculate_borrow_incentive_pool_metrics(
            sample_incentive_pool,
            coin_price=Decimal(1),
            coin_decimals=6,
            reward_prices={},
            reward_decimals={},
            now=NOW,
        )
        assert pool.points["sca"].reward_coin_price == 0
        assert pool.points["sca"].reward_apr == 0

    def test_account_points_for_retired_rewards_are_skipped(
        self, sample_incentive_pool
    ) -> None:
        pool = calculate_borrow_incentive_pool_metrics(
            sample_incentive_pool, Decimal(1), 6, {}, {}, now=NOW
        )
        account = IncentiveAccount(
            coin_name="usdc",
            debt_amount=Decimal(1),
            points=(IncentiveAccountPoint("old", Decimal(0), Decimal(9), Decimal(1)),),
        )
        assert calculate_incentive_rewards(account, pool) == {}

"""Unit tests for the obligation account builder and safety margins."""
from __future__ import annotations

from decimal import Decimal

import pytest

from scallop_risk.calculators.collateral import calculate_collateral_metrics
from scallop_risk.calculators.obligation import (
    SafetyMarginPolicy,
    accrue_debt,
    build_obligation_account,
    estimate_borrow,
)
from scallop_risk.calculators.pool import calculate_pool_metrics
from scallop_risk.errors import InvariantViolation
from scallop_risk.models import (
    PoolMetrics,
    RawCollateralEntry,
    RawDebtEntry,
    RawObligation,
)

from conftest import SUI_TYPE, USDC_TYPE, make_collateral, make_pool


@pytest.fixture()
def pools() -> dict[str, PoolMetrics]:
    return {
        "sui": calculate_pool_metrics(make_pool("sui"), Decimal(2)),
        "usdc": calculate_pool_metrics(
            make_pool("usdc", borrow_index=Decimal(1_050_000_000)), Decimal(1)
        ),
    }


@pytest.fixture()
def collaterals():
    return {
        "sui": calculate_collateral_metrics(make_collateral("sui"), Decimal(2)),
        "usdc": calculate_collateral_metrics(make_collateral("usdc"), Decimal(1)),
    }


def _obligation(collateral_sui: int = 100_000_000_000, debt_usdc: int = 100_000_000):
    return RawObligation(
        obligation_id="0xOB1",
        collaterals=(RawCollateralEntry("sui", SUI_TYPE, Decimal(collateral_sui)),),
        debts=(
            RawDebtEntry("usdc", USDC_TYPE, Decimal(debt_usdc), Decimal(1_000_000_000)),
        ),
    )


class TestSafetyMarginPolicy:
    def test_tiers_by_value(self) -> None:
        policy = SafetyMarginPolicy()
        assert policy.haircut(Decimal(10)) == Decimal("0.001")
        assert policy.haircut(Decimal(1000)) == Decimal("0.002")
        assert policy.haircut(Decimal(250_000)) == Decimal("0.003")

    def test_decrease_and_increase(self) -> None:
        policy = SafetyMarginPolicy()
        assert policy.decrease(Decimal(1000), Decimal(1)) == Decimal("999.000")
        assert policy.increase(Decimal(1000), Decimal(1)) == Decimal("1001.000")

    def test_tiers_must_ascend(self) -> None:
        with pytest.raises(ValueError, match="ascending"):
            SafetyMarginPolicy(((Decimal(10), Decimal("0.1")), (Decimal(5), Decimal("0.2"))))

    def test_haircut_must_be_below_one(self) -> None:
        with pytest.raises(ValueError, match="outside"):
            SafetyMarginPolicy(((Decimal(0), Decimal(1)),))

    def test_empty_tiers_rejected(self) -> None:
        with pytest.raises(ValueError):
            SafetyMarginPolicy(())


class TestAccrueDebt:
    def test_index_growth(self) -> None:
        accrued = accrue_debt(
            Decimal(1_000_000), Decimal(1_000_000_000), Decimal(1_050_000_000)
        )
        assert accrued == Decimal(1_050_000)

    def test_zero_snapshot_raises(self) -> None:
        with pytest.raises(InvariantViolation):
            accrue_debt(Decimal(1), Decimal(0), Decimal(1))


class TestBuildObligationAccount:
    def test_totals(self, pools, collaterals) -> None:
        account = build_obligation_account(_obligation(), pools, collaterals)
        assert account.total_deposited_value == Decimal(200)
        assert account.total_borrow_capacity_value == Decimal(100)
        assert account.total_required_collateral_value == Decimal(150)
        assert account.total_borrowed_value == Decimal(105)
        assert account.total_borrowed_value_with_weight == Decimal(105)
        assert account.total_risk_level == Decimal("0.7")
        assert account.total_available_collateral_value == 0
        assert account.total_unhealthy_collateral_value == 0
        assert account.total_balance_value == Decimal(95)
        assert account.total_deposited_pools == 1
        assert account.total_borrowed_pools == 1
        assert account.unvalued_coins == ()

    def test_debt_accrues_to_pool_index(self, pools, collaterals) -> None:
        account = build_obligation_account(_obligation(), pools, collaterals)
        debt = account.debts["usdc"]
        assert debt.borrowed_amount == Decimal(100_000_000)
        assert debt.required_repay_amount == Decimal(105_000_000)
        assert debt.available_repay_amount >= debt.required_repay_amount

    def test_no_borrow_or_withdraw_room_when_over_capacity(self, pools, collaterals) -> None:
        account = build_obligation_account(_obligation(), pools, collaterals)
        assert account.debts["usdc"].available_borrow.estimated_amount == 0
        withdraw = account.collaterals["sui"].available_withdraw
        assert withdraw.estimated_amount == 0
        assert withdraw.max_amount == 0

    def test_borrow_estimate_below_max(self, pools, collaterals) -> None:
        account = build_obligation_account(
            _obligation(collateral_sui=500_000_000_000), pools, collaterals
        )
        # capacity 500, weighted debt 105
        assert account.total_available_collateral_value == Decimal(395)
        borrow = account.debts["usdc"].available_borrow
        assert borrow.max_amount == Decimal(395_000_000)
        assert 0 < borrow.estimated_amount < borrow.max_amount

        withdraw = account.collaterals["sui"].available_withdraw
        # 395 / 0.5 / 2 = 395 SUI of capacity to spare
        assert withdraw.max_amount == Decimal(395_000_000_000)
        assert withdraw.estimated_amount <= withdraw.max_amount

    def test_everything_withdrawable_without_debt(self, pools, collaterals) -> None:
        account = build_obligation_account(
            _obligation(debt_usdc=0), pools, collaterals
        )
        assert account.total_risk_level == 0
        assert account.total_required_collateral_value == 0
        withdraw = account.collaterals["sui"].available_withdraw
        assert withdraw.estimated_amount == Decimal(100_000_000_000)
        assert account.total_borrowed_pools == 0

    def test_debt_without_collateral_is_fully_at_risk(self, pools, collaterals) -> None:
        account = build_obligation_account(
            _obligation(collateral_sui=0), pools, collaterals
        )
        assert account.total_risk_level == 1
        assert account.total_unhealthy_collateral_value == Decimal(105)

    def test_risk_level_capped_at_one(self, pools, collaterals) -> None:
        account = build_obligation_account(
            _obligation(collateral_sui=10_000_000_000), pools, collaterals
        )
        assert account.total_risk_level == 1

    def test_available_deposit_bounded_by_wallet(self, pools, collaterals) -> None:
        account = build_obligation_account(
            _obligation(),
            pools,
            collaterals,
            coin_balances={"sui": Decimal(5_000_000_000)},
        )
        view = account.collaterals["sui"]
        assert view.available_deposit_amount == Decimal(5_000_000_000)
        assert view.available_deposit_coin == Decimal(5)

    def test_unpriced_coin_is_left_out(self, pools, collaterals) -> None:
        del pools["usdc"]
        account = build_obligation_account(_obligation(), pools, collaterals)
        assert account.unvalued_coins == ("usdc",)
        assert account.total_borrowed_value == 0
        assert "usdc" not in account.debts

    def test_unpriced_debt_blocks_withdraw_and_borrow(self, pools, collaterals) -> None:
        del pools["usdc"]
        obligation = RawObligation(
            obligation_id="0xOB1",
            collaterals=(RawCollateralEntry("sui", SUI_TYPE, Decimal(100_000_000_000)),),
            debts=(
                RawDebtEntry("usdc", USDC_TYPE, Decimal(150_000_000), Decimal(1_000_000_000)),
                RawDebtEntry("sui", SUI_TYPE, Decimal(1_000_000_000), Decimal(1_000_000_000)),
            ),
        )
        account = build_obligation_account(obligation, pools, collaterals)

        assert account.unvalued_coins == ("usdc",)
        withdraw = account.collaterals["sui"].available_withdraw
        assert withdraw.estimated_amount == 0
        assert withdraw.max_amount == 0
        borrow = account.debts["sui"].available_borrow
        assert borrow.estimated_amount == 0
        assert borrow.max_amount == 0

    def test_pool_index_below_snapshot_raises(self, pools, collaterals) -> None:
        obligation = RawObligation(
            obligation_id="0xOB1",
            debts=(
                RawDebtEntry("usdc", USDC_TYPE, Decimal(1), Decimal(2_000_000_000)),
            ),
        )
        with pytest.raises(InvariantViolation):
            build_obligation_account(obligation, pools, collaterals)

    def test_is_deterministic(self, pools, collaterals) -> None:
        first = build_obligation_account(_obligation(), pools, collaterals)
        second = build_obligation_account(_obligation(), pools, collaterals)
        assert first == second

    def test_locked_flag_carried(self, pools, collaterals) -> None:
        obligation = RawObligation(obligation_id="0xOB2", locked=True)
        account = build_obligation_account(obligation, pools, collaterals)
        assert account.locked
        assert account.total_risk_level == 0


class TestEstimateBorrow:
    def test_respects_borrow_headroom(self) -> None:
        pool = calculate_pool_metrics(
            make_pool("usdc", borrow_limit=Decimal(201_000_000)), Decimal(1)
        )
        action = estimate_borrow(Decimal(50), pool, SafetyMarginPolicy())
        assert action.max_amount == Decimal(1_000_000)
        assert action.estimated_amount == Decimal(1_000_000)

    def test_estimate_below_min_borrow_is_zero(self) -> None:
        pool = calculate_pool_metrics(
            make_pool("usdc", min_borrow_amount=Decimal(10**12)), Decimal(1)
        )
        action = estimate_borrow(Decimal(50), pool, SafetyMarginPolicy())
        assert action.estimated_amount == 0
        assert action.max_amount == Decimal(50_000_000)

    def test_no_capacity(self) -> None:
        pool = calculate_pool_metrics(make_pool("usdc"), Decimal(1))
        action = estimate_borrow(Decimal(0), pool, SafetyMarginPolicy())
        assert action.estimated_amount == action.max_amount == 0

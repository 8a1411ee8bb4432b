"""Pure valuation functions over raw ledger records."""
from .collateral import calculate_collateral_metrics
from .obligation import (
    SafetyMarginPolicy,
    accrue_debt,
    build_obligation_account,
    estimate_borrow,
    estimate_withdraw,
)
from .pool import calculate_pool_metrics, calculate_total_value_locked
from .rewards import (
    accrue_claimable,
    boost_value,
    calculate_borrow_incentive_pool_metrics,
    calculate_incentive_rewards,
    calculate_stake_account_reward,
    calculate_stake_pool_metrics,
    project_pool_index,
)
from .vesca import calculate_vesca, vesca_balance

__all__ = [
    "SafetyMarginPolicy",
    "accrue_claimable",
    "accrue_debt",
    "boost_value",
    "build_obligation_account",
    "calculate_borrow_incentive_pool_metrics",
    "calculate_collateral_metrics",
    "calculate_incentive_rewards",
    "calculate_pool_metrics",
    "calculate_stake_account_reward",
    "calculate_stake_pool_metrics",
    "calculate_total_value_locked",
    "calculate_vesca",
    "estimate_borrow",
    "estimate_withdraw",
    "project_pool_index",
    "vesca_balance",
]

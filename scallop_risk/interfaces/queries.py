"""Per-feature query capabilities.

Each feature module exposes one protocol; :class:`~scallop_risk.services.query.ScallopQuery`
implements all of them by delegating to the feature services.
"""
from typing import Protocol

from ..models import (
    BorrowIncentivePoolMetrics,
    CollateralMetrics,
    IncentiveReward,
    Lending,
    Market,
    ObligationAccount,
    ObligationKey,
    PendingReward,
    PoolMetrics,
    Portfolio,
    StakeAccount,
    StakePoolMetrics,
    TotalValueLocked,
    VeScaMetrics,
)


class CoreQueries(Protocol):
    async def get_market_pools(self, coin_names: list[str] | None = None) -> Market: ...

    async def get_market_pool(self, coin_name: str) -> PoolMetrics | None: ...

    async def get_market_collateral(self, coin_name: str) -> CollateralMetrics | None: ...

    async def get_obligations(self, owner: str) -> list[ObligationKey]: ...

    async def get_obligation_account(
        self, obligation_id: str, owner: str | None = None
    ) -> ObligationAccount: ...

    async def get_total_value_locked(self) -> TotalValueLocked: ...


class SpoolQueries(Protocol):
    async def get_spool(self, market_coin_name: str) -> StakePoolMetrics | None: ...

    async def get_spools(
        self, market_coin_names: list[str] | None = None
    ) -> dict[str, StakePoolMetrics]: ...

    async def get_stake_accounts(
        self, owner: str, market_coin_name: str
    ) -> list[StakeAccount]: ...

    async def get_staking_rewards(self, owner: str) -> dict[str, PendingReward]: ...


class BorrowIncentiveQueries(Protocol):
    async def get_borrow_incentive_pool(
        self, coin_name: str
    ) -> BorrowIncentivePoolMetrics | None: ...

    async def get_borrow_incentive_pools(
        self, coin_names: list[str] | None = None
    ) -> dict[str, BorrowIncentivePoolMetrics]: ...

    async def get_borrow_incentive_rewards(
        self, obligation_id: str
    ) -> dict[str, dict[str, IncentiveReward]]: ...


class VeScaQueries(Protocol):
    async def get_vescas(self, owner: str) -> list[VeScaMetrics]: ...


class PortfolioQueries(Protocol):
    async def get_lending(self, coin_name: str, owner: str) -> Lending | None: ...

    async def get_lendings(
        self, owner: str, coin_names: list[str] | None = None
    ) -> dict[str, Lending]: ...

    async def get_user_portfolio(self, owner: str) -> Portfolio: ...

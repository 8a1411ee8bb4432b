"""Ledger state fetcher protocol: raw lending-market records."""
from decimal import Decimal
from typing import Protocol

from ..models import (
    IncentiveAccount,
    ObligationKey,
    RawBorrowIncentivePool,
    RawMarketCollateral,
    RawMarketPool,
    RawObligation,
    RawRewardPool,
    RawStakePool,
    RawVeSca,
    StakeAccount,
)


class LedgerFetcher(Protocol):
    """Supplies raw records; all decoding of fractions is left to calculators.

    ``fetch_market_pool`` and ``fetch_market_collateral`` return None when the
    coin has no pool or collateral entry. ``fetch_obligation`` raises
    ``RequiredObjectNotFound`` when the obligation does not exist.
    """

    async def fetch_market_pool(self, coin_name: str) -> RawMarketPool | None: ...

    async def fetch_market_collateral(self, coin_name: str) -> RawMarketCollateral | None: ...

    async def fetch_obligation(self, obligation_id: str) -> RawObligation: ...

    async def fetch_obligation_keys(self, owner: str) -> list[ObligationKey]: ...

    async def fetch_stake_accounts(
        self, owner: str, market_coin_name: str
    ) -> list[StakeAccount]: ...

    async def fetch_stake_pool(self, market_coin_name: str) -> RawStakePool | None: ...

    async def fetch_reward_pool(self, market_coin_name: str) -> RawRewardPool | None: ...

    async def fetch_borrow_incentive_pool(
        self, coin_name: str
    ) -> RawBorrowIncentivePool | None: ...

    async def fetch_incentive_accounts(
        self, obligation_id: str
    ) -> list[IncentiveAccount]: ...

    async def fetch_vescas(self, owner: str) -> list[RawVeSca]: ...

    async def fetch_coin_balance(self, owner: str, coin_name: str) -> Decimal: ...

    async def fetch_market_coin_balance(self, owner: str, coin_name: str) -> Decimal: ...

"""ScallopQuery: one handle exposing every query capability."""
from __future__ import annotations

import logging
from typing import Callable

from ..cache import NullCache, QueryCache
from ..calculators.obligation import SafetyMarginPolicy
from ..chains.sui import SuiClient
from ..config import AppConfig
from ..interfaces.cache import Cache
from ..interfaces.chain import ChainClient
from ..interfaces.fetcher import LedgerFetcher
from ..interfaces.price_oracle import PriceOracle
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
from ..oracles import IndexerOracle, PriceFeed, PythOracle
from ..protocols.scallop import ScallopFetcher
from .borrow_incentive import BorrowIncentiveQueryService
from .clock import unix_now
from .core import CoreQueryService
from .portfolio import PortfolioAggregator
from .spool import SpoolQueryService
from .vesca import VeScaQueryService

logger = logging.getLogger(__name__)


class ScallopQuery:
    """Composes the core, spool, borrow-incentive, veSCA and portfolio services.

    Implements :class:`~scallop_risk.interfaces.queries.CoreQueries`,
    ``SpoolQueries``, ``BorrowIncentiveQueries``, ``VeScaQueries`` and
    ``PortfolioQueries`` by delegation. The cache and chain client passed in
    are owned by this object and closed with it.
    """

    def __init__(
        self,
        fetcher: LedgerFetcher,
        price_feed: PriceOracle,
        config: AppConfig,
        cache: Cache | None = None,
        clock: Callable[[], int] = unix_now,
        project_interest: bool | None = None,
        chain_client: ChainClient | None = None,
    ) -> None:
        self._cache = cache or NullCache()
        self._chain_client = chain_client
        if project_interest is None:
            project_interest = config.market.project_interest
        policy = SafetyMarginPolicy(config.safety_margin.tiers)

        self.core = CoreQueryService(
            fetcher,
            price_feed,
            config,
            clock=clock if project_interest else None,
            policy=policy,
        )
        self.spool = SpoolQueryService(fetcher, price_feed, self.core, config, clock=clock)
        self.borrow_incentive = BorrowIncentiveQueryService(
            fetcher, price_feed, config, clock=clock
        )
        self.vesca = VeScaQueryService(fetcher, config, clock=clock)
        self.portfolio = PortfolioAggregator(
            fetcher,
            price_feed,
            config,
            self.core,
            self.spool,
            self.borrow_incentive,
            self.vesca,
        )

    @classmethod
    def from_config(cls, config: AppConfig, cache: Cache | None = None) -> "ScallopQuery":
        """Wire the Sui client, Scallop fetcher and price feed from ``config``."""
        if cache is None:
            cache = (
                QueryCache(ttl_seconds=config.cache.ttl_seconds)
                if config.cache.enabled
                else NullCache()
            )
        client = SuiClient(config.chain)
        fetcher = ScallopFetcher(client, config, cache)
        oracle_cfg = config.price_oracle
        fallback = IndexerOracle(oracle_cfg.indexer) if oracle_cfg.indexer.enabled else None
        price_feed = PriceFeed(PythOracle(oracle_cfg.pyth), fallback, cache)
        logger.info(
            "Query handle ready: %d coins, cache %s",
            len(config.coins),
            "on" if config.cache.enabled else "off",
        )
        return cls(fetcher, price_feed, config, cache=cache, chain_client=client)

    async def close(self) -> None:
        await self._cache.close()
        if self._chain_client is not None:
            await self._chain_client.close()

    async def __aenter__(self) -> "ScallopQuery":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- core ---------------------------------------------------------------

    async def get_market_pools(self, coin_names: list[str] | None = None) -> Market:
        return await self.core.get_market_pools(coin_names)

    async def get_market_pool(self, coin_name: str) -> PoolMetrics | None:
        return await self.core.get_market_pool(coin_name)

    async def get_market_collateral(self, coin_name: str) -> CollateralMetrics | None:
        return await self.core.get_market_collateral(coin_name)

    async def get_obligations(self, owner: str) -> list[ObligationKey]:
        return await self.core.get_obligations(owner)

    async def get_obligation_account(
        self, obligation_id: str, owner: str | None = None
    ) -> ObligationAccount:
        return await self.core.get_obligation_account(obligation_id, owner)

    async def get_total_value_locked(self) -> TotalValueLocked:
        return await self.core.get_total_value_locked()

    # -- spool --------------------------------------------------------------

    async def get_spool(self, market_coin_name: str) -> StakePoolMetrics | None:
        return await self.spool.get_spool(market_coin_name)

    async def get_spools(
        self, market_coin_names: list[str] | None = None
    ) -> dict[str, StakePoolMetrics]:
        return await self.spool.get_spools(market_coin_names)

    async def get_stake_accounts(
        self, owner: str, market_coin_name: str
    ) -> list[StakeAccount]:
        return await self.spool.get_stake_accounts(owner, market_coin_name)

    async def get_staking_rewards(self, owner: str) -> dict[str, PendingReward]:
        return await self.spool.get_staking_rewards(owner)

    # -- borrow incentive ---------------------------------------------------

    async def get_borrow_incentive_pool(
        self, coin_name: str
    ) -> BorrowIncentivePoolMetrics | None:
        return await self.borrow_incentive.get_borrow_incentive_pool(coin_name)

    async def get_borrow_incentive_pools(
        self, coin_names: list[str] | None = None
    ) -> dict[str, BorrowIncentivePoolMetrics]:
        return await self.borrow_incentive.get_borrow_incentive_pools(coin_names)

    async def get_borrow_incentive_rewards(
        self, obligation_id: str
    ) -> dict[str, dict[str, IncentiveReward]]:
        return await self.borrow_incentive.get_borrow_incentive_rewards(obligation_id)

    # -- veSCA --------------------------------------------------------------

    async def get_vescas(self, owner: str) -> list[VeScaMetrics]:
        return await self.vesca.get_vescas(owner)

    # -- portfolio ----------------------------------------------------------

    async def get_lending(self, coin_name: str, owner: str) -> Lending | None:
        return await self.portfolio.get_lending(coin_name, owner)

    async def get_lendings(
        self, owner: str, coin_names: list[str] | None = None
    ) -> dict[str, Lending]:
        return await self.portfolio.get_lendings(owner, coin_names)

    async def get_user_portfolio(self, owner: str) -> Portfolio:
        return await self.portfolio.get_user_portfolio(owner)

"""Staking pool (spool) queries."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable

from ..calculators.rewards import calculate_stake_account_reward, calculate_stake_pool_metrics
from ..config import AppConfig
from ..decimal_math import ZERO, add
from ..interfaces.fetcher import LedgerFetcher
from ..interfaces.price_oracle import PriceOracle
from ..models import PendingReward, StakeAccount, StakePoolMetrics
from .clock import unix_now
from .core import CoreQueryService
from .fanout import gather_best_effort
from .rewards import add_amounts, value_rewards

logger = logging.getLogger(__name__)


class SpoolQueryService:
    """Stake pools of market coins and the rewards their stakers accrue."""

    def __init__(
        self,
        fetcher: LedgerFetcher,
        price_feed: PriceOracle,
        core: CoreQueryService,
        config: AppConfig,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self._fetcher = fetcher
        self._price_feed = price_feed
        self._core = core
        self._config = config
        self._clock = clock

    async def get_spool(self, market_coin_name: str) -> StakePoolMetrics | None:
        coin = self._config.spool_coins().get(market_coin_name)
        if coin is None:
            logger.warning("No spool configured for %s", market_coin_name)
            return None

        stake_pool = await self._fetcher.fetch_stake_pool(market_coin_name)
        reward_pool = await self._fetcher.fetch_reward_pool(market_coin_name)
        if stake_pool is None or reward_pool is None:
            logger.warning("Spool objects for %s not found", market_coin_name)
            return None

        pool = await self._core.get_market_pool(coin.name)
        if pool is None:
            logger.warning("Cannot value spool %s: pool %s unavailable", market_coin_name, coin.name)
            return None

        reward_coin = self._config.coins[coin.spool.reward_coin]
        prices = await self._price_feed.fetch_prices([reward_coin.name])
        reward_price = prices.get(reward_coin.name)
        if reward_price is None:
            logger.warning("No price for reward coin %s, APR reported as zero", reward_coin.name)
            reward_price = ZERO

        return calculate_stake_pool_metrics(
            stake_pool,
            reward_pool,
            coin_name=coin.name,
            market_coin_price=pool.market_coin_price,
            market_coin_decimals=coin.decimals,
            reward_coin_price=reward_price,
            reward_coin_decimals=reward_coin.decimals,
            now=self._clock(),
        )

    async def get_spools(
        self, market_coin_names: list[str] | None = None
    ) -> dict[str, StakePoolMetrics]:
        names = market_coin_names or list(self._config.spool_coins())
        spools, _ = await gather_best_effort(
            "spool", ((name, self.get_spool(name)) for name in names)
        )
        return {name: spool for name, spool in spools.items() if spool is not None}

    async def get_stake_accounts(
        self, owner: str, market_coin_name: str
    ) -> list[StakeAccount]:
        return await self._fetcher.fetch_stake_accounts(owner, market_coin_name)

    async def get_stake_account_rewards(
        self, owner: str, spools: dict[str, StakePoolMetrics]
    ) -> dict[str, Decimal]:
        """Raw claimable reward amount per market coin."""
        accounts, _ = await gather_best_effort(
            "stake accounts",
            ((name, self.get_stake_accounts(owner, name)) for name in spools),
        )
        rewards = {}
        for name, stake_accounts in accounts.items():
            total = ZERO
            for account in stake_accounts:
                total = add(total, calculate_stake_account_reward(account, spools[name]))
            rewards[name] = total
        return rewards

    async def get_staking_rewards(self, owner: str) -> dict[str, PendingReward]:
        """Pending staking rewards of ``owner``, keyed by reward coin."""
        spools = await self.get_spools()
        per_spool = await self.get_stake_account_rewards(owner, spools)

        amounts: dict[str, Decimal] = {}
        prices: dict[str, Decimal] = {}
        for name, amount in per_spool.items():
            spool = spools[name]
            add_amounts(amounts, spool.reward_coin_name, amount)
            prices[spool.reward_coin_name] = spool.reward_coin_price
        return value_rewards(self._config, amounts, prices)

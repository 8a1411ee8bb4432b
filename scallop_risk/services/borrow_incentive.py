"""Borrow-incentive pool and reward queries."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable

from ..calculators.rewards import (
    calculate_borrow_incentive_pool_metrics,
    calculate_incentive_rewards,
)
from ..config import AppConfig
from ..interfaces.fetcher import LedgerFetcher
from ..interfaces.price_oracle import PriceOracle
from ..models import BorrowIncentivePoolMetrics, IncentiveReward, PendingReward
from .clock import unix_now
from .fanout import gather_best_effort
from .rewards import add_amounts, value_rewards

logger = logging.getLogger(__name__)


class BorrowIncentiveQueryService:
    def __init__(
        self,
        fetcher: LedgerFetcher,
        price_feed: PriceOracle,
        config: AppConfig,
        clock: Callable[[], int] = unix_now,
    ) -> None:
        self._fetcher = fetcher
        self._price_feed = price_feed
        self._config = config
        self._clock = clock

    async def get_borrow_incentive_pool(
        self, coin_name: str
    ) -> BorrowIncentivePoolMetrics | None:
        coin = self._config.coins.get(coin_name)
        raw = await self._fetcher.fetch_borrow_incentive_pool(coin_name)
        if coin is None or raw is None:
            logger.warning("No borrow incentive pool for %s", coin_name)
            return None

        reward_names = [p.reward_coin_name for p in raw.points]
        prices = await self._price_feed.fetch_prices([coin_name, *reward_names])
        coin_price = prices.get(coin_name)
        if coin_price is None:
            logger.warning("Cannot value borrow incentive pool %s: no price", coin_name)
            return None

        reward_decimals = {
            name: self._config.coins[name].decimals
            for name in reward_names
            if name in self._config.coins
        }
        return calculate_borrow_incentive_pool_metrics(
            raw,
            coin_price,
            coin.decimals,
            prices,
            reward_decimals,
            now=self._clock(),
        )

    async def get_borrow_incentive_pools(
        self, coin_names: list[str] | None = None
    ) -> dict[str, BorrowIncentivePoolMetrics]:
        names = coin_names or self._config.incentive_coins()
        pools, _ = await gather_best_effort(
            "borrow incentive pool",
            ((name, self.get_borrow_incentive_pool(name)) for name in names),
        )
        return {name: pool for name, pool in pools.items() if pool is not None}

    async def _account_rewards(
        self, obligation_id: str
    ) -> list[tuple[BorrowIncentivePoolMetrics, dict[str, IncentiveReward]]]:
        accounts = await self._fetcher.fetch_incentive_accounts(obligation_id)
        if not accounts:
            return []
        pools = await self.get_borrow_incentive_pools(
            list(dict.fromkeys(a.coin_name for a in accounts))
        )
        results = []
        for account in accounts:
            pool = pools.get(account.coin_name)
            if pool is not None:
                results.append((pool, calculate_incentive_rewards(account, pool)))
        return results

    async def get_borrow_incentive_rewards(
        self, obligation_id: str
    ) -> dict[str, dict[str, IncentiveReward]]:
        """Claimable rewards of one obligation: debt coin → reward coin → reward."""
        return {
            pool.coin_name: rewards
            for pool, rewards in await self._account_rewards(obligation_id)
        }

    async def get_pending_rewards(self, obligation_id: str) -> dict[str, PendingReward]:
        """Valued claimable rewards of one obligation, keyed by reward coin."""
        amounts: dict[str, Decimal] = {}
        prices: dict[str, Decimal] = {}
        for pool, rewards in await self._account_rewards(obligation_id):
            for name, reward in rewards.items():
                add_amounts(amounts, name, reward.amount)
                prices[name] = pool.points[name].reward_coin_price
        return value_rewards(self._config, amounts, prices)

"""Core market and obligation queries."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Iterable

from ..calculators.collateral import calculate_collateral_metrics
from ..calculators.obligation import SafetyMarginPolicy, build_obligation_account
from ..calculators.pool import calculate_pool_metrics, calculate_total_value_locked
from ..config import AppConfig
from ..errors import PoolDataUnavailable
from ..interfaces.fetcher import LedgerFetcher
from ..interfaces.price_oracle import PriceOracle
from ..models import (
    CollateralMetrics,
    Market,
    ObligationAccount,
    ObligationKey,
    PoolMetrics,
    TotalValueLocked,
)
from .fanout import gather_best_effort

logger = logging.getLogger(__name__)


class CoreQueryService:
    """Market pools, collaterals and obligation accounts.

    When ``clock`` is given, pool indices are projected to its current
    time; otherwise the ledger snapshot is valued as-is, so repeated
    queries over the same ledger state give identical results.
    """

    def __init__(
        self,
        fetcher: LedgerFetcher,
        price_feed: PriceOracle,
        config: AppConfig,
        clock: Callable[[], int] | None = None,
        policy: SafetyMarginPolicy | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._price_feed = price_feed
        self._config = config
        self._clock = clock
        self._policy = policy or SafetyMarginPolicy(config.safety_margin.tiers)

    def _now(self) -> int | None:
        return self._clock() if self._clock is not None else None

    async def get_market_pools(self, coin_names: list[str] | None = None) -> Market:
        """Value pools and collaterals, dropping any coin that cannot be valued.

        Dropped coins are listed in ``Market.unavailable``; a missing market
        object still raises.
        """
        if coin_names is None:
            pool_names = self._config.pool_coins()
            collateral_names = self._config.collateral_coins()
        else:
            wanted = list(dict.fromkeys(coin_names))
            coins = self._config.coins
            pool_names = [c for c in wanted if c not in coins or coins[c].pool]
            collateral_names = [c for c in wanted if c in coins and coins[c].collateral]

        prices = await self._fetch_prices(pool_names + collateral_names)
        raw_pools, failed_pools = await gather_best_effort(
            "market pool",
            ((name, self._fetcher.fetch_market_pool(name)) for name in pool_names),
        )
        raw_collaterals, failed_collaterals = await gather_best_effort(
            "market collateral",
            ((name, self._fetcher.fetch_market_collateral(name)) for name in collateral_names),
        )
        unavailable = [*failed_pools, *failed_collaterals]
        now = self._now()

        pools: dict[str, PoolMetrics] = {}
        for name, raw in raw_pools.items():
            reason = self._skip_reason(raw, prices.get(name))
            if reason:
                logger.warning("Skipping pool %s: %s", name, reason)
                unavailable.append(name)
                continue
            metrics = calculate_pool_metrics(raw, prices[name], now=now)
            if isinstance(metrics, PoolDataUnavailable):
                logger.warning("Skipping pool %s: %s", name, metrics.reason)
                unavailable.append(name)
                continue
            pools[name] = metrics

        collaterals: dict[str, CollateralMetrics] = {}
        for name, raw in raw_collaterals.items():
            reason = self._skip_reason(raw, prices.get(name))
            if reason:
                logger.warning("Skipping collateral %s: %s", name, reason)
                unavailable.append(name)
                continue
            metrics = calculate_collateral_metrics(raw, prices[name])
            if isinstance(metrics, PoolDataUnavailable):
                logger.warning("Skipping collateral %s: %s", name, metrics.reason)
                unavailable.append(name)
                continue
            collaterals[name] = metrics

        return Market(
            pools=pools,
            collaterals=collaterals,
            unavailable=tuple(dict.fromkeys(unavailable)),
        )

    @staticmethod
    def _skip_reason(raw: object | None, price: Decimal | None) -> str:
        if raw is None:
            return "not found on chain"
        if price is None:
            return "no price"
        return ""

    async def _fetch_prices(self, coin_names: Iterable[str]) -> dict[str, Decimal]:
        names = list(dict.fromkeys(coin_names))
        if not names:
            return {}
        try:
            return await self._price_feed.fetch_prices(names)
        except Exception as exc:
            logger.warning("Price fetch failed for %s: %s", ", ".join(names), exc)
            return {}

    async def get_market_pool(self, coin_name: str) -> PoolMetrics | None:
        market = await self.get_market_pools([coin_name])
        return market.pools.get(coin_name)

    async def get_market_collateral(self, coin_name: str) -> CollateralMetrics | None:
        market = await self.get_market_pools([coin_name])
        return market.collaterals.get(coin_name)

    async def get_obligations(self, owner: str) -> list[ObligationKey]:
        return await self._fetcher.fetch_obligation_keys(owner)

    async def get_obligation_account(
        self, obligation_id: str, owner: str | None = None
    ) -> ObligationAccount:
        """Build the risk account of one obligation.

        With ``owner``, the owner's wallet balances bound each collateral's
        available deposit amount.
        """
        obligation = await self._fetcher.fetch_obligation(obligation_id)
        coin_names = [
            entry.coin_name
            for entry in (*obligation.collaterals, *obligation.debts)
            if entry.coin_name in self._config.coins
        ]
        market = await self.get_market_pools(coin_names)

        balances: dict[str, Decimal] = {}
        if owner:
            balances, _ = await gather_best_effort(
                "wallet balance",
                (
                    (entry.coin_name, self._fetcher.fetch_coin_balance(owner, entry.coin_name))
                    for entry in obligation.collaterals
                    if entry.coin_name in market.collaterals
                ),
            )

        return build_obligation_account(
            obligation,
            market.pools,
            market.collaterals,
            coin_balances=balances,
            policy=self._policy,
        )

    async def get_total_value_locked(self) -> TotalValueLocked:
        market = await self.get_market_pools()
        return calculate_total_value_locked(market.pools, market.collaterals)

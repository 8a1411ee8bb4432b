"""Portfolio aggregation: fans out per coin and per obligation for one wallet.

Every branch is best-effort: a coin whose price, pool or balances cannot be
fetched is dropped from the totals and listed in ``omitted_coins``.
"""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Iterable

from ..calculators.rewards import calculate_stake_account_reward
from ..config import AppConfig
from ..decimal_math import ZERO, add, dmin, dsum, floor, mul, sub, to_coin
from ..interfaces.fetcher import LedgerFetcher
from ..interfaces.price_oracle import PriceOracle
from ..models import (
    Borrowing,
    Lending,
    Market,
    ObligationKey,
    PendingReward,
    PoolMetrics,
    Portfolio,
    StakeAccount,
    StakePoolMetrics,
    VeScaMetrics,
)
from .borrow_incentive import BorrowIncentiveQueryService
from .core import CoreQueryService
from .fanout import gather_best_effort
from .rewards import add_amounts, merge_rewards, value_rewards
from .spool import SpoolQueryService
from .vesca import VeScaQueryService

logger = logging.getLogger(__name__)


def build_lending(
    pool: PoolMetrics,
    wallet_amount: Decimal,
    unstaked_market_amount: Decimal,
    stake_accounts: Iterable[StakeAccount] = (),
    spool: StakePoolMetrics | None = None,
) -> Lending:
    """Combine one pool with a wallet's market-coin holdings.

    Market-coin amounts convert to underlying amounts through the pool's
    conversion rate, truncated to whole raw units.
    """
    accounts = list(stake_accounts)
    rate = pool.conversion_rate
    staked_market_amount = dsum(a.staked for a in accounts)
    staked_amount = floor(mul(staked_market_amount, rate))
    unstaked_amount = floor(mul(unstaked_market_amount, rate))
    supplied_amount = add(staked_amount, unstaked_amount)

    staked_coin = to_coin(staked_amount, pool.decimals)
    unstaked_coin = to_coin(unstaked_amount, pool.decimals)
    supplied_coin = to_coin(supplied_amount, pool.decimals)

    available_supply = wallet_amount
    if pool.supply_headroom is not None:
        available_supply = dmin(wallet_amount, pool.supply_headroom)

    claimable = ZERO
    if spool is not None:
        claimable = dsum(calculate_stake_account_reward(a, spool) for a in accounts)

    return Lending(
        coin_name=pool.coin_name,
        symbol=pool.symbol,
        coin_type=pool.coin_type,
        decimals=pool.decimals,
        coin_price=pool.coin_price,
        conversion_rate=rate,
        supply_apr=pool.supply_apr,
        supply_apy=pool.supply_apy,
        reward_apr=spool.stake_apr if spool else ZERO,
        supplied_amount=supplied_amount,
        supplied_coin=supplied_coin,
        supplied_value=mul(supplied_coin, pool.coin_price),
        staked_market_amount=staked_market_amount,
        staked_amount=staked_amount,
        staked_coin=staked_coin,
        staked_value=mul(staked_coin, pool.coin_price),
        unstaked_market_amount=unstaked_market_amount,
        unstaked_amount=unstaked_amount,
        unstaked_coin=unstaked_coin,
        unstaked_value=mul(unstaked_coin, pool.coin_price),
        available_supply_amount=available_supply,
        available_withdraw_amount=dmin(unstaked_amount, pool.available_borrow_liquidity),
        available_stake_amount=unstaked_market_amount if spool else ZERO,
        available_unstake_amount=staked_market_amount,
        available_claim_amount=claimable,
        reward_coin_name=spool.reward_coin_name if spool else "",
    )


class PortfolioAggregator:
    """Lendings, borrowings, pending rewards and governance locks of one wallet."""

    def __init__(
        self,
        fetcher: LedgerFetcher,
        price_feed: PriceOracle,
        config: AppConfig,
        core: CoreQueryService,
        spool: SpoolQueryService,
        borrow_incentive: BorrowIncentiveQueryService,
        vesca: VeScaQueryService,
    ) -> None:
        self._fetcher = fetcher
        self._price_feed = price_feed
        self._config = config
        self._core = core
        self._spool = spool
        self._borrow_incentive = borrow_incentive
        self._vesca = vesca

    # ------------------------------------------------------------------
    # Lendings
    # ------------------------------------------------------------------

    async def _lending_for(
        self, pool: PoolMetrics, owner: str, spool: StakePoolMetrics | None
    ) -> Lending:
        market_coin_name = self._config.coins[pool.coin_name].market_coin_name

        async def no_accounts() -> list[StakeAccount]:
            return []

        wallet_amount, market_amount, accounts = await asyncio.gather(
            self._fetcher.fetch_coin_balance(owner, pool.coin_name),
            self._fetcher.fetch_market_coin_balance(owner, pool.coin_name),
            self._spool.get_stake_accounts(owner, market_coin_name)
            if spool is not None
            else no_accounts(),
        )
        return build_lending(pool, wallet_amount, market_amount, accounts, spool)

    async def _spools_for(self, pools: Iterable[PoolMetrics]) -> dict[str, StakePoolMetrics]:
        spool_coins = self._config.spool_coins()
        market_coin_names = [
            self._config.coins[p.coin_name].market_coin_name
            for p in pools
            if p.coin_name in self._config.coins
        ]
        wanted = [name for name in market_coin_names if name in spool_coins]
        if not wanted:
            return {}
        return await self._spool.get_spools(wanted)

    async def _lendings(
        self, owner: str, market: Market
    ) -> tuple[dict[str, Lending], dict[str, StakePoolMetrics], list[str]]:
        spools = await self._spools_for(market.pools.values())
        lendings, failed = await gather_best_effort(
            "lending",
            (
                (
                    name,
                    self._lending_for(
                        pool,
                        owner,
                        spools.get(self._config.coins[name].market_coin_name),
                    ),
                )
                for name, pool in market.pools.items()
                if name in self._config.coins
            ),
        )
        return lendings, spools, failed

    async def get_lending(self, coin_name: str, owner: str) -> Lending | None:
        lendings = await self.get_lendings(owner, [coin_name])
        return lendings.get(coin_name)

    async def get_lendings(
        self, owner: str, coin_names: list[str] | None = None
    ) -> dict[str, Lending]:
        market = await self._core.get_market_pools(coin_names)
        lendings, _, _ = await self._lendings(owner, market)
        return lendings

    # ------------------------------------------------------------------
    # Borrowings
    # ------------------------------------------------------------------

    async def _borrowing_for(self, key: ObligationKey, owner: str) -> Borrowing:
        account, rewards = await asyncio.gather(
            self._core.get_obligation_account(key.obligation_id, owner),
            self._borrow_incentive.get_pending_rewards(key.obligation_id),
        )
        return Borrowing(
            obligation_id=key.obligation_id,
            account=account,
            incentive_rewards=tuple(rewards.values()),
        )

    async def _borrowings(self, owner: str) -> list[Borrowing]:
        keys = await self._core.get_obligations(owner)
        borrowings, _ = await gather_best_effort(
            "obligation",
            ((key.obligation_id, self._borrowing_for(key, owner)) for key in keys),
        )
        return [borrowings[k.obligation_id] for k in keys if k.obligation_id in borrowings]

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------

    async def _locked_value(self, vescas: list[VeScaMetrics]) -> Decimal | None:
        """USD value of the locked governance coin, or None when it has no price."""
        if not vescas:
            return ZERO
        governance_coin = self._config.market.governance_coin
        try:
            prices = await self._price_feed.fetch_prices([governance_coin])
        except Exception as exc:
            logger.warning("Price fetch failed for %s: %s", governance_coin, exc)
            return None
        price = prices.get(governance_coin)
        if price is None:
            logger.warning("No price for governance coin %s, locked value omitted", governance_coin)
            return None
        return mul(dsum(v.locked_coin for v in vescas), price)

    def _staking_rewards(
        self, lendings: dict[str, Lending], spools: dict[str, StakePoolMetrics]
    ) -> dict[str, PendingReward]:
        amounts: dict[str, Decimal] = {}
        prices: dict[str, Decimal] = {}
        for lending in lendings.values():
            spool = spools.get(self._config.coins[lending.coin_name].market_coin_name)
            if spool is None:
                continue
            add_amounts(amounts, spool.reward_coin_name, lending.available_claim_amount)
            prices[spool.reward_coin_name] = spool.reward_coin_price
        return value_rewards(self._config, amounts, prices)

    async def get_user_portfolio(self, owner: str) -> Portfolio:
        market = await self._core.get_market_pools()
        sections, failed_sections = await gather_best_effort(
            "portfolio section",
            (
                ("lendings", self._lendings(owner, market)),
                ("borrowings", self._borrowings(owner)),
                ("vescas", self._vesca.get_vescas(owner)),
            ),
        )
        for section in failed_sections:
            logger.warning("Portfolio of %s is missing its %s", owner, section)

        lendings, spools, failed_lendings = sections.get("lendings", ({}, {}, []))
        borrowings: list[Borrowing] = sections.get("borrowings", [])
        vescas: list[VeScaMetrics] = sections.get("vescas", [])

        staking_rewards = self._staking_rewards(lendings, spools)
        incentive_rewards = merge_rewards(
            reward for b in borrowings for reward in b.incentive_rewards
        )
        locked_value = await self._locked_value(vescas)
        unpriced_locks: list[str] = []
        if locked_value is None:
            locked_value = ZERO
            unpriced_locks.append(self._config.market.governance_coin)

        total_supply = dsum(lending.supplied_value for lending in lendings.values())
        total_collateral = dsum(b.account.total_deposited_value for b in borrowings)
        total_debt = dsum(b.account.total_borrowed_value for b in borrowings)
        total_pending = add(
            dsum(r.value for r in staking_rewards.values()),
            dsum(r.value for r in incentive_rewards.values()),
        )

        omitted = [
            *market.unavailable,
            *failed_lendings,
            *(coin for b in borrowings for coin in b.account.unvalued_coins),
            *unpriced_locks,
        ]
        if omitted:
            logger.info("Portfolio of %s omits: %s", owner, ", ".join(dict.fromkeys(omitted)))

        return Portfolio(
            owner=owner,
            lendings=lendings,
            borrowings=tuple(borrowings),
            pending_staking_rewards=staking_rewards,
            pending_borrow_incentive_rewards=incentive_rewards,
            vescas=tuple(vescas),
            total_supply_value=total_supply,
            total_collateral_value=total_collateral,
            total_debt_value=total_debt,
            total_locked_value=locked_value,
            total_pending_reward_value=total_pending,
            net_value=sub(add(total_supply, total_collateral), total_debt),
            omitted_coins=tuple(dict.fromkeys(omitted)),
        )

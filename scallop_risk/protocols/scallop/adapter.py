"""Scallop ledger fetcher: reads raw lending-market records from Sui."""
from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import Any

from ...cache import NullCache
from ...config import AppConfig, CoinConfig
from ...errors import RequiredObjectNotFound
from ...interfaces.cache import Cache
from ...interfaces.chain import ChainClient
from ...models import (
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
from . import parser

logger = logging.getLogger(__name__)


class ScallopFetcher:
    """Fetch raw Scallop market, obligation, spool, incentive and veSCA state."""

    def __init__(
        self,
        chain_client: ChainClient,
        config: AppConfig,
        cache: Cache | None = None,
    ) -> None:
        self._client = chain_client
        self._config = config
        self._market = config.market
        self._cache = cache or NullCache()

    # -- type helpers -------------------------------------------------------

    def resolve_coin_name(self, coin_type: str) -> str | None:
        coin = self._config.coin_by_type(coin_type)
        return coin.name if coin else None

    def market_coin_type(self, coin: CoinConfig) -> str:
        return f"{self._market.protocol_package}::reserve::MarketCoin<{coin.coin_type}>"

    def _dynamic_key(self, name: str) -> str:
        return f"{self._market.protocol_package}::market_dynamic_keys::{name}"

    # -- market -------------------------------------------------------------

    async def _market_tables(self) -> parser.MarketTables:
        market_id = self._market.market_id

        async def load() -> parser.MarketTables:
            obj = await self._client.get_object(market_id)
            fields = parser.object_fields(obj)
            if not fields:
                raise RequiredObjectNotFound("market", market_id)
            return parser.parse_market_tables(fields)

        return await self._cache.get_or_fetch(("market_tables", market_id), load)

    async def _type_keyed_entry(self, table_id: str, coin_type: str) -> dict[str, Any]:
        if not table_id:
            return {}
        obj = await self._client.get_dynamic_field_object(
            table_id, parser.TYPE_NAME, {"name": parser.strip_0x(coin_type)}
        )
        return parser.dynamic_field_fields(obj)

    async def _pool_extras(self, coin: CoinConfig) -> parser.PoolExtras:
        market_id = self._market.market_id
        key_value = parser.strip_0x(coin.coin_type)

        async def dynamic(name: str) -> dict[str, Any]:
            return await self._client.get_dynamic_field_object(
                market_id, self._dynamic_key(name), key_value
            )

        async def flashloan_fee() -> dict[str, Any]:
            if not self._market.flashloan_fees_id:
                return {}
            return await self._client.get_dynamic_field_object(
                self._market.flashloan_fees_id, parser.TYPE_NAME, {"name": key_value}
            )

        supply, borrow, fee, isolated, flashloan = await asyncio.gather(
            dynamic("SupplyLimitKey"),
            dynamic("BorrowLimitKey"),
            dynamic("BorrowFeeKey"),
            dynamic("IsolatedAssetKey"),
            flashloan_fee(),
        )
        return parser.PoolExtras(
            supply_limit=parser.parse_scalar(supply),
            borrow_limit=parser.parse_scalar(borrow),
            borrow_fee_rate=parser.parse_scalar(fee),
            flashloan_fee_bps=parser.parse_scalar(flashloan),
            is_isolated=parser.dynamic_field_value(isolated) is True,
        )

    async def fetch_market_pool(self, coin_name: str) -> RawMarketPool | None:
        coin = self._config.coins.get(coin_name)
        if coin is None or not coin.pool:
            return None

        async def load() -> RawMarketPool | None:
            tables = await self._market_tables()
            balance_sheet, borrow_dynamic, interest_model, extras = await asyncio.gather(
                self._type_keyed_entry(tables.balance_sheets, coin.coin_type),
                self._type_keyed_entry(tables.borrow_dynamics, coin.coin_type),
                self._type_keyed_entry(tables.interest_models, coin.coin_type),
                self._pool_extras(coin),
            )
            if not (balance_sheet or borrow_dynamic or interest_model):
                logger.warning("No market pool found for %s", coin_name)
                return None
            return parser.parse_market_pool(
                coin_name,
                coin.coin_type,
                coin.decimals,
                coin.symbol,
                balance_sheet,
                borrow_dynamic,
                interest_model,
                extras,
            )

        return await self._cache.get_or_fetch(("market_pool", coin_name), load)

    async def fetch_market_collateral(self, coin_name: str) -> RawMarketCollateral | None:
        coin = self._config.coins.get(coin_name)
        if coin is None or not coin.collateral:
            return None

        async def load() -> RawMarketCollateral | None:
            tables = await self._market_tables()
            risk_model, collateral_stat = await asyncio.gather(
                self._type_keyed_entry(tables.risk_models, coin.coin_type),
                self._type_keyed_entry(tables.collateral_stats, coin.coin_type),
            )
            if not risk_model:
                logger.warning("No risk model found for %s", coin_name)
                return None
            return parser.parse_market_collateral(
                coin_name,
                coin.coin_type,
                coin.decimals,
                coin.symbol,
                risk_model,
                collateral_stat,
            )

        return await self._cache.get_or_fetch(("market_collateral", coin_name), load)

    # -- obligations --------------------------------------------------------

    async def _table_objects(self, table_id: str) -> list[dict[str, Any]]:
        if not table_id:
            return []
        entries = await self._client.get_dynamic_fields(table_id)
        object_ids = [e.get("objectId") for e in entries if e.get("objectId")]
        return list(await asyncio.gather(*(self._client.get_object(i) for i in object_ids)))

    async def fetch_obligation(self, obligation_id: str) -> RawObligation:
        obj = await self._client.get_object(obligation_id)
        fields = parser.object_fields(obj)
        if not fields:
            raise RequiredObjectNotFound("obligation", obligation_id)

        collateral_table, debt_table = parser.obligation_table_ids(fields)
        collateral_objects, debt_objects = await asyncio.gather(
            self._table_objects(collateral_table),
            self._table_objects(debt_table),
        )
        return parser.parse_obligation(
            obligation_id,
            fields,
            collateral_objects,
            debt_objects,
            self.resolve_coin_name,
        )

    async def fetch_obligation_keys(self, owner: str) -> list[ObligationKey]:
        key_type = f"{self._market.protocol_package}::obligation::ObligationKey"
        objects = await self._client.get_owned_objects(owner, key_type)
        keys = [parser.parse_obligation_key(obj) for obj in objects]
        return [key for key in keys if key is not None]

    # -- spool --------------------------------------------------------------

    async def fetch_stake_accounts(
        self, owner: str, market_coin_name: str
    ) -> list[StakeAccount]:
        coin = self._config.spool_coins().get(market_coin_name)
        if coin is None or not self._market.spool_package:
            return []
        account_type = (
            f"{self._market.spool_package}::spool_account::SpoolAccount"
            f"<{self.market_coin_type(coin)}>"
        )
        objects = await self._client.get_owned_objects(owner, account_type)
        accounts = []
        for obj in objects:
            account = parser.parse_stake_account(obj, market_coin_name)
            if account is None:
                continue
            if coin.spool.stake_pool_id and account.spool_id != coin.spool.stake_pool_id:
                continue
            accounts.append(account)
        return accounts

    async def fetch_stake_pool(self, market_coin_name: str) -> RawStakePool | None:
        coin = self._config.spool_coins().get(market_coin_name)
        if coin is None:
            return None

        async def load() -> RawStakePool | None:
            obj = await self._client.get_object(coin.spool.stake_pool_id)
            return parser.parse_stake_pool(obj, market_coin_name)

        return await self._cache.get_or_fetch(("stake_pool", market_coin_name), load)

    async def fetch_reward_pool(self, market_coin_name: str) -> RawRewardPool | None:
        coin = self._config.spool_coins().get(market_coin_name)
        if coin is None:
            return None

        async def load() -> RawRewardPool | None:
            obj = await self._client.get_object(coin.spool.reward_pool_id)
            return parser.parse_reward_pool(obj, coin.spool.reward_coin)

        return await self._cache.get_or_fetch(("reward_pool", market_coin_name), load)

    # -- borrow incentive ---------------------------------------------------

    async def fetch_borrow_incentive_pool(
        self, coin_name: str
    ) -> RawBorrowIncentivePool | None:
        coin = self._config.coins.get(coin_name)
        if coin is None or not coin.borrow_incentive:
            return None

        async def load() -> RawBorrowIncentivePool | None:
            fields = await self._type_keyed_entry(
                self._market.incentive_pools_id, coin.coin_type
            )
            if not fields:
                return None
            return parser.parse_borrow_incentive_pool(
                coin_name, fields, self.resolve_coin_name
            )

        return await self._cache.get_or_fetch(("incentive_pool", coin_name), load)

    async def fetch_incentive_accounts(self, obligation_id: str) -> list[IncentiveAccount]:
        if not self._market.incentive_accounts_id:
            return []
        obj = await self._client.get_dynamic_field_object(
            self._market.incentive_accounts_id, parser.OBJECT_ID, obligation_id
        )
        fields = parser.dynamic_field_fields(obj)
        if not fields:
            return []
        return parser.parse_incentive_accounts(fields, self.resolve_coin_name)

    # -- veSCA --------------------------------------------------------------

    async def fetch_vescas(self, owner: str) -> list[RawVeSca]:
        """Lock entries of ``owner``'s veSCA keys.

        Keys are looked up in the lock table by id; a key with no entry is
        skipped. Holding keys while no lock table is configured raises
        :class:`RequiredObjectNotFound`.
        """
        if not self._market.vesca_package:
            return []
        key_type = f"{self._market.vesca_package}::ve_sca::VeScaKey"
        keys = await self._client.get_owned_objects(owner, key_type)
        key_ids = [
            k.get("data", {}).get("objectId") for k in keys if k.get("data", {}).get("objectId")
        ]
        if not key_ids:
            return []
        table_id = self._market.vesca_table_id
        if not table_id:
            raise RequiredObjectNotFound("veSCA table", f"{key_type} table (not configured)")
        objects = await asyncio.gather(
            *(
                self._client.get_dynamic_field_object(table_id, parser.OBJECT_ID, key_id)
                for key_id in key_ids
            )
        )
        vescas = []
        for key_id, obj in zip(key_ids, objects):
            vesca = parser.parse_vesca(key_id, obj)
            if vesca is None:
                logger.warning("veSCA key %s has no lock entry", key_id)
                continue
            vescas.append(vesca)
        return vescas

    # -- balances -----------------------------------------------------------

    async def fetch_coin_balance(self, owner: str, coin_name: str) -> Decimal:
        coin = self._config.coins.get(coin_name)
        if coin is None:
            return Decimal(0)
        return Decimal(await self._client.get_balance(owner, coin.coin_type))

    async def fetch_market_coin_balance(self, owner: str, coin_name: str) -> Decimal:
        coin = self._config.coins.get(coin_name)
        if coin is None:
            return Decimal(0)
        return Decimal(await self._client.get_balance(owner, self.market_coin_type(coin)))

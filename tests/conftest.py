"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from dataclasses import replace
from decimal import Decimal
from pathlib import Path

import pytest

from scallop_risk.config import (
    AppConfig,
    CacheConfig,
    ChainConfig,
    CoinConfig,
    IndexerConfig,
    MarketConfig,
    PriceOracleConfig,
    PythConfig,
    SpoolConfig,
)
from scallop_risk.errors import RequiredObjectNotFound
from scallop_risk.models import (
    IncentiveAccount,
    IncentiveAccountPoint,
    ObligationKey,
    RawBorrowIncentivePool,
    RawCollateralEntry,
    RawDebtEntry,
    RawIncentivePoolPoint,
    RawMarketCollateral,
    RawMarketPool,
    RawObligation,
    RawRewardPool,
    RawStakePool,
    RawVeSca,
    StakeAccount,
)

SUI_TYPE = "0x2::sui::SUI"
USDC_TYPE = "0xdba34672e30cb065b1f93e3ab55318768fd6fef66c15942c9f7cb846e2f900e7::usdc::USDC"
SCA_TYPE = "0x7016aae72cfc67f2fadf55769c0a7dd54291a583b63051a5ed71081cce836ac6::sca::SCA"
FAKE_TYPE = "0xfa4e::fakecoin::FAKECOIN"

OWNER = "0xOWNER"
NOW = 1_700_000_100
LAST_UPDATE = 1_700_000_000


def fp(value: str | int) -> Decimal:
    """Encode a fraction as a raw Q32.32 ledger value."""
    return Decimal(int(Decimal(str(value)) * 2**32))


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_chain_config() -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=("https://rpc1.example.com", "https://rpc2.example.com"),
        rpc_timeout=10,
    )


@pytest.fixture()
def sample_market_config() -> MarketConfig:
    return MarketConfig(
        market_id="0xMARKET",
        protocol_package="0xPROTOCOL",
        spool_package="0xSPOOL",
        borrow_incentive_package="0xINCENTIVE",
        incentive_pools_id="0xINCENTIVE_POOLS",
        incentive_accounts_id="0xINCENTIVE_ACCOUNTS",
        vesca_package="0xVESCA",
        vesca_table_id="0xVESCA_TABLE",
    )


@pytest.fixture()
def sample_coins() -> dict[str, CoinConfig]:
    return {
        "sui": CoinConfig(
            name="sui",
            coin_type=SUI_TYPE,
            decimals=9,
            symbol="SUI",
            pyth_feed_id="0xaaa111",
            collateral=True,
            spool=SpoolConfig(
                stake_pool_id="0xSPOOL_SUI",
                reward_pool_id="0xREWARD_SUI",
                reward_coin="sca",
            ),
        ),
        "usdc": CoinConfig(
            name="usdc",
            coin_type=USDC_TYPE,
            decimals=6,
            symbol="USDC",
            pyth_feed_id="0xccc333",
            collateral=True,
            borrow_incentive=True,
        ),
        "fakecoin": CoinConfig(
            name="fakecoin",
            coin_type=FAKE_TYPE,
            decimals=9,
            symbol="FAKE",
        ),
        "sca": CoinConfig(
            name="sca",
            coin_type=SCA_TYPE,
            decimals=9,
            symbol="SCA",
            pyth_feed_id="0xddd444",
            pool=False,
        ),
    }


@pytest.fixture()
def sample_app_config(
    sample_chain_config: ChainConfig,
    sample_market_config: MarketConfig,
    sample_coins: dict[str, CoinConfig],
) -> AppConfig:
    return AppConfig(
        chain=sample_chain_config,
        market=sample_market_config,
        coins=sample_coins,
        price_oracle=PriceOracleConfig(
            pyth=PythConfig(
                hermes_url="https://hermes.example.com/v2/updates/price/latest",
                feeds={"sui": "aaa111", "usdc": "ccc333", "sca": "ddd444"},
            ),
            indexer=IndexerConfig(url="https://indexer.example.com"),
        ),
        cache=CacheConfig(enabled=False),
    )


# ---------------------------------------------------------------------------
# Raw ledger records
# ---------------------------------------------------------------------------


def make_pool(coin_name: str = "sui", **overrides) -> RawMarketPool:
    """A pool at 20% utilization on a curve whose decoded rates are APRs.

    With ``interest_rate_scale`` equal to one year of seconds, a decoded
    rate of 0.25 means 25% APR. At 20% utilization (below the 50% mid kink)
    the borrow APR is 0.25 * 0.2 / 0.5 = 10%.
    """
    decimals = 9 if coin_name != "usdc" else 6
    unit = Decimal(10) ** decimals
    pool = RawMarketPool(
        coin_name=coin_name,
        coin_type={"sui": SUI_TYPE, "usdc": USDC_TYPE}.get(coin_name, FAKE_TYPE),
        decimals=decimals,
        symbol=coin_name.upper(),
        cash=800 * unit,
        debt=200 * unit,
        reserve=10 * unit,
        market_coin_supply=950 * unit,
        borrow_index=Decimal(1_000_000_000),
        last_updated=LAST_UPDATE,
        interest_rate_scale=Decimal(31_536_000),
        base_borrow_rate_per_sec=Decimal(0),
        borrow_rate_on_mid_kink=fp("0.25"),
        borrow_rate_on_high_kink=fp("0.5"),
        max_borrow_rate=fp(2),
        mid_kink=fp("0.5"),
        high_kink=fp("0.75"),
        reserve_factor=fp("0.25"),
        borrow_weight=fp(1),
        min_borrow_amount=Decimal(1000),
    )
    return replace(pool, **overrides)


def make_collateral(coin_name: str = "sui", **overrides) -> RawMarketCollateral:
    decimals = 9 if coin_name != "usdc" else 6
    unit = Decimal(10) ** decimals
    collateral = RawMarketCollateral(
        coin_name=coin_name,
        coin_type={"sui": SUI_TYPE, "usdc": USDC_TYPE}.get(coin_name, FAKE_TYPE),
        decimals=decimals,
        symbol=coin_name.upper(),
        collateral_factor=fp("0.5"),
        liquidation_factor=fp("0.75"),
        liquidation_discount=fp("0.0625"),
        liquidation_penalty=fp("0.0625"),
        liquidation_reserve_factor=fp("0.125"),
        max_collateral_amount=10_000 * unit,
        total_collateral_amount=1_000 * unit,
    )
    return replace(collateral, **overrides)


@pytest.fixture()
def sui_pool() -> RawMarketPool:
    return make_pool("sui")


@pytest.fixture()
def usdc_pool() -> RawMarketPool:
    # Borrow index has grown 5% since the sample debt was opened.
    return make_pool("usdc", borrow_index=Decimal(1_050_000_000))


@pytest.fixture()
def sui_collateral() -> RawMarketCollateral:
    return make_collateral("sui")


@pytest.fixture()
def sample_obligation() -> RawObligation:
    """100 SUI deposited, 100 USDC borrowed at index 1.0."""
    return RawObligation(
        obligation_id="0xOB1",
        collaterals=(RawCollateralEntry("sui", SUI_TYPE, Decimal(100_000_000_000)),),
        debts=(
            RawDebtEntry("usdc", USDC_TYPE, Decimal(100_000_000), Decimal(1_000_000_000)),
        ),
    )


@pytest.fixture()
def sample_stake_pool() -> RawStakePool:
    return RawStakePool(
        id="0xSPOOL_SUI",
        market_coin_name="ssui",
        index=Decimal(0),
        total_staked=Decimal(100_000_000_000),
        max_stake=Decimal(10**18),
        distributed_point=Decimal(0),
        max_point=Decimal(1_000_000_000_000),
        point_per_period=Decimal(1000),
        period=Decimal(10),
        last_update=LAST_UPDATE,
        created_at=LAST_UPDATE - 86_400,
    )


@pytest.fixture()
def sample_reward_pool() -> RawRewardPool:
    return RawRewardPool(
        id="0xREWARD_SUI",
        stake_pool_id="0xSPOOL_SUI",
        reward_coin_name="sca",
        exchange_rate_numerator=Decimal(1),
        exchange_rate_denominator=Decimal(1),
    )


@pytest.fixture()
def sample_stake_account() -> StakeAccount:
    return StakeAccount(
        id="0xSTAKE1",
        market_coin_name="ssui",
        spool_id="0xSPOOL_SUI",
        staked=Decimal(10_000_000_000),
        index=Decimal(0),
        points=Decimal(0),
    )


@pytest.fixture()
def sample_incentive_pool() -> RawBorrowIncentivePool:
    return RawBorrowIncentivePool(
        coin_name="usdc",
        points=(
            RawIncentivePoolPoint(
                reward_coin_name="sca",
                point_per_period=Decimal(500),
                period=Decimal(10),
                distributed_point=Decimal(0),
                max_point=Decimal(1_000_000_000),
                index=Decimal(0),
                base_weight=Decimal(1_000_000_000_000),
                weighted_amount=Decimal(100_000_000),
                last_update=LAST_UPDATE,
            ),
        ),
        staked=Decimal(100_000_000),
    )


@pytest.fixture()
def sample_incentive_account() -> IncentiveAccount:
    return IncentiveAccount(
        coin_name="usdc",
        debt_amount=Decimal(100_000_000),
        points=(
            IncentiveAccountPoint(
                reward_coin_name="sca",
                index=Decimal(0),
                points=Decimal(0),
                weighted_amount=Decimal(100_000_000),
            ),
        ),
    )


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class FakeFetcher:
    """In-memory ledger keyed by coin name / object id."""

    def __init__(
        self,
        pools: dict[str, RawMarketPool] | None = None,
        collaterals: dict[str, RawMarketCollateral] | None = None,
        obligations: dict[str, RawObligation] | None = None,
        obligation_keys: dict[str, list[ObligationKey]] | None = None,
        stake_accounts: dict[tuple[str, str], list[StakeAccount]] | None = None,
        stake_pools: dict[str, RawStakePool] | None = None,
        reward_pools: dict[str, RawRewardPool] | None = None,
        incentive_pools: dict[str, RawBorrowIncentivePool] | None = None,
        incentive_accounts: dict[str, list[IncentiveAccount]] | None = None,
        vescas: dict[str, list[RawVeSca]] | None = None,
        balances: dict[tuple[str, str], Decimal] | None = None,
        market_coin_balances: dict[tuple[str, str], Decimal] | None = None,
    ) -> None:
        self.pools = pools or {}
        self.collaterals = collaterals or {}
        self.obligations = obligations or {}
        self.obligation_keys = obligation_keys or {}
        self.stake_accounts = stake_accounts or {}
        self.stake_pools = stake_pools or {}
        self.reward_pools = reward_pools or {}
        self.incentive_pools = incentive_pools or {}
        self.incentive_accounts = incentive_accounts or {}
        self.vescas = vescas or {}
        self.balances = balances or {}
        self.market_coin_balances = market_coin_balances or {}
        self.failing_pools: set[str] = set()

    async def fetch_market_pool(self, coin_name: str) -> RawMarketPool | None:
        if coin_name in self.failing_pools:
            raise ConnectionError(f"rpc down for {coin_name}")
        return self.pools.get(coin_name)

    async def fetch_market_collateral(self, coin_name: str) -> RawMarketCollateral | None:
        return self.collaterals.get(coin_name)

    async def fetch_obligation(self, obligation_id: str) -> RawObligation:
        if obligation_id not in self.obligations:
            raise RequiredObjectNotFound("obligation", obligation_id)
        return self.obligations[obligation_id]

    async def fetch_obligation_keys(self, owner: str) -> list[ObligationKey]:
        return self.obligation_keys.get(owner, [])

    async def fetch_stake_accounts(self, owner: str, market_coin_name: str) -> list[StakeAccount]:
        return self.stake_accounts.get((owner, market_coin_name), [])

    async def fetch_stake_pool(self, market_coin_name: str) -> RawStakePool | None:
        return self.stake_pools.get(market_coin_name)

    async def fetch_reward_pool(self, market_coin_name: str) -> RawRewardPool | None:
        return self.reward_pools.get(market_coin_name)

    async def fetch_borrow_incentive_pool(self, coin_name: str) -> RawBorrowIncentivePool | None:
        return self.incentive_pools.get(coin_name)

    async def fetch_incentive_accounts(self, obligation_id: str) -> list[IncentiveAccount]:
        return self.incentive_accounts.get(obligation_id, [])

    async def fetch_vescas(self, owner: str) -> list[RawVeSca]:
        return self.vescas.get(owner, [])

    async def fetch_coin_balance(self, owner: str, coin_name: str) -> Decimal:
        return self.balances.get((owner, coin_name), Decimal(0))

    async def fetch_market_coin_balance(self, owner: str, coin_name: str) -> Decimal:
        return self.market_coin_balances.get((owner, coin_name), Decimal(0))


class FakeOracle:
    """Static price table; coins in ``failing`` are never priced."""

    def __init__(self, prices: dict[str, Decimal], failing: set[str] | None = None) -> None:
        self.prices = prices
        self.failing = failing or set()
        self.calls: list[list[str]] = []

    async def fetch_prices(self, coin_names: list[str]) -> dict[str, Decimal]:
        self.calls.append(list(coin_names))
        return {
            c: self.prices[c]
            for c in coin_names
            if c in self.prices and c not in self.failing
        }


SAMPLE_PRICES = {
    "sui": Decimal(2),
    "usdc": Decimal(1),
    "sca": Decimal("0.5"),
    "fakecoin": Decimal(3),
}


@pytest.fixture()
def fake_fetcher(
    sui_pool: RawMarketPool,
    usdc_pool: RawMarketPool,
    sui_collateral: RawMarketCollateral,
    sample_obligation: RawObligation,
    sample_stake_pool: RawStakePool,
    sample_reward_pool: RawRewardPool,
    sample_stake_account: StakeAccount,
    sample_incentive_pool: RawBorrowIncentivePool,
    sample_incentive_account: IncentiveAccount,
) -> FakeFetcher:
    return FakeFetcher(
        pools={"sui": sui_pool, "usdc": usdc_pool, "fakecoin": make_pool("fakecoin")},
        collaterals={"sui": sui_collateral, "usdc": make_collateral("usdc")},
        obligations={"0xOB1": sample_obligation},
        obligation_keys={OWNER: [ObligationKey("0xOB1", "0xKEY1")]},
        stake_accounts={(OWNER, "ssui"): [sample_stake_account]},
        stake_pools={"ssui": sample_stake_pool},
        reward_pools={"ssui": sample_reward_pool},
        incentive_pools={"usdc": sample_incentive_pool},
        incentive_accounts={"0xOB1": [sample_incentive_account]},
        vescas={
            OWNER: [
                RawVeSca("0xVKEY1", "0xVOBJ1", Decimal(1_000_000_000_000), NOW + 365 * 86_400)
            ]
        },
        balances={(OWNER, "sui"): Decimal(5_000_000_000), (OWNER, "usdc"): Decimal(0)},
        market_coin_balances={(OWNER, "sui"): Decimal(50_000_000_000)},
    )


@pytest.fixture()
def fake_oracle() -> FakeOracle:
    return FakeOracle(dict(SAMPLE_PRICES))


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    chain:
      rpc_endpoints: ["https://rpc.example.com"]
      rpc_timeout: 10
    market:
      market_id: "0xMARKET"
      protocol_package: "0xPROTOCOL"
      spool_package: "0xSPOOL"
      vesca_package: "0xVESCA"
      vesca_table_id: "0xVESCA_TABLE"
      project_interest: true
    coins:
      sui:
        coin_type: "0x2::sui::SUI"
        decimals: 9
        symbol: SUI
        pyth_feed_id: "0xaaa111"
        collateral: true
        spool:
          stake_pool_id: "0xSPOOL_SUI"
          reward_pool_id: "0xREWARD_SUI"
          reward_coin: sca
      usdc:
        coin_type: "0xdba3::usdc::USDC"
        decimals: 6
        pyth_feed_id: "0xccc333"
        borrow_incentive: true
      sca:
        coin_type: "0x7016::sca::SCA"
        decimals: 9
        pool: false
    price_oracle:
      pyth:
        hermes_url: "https://hermes.example.com"
        timeout: 5
      indexer:
        enabled: false
    cache:
      ttl_seconds: 2.5
    safety_margin:
      tiers:
        - {min_value_usd: 0, haircut: 0.001}
        - {min_value_usd: 5000, haircut: 0.005}
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file

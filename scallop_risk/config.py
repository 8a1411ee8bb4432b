"""Configuration loader: reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .calculators.obligation import DEFAULT_SAFETY_TIERS

logger = logging.getLogger(__name__)

MARKET_COIN_PREFIX = "s"

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChainConfig:
    rpc_endpoints: tuple[str, ...] = ()
    rpc_timeout: int = 30


@dataclass(frozen=True)
class MarketConfig:
    """On-chain ids of the lending protocol and its satellite packages."""

    market_id: str = ""
    protocol_package: str = ""
    spool_package: str = ""
    borrow_incentive_package: str = ""
    incentive_pools_id: str = ""
    incentive_accounts_id: str = ""
    vesca_package: str = ""
    vesca_table_id: str = ""
    flashloan_fees_id: str = ""
    governance_coin: str = "sca"
    project_interest: bool = False


@dataclass(frozen=True)
class SpoolConfig:
    stake_pool_id: str = ""
    reward_pool_id: str = ""
    reward_coin: str = ""


@dataclass(frozen=True)
class CoinConfig:
    name: str = ""
    coin_type: str = ""
    decimals: int = 0
    symbol: str = ""
    pyth_feed_id: str = ""
    pool: bool = True
    collateral: bool = False
    borrow_incentive: bool = False
    spool: SpoolConfig | None = None

    @property
    def market_coin_name(self) -> str:
        return MARKET_COIN_PREFIX + self.name


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    timeout: int = 10
    feeds: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class IndexerConfig:
    enabled: bool = True
    url: str = "https://sdk.api.scallop.io"
    timeout: int = 10


@dataclass(frozen=True)
class PriceOracleConfig:
    pyth: PythConfig = field(default_factory=PythConfig)
    indexer: IndexerConfig = field(default_factory=IndexerConfig)


@dataclass(frozen=True)
class CacheConfig:
    enabled: bool = True
    ttl_seconds: float = 5.0


@dataclass(frozen=True)
class SafetyMarginConfig:
    tiers: tuple[tuple[Decimal, Decimal], ...] = DEFAULT_SAFETY_TIERS


@dataclass(frozen=True)
class AppConfig:
    chain: ChainConfig = field(default_factory=ChainConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    coins: dict[str, CoinConfig] = field(default_factory=dict)
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    safety_margin: SafetyMarginConfig = field(default_factory=SafetyMarginConfig)

    def pool_coins(self) -> list[str]:
        return [name for name, coin in self.coins.items() if coin.pool]

    def collateral_coins(self) -> list[str]:
        return [name for name, coin in self.coins.items() if coin.collateral]

    def incentive_coins(self) -> list[str]:
        return [name for name, coin in self.coins.items() if coin.borrow_incentive]

    def spool_coins(self) -> dict[str, CoinConfig]:
        """Market coin name → underlying coin, for coins with a spool."""
        return {
            coin.market_coin_name: coin
            for coin in self.coins.values()
            if coin.spool is not None
        }

    def coin_by_type(self, coin_type: str) -> CoinConfig | None:
        wanted = normalize_coin_type(coin_type)
        for coin in self.coins.values():
            if normalize_coin_type(coin.coin_type) == wanted:
                return coin
        return None


def normalize_coin_type(coin_type: str) -> str:
    """Strip the ``0x`` prefix and leading zeros of the address part."""
    address, sep, rest = coin_type.partition("::")
    address = address.lower().removeprefix("0x").lstrip("0") or "0"
    return f"{address}{sep}{rest}"


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_chain(raw: dict[str, Any]) -> ChainConfig:
    return ChainConfig(
        rpc_endpoints=tuple(raw.get("rpc_endpoints", [])),
        rpc_timeout=int(raw.get("rpc_timeout", 30)),
    )


def _build_market(raw: dict[str, Any]) -> MarketConfig:
    return MarketConfig(
        market_id=raw.get("market_id", ""),
        protocol_package=raw.get("protocol_package", ""),
        spool_package=raw.get("spool_package", ""),
        borrow_incentive_package=raw.get("borrow_incentive_package", ""),
        incentive_pools_id=raw.get("incentive_pools_id", ""),
        incentive_accounts_id=raw.get("incentive_accounts_id", ""),
        vesca_package=raw.get("vesca_package", ""),
        vesca_table_id=raw.get("vesca_table_id", ""),
        flashloan_fees_id=raw.get("flashloan_fees_id", ""),
        governance_coin=raw.get("governance_coin", "sca"),
        project_interest=bool(raw.get("project_interest", False)),
    )


def _build_coins(raw: dict[str, Any]) -> dict[str, CoinConfig]:
    coins: dict[str, CoinConfig] = {}
    for name, cfg in raw.items():
        spool_raw = cfg.get("spool")
        spool = None
        if spool_raw:
            spool = SpoolConfig(
                stake_pool_id=spool_raw.get("stake_pool_id", ""),
                reward_pool_id=spool_raw.get("reward_pool_id", ""),
                reward_coin=spool_raw.get("reward_coin", ""),
            )
        coins[name] = CoinConfig(
            name=name,
            coin_type=cfg.get("coin_type", ""),
            decimals=int(cfg.get("decimals", 0)),
            symbol=cfg.get("symbol", name.upper()),
            pyth_feed_id=cfg.get("pyth_feed_id", ""),
            pool=bool(cfg.get("pool", True)),
            collateral=bool(cfg.get("collateral", False)),
            borrow_incentive=bool(cfg.get("borrow_incentive", False)),
            spool=spool,
        )
    return coins


def _build_price_oracle(
    raw: dict[str, Any], coins: dict[str, CoinConfig]
) -> PriceOracleConfig:
    pyth_raw = raw.get("pyth", {})
    indexer_raw = raw.get("indexer", {})
    feeds = {name: coin.pyth_feed_id for name, coin in coins.items() if coin.pyth_feed_id}
    return PriceOracleConfig(
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            timeout=int(pyth_raw.get("timeout", 10)),
            feeds=feeds,
        ),
        indexer=IndexerConfig(
            enabled=bool(indexer_raw.get("enabled", True)),
            url=indexer_raw.get("url", IndexerConfig.url),
            timeout=int(indexer_raw.get("timeout", 10)),
        ),
    )


def _build_cache(raw: dict[str, Any]) -> CacheConfig:
    return CacheConfig(
        enabled=bool(raw.get("enabled", True)),
        ttl_seconds=float(raw.get("ttl_seconds", 5.0)),
    )


def _build_safety_margin(raw: dict[str, Any]) -> SafetyMarginConfig:
    tiers_raw = raw.get("tiers")
    if not tiers_raw:
        return SafetyMarginConfig()
    # YAML floats are routed through str to keep 0.001 exact.
    tiers = tuple(
        (Decimal(str(t["min_value_usd"])), Decimal(str(t["haircut"])))
        for t in tiers_raw
    )
    return SafetyMarginConfig(tiers=tiers)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate application configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (two levels up from this file).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    coins = _build_coins(raw.get("coins", {}))
    cfg = AppConfig(
        chain=_build_chain(raw.get("chain", {})),
        market=_build_market(raw.get("market", {})),
        coins=coins,
        price_oracle=_build_price_oracle(raw.get("price_oracle", {}), coins),
        cache=_build_cache(raw.get("cache", {})),
        safety_margin=_build_safety_margin(raw.get("safety_margin", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.chain.rpc_endpoints:
        raise ValueError("At least one RPC endpoint must be configured")
    if not cfg.market.market_id:
        raise ValueError("Market id is not configured")
    if not cfg.coins:
        raise ValueError("At least one coin must be configured")

    for name, coin in cfg.coins.items():
        if not coin.coin_type:
            raise ValueError(f"Coin '{name}' has no coin type")
        if coin.decimals < 0:
            raise ValueError(f"Coin '{name}' has negative decimals")
        if coin.spool is not None and coin.spool.reward_coin not in cfg.coins:
            raise ValueError(
                f"Coin '{name}' spool references unknown reward coin "
                f"'{coin.spool.reward_coin}'"
            )

    if cfg.market.vesca_table_id and cfg.market.governance_coin not in cfg.coins:
        raise ValueError(
            f"Governance coin '{cfg.market.governance_coin}' is not a configured coin"
        )

    previous = None
    for threshold, haircut in cfg.safety_margin.tiers:
        if previous is not None and threshold <= previous:
            raise ValueError("Safety margin tiers must be strictly ascending")
        if not Decimal(0) <= haircut < Decimal(1):
            raise ValueError(f"Safety margin haircut {haircut} outside [0, 1)")
        previous = threshold

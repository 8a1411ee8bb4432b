"""Scallop indexer used as a secondary price source."""
import logging
import ssl
from decimal import Decimal

import aiohttp
import certifi

from ..config import IndexerConfig
from ..decimal_math import to_decimal

logger = logging.getLogger(__name__)


class IndexerOracle:
    """Read ``coinPrice`` from the indexer's market snapshot."""

    def __init__(self, config: IndexerConfig) -> None:
        self.base_url = config.url.rstrip("/")
        self.timeout = config.timeout

    async def fetch_prices(self, coin_names: list[str] | None = None) -> dict[str, Decimal]:
        prices: dict[str, Decimal] = {}

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    f"{self.base_url}/api/market",
                    timeout=aiohttp.ClientTimeout(total=self.timeout),
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from indexer: HTTP %s",
                            response.status,
                        )
                        return prices
                    data = await response.json()
        except Exception as e:
            logger.error("Error fetching prices from indexer: %s", e)
            return prices

        for entry in data.get("pools", []) + data.get("collaterals", []):
            coin = entry.get("coinName")
            raw_price = entry.get("coinPrice")
            if not coin or raw_price is None:
                continue
            if coin_names is not None and coin not in coin_names:
                continue
            price = to_decimal(raw_price)
            if price > 0:
                prices[coin] = price

        logger.debug("Fetched %d prices from indexer", len(prices))
        return prices

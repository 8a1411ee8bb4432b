"""Pyth Network price oracle service."""
import logging
import ssl
from decimal import Decimal

import aiohttp
import certifi

from ..config import PythConfig
from ..decimal_math import shift

logger = logging.getLogger(__name__)


class PythOracle:
    """Fetch prices from the Pyth Hermes API."""

    def __init__(self, config: PythConfig) -> None:
        self.hermes_url = config.hermes_url
        self.timeout = config.timeout
        self.price_feeds = dict(config.feeds)

    async def fetch_prices(self, coin_names: list[str] | None = None) -> dict[str, Decimal]:
        """Fetch current prices from Pyth Network.

        Args:
            coin_names: Coins to fetch. If None, fetches all configured feeds.
                Coins without a configured feed are left out of the result.
        """
        prices: dict[str, Decimal] = {}

        feeds = self.price_feeds
        if coin_names is not None:
            feeds = {k: v for k, v in self.price_feeds.items() if k in coin_names}

        feed_ids = sorted(set(feeds.values()))
        if not feed_ids:
            return prices

        query_params = "&".join([f"ids[]={fid}" for fid in feed_ids])
        url = f"{self.hermes_url}?{query_params}&parsed=true"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(
                    url, timeout=aiohttp.ClientTimeout(total=self.timeout)
                ) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from Pyth: HTTP %s", response.status
                        )
                        return prices

                    data = await response.json()
                    parsed = data.get("parsed", [])

                    # Hermes returns ids without the 0x prefix
                    id_to_coins: dict[str, list[str]] = {}
                    for coin, feed_id in feeds.items():
                        id_to_coins.setdefault(_strip_0x(feed_id), []).append(coin)

                    for item in parsed:
                        feed_id = _strip_0x(item.get("id", ""))
                        price_data = item.get("price", {})
                        price = shift(
                            int(price_data.get("price", 0)),
                            int(price_data.get("expo", 0)),
                        )
                        if price <= 0:
                            continue
                        for coin in id_to_coins.get(feed_id, []):
                            prices[coin] = price

                    logger.debug("Fetched %d prices from Pyth Network", len(prices))
                    for coin, price in sorted(prices.items()):
                        logger.debug("  %s: $%s", coin, price)

        except Exception as e:
            logger.error("Error fetching prices from Pyth: %s", e)

        return prices


def _strip_0x(feed_id: str) -> str:
    return feed_id.lower().removeprefix("0x")

"""Price feed combining a primary oracle with a fallback source."""
from __future__ import annotations

import logging
from decimal import Decimal

from ..interfaces.cache import Cache
from ..interfaces.price_oracle import PriceOracle

logger = logging.getLogger(__name__)


class PriceFeed:
    """Ask the primary oracle first, then the fallback for whatever is missing.

    Coins neither source can price are absent from the returned table.
    """

    def __init__(
        self,
        primary: PriceOracle,
        fallback: PriceOracle | None = None,
        cache: Cache | None = None,
    ) -> None:
        self._primary = primary
        self._fallback = fallback
        self._cache = cache

    async def fetch_prices(self, coin_names: list[str]) -> dict[str, Decimal]:
        wanted = sorted(set(coin_names))
        if self._cache is None:
            return await self._fetch(wanted)
        return await self._cache.get_or_fetch(
            ("prices", tuple(wanted)), lambda: self._fetch(wanted)
        )

    async def _fetch(self, coin_names: list[str]) -> dict[str, Decimal]:
        prices = dict(await self._primary.fetch_prices(coin_names))
        missing = [c for c in coin_names if c not in prices]

        if missing and self._fallback is not None:
            logger.info("Falling back to secondary price source for: %s", ", ".join(missing))
            fallback_prices = await self._fallback.fetch_prices(missing)
            for coin in missing:
                if coin in fallback_prices:
                    prices[coin] = fallback_prices[coin]

        unpriced = [c for c in coin_names if c not in prices]
        if unpriced:
            logger.warning("No price available for: %s", ", ".join(unpriced))
        return {c: prices[c] for c in coin_names if c in prices}

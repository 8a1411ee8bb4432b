"""Price oracle protocol: price feed abstraction."""
from decimal import Decimal
from typing import Protocol


class PriceOracle(Protocol):
    """Abstract interface for fetching coin prices.

    A coin the source cannot price is simply missing from the result.
    """

    async def fetch_prices(self, coin_names: list[str]) -> dict[str, Decimal]: ...

"""Protocol interfaces for the lending-market query layer."""
from .cache import Cache
from .chain import ChainClient
from .fetcher import LedgerFetcher
from .price_oracle import PriceOracle
from .queries import (
    BorrowIncentiveQueries,
    CoreQueries,
    PortfolioQueries,
    SpoolQueries,
    VeScaQueries,
)

__all__ = [
    "BorrowIncentiveQueries",
    "Cache",
    "ChainClient",
    "CoreQueries",
    "LedgerFetcher",
    "PortfolioQueries",
    "PriceOracle",
    "SpoolQueries",
    "VeScaQueries",
]

"""Price sources."""
from .feed import PriceFeed
from .indexer import IndexerOracle
from .pyth import PythOracle

__all__ = ["IndexerOracle", "PriceFeed", "PythOracle"]

"""Query services built on the calculators."""
from .borrow_incentive import BorrowIncentiveQueryService
from .core import CoreQueryService
from .portfolio import PortfolioAggregator, build_lending
from .query import ScallopQuery
from .spool import SpoolQueryService
from .vesca import VeScaQueryService

__all__ = [
    "BorrowIncentiveQueryService",
    "CoreQueryService",
    "PortfolioAggregator",
    "ScallopQuery",
    "SpoolQueryService",
    "VeScaQueryService",
    "build_lending",
]

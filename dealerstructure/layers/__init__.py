"""
Analysis layers for DealerStructure.

Each layer handles one stage of the structure pipeline:
- Expiration: choose the expiration to analyze
- Chain: retrieve the paginated chain snapshot
- Aggregation: per-strike OI and the data-quality gate
- Metrics: Max Pain, Net GEX, Gamma Flip, walls, ATM IV
"""

from dealerstructure.layers.expiration import (
    ExpirationSelector, HolidayCalendar, WeeklyExpirationFinder
)
from dealerstructure.layers.chain import ChainRetriever
from dealerstructure.layers.aggregation import StructureAggregator
from dealerstructure.layers.metrics import MetricsEngine

__all__ = [
    "ExpirationSelector",
    "HolidayCalendar",
    "WeeklyExpirationFinder",
    "ChainRetriever",
    "StructureAggregator",
    "MetricsEngine",
]

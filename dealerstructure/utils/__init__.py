"""
Utility modules for DealerStructure.
"""

from dealerstructure.utils.logging import setup_logging
from dealerstructure.utils.cache import SimpleCache, structure_cache_key
from dealerstructure.utils.market_clock import MarketClock
from dealerstructure.utils.retry import retry_with_backoff, backoff_schedule, MassiveAPIError

__all__ = [
    "setup_logging",
    "SimpleCache",
    "structure_cache_key",
    "MarketClock",
    "retry_with_backoff",
    "backoff_schedule",
    "MassiveAPIError",
]

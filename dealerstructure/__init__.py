"""
DealerStructure - Options Structure Analytics Engine

Turns raw options-chain snapshots into dealer-positioning analytics:
Max Pain, Net GEX, Gamma Flip, Call Wall / Put Floor, ATM IV and
Put/Call Ratio, gated on data quality.
"""

__version__ = "1.0.0"

from loguru import logger

from dealerstructure.config import Settings
from dealerstructure.engine import StructureEngine

__all__ = ["StructureEngine", "Settings", "__version__"]

logger.disable("dealerstructure")

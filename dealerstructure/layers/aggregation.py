"""
Structure Aggregation Layer.

Reduces raw contracts to per-strike call/put open interest and decides
whether the chain is trustworthy enough to publish OI-based metrics.

Per-strike cells:
- 0     no contract of that type at the strike
- None  contracts exist but none reported open interest
- sum   open interest of the contracts that reported it

Gate: OK only when contracts exist and fewer than 20% lack open interest.
"""

from collections import defaultdict
from typing import Dict, List, Optional
from loguru import logger

from dealerstructure.config import EngineConfig
from dealerstructure.models import (
    AggregatedStructure, OptionContract, OptionsStatus
)


class _StrikeCell:
    __slots__ = ("total", "reported")

    def __init__(self):
        self.total = 0.0
        self.reported = False

    def value(self) -> Optional[float]:
        return self.total if self.reported else None


def put_call_ratio(total_put_oi: float, total_call_oi: float) -> Optional[float]:
    """Put/call OI ratio rounded to 2 decimals; None without call OI."""
    if total_call_oi <= 0:
        return None
    return round(total_put_oi / total_call_oi, 2)


def quality_gate(total_contracts: int, null_oi_count: int) -> OptionsStatus:
    if total_contracts == 0:
        return OptionsStatus.PENDING
    if null_oi_count / total_contracts < EngineConfig.NULL_OI_MAX_RATIO:
        return OptionsStatus.OK
    return OptionsStatus.PENDING


class StructureAggregator:
    """Builds the OI ladder and clean-contract subset for one expiration."""

    def aggregate(self, contracts: List[OptionContract]) -> AggregatedStructure:
        calls: Dict[float, _StrikeCell] = defaultdict(_StrikeCell)
        puts: Dict[float, _StrikeCell] = defaultdict(_StrikeCell)
        strikes = set()
        clean: List[OptionContract] = []
        null_oi = 0
        total_call_oi = 0.0
        total_put_oi = 0.0

        for contract in contracts:
            strikes.add(contract.strike)
            cell = (calls if contract.is_call else puts)[contract.strike]

            if contract.open_interest is None:
                null_oi += 1
                continue

            cell.total += contract.open_interest
            cell.reported = True
            clean.append(contract)
            if contract.is_call:
                total_call_oi += contract.open_interest
            else:
                total_put_oi += contract.open_interest

        sorted_strikes = sorted(strikes)
        structure = AggregatedStructure(
            strikes=sorted_strikes,
            calls_oi=[calls[k].value() if k in calls else 0 for k in sorted_strikes],
            puts_oi=[puts[k].value() if k in puts else 0 for k in sorted_strikes],
            clean_contracts=clean,
            total_contracts=len(contracts),
            null_oi_count=null_oi,
            total_call_oi=total_call_oi,
            total_put_oi=total_put_oi,
            put_call_ratio=put_call_ratio(total_put_oi, total_call_oi),
            status=quality_gate(len(contracts), null_oi),
        )

        logger.debug(
            f"Aggregated {structure.total_contracts} contracts over {len(sorted_strikes)} strikes: "
            f"null OI {null_oi} ({structure.null_oi_ratio:.1%}), PCR={structure.put_call_ratio}, "
            f"status={structure.status.value}"
        )
        return structure

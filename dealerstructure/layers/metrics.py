"""
Metrics Layer - Max Pain, Net GEX, Gamma Flip and OI levels.

Sign convention: dealers are assumed short calls and long puts, so call
gamma enters with -1 and put gamma with +1. Every contribution is
gamma x OI x 100 (contract multiplier).

Two scalings on purpose:
- Headline Net GEX is additionally multiplied by spot (dollar exposure)
- The per-strike map behind the gamma flip is left unscaled so the
  cumulative sign curve does not depend on spot

OI metrics run on clean contracts (open interest reported). The gamma
flip walks every contract with usable gamma.
"""

import math
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Tuple
from loguru import logger

from dealerstructure.config import EngineConfig
from dealerstructure.models import (
    AggregatedStructure, Confidence, GammaFlip, GammaFlipType,
    NetGex, OptionContract, StructureLevels, Validation
)


def usable_gamma(contract: OptionContract) -> Optional[float]:
    """Gamma if finite and nonzero, else None."""
    g = contract.gamma
    if g is None or not math.isfinite(g) or g == 0:
        return None
    return g


def signed_gamma_exposure(contract: OptionContract, gamma: float) -> float:
    direction = -1 if contract.is_call else 1
    oi = contract.open_interest or 0
    return gamma * oi * EngineConfig.CONTRACT_MULTIPLIER * direction


# ==================== Max Pain ====================

def writer_payout(settlement: float, calls: Dict[float, float], puts: Dict[float, float]) -> float:
    """Aggregate intrinsic value owed by writers if expiry settles at ``settlement``."""
    payout = 0.0
    for strike, oi in calls.items():
        if strike < settlement:
            payout += (settlement - strike) * oi
    for strike, oi in puts.items():
        if strike > settlement:
            payout += (strike - settlement) * oi
    return payout


def compute_max_pain(clean: List[OptionContract]) -> Optional[float]:
    """
    Strike minimizing writer payout. Candidates are walked in ascending
    order with strict '<', so the lowest of tied strikes wins.
    """
    if not clean:
        return None

    calls: Dict[float, float] = defaultdict(float)
    puts: Dict[float, float] = defaultdict(float)
    for c in clean:
        (calls if c.is_call else puts)[c.strike] += c.open_interest or 0

    best_strike = None
    best_payout = math.inf
    for candidate in sorted({c.strike for c in clean}):
        payout = writer_payout(candidate, calls, puts)
        if payout < best_payout:
            best_payout = payout
            best_strike = candidate
    return best_strike


# ==================== Net GEX ====================

def gex_confidence(coverage: float) -> Confidence:
    if coverage >= EngineConfig.GAMMA_COVERAGE_MIN:
        return Confidence.HIGH
    if coverage >= EngineConfig.GAMMA_COVERAGE_MEDIUM:
        return Confidence.MEDIUM
    return Confidence.LOW


def compute_net_gex(clean: List[OptionContract], price: float) -> NetGex:
    """Headline net GEX, withheld (None) below 80% gamma coverage."""
    raw_sum = 0.0
    gamma_count = 0
    for c in clean:
        g = usable_gamma(c)
        if g is None:
            continue
        raw_sum += signed_gamma_exposure(c, g)
        gamma_count += 1

    used = len(clean)
    coverage = gamma_count / used if used else 0.0
    confidence = gex_confidence(coverage)

    if used and coverage >= EngineConfig.GAMMA_COVERAGE_MIN and price <= 0:
        value = None
        note = "netGex null: underlying price unavailable"
    elif used and coverage >= EngineConfig.GAMMA_COVERAGE_MIN:
        value = raw_sum * price
        note = f"HIGH confidence (coverage: {coverage * 100:.0f}%)"
    else:
        value = None
        note = (
            f"netGex null: gamma coverage {coverage * 100:.0f}% below "
            f"{EngineConfig.GAMMA_COVERAGE_MIN * 100:.0f}%"
        )

    return NetGex(
        value=value,
        raw_sum=raw_sum,
        coverage=coverage,
        contracts_used=used,
        gamma_count=gamma_count,
        confidence=confidence,
        note=note,
    )


# ==================== Gamma Flip ====================

def gamma_by_strike(contracts: List[OptionContract]) -> List[Tuple[float, float]]:
    """Unscaled signed gamma exposure per strike, ascending."""
    by_strike: Dict[float, float] = defaultdict(float)
    for c in contracts:
        g = usable_gamma(c)
        if g is not None:
            by_strike[c.strike] += signed_gamma_exposure(c, g)
    return sorted(by_strike.items())


def compute_gamma_flip(contracts: List[OptionContract], price: float) -> GammaFlip:
    """
    Locate where cumulative GEX changes sign, searching within +/-15% of spot.

    EXACT      crossing inside the band, nearest to spot
    NEAR_ZERO  no crossing in band; in-band strike with smallest |cumulative|
    ALL_LONG / ALL_SHORT  no in-band gamma at all; sign of the final total
    NO_DATA    no usable gamma anywhere (or no spot)
    """
    ladder = gamma_by_strike(contracts)
    if not ladder or price <= 0:
        return GammaFlip()

    band_low = price * (1 - EngineConfig.FLIP_BAND)
    band_high = price * (1 + EngineConfig.FLIP_BAND)

    cumulative = 0.0
    crossings: List[float] = []
    in_band: List[Tuple[float, float]] = []

    for i, (strike, exposure) in enumerate(ladder):
        previous = cumulative
        cumulative += exposure
        if i > 0 and ((previous < 0 <= cumulative) or (previous > 0 >= cumulative)):
            crossings.append(strike)
        if band_low <= strike <= band_high:
            in_band.append((strike, abs(cumulative)))

    band_crossings = [s for s in crossings if band_low <= s <= band_high]
    if band_crossings:
        level = band_crossings[0]
        for strike in band_crossings[1:]:
            if abs(strike - price) < abs(level - price):
                level = strike
        flip_type = GammaFlipType.EXACT
    elif in_band:
        level = min(in_band, key=lambda item: item[1])[0]
        flip_type = GammaFlipType.NEAR_ZERO
    else:
        level = None
        flip_type = GammaFlipType.ALL_LONG if cumulative > 0 else GammaFlipType.ALL_SHORT

    logger.debug(f"Gamma flip {flip_type.value} at {level} ({len(crossings)} crossings)")
    return GammaFlip(level=level, flip_type=flip_type, crossings=crossings, final_cumulative=cumulative)


# ==================== OI levels ====================

def find_call_wall(clean: List[OptionContract], price: float) -> Optional[float]:
    """Highest-OI call strike above spot and no more than 20% above it."""
    ceiling = price * (1 + EngineConfig.WALL_BAND)
    wall, best_oi = None, -1.0
    for c in clean:
        if c.is_call and price < c.strike <= ceiling and c.open_interest > best_oi:
            wall, best_oi = c.strike, c.open_interest
    return wall


def find_put_floor(clean: List[OptionContract], price: float) -> Optional[float]:
    """Highest-OI put strike below spot and no more than 20% below it."""
    floor = price * (1 - EngineConfig.WALL_BAND)
    level, best_oi = None, -1.0
    for c in clean:
        if not c.is_call and floor <= c.strike < price and c.open_interest > best_oi:
            level, best_oi = c.strike, c.open_interest
    return level


def compute_atm_iv(strikes: List[float], clean: List[OptionContract], price: float) -> Optional[float]:
    """IV at the strike nearest spot, call first then put, on a 0-100 scale."""
    if not strikes or not clean or price <= 0:
        return None

    atm = strikes[0]
    for strike in strikes[1:]:
        if abs(strike - price) < abs(atm - price):
            atm = strike

    for wanted_call in (True, False):
        for c in clean:
            if c.strike == atm and c.is_call == wanted_call:
                iv = c.implied_volatility
                if iv is None or not math.isfinite(iv) or iv <= 0:
                    break
                return round(iv * 100 if iv <= 1 else iv, 1)
    return None


def is_gamma_squeeze(
    net_gex: Optional[float],
    call_wall: Optional[float],
    price: float,
    pcr: Optional[float]
) -> bool:
    return (
        net_gex is not None and net_gex > EngineConfig.SQUEEZE_MIN_NET_GEX
        and call_wall is not None
        and price >= call_wall * EngineConfig.SQUEEZE_CALL_WALL_PROXIMITY
        and pcr is not None and pcr < EngineConfig.SQUEEZE_MAX_PCR
    )


def gamma_concentration(clean: List[OptionContract], price: float, total_oi: float) -> Tuple[int, str, float]:
    """Percent of OI within +/-5% of spot, its label, and the raw near-spot OI."""
    band = price * EngineConfig.CONCENTRATION_BAND
    near_oi = sum(c.open_interest for c in clean if abs(c.strike - price) <= band)
    pct = int(round(near_oi / total_oi * 100)) if total_oi > 0 else 0
    if pct >= EngineConfig.CONCENTRATION_STICKY:
        label = "STICKY"
    elif pct >= EngineConfig.CONCENTRATION_NORMAL:
        label = "NORMAL"
    else:
        label = "LOOSE"
    return pct, label, near_oi


def squeeze_risk(
    net_gex: Optional[float],
    days_to_expiry: int,
    pcr: Optional[float],
    flip_level: Optional[float],
    price: float
) -> Tuple[int, str]:
    weights = EngineConfig.SQUEEZE_RISK_WEIGHTS
    score = 0
    if net_gex is not None and net_gex > 0:
        score += weights["positive_gex"]
    # Expiry weight grows as expiration nears (<= 1 day outranks <= 3 days),
    # never with distance to expiry.
    if days_to_expiry <= 1:
        score += weights["expiry_today"]
    elif days_to_expiry <= 3:
        score += weights["expiry_near"]
    if pcr is not None and (pcr > 1.5 or pcr < 0.5):
        score += weights["pcr_extreme"]
    if flip_level and price > 0 and abs(price - flip_level) / price < EngineConfig.FLIP_PROXIMITY:
        score += weights["near_flip"]

    for threshold, label in EngineConfig.SQUEEZE_RISK_LEVELS:
        if score >= threshold:
            return score, label
    return score, "LOW"


def validate_calculations(
    pcr: Optional[float],
    max_pain: Optional[float],
    put_floor: Optional[float],
    call_wall: Optional[float],
    price: float,
    coverage: float
) -> Validation:
    """Range checks on the published numbers."""
    checks = {"pcr": False, "maxPain": False, "putFloor": False, "callWall": False, "gammaCoverage": False}
    failures: List[str] = []

    low, high = EngineConfig.PCR_VALID_RANGE
    if pcr is not None:
        if low < pcr < high:
            checks["pcr"] = True
        else:
            failures.append("pcr")

    if max_pain is not None and price > 0:
        if abs(max_pain - price) / price < EngineConfig.MAX_PAIN_MAX_DEVIATION:
            checks["maxPain"] = True
        else:
            failures.append("maxPain")

    if put_floor is not None and price > 0:
        if put_floor < price:
            checks["putFloor"] = True
        else:
            failures.append("putFloor")

    if call_wall is not None and price > 0:
        if call_wall > price:
            checks["callWall"] = True
        else:
            failures.append("callWall")

    if coverage >= EngineConfig.VALIDATION_MIN_GAMMA_COVERAGE:
        checks["gammaCoverage"] = True
    else:
        failures.append("gammaCoverage")

    if not failures:
        confidence = Confidence.HIGH
    elif len(failures) == 1:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW
    return Validation(is_valid=not failures, confidence=confidence, checks=checks, failures=failures)


@dataclass
class StructureMetrics:
    """Everything the metrics layer derives for an OK chain."""
    max_pain: Optional[float]
    net_gex: NetGex
    levels: StructureLevels
    atm_iv: Optional[float]
    is_gamma_squeeze: bool
    gamma_concentration: int
    gamma_concentration_label: str
    near_price_oi: float
    squeeze_score: int
    squeeze_risk: str
    validation: Validation
    notes: List[str] = field(default_factory=list)


class MetricsEngine:
    """Computes the published analytics for one aggregated chain."""

    def compute(
        self,
        structure: AggregatedStructure,
        price: float,
        gamma_flip: GammaFlip,
        days_to_expiry: int = 0
    ) -> StructureMetrics:
        clean = structure.clean_contracts
        pcr = structure.put_call_ratio

        max_pain = compute_max_pain(clean)
        net_gex = compute_net_gex(clean, price)

        if price > 0:
            call_wall = find_call_wall(clean, price)
            put_floor = find_put_floor(clean, price)
        else:
            call_wall = put_floor = None

        levels = StructureLevels(call_wall=call_wall, put_floor=put_floor, pin_zone=max_pain)
        total_oi = structure.total_call_oi + structure.total_put_oi
        concentration, concentration_label, near_oi = gamma_concentration(clean, price, total_oi)
        score, risk = squeeze_risk(net_gex.value, days_to_expiry, pcr, gamma_flip.level, price)

        notes = [net_gex.note] if net_gex.note else []
        if price <= 0:
            notes.append("spot unavailable: walls, ATM IV and squeeze flag skipped")

        metrics = StructureMetrics(
            max_pain=max_pain,
            net_gex=net_gex,
            levels=levels,
            atm_iv=compute_atm_iv(structure.strikes, clean, price),
            is_gamma_squeeze=is_gamma_squeeze(net_gex.value, call_wall, price, pcr),
            gamma_concentration=concentration,
            gamma_concentration_label=concentration_label,
            near_price_oi=near_oi,
            squeeze_score=score,
            squeeze_risk=risk,
            validation=validate_calculations(pcr, max_pain, put_floor, call_wall, price, net_gex.coverage),
            notes=notes,
        )

        logger.info(
            f"Metrics: maxPain={max_pain}, netGex={net_gex.value}, "
            f"callWall={call_wall}, putFloor={put_floor}, atmIv={metrics.atm_iv}, "
            f"squeeze={metrics.is_gamma_squeeze}"
        )
        return metrics

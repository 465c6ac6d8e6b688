"""
Data models for DealerStructure.
Defines the data structures passed between the retrieval, aggregation
and metrics layers, and the StructureResult payload handed to callers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any


class OptionType(Enum):
    """Option contract type."""
    CALL = "call"
    PUT = "put"


class Session(Enum):
    """US equity trading session (Eastern Time)."""
    PRE = "PRE"
    REG = "REG"
    POST = "POST"
    CLOSED = "CLOSED"


class OptionsStatus(Enum):
    """Outcome of the data-quality gate."""
    OK = "OK"
    PENDING = "PENDING"
    FAILED = "FAILED"


class GammaFlipType(Enum):
    """How the gamma flip level was located."""
    EXACT = "EXACT"
    MULTI_EXP = "MULTI_EXP"
    NEAR_ZERO = "NEAR_ZERO"
    ALL_LONG = "ALL_LONG"
    ALL_SHORT = "ALL_SHORT"
    NO_DATA = "NO_DATA"


class SourceGrade(Enum):
    """Coarse grade of the underlying chain data."""
    A = "A"
    B = "B"
    C = "C"


class Confidence(Enum):
    """Confidence bucket for GEX and validation."""
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass
class FetchOutcome:
    """Result of one retried HTTP GET. Never raised, always returned."""
    success: bool
    attempts: int
    latency_ms: float
    data: Optional[Any] = None
    error: Optional[str] = None


@dataclass
class OptionContract:
    """One option contract from a chain snapshot (transient)."""
    strike: float
    option_type: OptionType
    open_interest: Optional[float] = None
    gamma: Optional[float] = None
    implied_volatility: Optional[float] = None

    @property
    def is_call(self) -> bool:
        return self.option_type == OptionType.CALL


@dataclass
class SpotQuote:
    """Underlying snapshot fields used by the engine."""
    price: float = 0.0
    prev_close: float = 0.0
    day_close: float = 0.0
    last_trade: float = 0.0


@dataclass
class ExtendedQuote:
    """Pre/post-market price relative to the regular session."""
    pre_price: Optional[float] = None
    pre_change_pct: Optional[float] = None
    post_price: Optional[float] = None
    post_change_pct: Optional[float] = None

    def to_dict(self) -> Dict[str, float]:
        keys = {
            "prePrice": self.pre_price,
            "preChangePct": self.pre_change_pct,
            "postPrice": self.post_price,
            "postChangePct": self.post_change_pct,
        }
        return {k: v for k, v in keys.items() if v is not None}


@dataclass
class ChainRetrieval:
    """Contracts accumulated across chain pages plus retrieval counters."""
    contracts: List[OptionContract] = field(default_factory=list)
    pages_fetched: int = 0
    attempts: int = 0
    latency_ms: float = 0.0
    truncated: bool = False
    malformed_rows: int = 0
    error: Optional[str] = None


@dataclass
class AggregatedStructure:
    """Per-strike open interest and quality ratios for one expiration."""
    strikes: List[float] = field(default_factory=list)
    calls_oi: List[Optional[float]] = field(default_factory=list)
    puts_oi: List[Optional[float]] = field(default_factory=list)
    clean_contracts: List[OptionContract] = field(default_factory=list)
    total_contracts: int = 0
    null_oi_count: int = 0
    total_call_oi: float = 0.0
    total_put_oi: float = 0.0
    put_call_ratio: Optional[float] = None
    status: OptionsStatus = OptionsStatus.PENDING

    @property
    def null_oi_ratio(self) -> float:
        if self.total_contracts == 0:
            return 0.0
        return self.null_oi_count / self.total_contracts


@dataclass
class GammaFlip:
    """Gamma flip search result."""
    level: Optional[float] = None
    flip_type: GammaFlipType = GammaFlipType.NO_DATA
    crossings: List[float] = field(default_factory=list)
    final_cumulative: float = 0.0


@dataclass
class NetGex:
    """Headline net gamma exposure and its coverage."""
    value: Optional[float]
    raw_sum: float
    coverage: float
    contracts_used: int
    gamma_count: int
    confidence: Confidence
    note: str = ""


@dataclass
class Validation:
    """Sanity checks over the computed levels."""
    is_valid: bool
    confidence: Confidence
    checks: Dict[str, bool]
    failures: List[str] = field(default_factory=list)

    @classmethod
    def incomplete(cls) -> "Validation":
        return cls(
            is_valid=False,
            confidence=Confidence.LOW,
            checks={k: False for k in ("pcr", "maxPain", "putFloor", "callWall", "gammaCoverage")},
            failures=["incomplete_data"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "confidence": self.confidence.value,
            "checks": dict(self.checks),
            "failures": list(self.failures),
        }


@dataclass
class StructureLevels:
    """Key price levels derived from open interest."""
    call_wall: Optional[float] = None
    put_floor: Optional[float] = None
    pin_zone: Optional[float] = None


@dataclass
class Diagnostics:
    """Operator-facing counters explaining how a result was produced."""
    api_status: int = 200
    pages_fetched: int = 0
    contracts_fetched: int = 0
    malformed_rows: int = 0
    attempts: int = 0
    latency_ms: float = 0.0
    spot_attempts: int = 0
    spot_latency_ms: float = 0.0
    discovery_source: str = "none"
    null_oi_count: int = 0
    null_oi_ratio: float = 0.0
    gamma_coverage: float = 0.0
    contracts_used_for_gex: int = 0
    raw_gex_sum: float = 0.0
    multiplier_used: int = 100
    gamma_flip_crossings: List[float] = field(default_factory=list)
    chain_truncated: bool = False
    today_oi: float = 0.0
    near_price_oi: float = 0.0
    notes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "apiStatus": self.api_status,
            "pagesFetched": self.pages_fetched,
            "contractsFetched": self.contracts_fetched,
            "malformedRows": self.malformed_rows,
            "attempts": self.attempts,
            "latencyMs": round(self.latency_ms, 1),
            "spotAttempts": self.spot_attempts,
            "spotLatencyMs": round(self.spot_latency_ms, 1),
            "discoverySource": self.discovery_source,
            "nullOiCount": self.null_oi_count,
            "nullOiRatio": round(self.null_oi_ratio, 4),
            "gammaCoverage": round(self.gamma_coverage, 4),
            "contractsUsedForGex": self.contracts_used_for_gex,
            "rawGexSum": self.raw_gex_sum,
            "multiplierUsed": self.multiplier_used,
            "gexFormula": "sum(put gamma*oi*mult) - sum(call gamma*oi*mult)",
            "gammaFlipCrossings": list(self.gamma_flip_crossings),
            "chainTruncated": self.chain_truncated,
            "todayOI": self.today_oi,
            "nearPriceOI": self.near_price_oi,
            "notes": "; ".join(self.notes),
        }


@dataclass
class StructureResult:
    """Dealer-positioning analytics for one underlying and expiration."""
    ticker: str
    expiration: str
    available_expirations: List[str] = field(default_factory=list)
    underlying_price: Optional[float] = None
    prev_close: Optional[float] = None
    change_percent: float = 0.0
    extended: Optional[ExtendedQuote] = None
    session: Session = Session.CLOSED
    put_call_ratio: Optional[float] = None
    options_status: OptionsStatus = OptionsStatus.PENDING
    strikes: List[float] = field(default_factory=list)
    calls_oi: List[Optional[float]] = field(default_factory=list)
    puts_oi: List[Optional[float]] = field(default_factory=list)
    max_pain: Optional[float] = None
    net_gex: Optional[float] = None
    gex_confidence: Confidence = Confidence.LOW
    gamma_flip_level: Optional[float] = None
    gamma_flip_type: GammaFlipType = GammaFlipType.NO_DATA
    levels: StructureLevels = field(default_factory=StructureLevels)
    atm_iv: Optional[float] = None
    is_gamma_squeeze: bool = False
    days_to_expiry: int = 0
    gamma_concentration: int = 0
    gamma_concentration_label: str = "LOOSE"
    squeeze_score: int = 0
    squeeze_risk: str = "LOW"
    validation: Validation = field(default_factory=Validation.incomplete)
    source_grade: SourceGrade = SourceGrade.C
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    cached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Render the camelCase payload consumed by dashboard routes."""
        return {
            "ticker": self.ticker,
            "expiration": self.expiration,
            "availableExpirations": list(self.available_expirations),
            "underlyingPrice": self.underlying_price,
            "prevClose": self.prev_close,
            "changePercent": self.change_percent,
            "extended": self.extended.to_dict() if self.extended else None,
            "session": self.session.value,
            "pcr": self.put_call_ratio,
            "isGammaSqueeze": self.is_gamma_squeeze,
            "options_status": self.options_status.value,
            "structure": {
                "strikes": list(self.strikes),
                "callsOI": list(self.calls_oi),
                "putsOI": list(self.puts_oi),
            },
            "maxPain": self.max_pain,
            "netGex": self.net_gex,
            "gexConfidence": self.gex_confidence.value,
            "gammaFlipLevel": self.gamma_flip_level,
            "gammaFlipType": self.gamma_flip_type.value,
            "atmIv": self.atm_iv,
            "daysToExpiry": self.days_to_expiry,
            "gammaConcentration": self.gamma_concentration,
            "gammaConcentrationLabel": self.gamma_concentration_label,
            "squeezeRisk": self.squeeze_risk,
            "squeezeScore": self.squeeze_score,
            "levels": {
                "callWall": self.levels.call_wall,
                "putFloor": self.levels.put_floor,
                "pinZone": self.levels.pin_zone,
            },
            "validation": self.validation.to_dict(),
            "sourceGrade": self.source_grade.value,
            "debug": self.diagnostics.to_dict(),
            "cached": self.cached,
        }

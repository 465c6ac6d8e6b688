"""
Response schemas for the Massive (Polygon) REST endpoints.

Every field the engine reads is optional here; parsing happens once at the
client boundary so downstream layers work with typed values only.

Scalar fields are lenient: a value of the wrong type ("N/A", {}, ...) becomes
None instead of failing the whole payload. Chain rows are validated one by
one; a row that still cannot be used is dropped and counted.
"""

from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict, PrivateAttr, ValidationError, field_validator

from dealerstructure.models import OptionContract, OptionType, SpotQuote


def _lenient_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _lenient_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ==================== Stock snapshot ====================

class _Trade(_Payload):
    p: Optional[float] = None

    @field_validator("p", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> Optional[float]:
        return _lenient_float(value)


class _Bar(_Payload):
    c: Optional[float] = None

    @field_validator("c", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> Optional[float]:
        return _lenient_float(value)


class TickerSnapshot(_Payload):
    lastTrade: Optional[_Trade] = None
    min: Optional[_Bar] = None
    day: Optional[_Bar] = None
    prevDay: Optional[_Bar] = None

    @field_validator("lastTrade", "min", "day", "prevDay", mode="before")
    @classmethod
    def coerce_object(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    def to_quote(self) -> SpotQuote:
        """Collapse the snapshot into price fields, falling back bar by bar."""
        last_trade = (self.lastTrade.p if self.lastTrade else None) or 0.0
        minute_close = (self.min.c if self.min else None) or 0.0
        day_close = (self.day.c if self.day else None) or 0.0
        prev_close = (self.prevDay.c if self.prevDay else None) or 0.0
        price = last_trade or minute_close or day_close or prev_close or 0.0
        return SpotQuote(
            price=float(price),
            prev_close=float(prev_close),
            day_close=float(day_close),
            last_trade=float(last_trade),
        )


class SnapshotResponse(_Payload):
    ticker: Optional[TickerSnapshot] = None


# ==================== Options reference ====================

class ContractReference(_Payload):
    expiration_date: Optional[str] = None

    @field_validator("expiration_date", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_str(value)


class ReferenceResponse(_Payload):
    results: Optional[List[Any]] = None
    next_url: Optional[str] = None

    def expirations(self) -> List[str]:
        dates = set()
        for row in self.results or []:
            try:
                ref = ContractReference.model_validate(row)
            except ValidationError:
                continue
            if ref.expiration_date:
                dates.add(ref.expiration_date)
        return sorted(dates)


# ==================== Options chain snapshot ====================

class _Details(_Payload):
    strike_price: Optional[float] = None
    contract_type: Optional[str] = None
    expiration_date: Optional[str] = None

    @field_validator("strike_price", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> Optional[float]:
        return _lenient_float(value)

    @field_validator("contract_type", "expiration_date", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_str(value)


class _Greeks(_Payload):
    gamma: Optional[float] = None
    implied_volatility: Optional[float] = None

    @field_validator("gamma", "implied_volatility", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> Optional[float]:
        return _lenient_float(value)


class ChainContract(_Payload):
    details: Optional[_Details] = None
    greeks: Optional[_Greeks] = None
    strike_price: Optional[float] = None
    contract_type: Optional[str] = None
    expiration_date: Optional[str] = None
    open_interest: Optional[float] = None
    implied_volatility: Optional[float] = None
    iv: Optional[float] = None

    @field_validator("strike_price", "open_interest", "implied_volatility", "iv", mode="before")
    @classmethod
    def coerce_number(cls, value: Any) -> Optional[float]:
        return _lenient_float(value)

    @field_validator("contract_type", "expiration_date", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_str(value)

    @field_validator("details", "greeks", mode="before")
    @classmethod
    def coerce_object(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @property
    def expiration(self) -> Optional[str]:
        return (self.details.expiration_date if self.details else None) or self.expiration_date

    def to_contract(self) -> Optional[OptionContract]:
        """Normalized contract, or None when the row carries no usable strike."""
        details = self.details or _Details()
        strike = details.strike_price or self.strike_price
        if strike is None or strike <= 0 or strike != strike:
            return None
        raw_type = (details.contract_type or self.contract_type or "call").lower()
        option_type = OptionType.PUT if raw_type == "put" else OptionType.CALL
        greeks = self.greeks or _Greeks()
        iv = greeks.implied_volatility or self.implied_volatility or self.iv
        return OptionContract(
            strike=float(strike),
            option_type=option_type,
            open_interest=self.open_interest,
            gamma=greeks.gamma,
            implied_volatility=iv,
        )


class ChainPage(_Payload):
    results: Optional[List[Any]] = None
    next_url: Optional[str] = None

    @field_validator("next_url", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> Optional[str]:
        return _lenient_str(value)

    _rows: List[ChainContract] = PrivateAttr(default_factory=list)
    _contracts: List[OptionContract] = PrivateAttr(default_factory=list)
    _malformed: int = PrivateAttr(default=0)

    def model_post_init(self, __context: Any) -> None:
        for raw in self.results or []:
            try:
                row = ChainContract.model_validate(raw)
            except ValidationError:
                self._malformed += 1
                continue
            contract = row.to_contract()
            if contract is None:
                self._malformed += 1
                continue
            self._rows.append(row)
            self._contracts.append(contract)

    @property
    def malformed_rows(self) -> int:
        """Rows dropped because they could not be turned into a contract."""
        return self._malformed

    def contracts(self) -> List[OptionContract]:
        return list(self._contracts)

    def expirations(self) -> List[str]:
        return sorted({r.expiration for r in self._rows if r.expiration})


# ==================== Market status ====================

class MarketHoliday(_Payload):
    date: Optional[str] = None
    name: Optional[str] = None
    exchange: Optional[str] = None
    status: Optional[str] = None

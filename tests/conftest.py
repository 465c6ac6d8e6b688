"""Shared pytest fixtures for DealerStructure tests."""

from datetime import datetime
from typing import Dict, List, Optional

import pytest

from dealerstructure.config import Settings
from dealerstructure.clients.schemas import ChainPage, MarketHoliday
from dealerstructure.models import FetchOutcome, OptionContract, OptionType, SpotQuote
from dealerstructure.utils.market_clock import EST, MarketClock


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeMassiveClient:
    """
    In-memory stand-in for MassiveClient.

    ``pages`` maps an expiration to a list of chain-page payloads; page N
    links to page N+1 through next_url.
    """

    def __init__(
        self,
        quote: Optional[SpotQuote] = None,
        expirations: Optional[List[str]] = None,
        snapshot_expirations: Optional[List[str]] = None,
        pages: Optional[Dict[str, List[dict]]] = None,
        holidays: Optional[List[dict]] = None,
    ):
        self.quote = quote
        self.expirations = expirations or []
        self.snapshot_expirations = snapshot_expirations or []
        self.pages = pages or {}
        self.holidays = holidays if holidays is not None else []
        self.calls: List[str] = []

    @staticmethod
    def _ok(data=None) -> FetchOutcome:
        return FetchOutcome(success=True, attempts=1, latency_ms=5.0, data=data)

    async def get_spot_quote(self, ticker):
        self.calls.append("spot")
        if self.quote is None:
            return None, FetchOutcome(success=False, attempts=2, latency_ms=600.0, error="boom")
        return self.quote, self._ok()

    async def get_reference_expirations(self, ticker, from_date):
        self.calls.append("reference")
        return list(self.expirations), self._ok()

    async def sample_snapshot_expirations(self, ticker, from_date):
        self.calls.append("snapshot")
        return list(self.snapshot_expirations), self._ok()

    async def get_chain_page(self, endpoint, params=None):
        self.calls.append(f"chain:{endpoint}")
        if endpoint.startswith("https://cursor/"):
            expiration, index = endpoint[len("https://cursor/"):].split("/")
            index = int(index)
        else:
            expiration, index = params["expiration_date"], 0

        payloads = self.pages.get(expiration, [])
        if index >= len(payloads):
            return ChainPage(results=[]), self._ok({"results": []})

        payload = dict(payloads[index])
        if index + 1 < len(payloads):
            payload["next_url"] = f"https://cursor/{expiration}/{index + 1}"
        return ChainPage.model_validate(payload), self._ok(payload)

    async def get_market_holidays(self):
        return [MarketHoliday.model_validate(h) for h in self.holidays]

    async def close(self):
        pass


def chain_row(strike, contract_type="call", oi=100, gamma=0.01, iv=0.25, expiration="2026-03-06"):
    """One chain-snapshot result row in the provider's shape."""
    row = {
        "details": {"strike_price": strike, "contract_type": contract_type, "expiration_date": expiration},
        "greeks": {"gamma": gamma},
        "implied_volatility": iv,
    }
    if oi is not None:
        row["open_interest"] = oi
    return row


def contract(strike, option_type="call", oi=100, gamma=None, iv=None) -> OptionContract:
    return OptionContract(
        strike=float(strike),
        option_type=OptionType(option_type),
        open_interest=oi,
        gamma=gamma,
        implied_volatility=iv,
    )


def et_clock(year, month, day, hour=10, minute=0) -> MarketClock:
    fixed = EST.localize(datetime(year, month, day, hour, minute))
    return MarketClock(now_fn=lambda: fixed)


@pytest.fixture
def settings():
    return Settings(massive_api_key="test-key", backoff_base_ms=0, _env_file=None)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def monday_clock():
    """Monday 2026-03-02 10:00 ET (regular session)."""
    return et_clock(2026, 3, 2)

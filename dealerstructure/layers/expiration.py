"""
Expiration Selection Layer.

Chooses which expiration to analyze:
1. Caller-requested date, if the chain actually lists it
2. Otherwise the canonical weekly expiration (holiday aware)
3. With no candidates at all: the requested date, then the next trading day

Weekly rule: the coming Friday (next Friday once Friday's 16:00 ET close
has passed). If that Friday is an exchange holiday the weekly moves to
Thursday, and to Wednesday if Thursday is closed too.
"""

from datetime import datetime, date, timedelta
from typing import Optional, List, Set
from loguru import logger

from dealerstructure.config import Settings, EngineConfig
from dealerstructure.clients.massive_client import MassiveClient
from dealerstructure.utils.cache import SimpleCache
from dealerstructure.utils.market_clock import MarketClock

FRIDAY = 4
THURSDAY = 3


def _weekday(date_str: str) -> Optional[int]:
    try:
        return date.fromisoformat(date_str).weekday()
    except ValueError:
        return None


def next_weekly_expiration(now_et: datetime, holidays: Set[str]) -> str:
    """Expected weekly expiration (YYYY-MM-DD) as seen from ``now_et``."""
    days_to_add = (FRIDAY - now_et.weekday()) % 7
    if days_to_add == 0 and now_et.hour >= 16:
        days_to_add = 7

    target = now_et.date() + timedelta(days=days_to_add)

    # Friday holiday -> Thursday, and Wednesday if Thursday is closed as well
    for _ in range(2):
        if target.isoformat() not in holidays:
            break
        target -= timedelta(days=1)

    return target.isoformat()


class HolidayCalendar:
    """Exchange closures from /v1/marketstatus/upcoming, cached for a day."""

    CACHE_KEY = "holidays"

    def __init__(self, client: MassiveClient, settings: Settings, cache: Optional[SimpleCache] = None):
        self.client = client
        self._cache = cache or SimpleCache(default_ttl=settings.holiday_cache_ttl)
        self._last_known: Set[str] = set()

    async def get_holidays(self) -> Set[str]:
        """Closed dates on NYSE/NASDAQ. A failed refresh keeps the previous list."""
        cached = self._cache.get(self.CACHE_KEY)
        if cached is not None:
            return cached

        rows = await self.client.get_market_holidays()
        if rows is None:
            logger.warning("Holiday refresh failed, keeping previous calendar")
            return self._last_known

        closed = {
            h.date for h in rows
            if h.date and h.status == "closed" and h.exchange in EngineConfig.HOLIDAY_EXCHANGES
        }
        self._cache.set(self.CACHE_KEY, closed)
        self._last_known = closed
        logger.info(f"Holiday calendar loaded: {len(closed)} closures")
        return closed


class WeeklyExpirationFinder:
    """Picks the canonical weekly expiration from sorted candidate dates."""

    def __init__(self, calendar: HolidayCalendar, clock: MarketClock):
        self.calendar = calendar
        self.clock = clock

    async def find(self, candidates: List[str]) -> str:
        """
        Returns the expected weekly if listed, else the first Friday, else
        the first Thursday, else the first candidate. Empty input -> "".
        """
        if not candidates:
            return ""

        ordered = sorted(candidates)
        holidays = await self.calendar.get_holidays()
        expected = next_weekly_expiration(self.clock.now(), holidays)

        if expected in ordered:
            return expected

        for weekday in (FRIDAY, THURSDAY):
            for exp in ordered:
                if _weekday(exp) == weekday:
                    return exp

        return ordered[0]


class ExpirationSelector:
    """Resolves the target expiration for one structure request."""

    def __init__(self, finder: WeeklyExpirationFinder, clock: MarketClock):
        self.finder = finder
        self.clock = clock

    async def select(self, candidates: List[str], requested: Optional[str] = None) -> str:
        if candidates:
            if requested and requested in candidates:
                return requested
            weekly = await self.finder.find(candidates)
            if weekly:
                return weekly

        return requested or self.clock.next_trading_day().isoformat()

"""
Eastern-Time clock for trading-day and session decisions.
"""

from datetime import datetime, date, timedelta
from typing import Callable, Optional
import pytz

from dealerstructure.config import EngineConfig
from dealerstructure.models import Session

EST = pytz.timezone("US/Eastern")


def _utc_now() -> datetime:
    return datetime.now(pytz.utc)


class MarketClock:
    """
    Wall clock pinned to US/Eastern.

    ``now_fn`` returns an aware datetime in any zone (UTC by default); tests
    inject a fixed instant.
    """

    def __init__(self, now_fn: Optional[Callable[[], datetime]] = None):
        self._now_fn = now_fn or _utc_now

    def now(self) -> datetime:
        """Current time in US/Eastern."""
        current = self._now_fn()
        if current.tzinfo is None:
            current = EST.localize(current)
        return current.astimezone(EST)

    def today(self) -> date:
        return self.now().date()

    def next_trading_day(self) -> date:
        """
        Earliest date an expiration can fall on.

        Saturday -> Monday, Sunday -> Monday, weekdays -> today. Holidays
        are left to the weekly-expiration finder.
        """
        today = self.today()
        weekday = today.weekday()
        if weekday == 5:
            return today + timedelta(days=2)
        if weekday == 6:
            return today + timedelta(days=1)
        return today

    def session(self) -> Session:
        """Classify the current trading session."""
        now = self.now()
        if now.weekday() >= 5:
            return Session.CLOSED

        minutes = now.hour * 60 + now.minute
        if EngineConfig.PREMARKET_OPEN <= minutes < EngineConfig.REGULAR_OPEN:
            return Session.PRE
        if EngineConfig.REGULAR_OPEN <= minutes < EngineConfig.REGULAR_CLOSE:
            return Session.REG
        if EngineConfig.REGULAR_CLOSE <= minutes < EngineConfig.POSTMARKET_CLOSE:
            return Session.POST
        return Session.CLOSED

    def days_until(self, target: date) -> int:
        """Calendar days from today (ET) to ``target``, never negative."""
        return max(0, (target - self.today()).days)

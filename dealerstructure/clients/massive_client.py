"""
Massive (Polygon) API client for options structure data.

Endpoints used:
- /v2/snapshot/locale/us/markets/stocks/tickers/{ticker}   spot snapshot
- /v3/reference/options/contracts                          expiration discovery
- /v3/snapshot/options/{ticker}                            chain snapshot (paginated)
- /v1/marketstatus/upcoming                                market holidays

Every public fetch goes through fetch_with_retry and never raises; callers
get a FetchOutcome (plus a parsed payload where one applies).
"""

import asyncio
from datetime import date
from typing import Optional, List, Dict, Any, Tuple
import aiohttp
from loguru import logger
from pydantic import ValidationError

from dealerstructure.config import Settings, EngineConfig
from dealerstructure.models import FetchOutcome, SpotQuote
from dealerstructure.clients.schemas import (
    SnapshotResponse, ReferenceResponse, ChainPage, MarketHoliday
)
from dealerstructure.utils.retry import retry_with_backoff, MassiveAPIError


class MassiveClient:
    """
    Client for the Massive market data REST API.

    One aiohttp session per event loop; the session is recreated if the
    loop that owned it has gone away.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.api_key = settings.massive_api_key
        self.base_url = settings.massive_base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=settings.request_timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_loop_id: Optional[int] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session, recreating it on event loop change."""
        current_loop_id = id(asyncio.get_running_loop())

        needs_new = (
            self._session is None
            or self._session.closed
            or self._session_loop_id != current_loop_id
        )

        if needs_new:
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._session_loop_id = current_loop_id

        return self._session

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._session_loop_id = None

    def _build_url(self, endpoint: str) -> str:
        # next_url cursors arrive as absolute URLs
        if endpoint.startswith("http"):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Single GET attempt. Raises on transport errors and non-200 status."""
        query = dict(params or {})
        if "apiKey=" not in url:
            query["apiKey"] = self.api_key

        session = await self._get_session()
        async with session.get(url, params=query) as response:
            if response.status != 200:
                raise MassiveAPIError(response.status, await response.text())
            return await response.json()

    async def fetch_with_retry(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        max_attempts: Optional[int] = None,
    ) -> FetchOutcome:
        """
        GET with bounded retry and exponential backoff (200, 400, 800 ms...).

        Never raises. Returns a FetchOutcome carrying the decoded JSON on
        success, or the last error after the attempt cap.
        """
        url = self._build_url(endpoint)
        attempts = max_attempts or self.settings.fetch_max_attempts
        return await retry_with_backoff(
            lambda: self._get_json(url, params),
            max_attempts=attempts,
            base_ms=self.settings.backoff_base_ms,
            label=url.replace(self.base_url, ""),
        )

    @staticmethod
    def _parse(model, outcome: FetchOutcome, what: str):
        """Validate a successful payload against ``model``; None on failure."""
        if not outcome.success or not isinstance(outcome.data, (dict, list)):
            return None
        try:
            return model.model_validate(outcome.data)
        except ValidationError as e:
            logger.warning(f"Unexpected {what} payload shape: {e.error_count()} errors")
            return None

    # ==================== Spot ====================

    async def get_spot_quote(self, ticker: str) -> Tuple[Optional[SpotQuote], FetchOutcome]:
        """Last trade / previous close for the underlying."""
        endpoint = f"/v2/snapshot/locale/us/markets/stocks/tickers/{ticker}"
        outcome = await self.fetch_with_retry(endpoint, max_attempts=self.settings.spot_max_attempts)
        parsed = self._parse(SnapshotResponse, outcome, "snapshot")
        if parsed is None or parsed.ticker is None:
            if outcome.success:
                logger.error(f"{ticker}: snapshot had no ticker block")
            else:
                logger.error(f"{ticker}: spot fetch failed: {outcome.error or 'unknown'}")
            return None, outcome
        return parsed.ticker.to_quote(), outcome

    # ==================== Expiration discovery ====================

    async def get_reference_expirations(
        self,
        ticker: str,
        from_date: date
    ) -> Tuple[List[str], FetchOutcome]:
        """Distinct expirations >= from_date from the contracts reference endpoint."""
        params = {
            "underlying_ticker": ticker,
            "expiration_date.gte": from_date.isoformat(),
            "order": "asc",
            "limit": EngineConfig.REFERENCE_PAGE_LIMIT,
        }
        outcome = await self.fetch_with_retry(
            "/v3/reference/options/contracts",
            params,
            max_attempts=self.settings.discovery_max_attempts,
        )
        parsed = self._parse(ReferenceResponse, outcome, "reference")
        return (parsed.expirations() if parsed else []), outcome

    async def sample_snapshot_expirations(
        self,
        ticker: str,
        from_date: date
    ) -> Tuple[List[str], FetchOutcome]:
        """Distinct expirations seen in the first chain snapshot page (fallback discovery)."""
        params = {
            "expiration_date.gte": from_date.isoformat(),
            "limit": EngineConfig.SNAPSHOT_SAMPLE_LIMIT,
            "sort": "expiration_date",
            "order": "asc",
        }
        outcome = await self.fetch_with_retry(
            f"/v3/snapshot/options/{ticker}",
            params,
            max_attempts=self.settings.discovery_max_attempts,
        )
        parsed = self._parse(ChainPage, outcome, "chain sample")
        return (parsed.expirations() if parsed else []), outcome

    # ==================== Chain snapshot ====================

    async def get_chain_page(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Tuple[Optional[ChainPage], FetchOutcome]:
        """One page of the options chain snapshot (first page or a next_url cursor)."""
        outcome = await self.fetch_with_retry(endpoint, params)
        return self._parse(ChainPage, outcome, "chain page"), outcome

    # ==================== Market status ====================

    async def get_market_holidays(self) -> Optional[List[MarketHoliday]]:
        """Upcoming market holidays; None when the endpoint is unavailable."""
        outcome = await self.fetch_with_retry("/v1/marketstatus/upcoming", max_attempts=1)
        if not outcome.success or not isinstance(outcome.data, list):
            return None
        holidays = []
        for row in outcome.data:
            try:
                holidays.append(MarketHoliday.model_validate(row))
            except ValidationError:
                logger.debug(f"Skipping malformed holiday row: {row!r}")
        return holidays

"""
DealerStructure - Main Pipeline and Orchestrator.

Pipeline Flow:
1. Result cache (short-circuit on hit)
2. Spot snapshot + expiration discovery (concurrent)
3. Expiration selection
4. Chain retrieval (paginated, retried)
5. Structure aggregation + data-quality gate
6. Metrics (OK chains only)
7. Cache write (OK results only)

The engine always returns a StructureResult. Network exhaustion degrades
individual fields; missing or low-quality data yields PENDING.
"""

import asyncio
import copy
from datetime import date
from typing import Optional, List, Tuple
from loguru import logger

from dealerstructure.config import Settings, EngineConfig, get_settings
from dealerstructure.models import (
    AggregatedStructure, ChainRetrieval, Diagnostics, ExtendedQuote,
    GammaFlip, OptionsStatus, Session, SourceGrade, SpotQuote,
    StructureResult, Validation
)
from dealerstructure.clients.massive_client import MassiveClient
from dealerstructure.layers.expiration import (
    ExpirationSelector, HolidayCalendar, WeeklyExpirationFinder
)
from dealerstructure.layers.chain import ChainRetriever
from dealerstructure.layers.aggregation import StructureAggregator
from dealerstructure.layers.metrics import MetricsEngine, compute_gamma_flip
from dealerstructure.utils.cache import SimpleCache, structure_cache_key
from dealerstructure.utils.market_clock import MarketClock


def extended_quote(quote: SpotQuote, session: Session) -> Optional[ExtendedQuote]:
    """Pre/post-market move implied by the last trade, if any."""
    last = quote.last_trade
    if session in (Session.POST, Session.CLOSED):
        if last > 0 and quote.day_close > 0 and last != quote.day_close:
            return ExtendedQuote(
                post_price=last,
                post_change_pct=(last - quote.day_close) / quote.day_close,
            )
    elif session == Session.PRE:
        if last > 0 and quote.prev_close > 0:
            return ExtendedQuote(
                pre_price=last,
                pre_change_pct=(last - quote.prev_close) / quote.prev_close,
            )
    return None


def change_percent(price: float, prev_close: float) -> float:
    if prev_close > 0 and price > 0:
        return round((price - prev_close) / prev_close * 100, 2)
    return 0.0


class StructureEngine:
    """
    Options structure engine for one process.

    Construct once and share: the result cache lives on the instance.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[MassiveClient] = None,
        clock: Optional[MarketClock] = None,
        cache: Optional[SimpleCache] = None,
    ):
        self.settings = settings or get_settings()
        self.config = EngineConfig

        self.client = client or MassiveClient(self.settings)
        self.clock = clock or MarketClock()
        self.cache = cache or SimpleCache(default_ttl=self.settings.structure_cache_ttl)

        self.holidays = HolidayCalendar(self.client, self.settings)
        self.selector = ExpirationSelector(WeeklyExpirationFinder(self.holidays, self.clock), self.clock)
        self.chain = ChainRetriever(self.client, self.settings)
        self.aggregator = StructureAggregator()
        self.metrics = MetricsEngine()

    async def close(self):
        """Clean up resources."""
        await self.client.close()

    async def get_structure_data(
        self,
        ticker: str,
        requested_expiration: Optional[str] = None
    ) -> StructureResult:
        """
        Dealer-positioning analytics for ``ticker``.

        Args:
            ticker: Underlying symbol
            requested_expiration: Optional YYYY-MM-DD; honored if listed

        Returns:
            StructureResult (cached=True when served from the 60s cache)
        """
        ticker = ticker.upper()
        key = structure_cache_key(ticker, requested_expiration)

        hit = self.cache.get_with_age(key)
        if hit is not None:
            result, age = hit
            logger.debug(f"[CACHE HIT] {ticker}: returning cached data (age: {age:.0f}s)")
            served = copy.deepcopy(result)
            served.cached = True
            return served

        if self.settings.structure_timeout:
            try:
                result = await asyncio.wait_for(
                    self._compute(ticker, requested_expiration),
                    timeout=self.settings.structure_timeout,
                )
            except asyncio.TimeoutError:
                logger.error(f"{ticker}: structure request exceeded {self.settings.structure_timeout}s")
                result = self._timed_out(ticker, requested_expiration)
        else:
            result = await self._compute(ticker, requested_expiration)

        if result.options_status == OptionsStatus.OK:
            self.cache.set(key, copy.deepcopy(result))
        return result

    async def _discover_expirations(self, ticker: str, from_date: date) -> Tuple[List[str], str]:
        """All listed expirations >= from_date and which endpoint supplied them."""
        expirations, _ = await self.client.get_reference_expirations(ticker, from_date)
        if expirations:
            logger.info(f"[OPTIONS] {ticker} reference expirations: {', '.join(expirations[:8])}")
            return expirations, "reference"

        expirations, _ = await self.client.sample_snapshot_expirations(ticker, from_date)
        if expirations:
            logger.info(f"[OPTIONS] {ticker} snapshot-sample expirations: {', '.join(expirations[:8])}")
            return expirations, "snapshot"

        logger.warning(f"[OPTIONS] {ticker}: no expirations discovered from {from_date}")
        return [], "none"

    async def _compute(self, ticker: str, requested: Optional[str]) -> StructureResult:
        next_day = self.clock.next_trading_day()

        (quote, spot_outcome), (expirations, source) = await asyncio.gather(
            self.client.get_spot_quote(ticker),
            self._discover_expirations(ticker, next_day),
        )
        quote = quote or SpotQuote()
        price = quote.price
        session = self.clock.session()

        target = await self.selector.select(expirations, requested)
        logger.info(f"[OPTIONS] {ticker} target expiry: {target}")

        result = StructureResult(
            ticker=ticker,
            expiration=target,
            available_expirations=expirations[:self.config.MAX_PUBLISHED_EXPIRATIONS],
            underlying_price=price or None,
            prev_close=quote.prev_close or None,
            change_percent=change_percent(price, quote.prev_close),
            extended=extended_quote(quote, session),
            session=session,
        )
        result.diagnostics.spot_attempts = spot_outcome.attempts
        result.diagnostics.spot_latency_ms = spot_outcome.latency_ms
        result.diagnostics.discovery_source = source

        retrieval = await self.chain.retrieve(ticker, target)
        self._record_retrieval(result.diagnostics, retrieval)

        if not retrieval.contracts:
            result.source_grade = SourceGrade.C
            result.diagnostics.api_status = self._empty_chain_status(retrieval)
            result.diagnostics.notes.append(self._empty_chain_note(target, retrieval))
            return result

        structure = self.aggregator.aggregate(retrieval.contracts)
        gamma_flip = compute_gamma_flip(retrieval.contracts, price)
        self._apply_structure(result, structure, gamma_flip)

        if structure.status != OptionsStatus.OK:
            result.source_grade = SourceGrade.B
            result.diagnostics.notes.append(
                f"netGex null: options_status is PENDING "
                f"(null OI {structure.null_oi_ratio:.0%} of {structure.total_contracts} contracts)"
            )
            logger.warning(f"{ticker} {target}: quality gate PENDING, metrics withheld")
            return result

        days_to_expiry = self._days_to_expiry(target)
        metrics = self.metrics.compute(structure, price, gamma_flip, days_to_expiry)

        result.max_pain = metrics.max_pain
        result.net_gex = metrics.net_gex.value
        result.gex_confidence = metrics.net_gex.confidence
        result.levels = metrics.levels
        result.atm_iv = metrics.atm_iv
        result.is_gamma_squeeze = metrics.is_gamma_squeeze
        result.days_to_expiry = days_to_expiry
        result.gamma_concentration = metrics.gamma_concentration
        result.gamma_concentration_label = metrics.gamma_concentration_label
        result.squeeze_score = metrics.squeeze_score
        result.squeeze_risk = metrics.squeeze_risk
        result.validation = metrics.validation
        result.source_grade = SourceGrade.A

        diag = result.diagnostics
        diag.gamma_coverage = metrics.net_gex.coverage
        diag.contracts_used_for_gex = metrics.net_gex.contracts_used
        diag.raw_gex_sum = metrics.net_gex.raw_sum
        diag.near_price_oi = metrics.near_price_oi
        diag.notes.extend(metrics.notes)

        logger.info(
            f"{ticker} {target}: OK maxPain={result.max_pain} netGex={result.net_gex} "
            f"flip={result.gamma_flip_level} ({result.gamma_flip_type.value})"
        )
        return result

    def _record_retrieval(self, diag: Diagnostics, retrieval: ChainRetrieval):
        diag.pages_fetched = retrieval.pages_fetched
        diag.contracts_fetched = len(retrieval.contracts)
        diag.attempts = retrieval.attempts
        diag.latency_ms = retrieval.latency_ms
        diag.chain_truncated = retrieval.truncated
        diag.malformed_rows = retrieval.malformed_rows
        diag.multiplier_used = self.config.CONTRACT_MULTIPLIER
        if retrieval.truncated:
            diag.notes.append(f"chain truncated at {retrieval.pages_fetched} pages")
        if retrieval.malformed_rows:
            diag.notes.append(f"{retrieval.malformed_rows} unparsable chain rows dropped")
        if retrieval.error:
            diag.notes.append(f"chain fetch stopped: {retrieval.error}")

    @staticmethod
    def _empty_chain_status(retrieval: ChainRetrieval) -> int:
        if retrieval.pages_fetched == 0 and retrieval.error:
            return 502
        if retrieval.malformed_rows:
            return 422
        return 404

    @staticmethod
    def _empty_chain_note(target: str, retrieval: ChainRetrieval) -> str:
        if retrieval.pages_fetched == 0 and retrieval.error:
            return f"netGex null: chain for {target} could not be fetched ({retrieval.error})"
        if retrieval.malformed_rows:
            return (
                f"netGex null: chain for {target} returned {retrieval.malformed_rows} rows, "
                f"none usable"
            )
        return f"netGex null: target expiration {target} not found or no contracts"

    def _apply_structure(self, result: StructureResult, structure: AggregatedStructure, gamma_flip: GammaFlip):
        result.options_status = structure.status
        result.put_call_ratio = structure.put_call_ratio
        result.strikes = structure.strikes
        result.calls_oi = structure.calls_oi
        result.puts_oi = structure.puts_oi
        result.gamma_flip_level = gamma_flip.level
        result.gamma_flip_type = gamma_flip.flip_type
        result.validation = Validation.incomplete()

        diag = result.diagnostics
        diag.null_oi_count = structure.null_oi_count
        diag.null_oi_ratio = structure.null_oi_ratio
        diag.gamma_flip_crossings = gamma_flip.crossings
        diag.today_oi = structure.total_call_oi + structure.total_put_oi

    def _days_to_expiry(self, expiration: str) -> int:
        try:
            return self.clock.days_until(date.fromisoformat(expiration))
        except ValueError:
            return 0

    def _timed_out(self, ticker: str, requested: Optional[str]) -> StructureResult:
        result = StructureResult(
            ticker=ticker,
            expiration=requested or self.clock.next_trading_day().isoformat(),
            session=self.clock.session(),
        )
        result.diagnostics.api_status = 504
        result.diagnostics.notes.append(
            f"structure request timed out after {self.settings.structure_timeout}s"
        )
        return result

    def get_status(self) -> dict:
        """Get engine status."""
        return {
            "base_url": self.settings.massive_base_url,
            "cache": self.cache.stats(),
            "cache_ttl": self.settings.structure_cache_ttl,
            "chain_max_pages": self.settings.chain_max_pages,
            "fetch_max_attempts": self.settings.fetch_max_attempts,
        }

"""
Tests for the retry combinator and MassiveClient.fetch_with_retry().
"""

import asyncio
from datetime import date
from unittest.mock import AsyncMock

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from dealerstructure.clients.massive_client import MassiveClient
from dealerstructure.utils.retry import MassiveAPIError, backoff_schedule, retry_with_backoff


class RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class TestBackoffSchedule:
    """Tests for backoff_schedule()."""

    def test_doubles_from_base(self):
        assert backoff_schedule(4, 200) == [0.2, 0.4, 0.8]

    def test_single_attempt_never_sleeps(self):
        assert backoff_schedule(1, 200) == []


class TestRetryWithBackoff:
    """Tests for retry_with_backoff()."""

    @pytest.mark.asyncio
    async def test_first_attempt_success(self):
        sleep = RecordingSleep()
        outcome = await retry_with_backoff(AsyncMock(return_value={"ok": 1}), 3, sleep=sleep)

        assert outcome.success
        assert outcome.attempts == 1
        assert outcome.data == {"ok": 1}
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_failures(self):
        sleep = RecordingSleep()
        operation = AsyncMock(side_effect=[
            MassiveAPIError(502, "bad gateway"),
            asyncio.TimeoutError(),
            {"results": []},
        ])
        outcome = await retry_with_backoff(operation, 3, base_ms=200, sleep=sleep)

        assert outcome.success
        assert outcome.attempts == 3
        assert sleep.delays == [0.2, 0.4]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_failure(self):
        sleep = RecordingSleep()
        operation = AsyncMock(side_effect=aiohttp.ClientConnectionError("refused"))
        outcome = await retry_with_backoff(operation, 3, sleep=sleep)

        assert not outcome.success
        assert outcome.attempts == 3
        assert outcome.data is None
        assert "refused" in outcome.error
        assert outcome.latency_ms >= 0
        assert operation.await_count == 3

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self):
        operation = AsyncMock(side_effect=KeyError("bug"))
        with pytest.raises(KeyError):
            await retry_with_backoff(operation, 3, sleep=RecordingSleep())


class TestMassiveClientFetch:
    """Tests for MassiveClient.fetch_with_retry()."""

    @pytest.mark.asyncio
    async def test_never_raises(self, settings):
        client = MassiveClient(settings)
        client._get_json = AsyncMock(side_effect=MassiveAPIError(500, "down"))

        outcome = await client.fetch_with_retry("/v3/snapshot/options/SPY", max_attempts=2)

        assert outcome.success is False
        assert outcome.attempts == 2
        assert "500" in outcome.error

    @pytest.mark.asyncio
    async def test_relative_and_cursor_urls(self, settings):
        client = MassiveClient(settings)
        client._get_json = AsyncMock(return_value={})

        await client.fetch_with_retry("/v1/marketstatus/upcoming")
        await client.fetch_with_retry("https://api.massive.com/v3/snapshot/options/SPY?cursor=abc")

        urls = [call.args[0] for call in client._get_json.await_args_list]
        assert urls == [
            "https://api.massive.com/v1/marketstatus/upcoming",
            "https://api.massive.com/v3/snapshot/options/SPY?cursor=abc",
        ]

    @pytest.mark.asyncio
    async def test_spot_quote_parsed(self, settings):
        client = MassiveClient(settings)
        client._get_json = AsyncMock(return_value={
            "ticker": {"lastTrade": {"p": 101.5}, "day": {"c": 100.0}, "prevDay": {"c": 99.0}}
        })

        quote, outcome = await client.get_spot_quote("SPY")

        assert outcome.success
        assert quote.price == 101.5
        assert quote.prev_close == 99.0
        assert quote.day_close == 100.0

    @pytest.mark.asyncio
    async def test_spot_failure_degrades(self, settings):
        client = MassiveClient(settings)
        client._get_json = AsyncMock(side_effect=asyncio.TimeoutError())

        quote, outcome = await client.get_spot_quote("SPY")

        assert quote is None
        assert outcome.attempts == settings.spot_max_attempts

    @pytest.mark.asyncio
    async def test_reference_expirations_deduplicated(self, settings):
        client = MassiveClient(settings)
        client._get_json = AsyncMock(return_value={"results": [
            {"expiration_date": "2026-03-13"},
            {"expiration_date": "2026-03-06"},
            {"expiration_date": "2026-03-06"},
            {"ticker": "O:SPY..."},
        ]})

        expirations, _ = await client.get_reference_expirations("SPY", date(2026, 3, 2))

        assert expirations == ["2026-03-06", "2026-03-13"]
        params = client._get_json.await_args.args[1]
        assert params["expiration_date.gte"] == "2026-03-02"
        assert params["underlying_ticker"] == "SPY"

    @pytest.mark.asyncio
    async def test_undecodable_body_degrades(self, settings):
        client = MassiveClient(settings)
        client._get_json = AsyncMock(
            side_effect=UnicodeDecodeError("utf-8", b"\xff\xfe", 0, 1, "invalid start byte")
        )

        quote, outcome = await client.get_spot_quote("SPY")

        assert quote is None
        assert outcome.success is False
        assert outcome.attempts == settings.spot_max_attempts
        assert "utf-8" in outcome.error

    @pytest.mark.asyncio
    async def test_non_utf8_json_from_server(self, settings):
        async def snapshot(request):
            return web.Response(body=b'{"ticker": "\xff\xfe"}', content_type="application/json")

        app = web.Application()
        app.router.add_get("/v2/snapshot/locale/us/markets/stocks/tickers/SPY", snapshot)
        server = TestServer(app)
        await server.start_server()
        client = MassiveClient(settings.model_copy(update={"massive_base_url": str(server.make_url("/"))}))
        try:
            quote, outcome = await client.get_spot_quote("SPY")
        finally:
            await client.close()
            await server.close()

        assert quote is None
        assert outcome.success is False
        assert outcome.attempts == settings.spot_max_attempts

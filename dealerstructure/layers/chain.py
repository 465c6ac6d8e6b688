"""
Chain Retrieval Layer.

Follows next_url cursors on the options chain snapshot for one expiration.
Pages are serial (each cursor comes from the previous page) and capped;
hitting the cap ends the cycle and is reported as truncation, not failure.
"""

from typing import AsyncIterator, Optional, Tuple
from loguru import logger

from dealerstructure.config import Settings
from dealerstructure.clients.massive_client import MassiveClient
from dealerstructure.clients.schemas import ChainPage
from dealerstructure.models import ChainRetrieval, FetchOutcome


async def iter_chain_pages(
    client: MassiveClient,
    ticker: str,
    expiration: str,
    page_limit: int = 250,
    max_pages: int = 10,
) -> AsyncIterator[Tuple[Optional[ChainPage], FetchOutcome, bool]]:
    """
    Yield (page, outcome, has_more) for up to ``max_pages`` pages.

    Stops after a failed or empty page. ``has_more`` is True when the
    page carried a cursor. Single-use: consume once per request.
    """
    endpoint = f"/v3/snapshot/options/{ticker}"
    params = {"expiration_date": expiration, "limit": page_limit}
    fetched = 0

    while endpoint and fetched < max_pages:
        page, outcome = await client.get_chain_page(endpoint, params)
        if page is None or page.results is None:
            yield page, outcome, False
            return

        fetched += 1
        has_more = bool(page.next_url)
        yield page, outcome, has_more

        endpoint = page.next_url or ""
        params = None  # cursor URLs carry their own query


class ChainRetriever:
    """Accumulates every contract for one expiration across pages."""

    def __init__(self, client: MassiveClient, settings: Settings):
        self.client = client
        self.settings = settings

    async def retrieve(self, ticker: str, expiration: str) -> ChainRetrieval:
        retrieval = ChainRetrieval()
        has_more = False

        pages = iter_chain_pages(
            self.client,
            ticker,
            expiration,
            page_limit=self.settings.chain_page_limit,
            max_pages=self.settings.chain_max_pages,
        )
        async for page, outcome, has_more in pages:
            retrieval.attempts += outcome.attempts
            retrieval.latency_ms += outcome.latency_ms
            if page is None and outcome.success:
                retrieval.error = "unparsable chain page"
                break
            if page is None or page.results is None:
                retrieval.error = outcome.error or "page had no results"
                break
            retrieval.contracts.extend(page.contracts())
            retrieval.malformed_rows += page.malformed_rows
            retrieval.pages_fetched += 1

        retrieval.truncated = (
            has_more and retrieval.pages_fetched >= self.settings.chain_max_pages
        )
        if retrieval.truncated:
            logger.warning(
                f"{ticker} {expiration}: page cap ({self.settings.chain_max_pages}) reached, "
                f"chain truncated at {len(retrieval.contracts)} contracts"
            )
        if retrieval.malformed_rows:
            logger.warning(
                f"{ticker} {expiration}: dropped {retrieval.malformed_rows} unparsable chain rows"
            )

        logger.info(
            f"{ticker} {expiration}: {len(retrieval.contracts)} contracts "
            f"in {retrieval.pages_fetched} pages ({retrieval.attempts} attempts, "
            f"{retrieval.latency_ms:.0f}ms)"
        )
        return retrieval

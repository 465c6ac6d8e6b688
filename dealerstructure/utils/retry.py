"""
Retry combinator with exponential backoff.

Wraps a single-attempt coroutine and turns repeated failure into a
FetchOutcome value instead of an exception.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, List, Tuple, Type
import aiohttp
from loguru import logger

from dealerstructure.models import FetchOutcome


class MassiveAPIError(Exception):
    """Non-200 response from the Massive API."""

    def __init__(self, status: int, message: str = ""):
        super().__init__(f"Massive API status {status}: {message[:200]}")
        self.status = status


RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (
    aiohttp.ClientError,
    asyncio.TimeoutError,
    MassiveAPIError,
    ValueError,  # JSONDecodeError, UnicodeDecodeError on undecodable bodies
)


def backoff_schedule(max_attempts: int, base_ms: int = 200) -> List[float]:
    """
    Delays (seconds) slept after each failed attempt except the last.

    base_ms=200 gives 0.2, 0.4, 0.8, ...
    """
    return [base_ms * (2 ** i) / 1000.0 for i in range(max(max_attempts - 1, 0))]


async def retry_with_backoff(
    operation: Callable[[], Awaitable[Any]],
    max_attempts: int = 3,
    base_ms: int = 200,
    label: str = "",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FetchOutcome:
    """
    Run ``operation`` up to ``max_attempts`` times.

    Only the calling task sleeps between attempts. Latency is wall-clock
    time across all attempts, backoff included.
    """
    start = time.perf_counter()
    delays = backoff_schedule(max_attempts, base_ms)
    last_error = ""

    for attempt in range(1, max_attempts + 1):
        try:
            data = await operation()
            return FetchOutcome(
                success=True,
                attempts=attempt,
                latency_ms=(time.perf_counter() - start) * 1000,
                data=data,
            )
        except RETRYABLE_ERRORS as e:
            last_error = str(e) or e.__class__.__name__
            logger.warning(f"[RETRY] Attempt {attempt}/{max_attempts} failed for {label[:60]}: {last_error}")
            if attempt < max_attempts:
                await sleep(delays[attempt - 1])

    return FetchOutcome(
        success=False,
        attempts=max_attempts,
        latency_ms=(time.perf_counter() - start) * 1000,
        error=last_error,
    )

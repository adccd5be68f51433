"""Retry wrapper around single-attempt Share fetches.

Failed attempts are retried with exponential backoff (1s, 2s, 4s, ...). Only
the terminal outcome is returned; intermediate failures are logged.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from .const import DEFAULT_MAX_ATTEMPTS, LOGGER_NAME
from .models import ApiResponse

_LOGGER = logging.getLogger(LOGGER_NAME)

SleepFunc = Callable[[float], Awaitable[None]]


class CachedFetcher(Protocol):
    """Anything with a single-attempt cached fetch (e.g. `DexcomShareClient`)."""

    async def async_fetch_cached(
        self, max_count: int | None = None, minutes: int | None = None
    ) -> ApiResponse: ...


def backoff_seconds(attempt: int) -> float:
    """Return the delay after failed attempt `attempt` (1-based)."""
    return float(2 ** (attempt - 1))


async def async_fetch_with_retry(
    client: CachedFetcher,
    *,
    max_count: int | None = None,
    minutes: int | None = None,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    sleep: SleepFunc = asyncio.sleep,
) -> ApiResponse:
    """Fetch with retries.

    Args:
        client: Single-attempt fetcher.
        max_count: Forwarded to the client.
        minutes: Forwarded to the client.
        max_attempts: Total attempt budget (at least 1).
        sleep: Awaitable delay; injectable for tests.

    Returns:
        The first successful response, or the last failed one once the budget
        is exhausted. `attempts` records how many fetches were made.
    """
    max_attempts = max(1, int(max_attempts))
    attempt = 1
    while True:
        response = await client.async_fetch_cached(max_count, minutes)
        if response.error is None:
            return response.with_attempts(attempt)

        if attempt >= max_attempts:
            _LOGGER.error(
                "All %d attempts failed: %s", max_attempts, response.error.message
            )
            return response.with_attempts(attempt)

        delay = backoff_seconds(attempt)
        _LOGGER.warning(
            "Attempt %d/%d failed: %s. Retrying in %.0fs",
            attempt,
            max_attempts,
            response.error.message,
            delay,
        )
        await sleep(delay)
        attempt += 1

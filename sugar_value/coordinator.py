"""Coordinator for polling Dexcom Share.

Strategy:
- One fetch cycle per `update_secs`, measured from the start of each cycle.
- Each cycle races the retry wrapper against a watchdog. Whichever finishes
  first is emitted; the other is ignored.
- Nothing a cycle does (errors, timeouts, exceptions) stops the polling loop.

History requests share the same client, and therefore the same credential
cache, as the periodic poll. They may interleave with a poll cycle at await
points; cache updates are last-write-wins.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Callable

from .client import DexcomShareClient
from .const import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_WATCHDOG_SECONDS,
    LOGGER_NAME,
    READING_INTERVAL_MINUTES,
)
from .history import HistoryResponse
from .models import ApiError, ApiResponse, ErrorKind
from .retry import SleepFunc, async_fetch_with_retry

_LOGGER = logging.getLogger(LOGGER_NAME)

ResponseListener = Callable[[ApiResponse], None]


def history_max_count(minutes: int) -> int:
    """Return how many readings cover `minutes` (one per 5 minutes, plus one)."""
    return math.ceil(minutes / READING_INTERVAL_MINUTES) + 1


def _exception_response(err: BaseException) -> ApiResponse:
    return ApiResponse.failed(
        ApiError(
            status_code=-1,
            message=f"Exception in fetch: {err}",
            kind=ErrorKind.INTERNAL,
        )
    )


class SugarValueCoordinator:
    """Periodic poller with a watchdog around each fetch cycle."""

    def __init__(
        self,
        client: DexcomShareClient,
        *,
        update_secs: float,
        watchdog_secs: float = DEFAULT_WATCHDOG_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.client = client
        self.update_secs = float(update_secs)
        self.watchdog_secs = float(watchdog_secs)
        self.max_attempts = int(max_attempts)
        self._sleep = sleep

        self._listeners: list[ResponseListener] = []
        self._poll_task: asyncio.Task[None] | None = None
        # Fetches abandoned by the watchdog; referenced until they finish.
        self._abandoned: set[asyncio.Future[ApiResponse]] = set()

        self.last_response: ApiResponse | None = None

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def async_add_listener(self, listener: ResponseListener) -> Callable[[], None]:
        """Register a callback for every emitted response.

        Returns:
            A callable that removes the listener.
        """
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def _emit(self, response: ApiResponse) -> None:
        self.last_response = response
        for listener in list(self._listeners):
            try:
                listener(response)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Response listener failed")

    # -------------------------------------------------------------------------
    # Fetch cycles
    # -------------------------------------------------------------------------

    async def _async_fetch(self) -> ApiResponse:
        return await async_fetch_with_retry(
            self.client, max_attempts=self.max_attempts, sleep=self._sleep
        )

    async def async_poll_once(self) -> ApiResponse:
        """Run one fetch cycle and emit exactly one response.

        Returns:
            The emitted response.
        """
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[ApiResponse] = loop.create_future()
        responded = False

        def _respond(response: ApiResponse) -> bool:
            nonlocal responded
            if responded:
                return False
            responded = True
            watchdog.cancel()
            self._emit(response)
            outcome.set_result(response)
            return True

        def _on_watchdog() -> None:
            _LOGGER.error(
                "Dexcom API call timed out after %.0f seconds", self.watchdog_secs
            )
            _respond(
                ApiResponse.failed(
                    ApiError(
                        status_code=-1,
                        message=f"API request timed out after {self.watchdog_secs:.0f} seconds",
                        kind=ErrorKind.TIMEOUT,
                    )
                )
            )

        def _on_fetch_done(task: asyncio.Future[ApiResponse]) -> None:
            self._abandoned.discard(task)
            if task.cancelled():
                response = _exception_response(RuntimeError("fetch cancelled"))
            else:
                err = task.exception()
                if err is not None:
                    _LOGGER.error("Exception in fetch: %s", err, exc_info=err)
                    response = _exception_response(err)
                else:
                    response = task.result()

            if not _respond(response):
                _LOGGER.debug("Dropping late fetch result after watchdog timeout")

        watchdog = loop.call_later(self.watchdog_secs, _on_watchdog)
        task = loop.create_task(self._async_fetch())
        task.add_done_callback(_on_fetch_done)

        try:
            return await outcome
        except asyncio.CancelledError:
            responded = True
            watchdog.cancel()
            raise
        finally:
            if not task.done():
                self._abandoned.add(task)

    async def _async_run(self, start_delay: float) -> None:
        loop = asyncio.get_running_loop()
        if start_delay > 0:
            await self._sleep(start_delay)
        while True:
            started = loop.time()
            try:
                await self.async_poll_once()
            except asyncio.CancelledError:
                raise
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Unexpected error during poll cycle")
            delay = max(0.0, started + self.update_secs - loop.time())
            await self._sleep(delay)

    @property
    def is_running(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def async_start(self, *, start_delay: float = 0.0) -> None:
        """Start polling (no-op when already running)."""
        if self.is_running:
            return
        self._poll_task = asyncio.get_running_loop().create_task(
            self._async_run(start_delay)
        )

    async def async_stop(self) -> None:
        """Stop polling and drop any fetches abandoned by the watchdog."""
        task = self._poll_task
        self._poll_task = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        for pending in list(self._abandoned):
            pending.cancel()
        self._abandoned.clear()

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def async_request_history(
        self, minutes: int, request_id: int
    ) -> HistoryResponse:
        """Fetch readings for the last `minutes` on demand.

        Args:
            minutes: Look-back window.
            request_id: Caller-issued id echoed in the response.

        Returns:
            History response; errors are reported, never raised.
        """
        try:
            response = await async_fetch_with_retry(
                self.client,
                max_count=history_max_count(minutes),
                minutes=minutes,
                max_attempts=self.max_attempts,
                sleep=self._sleep,
            )
        except Exception as err:  # noqa: BLE001
            _LOGGER.exception("Exception in history fetch")
            response = _exception_response(err)
        return HistoryResponse(response=response, request_id=request_id)

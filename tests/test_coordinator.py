"""Tests for the poll coordinator (watchdog, emission, scheduling, history)."""

from __future__ import annotations

import asyncio
from typing import Any, cast

from sugar_value.coordinator import SugarValueCoordinator, history_max_count
from sugar_value.models import ApiError, ApiResponse, ErrorKind, Reading, Trend

_READING = Reading(
    timestamp_utc=None, value_mg_per_dl=100, value_mmol_per_l=5.5, trend=Trend.FLAT
)


def _failure() -> ApiResponse:
    return ApiResponse.failed(
        ApiError(status_code=500, message="Fetch readings failed", kind=ErrorKind.HTTP)
    )


class _Client:
    """Fake client returning a fixed response, optionally gated by an event."""

    def __init__(
        self,
        response: ApiResponse | None = None,
        *,
        gate: asyncio.Event | None = None,
        error: Exception | None = None,
    ) -> None:
        self.response = response or ApiResponse.ok([_READING])
        self.gate = gate
        self.error = error
        self.calls: list[tuple[int | None, int | None]] = []

    async def async_fetch_cached(
        self, max_count: int | None = None, minutes: int | None = None
    ) -> ApiResponse:
        self.calls.append((max_count, minutes))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.response


async def _no_sleep(_delay: float) -> None:
    await asyncio.sleep(0)


def _make(client: _Client, **kwargs: Any) -> SugarValueCoordinator:
    kwargs.setdefault("update_secs", 300)
    kwargs.setdefault("sleep", _no_sleep)
    return SugarValueCoordinator(cast(Any, client), **kwargs)


async def test_successful_cycle_emits_once() -> None:
    coordinator = _make(_Client())
    emitted: list[ApiResponse] = []
    coordinator.async_add_listener(emitted.append)

    response = await coordinator.async_poll_once()

    assert response.error is None
    assert emitted == [response]
    assert coordinator.last_response is response


async def test_watchdog_emits_timeout_once_and_drops_late_result() -> None:
    gate = asyncio.Event()
    client = _Client(gate=gate)
    coordinator = _make(client, watchdog_secs=0.05)
    emitted: list[ApiResponse] = []
    coordinator.async_add_listener(emitted.append)

    response = await coordinator.async_poll_once()

    assert response.error is not None
    assert response.error.status_code == -1
    assert response.error.kind is ErrorKind.TIMEOUT
    assert "timed out" in response.error.message
    assert len(emitted) == 1

    # The abandoned fetch completes later; nothing else is emitted.
    gate.set()
    for _ in range(5):
        await asyncio.sleep(0)
    assert len(emitted) == 1
    assert coordinator.last_response is response


async def test_result_before_watchdog_cancels_it() -> None:
    coordinator = _make(_Client(), watchdog_secs=0.05)
    emitted: list[ApiResponse] = []
    coordinator.async_add_listener(emitted.append)

    await coordinator.async_poll_once()
    await asyncio.sleep(0.1)

    assert len(emitted) == 1
    assert emitted[0].error is None


async def test_exception_in_fetch_is_emitted_as_error() -> None:
    coordinator = _make(_Client(error=RuntimeError("kaboom")))
    emitted: list[ApiResponse] = []
    coordinator.async_add_listener(emitted.append)

    response = await coordinator.async_poll_once()

    assert response.error is not None
    assert response.error.status_code == -1
    assert response.error.kind is ErrorKind.INTERNAL
    assert "kaboom" in response.error.message
    assert emitted == [response]


async def test_exhausted_retries_emit_single_failure() -> None:
    client = _Client(_failure())
    coordinator = _make(client)
    emitted: list[ApiResponse] = []
    coordinator.async_add_listener(emitted.append)

    response = await coordinator.async_poll_once()

    assert len(client.calls) == 3
    assert response.attempts == 3
    assert emitted == [response]


async def test_failing_listener_does_not_block_others() -> None:
    coordinator = _make(_Client())
    seen: list[ApiResponse] = []

    def _broken(_response: ApiResponse) -> None:
        raise ValueError("listener bug")

    coordinator.async_add_listener(_broken)
    coordinator.async_add_listener(seen.append)

    await coordinator.async_poll_once()

    assert len(seen) == 1


async def test_removed_listener_is_not_called() -> None:
    coordinator = _make(_Client())
    seen: list[ApiResponse] = []
    remove = coordinator.async_add_listener(seen.append)

    remove()
    await coordinator.async_poll_once()

    assert seen == []


async def test_polling_continues_after_errors() -> None:
    delays: list[float] = []

    async def _record_sleep(delay: float) -> None:
        delays.append(delay)
        await asyncio.sleep(0)

    coordinator = _make(_Client(_failure()), max_attempts=1, sleep=_record_sleep)
    emitted: list[ApiResponse] = []
    done = asyncio.Event()

    def _listener(response: ApiResponse) -> None:
        emitted.append(response)
        if len(emitted) >= 3:
            done.set()

    coordinator.async_add_listener(_listener)
    await coordinator.async_start()
    assert coordinator.is_running
    try:
        await asyncio.wait_for(done.wait(), timeout=1)
    finally:
        await coordinator.async_stop()

    assert not coordinator.is_running
    assert all(r.error is not None for r in emitted)
    # Each interval is measured from the cycle start, so it stays near update_secs.
    assert delays and all(0 < d <= 300 for d in delays)


async def test_stop_before_start_is_harmless() -> None:
    coordinator = _make(_Client())

    await coordinator.async_stop()

    assert not coordinator.is_running


def test_history_max_count() -> None:
    assert history_max_count(180) == 37
    assert history_max_count(1440) == 289
    assert history_max_count(7) == 3


async def test_history_uses_larger_window_and_echoes_request_id() -> None:
    client = _Client()
    coordinator = _make(client)

    history = await coordinator.async_request_history(360, 1234)

    assert client.calls == [(73, 360)]
    assert history.request_id == 1234
    assert history.response.readings == (_READING,)


async def test_history_exception_is_reported() -> None:
    coordinator = _make(_Client(error=RuntimeError("down")))

    history = await coordinator.async_request_history(180, 7)

    assert history.response.error is not None
    assert history.response.error.kind is ErrorKind.INTERNAL
    assert history.request_id == 7

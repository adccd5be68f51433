"""Host-facing bridge.

The widget host talks to the poller through named notifications:

- host -> bridge: `CONFIG` (settings mapping), `REQUEST_HISTORY`
  (`{"minutes": ..., "requestId": ...}`)
- bridge -> host: `DATA` (`{"readings": [...], "error"?: {...}}`) and
  `HISTORY_DATA` (the same plus `requestId`)

The host is expected to run a `HistoryRequestTracker` and drop `HISTORY_DATA`
payloads whose `requestId` is not its latest.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Mapping

import aiohttp

from .client import DexcomShareClient
from .config import SugarValueConfig, config_from_mapping
from .const import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_START_DELAY_SECONDS,
    DEFAULT_WATCHDOG_SECONDS,
    LOGGER_NAME,
)
from .coordinator import SugarValueCoordinator
from .exceptions import SugarValueConfigError
from .history import HistoryResponse
from .models import ApiResponse
from .util import to_int

_LOGGER = logging.getLogger(LOGGER_NAME)


class Notification(str, Enum):
    CONFIG = "CONFIG"
    DATA = "DATA"
    REQUEST_HISTORY = "REQUEST_HISTORY"
    HISTORY_DATA = "HISTORY_DATA"


NotifyFunc = Callable[[Notification, dict[str, Any]], None]


class SugarValueBridge:
    """Owns one client/coordinator pair and relays results to the host."""

    def __init__(
        self,
        notify: NotifyFunc,
        *,
        session: aiohttp.ClientSession | None = None,
        start_delay: float = DEFAULT_START_DELAY_SECONDS,
        watchdog_secs: float = DEFAULT_WATCHDOG_SECONDS,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> None:
        self._notify = notify
        self._session = session
        self.start_delay = start_delay
        self.watchdog_secs = watchdog_secs
        self.max_attempts = max_attempts

        self.client: DexcomShareClient | None = None
        self.coordinator: SugarValueCoordinator | None = None
        self._remove_listener: Callable[[], None] | None = None
        self._history_tasks: set[asyncio.Task[HistoryResponse | None]] = set()

    def _send(self, notification: Notification, payload: dict[str, Any]) -> None:
        try:
            self._notify(notification, payload)
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Failed to deliver %s notification", notification.value)

    def _on_response(self, response: ApiResponse) -> None:
        self._send(Notification.DATA, response.as_dict())

    async def async_configure(
        self,
        *,
        server_url: str,
        username: str,
        password: str,
        update_secs: float,
    ) -> SugarValueCoordinator:
        """Create the client and start polling after a short delay.

        Reconfiguring replaces the previous client and coordinator.
        """
        await self.async_stop()

        self.client = DexcomShareClient(
            server=server_url,
            username=username,
            password=password,
            session=self._session,
        )
        self.coordinator = SugarValueCoordinator(
            self.client,
            update_secs=update_secs,
            watchdog_secs=self.watchdog_secs,
            max_attempts=self.max_attempts,
        )
        self._remove_listener = self.coordinator.async_add_listener(self._on_response)
        await self.coordinator.async_start(start_delay=self.start_delay)
        _LOGGER.info(
            "Polling %s every %ss for %s", server_url, update_secs, username
        )
        return self.coordinator

    async def async_configure_from(self, config: SugarValueConfig) -> SugarValueCoordinator:
        return await self.async_configure(
            server_url=config.server_url,
            username=config.username,
            password=config.password,
            update_secs=config.update_secs,
        )

    async def async_request_history(
        self, minutes: int, request_id: int
    ) -> HistoryResponse | None:
        """Fetch history and send it as `HISTORY_DATA`.

        Returns:
            The response, or `None` when the bridge is not configured yet.
        """
        if self.coordinator is None:
            _LOGGER.debug("History requested before configuration; ignoring")
            return None
        history = await self.coordinator.async_request_history(minutes, request_id)
        self._send(Notification.HISTORY_DATA, history.as_dict())
        return history

    async def async_handle_notification(
        self, notification: Notification | str, payload: Mapping[str, Any] | None
    ) -> None:
        """Dispatch a host notification."""
        try:
            kind = Notification(notification)
        except ValueError:
            _LOGGER.debug("Ignoring unknown notification %s", notification)
            return
        payload = payload or {}

        if kind is Notification.CONFIG:
            try:
                config = config_from_mapping(payload.get("config"))
            except SugarValueConfigError as err:
                _LOGGER.error("%s", err)
                return
            await self.async_configure_from(config)
        elif kind is Notification.REQUEST_HISTORY:
            request_any: Any = payload.get("historyRequest")
            request: Mapping[str, Any] = (
                request_any if isinstance(request_any, Mapping) else {}
            )
            minutes = to_int(request.get("minutes"))
            request_id = to_int(request.get("requestId"))
            if minutes is None or request_id is None:
                _LOGGER.warning("Malformed history request: %s", request_any)
                return
            # History may overlap a poll cycle; run it without blocking the caller.
            task = asyncio.get_running_loop().create_task(
                self.async_request_history(minutes, request_id)
            )
            self._history_tasks.add(task)
            task.add_done_callback(self._history_tasks.discard)

    async def async_stop(self) -> None:
        """Stop polling and release the client's session."""
        for task in list(self._history_tasks):
            task.cancel()
        self._history_tasks.clear()
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        if self.coordinator is not None:
            await self.coordinator.async_stop()
            self.coordinator = None
        if self.client is not None:
            await self.client.async_close()
            self.client = None

"""History request/response matching.

History requests can complete out of order when the user switches time ranges
quickly. Each request carries an id; only the response to the most recently
issued id may reach the chart.

This module does not perform network I/O.
"""

from __future__ import annotations

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any

from .const import DEFAULT_HISTORY_MINUTES, HISTORY_WINDOWS_MINUTES, LOGGER_NAME
from .models import ApiResponse

_LOGGER = logging.getLogger(LOGGER_NAME)


@dataclass(frozen=True)
class HistoryRequest:
    """A request for readings over the last `minutes`."""

    minutes: int
    request_id: int

    def as_dict(self) -> dict[str, Any]:
        return {"minutes": self.minutes, "requestId": self.request_id}


@dataclass(frozen=True)
class HistoryResponse:
    """Response to a `HistoryRequest`, echoing its id."""

    response: ApiResponse
    request_id: int

    def as_dict(self) -> dict[str, Any]:
        out = self.response.as_dict()
        out["requestId"] = self.request_id
        return out


class HistoryRequestTracker:
    """Issue history request ids and drop responses to superseded requests."""

    def __init__(self, *, first_id: int | None = None) -> None:
        start = first_id if first_id is not None else int(time.time() * 1000)
        self._ids = itertools.count(start)
        self._latest_id: int | None = None
        self.selected_minutes = DEFAULT_HISTORY_MINUTES
        self.is_loading = False

    @property
    def latest_id(self) -> int | None:
        return self._latest_id

    def issue(self, minutes: int) -> HistoryRequest:
        """Create a request for `minutes` and make it the only acceptable one."""
        if minutes not in HISTORY_WINDOWS_MINUTES:
            _LOGGER.debug("Unusual history window requested: %s minutes", minutes)
        request = HistoryRequest(minutes=int(minutes), request_id=next(self._ids))
        self._latest_id = request.request_id
        self.selected_minutes = request.minutes
        self.is_loading = True
        return request

    def accept(self, response: HistoryResponse) -> bool:
        """Return True if `response` answers the latest request.

        Stale responses are discarded and leave the loading state untouched.
        """
        if response.request_id != self._latest_id:
            _LOGGER.debug(
                "Ignoring outdated history response %s (latest %s)",
                response.request_id,
                self._latest_id,
            )
            return False
        self.is_loading = False
        return True

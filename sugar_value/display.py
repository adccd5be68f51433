"""Presentation-neutral widget state.

The host renders whatever it likes; this module only decides what to show:
which reading, in which units, with which message, and whether the value is
outside the configured limits.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .const import DEFAULT_UNITS, UNITS_MG
from .models import ApiError, ApiResponse, Reading, Trend

TREND_ARROWS: Final[dict[Trend, str]] = {
    Trend.NONE: "",
    Trend.DOUBLE_UP: "↑↑",
    Trend.SINGLE_UP: "↑",
    Trend.FORTYFIVE_UP: "↗",
    Trend.FLAT: "→",
    Trend.FORTYFIVE_DOWN: "↘",
    Trend.SINGLE_DOWN: "↓",
    Trend.DOUBLE_DOWN: "↓↓",
    Trend.NOT_COMPUTABLE: "?",
    Trend.RATE_OUT_OF_RANGE: "!",
}

LIMIT_LOW: Final = "low"
LIMIT_HIGH: Final = "high"


def format_error_message(error: ApiError) -> str:
    """Return the error text shown to the user.

    Transport-level failures (status -1) show only the message; otherwise the
    HTTP status is appended.
    """
    if error.status_code == -1:
        return error.message
    return f"{error.message} (HTTP {error.status_code})"


def display_value(reading: Reading, units: str = DEFAULT_UNITS) -> tuple[float, str]:
    """Return the reading value and its unit label for `units`."""
    if units == UNITS_MG:
        return reading.value_mg_per_dl, "mg/dL"
    return reading.value_mmol_per_l, "mmol/L"


def limit_flag(
    value: float, *, low: float | None = None, high: float | None = None
) -> str | None:
    """Classify `value` against optional limits (inclusive)."""
    if low is not None and value <= low:
        return LIMIT_LOW
    if high is not None and value >= high:
        return LIMIT_HIGH
    return None


@dataclass
class DisplayState:
    """Latest reading plus an optional message, as shown by the widget."""

    reading: Reading | None = None
    message: str | None = "Loading..."
    is_error: bool = False

    def apply(self, response: ApiResponse) -> None:
        """Fold a periodic response into the state.

        Errors replace the message but keep the previous reading.
        """
        if response.error is not None:
            self.message = format_error_message(response.error)
            self.is_error = True
            return
        self.reading = response.latest
        self.message = None
        self.is_error = False

    def text(
        self,
        *,
        units: str = DEFAULT_UNITS,
        low: float | None = None,
        high: float | None = None,
    ) -> str:
        """Single-line rendering used by the console runner."""
        if self.message is not None:
            return self.message
        if self.reading is None:
            return "Reading not available"

        value, label = display_value(self.reading, units)
        parts = [TREND_ARROWS[self.reading.trend], f"{value} {label}"]
        flag = limit_flag(value, low=low, high=high)
        if flag:
            parts.append(f"[{flag}]")
        if self.reading.timestamp_utc is not None:
            parts.append(f"at {self.reading.timestamp_utc.isoformat()}")
        return " ".join(p for p in parts if p)

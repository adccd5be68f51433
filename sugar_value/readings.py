"""Reading parsing and normalization.

Converts raw Share records into `Reading` values:
- `WT`: wall time, embedded as `Date(<epoch ms>)`
- `Value`: glucose in mg/dL
- `Trend`: numeric code (`"0".."9"`) or name (`"FortyFiveUp"`, `"NOT COMPUTABLE"`)

Malformed records produce best-effort defaults (no timestamp, `Trend.NONE`)
rather than raising.

This module does not perform network I/O.
"""

from __future__ import annotations

import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Mapping, cast

from .const import MG_PER_DL_PER_MMOL
from .models import Reading, Trend
from .util import to_int

_WT_EPOCH_MS = re.compile(r"Date\((?P<ms>-?\d+)(?:[+-]\d{4})?\)")

# Share spells names in CamelCase; older payloads use upper case with spaces.
_TREND_BY_NAME: dict[str, Trend] = {
    "NONE": Trend.NONE,
    "DOUBLEUP": Trend.DOUBLE_UP,
    "SINGLEUP": Trend.SINGLE_UP,
    "FORTYFIVEUP": Trend.FORTYFIVE_UP,
    "FLAT": Trend.FLAT,
    "FORTYFIVEDOWN": Trend.FORTYFIVE_DOWN,
    "SINGLEDOWN": Trend.SINGLE_DOWN,
    "DOUBLEDOWN": Trend.DOUBLE_DOWN,
    "NOTCOMPUTABLE": Trend.NOT_COMPUTABLE,
    "RATEOUTOFRANGE": Trend.RATE_OUT_OF_RANGE,
}


def mg_to_mmol(value_mg_per_dl: int | float) -> float:
    """Convert mg/dL to mmol/L, truncated (not rounded) to one decimal."""
    return math.floor(value_mg_per_dl / MG_PER_DL_PER_MMOL * 10) / 10


def timestamp_from_wt(wt: Any) -> datetime | None:
    """Extract the UTC timestamp from a `Date(<ms>)` string.

    Args:
        wt: Raw `WT` field.

    Returns:
        Timezone-aware UTC datetime, or `None` when the pattern does not match.
    """
    if not isinstance(wt, str):
        return None
    m = _WT_EPOCH_MS.search(wt)
    if not m:
        return None
    try:
        return datetime.fromtimestamp(int(m.group("ms")) / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def trend_from_raw(trend: Any) -> Trend:
    """Map a numeric or named trend code to `Trend`."""
    if trend is None or isinstance(trend, bool):
        return Trend.NONE

    code = to_int(trend)
    if code is not None:
        try:
            return Trend(code)
        except ValueError:
            return Trend.NONE

    if isinstance(trend, str):
        key = re.sub(r"[\s_]+", "", trend).upper()
        return _TREND_BY_NAME.get(key, Trend.NONE)
    return Trend.NONE


def parse_reading(raw: Mapping[str, Any]) -> Reading:
    """Normalize one raw Share record."""
    value = to_int(raw.get("Value"))
    if value is None:
        value = 0
    return Reading(
        timestamp_utc=timestamp_from_wt(raw.get("WT")),
        value_mg_per_dl=value,
        value_mmol_per_l=mg_to_mmol(value),
        trend=trend_from_raw(raw.get("Trend")),
    )


def parse_readings(body: str) -> list[Reading]:
    """Parse a ReadPublisherLatestGlucoseValues body.

    Args:
        body: Raw response text.

    Returns:
        Normalized readings in server order (newest first).

    Raises:
        ValueError: If the body is not a JSON array of objects.
    """
    any_obj: Any = json.loads(body)
    if not isinstance(any_obj, list):
        raise ValueError("readings response was not a JSON array")

    readings: list[Reading] = []
    for item in cast(list[Any], any_obj):
        if not isinstance(item, Mapping):
            raise ValueError("readings response contained a non-object entry")
        readings.append(parse_reading(cast(Mapping[str, Any], item)))
    return readings

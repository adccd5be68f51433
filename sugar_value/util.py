"""Small utility helpers used across the package."""

from __future__ import annotations

import re
from typing import Any

_INT_RE = re.compile(r"^[+-]?\d+$")

# -----------------------------------------------------------------------------
# Conversions
# -----------------------------------------------------------------------------


def to_int(value: Any) -> int | None:
    """Best-effort conversion to int.

    Args:
        value: Value to convert.

    Returns:
        An int when the input is a real int, an integer-valued float, or a
        (optionally signed) digit-only string; otherwise `None`.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        t = value.strip()
        if _INT_RE.match(t):
            return int(t)
    return None


def strip_quotes(body: Any) -> str | None:
    """Strip the surrounding double quotes from a Share UUID response.

    Args:
        body: Raw response body.

    Returns:
        The unquoted value, or `None` when the body is not a quote-delimited
        string of at least two characters.
    """
    if not isinstance(body, str) or len(body) < 2:
        return None
    if body[0] != '"' or body[-1] != '"':
        return None
    return body[1:-1]


def clamp_min(value: int | None, *, default: int, minimum: int = 1) -> int:
    """Return `value` (or `default` when None) raised to at least `minimum`."""
    if value is None:
        return default
    return max(minimum, int(value))

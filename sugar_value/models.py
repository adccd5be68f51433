"""Value types shared by the client, retry wrapper and scheduler.

This module does not perform network I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Mapping, cast


class Trend(IntEnum):
    """Share trend codes in the order the server numbers them."""

    NONE = 0
    DOUBLE_UP = 1
    SINGLE_UP = 2
    FORTYFIVE_UP = 3
    FLAT = 4
    FORTYFIVE_DOWN = 5
    SINGLE_DOWN = 6
    DOUBLE_DOWN = 7
    NOT_COMPUTABLE = 8
    RATE_OUT_OF_RANGE = 9


class ErrorKind(str, Enum):
    """Where in the fetch path an error originated."""

    TRANSPORT = "transport"
    HTTP = "http"
    PROTOCOL = "protocol"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


# -----------------------------------------------------------------------------
# Readings
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Reading:
    """A normalized glucose reading.

    Attributes:
        timestamp_utc: Reading time (UTC), or `None` when the record had none.
        value_mg_per_dl: Value in mg/dL as reported by the server.
        value_mmol_per_l: Value in mmol/L, truncated to one decimal.
        trend: Trend direction.
    """

    timestamp_utc: datetime | None
    value_mg_per_dl: int
    value_mmol_per_l: float
    trend: Trend = Trend.NONE

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "date": self.timestamp_utc.isoformat() if self.timestamp_utc else None,
            "sugarMg": self.value_mg_per_dl,
            "sugarMmol": self.value_mmol_per_l,
            "trend": self.trend.name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Reading:
        """Rebuild a reading from `as_dict()` output."""
        date_any: Any = data.get("date")
        trend_any: Any = data.get("trend")
        return cls(
            timestamp_utc=datetime.fromisoformat(date_any) if date_any else None,
            value_mg_per_dl=int(data["sugarMg"]),
            value_mmol_per_l=float(data["sugarMmol"]),
            trend=Trend[trend_any] if trend_any in Trend.__members__ else Trend.NONE,
        )


# -----------------------------------------------------------------------------
# Responses
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiError:
    """Failure reported in place of readings.

    Attributes:
        status_code: HTTP status, or -1 when no response was received.
        message: Human-readable message.
        kind: Error category.
    """

    status_code: int
    message: str
    kind: ErrorKind = ErrorKind.HTTP

    def as_dict(self) -> dict[str, Any]:
        return {
            "statusCode": self.status_code,
            "message": self.message,
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ApiError:
        kind_any: Any = data.get("kind")
        try:
            kind = ErrorKind(kind_any)
        except ValueError:
            kind = ErrorKind.HTTP
        return cls(
            status_code=int(data.get("statusCode", -1)),
            message=str(data.get("message") or ""),
            kind=kind,
        )


@dataclass(frozen=True)
class ApiResponse:
    """Outcome of a fetch: readings, or an error with no readings."""

    readings: tuple[Reading, ...] = ()
    error: ApiError | None = None
    attempts: int = field(default=1, compare=False)

    def __post_init__(self) -> None:
        if self.error is not None and self.readings:
            raise ValueError("ApiResponse cannot carry both readings and an error")

    @classmethod
    def ok(cls, readings: list[Reading] | tuple[Reading, ...]) -> ApiResponse:
        return cls(readings=tuple(readings))

    @classmethod
    def failed(cls, error: ApiError) -> ApiResponse:
        return cls(readings=(), error=error)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def latest(self) -> Reading | None:
        """Return the newest reading (the server lists newest first)."""
        return self.readings[0] if self.readings else None

    def with_attempts(self, attempts: int) -> ApiResponse:
        return replace(self, attempts=attempts)

    def as_dict(self) -> dict[str, Any]:
        """Return the payload shape handed to the widget host."""
        out: dict[str, Any] = {"readings": [r.as_dict() for r in self.readings]}
        if self.error is not None:
            out["error"] = self.error.as_dict()
        return out

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ApiResponse:
        """Rebuild a response from `as_dict()` output."""
        error_any: Any = data.get("error")
        if isinstance(error_any, Mapping):
            return cls.failed(ApiError.from_dict(cast(Mapping[str, Any], error_any)))
        readings_any: Any = data.get("readings") or []
        return cls.ok(
            [
                Reading.from_dict(cast(Mapping[str, Any], r))
                for r in readings_any
                if isinstance(r, Mapping)
            ]
        )

"""Internal API exception types.

These exceptions are raised by the Share step helpers. The session client
translates them into `ApiError` values so the polling loop never sees a raise.
"""

from __future__ import annotations


class SugarValueError(Exception):
    """Base exception for SugarValue failures."""


class SugarValueConfigError(SugarValueError):
    """Host-provided configuration is missing or invalid."""


class DexcomStepError(SugarValueError):
    """A Share request step failed.

    Attributes:
        step: Human-readable step name (e.g. `Login`).
        status_code: HTTP status when a response was received, otherwise -1.
    """

    def __init__(self, message: str, *, step: str, status_code: int = -1) -> None:
        super().__init__(message)
        self.step = step
        self.status_code = status_code


class DexcomTransportError(DexcomStepError):
    """No response was received (DNS, connect, or per-request timeout)."""


class DexcomHttpError(DexcomStepError):
    """A response was received with a status other than 200."""


class DexcomProtocolError(DexcomStepError):
    """A 200 response carried a body that could not be interpreted."""

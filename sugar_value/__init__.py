"""SugarValue: Dexcom Share poller for dashboard widgets.

The package provides:
    - A Share client that caches the account id and session id across polls
    - A retry wrapper with exponential backoff around single-attempt fetches
    - A poll coordinator with a per-cycle watchdog and on-demand history
    - Host glue (notifications, history request matching, display state)
"""

from __future__ import annotations

# -----------------------------------------------------------------------------
# Public API
# -----------------------------------------------------------------------------
from .bridge import Notification, SugarValueBridge
from .client import CredentialCache, DexcomShareClient
from .config import SugarValueConfig, config_from_mapping
from .coordinator import SugarValueCoordinator, history_max_count
from .display import DisplayState, format_error_message
from .exceptions import (
    DexcomHttpError,
    DexcomProtocolError,
    DexcomStepError,
    DexcomTransportError,
    SugarValueConfigError,
    SugarValueError,
)
from .history import HistoryRequest, HistoryRequestTracker, HistoryResponse
from .models import ApiError, ApiResponse, ErrorKind, Reading, Trend
from .readings import mg_to_mmol, parse_reading, parse_readings, trend_from_raw
from .retry import async_fetch_with_retry

__all__ = [
    "ApiError",
    "ApiResponse",
    "CredentialCache",
    "DexcomHttpError",
    "DexcomProtocolError",
    "DexcomShareClient",
    "DexcomStepError",
    "DexcomTransportError",
    "DisplayState",
    "ErrorKind",
    "HistoryRequest",
    "HistoryRequestTracker",
    "HistoryResponse",
    "Notification",
    "Reading",
    "SugarValueBridge",
    "SugarValueConfig",
    "SugarValueConfigError",
    "SugarValueCoordinator",
    "SugarValueError",
    "Trend",
    "async_fetch_with_retry",
    "config_from_mapping",
    "format_error_message",
    "history_max_count",
    "mg_to_mmol",
    "parse_reading",
    "parse_readings",
    "trend_from_raw",
]

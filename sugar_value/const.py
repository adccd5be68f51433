"""Constants for the SugarValue Dexcom Share poller.

This module centralizes configuration keys, defaults, and Share endpoint details.
"""

from __future__ import annotations

from typing import Final

DOMAIN: Final = "sugar_value"

# Use a stable logger name so hosts can tune verbosity with
# `logging.getLogger("sugar_value").setLevel(...)`.
LOGGER_NAME: Final = DOMAIN

CONF_SERVER: Final = "server"
CONF_SERVER_URL: Final = "serverUrl"
CONF_US_SERVER_URL: Final = "usServerUrl"
CONF_EU_SERVER_URL: Final = "euServerUrl"
CONF_USERNAME: Final = "username"
CONF_PASSWORD: Final = "password"
CONF_UPDATE_SECS: Final = "updateSecs"
CONF_UNITS: Final = "units"
CONF_LOW_LIMIT: Final = "lowlimit"
CONF_HIGH_LIMIT: Final = "highlimit"

SERVER_US: Final = "us"
SERVER_EU: Final = "eu"

UNITS_MG: Final = "mg"
UNITS_MMOL: Final = "mmol"

DEFAULT_US_SERVER_URL: Final = "share1.dexcom.com"
DEFAULT_EU_SERVER_URL: Final = "shareous1.dexcom.com"
DEFAULT_SERVER: Final = SERVER_US
DEFAULT_UPDATE_SECS: Final[int] = 300
DEFAULT_UNITS: Final = UNITS_MMOL
MIN_UPDATE_SECS: Final[int] = 10

# Per-request network timeout.
DEFAULT_TIMEOUT_SECONDS: Final[int] = 20

# 3 attempts x 20s per request + 1s + 2s (+4s) of backoff stays below this.
DEFAULT_WATCHDOG_SECONDS: Final[int] = 70
DEFAULT_MAX_ATTEMPTS: Final[int] = 3

# Delay between `configure` and the first poll.
DEFAULT_START_DELAY_SECONDS: Final[float] = 0.5

DEFAULT_MINUTES: Final[int] = 1440
DEFAULT_MAX_COUNT: Final[int] = 1

# Share publishes roughly one reading every 5 minutes.
READING_INTERVAL_MINUTES: Final[int] = 5

HISTORY_WINDOWS_MINUTES: Final[tuple[int, ...]] = (180, 360, 720, 1440)
DEFAULT_HISTORY_MINUTES: Final[int] = 180

# -----------------------------------------------------------------------------
# Dexcom Share endpoints
# -----------------------------------------------------------------------------

APPLICATION_ID: Final = "d89443d2-327c-4a6f-89e5-496bbb0317db"
USER_AGENT: Final = "Dexcom Share/3.0.2.11 CFNetwork/711.2.23 Darwin/14.0.0"
CONTENT_TYPE: Final = "application/json"
ACCEPT: Final = "application/json"

AUTHENTICATE_PATH: Final = (
    "/ShareWebServices/Services/General/AuthenticatePublisherAccount"
)
LOGIN_BY_ID_PATH: Final = "/ShareWebServices/Services/General/LoginPublisherAccountById"
READ_LATEST_PATH: Final = (
    "/ShareWebServices/Services/Publisher/ReadPublisherLatestGlucoseValues"
)

MG_PER_DL_PER_MMOL: Final[float] = 18.0

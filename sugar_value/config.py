"""Validation of host-provided settings.

The widget host hands over a flat mapping using its own key names
(`updateSecs`, `usServerUrl`, ...). This module validates it with voluptuous
and resolves the effective Share server.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import voluptuous as vol

from .const import (
    CONF_EU_SERVER_URL,
    CONF_HIGH_LIMIT,
    CONF_LOW_LIMIT,
    CONF_PASSWORD,
    CONF_SERVER,
    CONF_SERVER_URL,
    CONF_UNITS,
    CONF_UPDATE_SECS,
    CONF_US_SERVER_URL,
    CONF_USERNAME,
    DEFAULT_EU_SERVER_URL,
    DEFAULT_SERVER,
    DEFAULT_UNITS,
    DEFAULT_UPDATE_SECS,
    DEFAULT_US_SERVER_URL,
    MIN_UPDATE_SECS,
    SERVER_EU,
    SERVER_US,
    UNITS_MG,
    UNITS_MMOL,
)
from .exceptions import SugarValueConfigError

_NON_EMPTY_STR = vol.All(str, vol.Strip, vol.Length(min=1))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_SERVER, default=DEFAULT_SERVER): vol.All(
            str, vol.Lower, vol.In([SERVER_US, SERVER_EU])
        ),
        vol.Optional(CONF_US_SERVER_URL, default=DEFAULT_US_SERVER_URL): _NON_EMPTY_STR,
        vol.Optional(CONF_EU_SERVER_URL, default=DEFAULT_EU_SERVER_URL): _NON_EMPTY_STR,
        vol.Optional(CONF_SERVER_URL): _NON_EMPTY_STR,
        vol.Required(CONF_USERNAME): _NON_EMPTY_STR,
        vol.Required(CONF_PASSWORD): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_UPDATE_SECS, default=DEFAULT_UPDATE_SECS): vol.All(
            vol.Coerce(int), vol.Range(min=MIN_UPDATE_SECS)
        ),
        vol.Optional(CONF_UNITS, default=DEFAULT_UNITS): vol.All(
            str, vol.Lower, vol.In([UNITS_MG, UNITS_MMOL])
        ),
        vol.Optional(CONF_LOW_LIMIT): vol.Coerce(float),
        vol.Optional(CONF_HIGH_LIMIT): vol.Coerce(float),
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class SugarValueConfig:
    """Validated settings.

    Attributes:
        server_url: Share host the client talks to.
        username: Share account name.
        password: Share password.
        update_secs: Poll interval in seconds.
        units: `mg` or `mmol`.
        low_limit: Values at or below this are flagged low (display units).
        high_limit: Values at or above this are flagged high (display units).
    """

    server_url: str
    username: str
    password: str
    update_secs: int = DEFAULT_UPDATE_SECS
    units: str = DEFAULT_UNITS
    low_limit: float | None = None
    high_limit: float | None = None

    def __repr__(self) -> str:
        return (
            f"SugarValueConfig(server_url={self.server_url!r}, "
            f"username={self.username!r}, password='***', "
            f"update_secs={self.update_secs}, units={self.units!r})"
        )


def config_from_mapping(raw: Mapping[str, Any] | None) -> SugarValueConfig:
    """Validate host settings and build a `SugarValueConfig`.

    An explicit `serverUrl` wins; otherwise `server` selects between
    `usServerUrl` and `euServerUrl`.

    Raises:
        SugarValueConfigError: If settings are missing or invalid.
    """
    if raw is None:
        raise SugarValueConfigError("Configuration is not defined")
    try:
        data = CONFIG_SCHEMA(dict(raw))
    except vol.Invalid as err:
        raise SugarValueConfigError(f"Invalid configuration: {err}") from err

    server_url = data.get(CONF_SERVER_URL) or (
        data[CONF_EU_SERVER_URL]
        if data[CONF_SERVER] == SERVER_EU
        else data[CONF_US_SERVER_URL]
    )
    return SugarValueConfig(
        server_url=server_url,
        username=data[CONF_USERNAME],
        password=data[CONF_PASSWORD],
        update_secs=data[CONF_UPDATE_SECS],
        units=data[CONF_UNITS],
        low_limit=data.get(CONF_LOW_LIMIT),
        high_limit=data.get(CONF_HIGH_LIMIT),
    )

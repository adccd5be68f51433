"""Tests for host settings validation."""

from __future__ import annotations

import pytest

from sugar_value.config import config_from_mapping
from sugar_value.exceptions import SugarValueConfigError


def test_defaults_select_us_server() -> None:
    config = config_from_mapping({"username": "me", "password": "pw"})

    assert config.server_url == "share1.dexcom.com"
    assert config.update_secs == 300
    assert config.units == "mmol"
    assert config.low_limit is None
    assert config.high_limit is None


def test_eu_server_and_limits() -> None:
    config = config_from_mapping(
        {
            "server": "EU",
            "username": "me",
            "password": "pw",
            "updateSecs": "120",
            "units": "mg",
            "lowlimit": 70,
            "highlimit": "180",
        }
    )

    assert config.server_url == "shareous1.dexcom.com"
    assert config.update_secs == 120
    assert config.units == "mg"
    assert config.low_limit == 70.0
    assert config.high_limit == 180.0


def test_explicit_server_url_wins() -> None:
    config = config_from_mapping(
        {"server": "eu", "serverUrl": "share2.dexcom.com", "username": "me", "password": "pw"}
    )

    assert config.server_url == "share2.dexcom.com"


def test_unknown_keys_are_ignored() -> None:
    config = config_from_mapping(
        {"username": "me", "password": "pw", "position": "top_right"}
    )

    assert config.username == "me"


def test_repr_hides_password() -> None:
    config = config_from_mapping({"username": "me", "password": "secret"})

    assert "secret" not in repr(config)


@pytest.mark.parametrize(
    "raw",
    [
        {"password": "pw"},
        {"username": "me"},
        {"username": "  ", "password": "pw"},
        {"username": "me", "password": "pw", "server": "au"},
        {"username": "me", "password": "pw", "units": "kg"},
        {"username": "me", "password": "pw", "updateSecs": 1},
        {"username": "me", "password": "pw", "updateSecs": "often"},
    ],
)
def test_invalid_settings_raise(raw: dict) -> None:
    with pytest.raises(SugarValueConfigError):
        config_from_mapping(raw)


def test_missing_config_raises() -> None:
    with pytest.raises(SugarValueConfigError, match="not defined"):
        config_from_mapping(None)

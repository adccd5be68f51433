"""Tests for response value types."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from sugar_value.models import ApiError, ApiResponse, ErrorKind, Reading, Trend

_READING = Reading(
    timestamp_utc=datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc),
    value_mg_per_dl=100,
    value_mmol_per_l=5.5,
    trend=Trend.FLAT,
)


def test_response_cannot_carry_readings_and_error() -> None:
    with pytest.raises(ValueError):
        ApiResponse(readings=(_READING,), error=ApiError(status_code=500, message="x"))


def test_latest_is_first_reading() -> None:
    older = Reading(None, 90, 5.0)

    assert ApiResponse.ok([_READING, older]).latest == _READING
    assert ApiResponse.ok([]).latest is None


def test_attempts_do_not_affect_equality() -> None:
    response = ApiResponse.ok([_READING])

    assert response.with_attempts(3) == response
    assert response.with_attempts(3).attempts == 3


def test_error_payload_shape() -> None:
    response = ApiResponse.failed(
        ApiError(status_code=-1, message="Login: refused", kind=ErrorKind.TRANSPORT)
    )

    assert response.as_dict() == {
        "readings": [],
        "error": {"statusCode": -1, "message": "Login: refused", "kind": "transport"},
    }


def test_host_payload_is_rebuilt() -> None:
    payload = ApiResponse.ok([_READING]).as_dict()

    assert payload["readings"][0]["date"] == "2023-11-14T22:13:20+00:00"
    assert ApiResponse.from_dict(payload) == ApiResponse.ok([_READING])


def test_unknown_error_kind_defaults_to_http() -> None:
    response = ApiResponse.from_dict(
        {"readings": [], "error": {"statusCode": 503, "message": "busy", "kind": "??"}}
    )

    assert response.error == ApiError(status_code=503, message="busy")

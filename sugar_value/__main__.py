"""Console runner: poll Share and log what the widget would show."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from typing import Any

from .bridge import Notification, SugarValueBridge
from .config import SugarValueConfig, config_from_mapping
from .const import (
    CONF_HIGH_LIMIT,
    CONF_LOW_LIMIT,
    CONF_PASSWORD,
    CONF_SERVER,
    CONF_SERVER_URL,
    CONF_UNITS,
    CONF_UPDATE_SECS,
    CONF_USERNAME,
    DEFAULT_SERVER,
    DEFAULT_UNITS,
    DEFAULT_UPDATE_SECS,
    LOGGER_NAME,
)
from .display import DisplayState
from .exceptions import SugarValueConfigError
from .history import HistoryRequestTracker, HistoryResponse
from .models import ApiResponse

_LOGGER = logging.getLogger(LOGGER_NAME)

PASSWORD_ENV = "SUGAR_VALUE_PASSWORD"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sugar_value", description="Poll Dexcom Share and print readings."
    )
    parser.add_argument("--server", default=DEFAULT_SERVER, help="us or eu")
    parser.add_argument("--server-url", help="Explicit Share host")
    parser.add_argument("--username", required=True)
    parser.add_argument(
        "--password", help=f"Share password (default: ${PASSWORD_ENV})"
    )
    parser.add_argument("--update-secs", type=int, default=DEFAULT_UPDATE_SECS)
    parser.add_argument("--units", default=DEFAULT_UNITS, help="mg or mmol")
    parser.add_argument("--low", type=float)
    parser.add_argument("--high", type=float)
    parser.add_argument(
        "--history", type=int, metavar="MINUTES", help="Also fetch history once"
    )
    parser.add_argument("--log-level", default="INFO")
    return parser


def config_from_args(args: argparse.Namespace) -> SugarValueConfig:
    raw: dict[str, Any] = {
        CONF_SERVER: args.server,
        CONF_USERNAME: args.username,
        CONF_PASSWORD: args.password or os.environ.get(PASSWORD_ENV, ""),
        CONF_UPDATE_SECS: args.update_secs,
        CONF_UNITS: args.units,
    }
    if args.server_url:
        raw[CONF_SERVER_URL] = args.server_url
    if args.low is not None:
        raw[CONF_LOW_LIMIT] = args.low
    if args.high is not None:
        raw[CONF_HIGH_LIMIT] = args.high
    return config_from_mapping(raw)


async def async_main(config: SugarValueConfig, *, history_minutes: int | None) -> None:
    display = DisplayState()
    tracker = HistoryRequestTracker()

    def _notify(notification: Notification, payload: dict[str, Any]) -> None:
        if notification is Notification.DATA:
            display.apply(ApiResponse.from_dict(payload))
            _LOGGER.info(
                "%s",
                display.text(
                    units=config.units, low=config.low_limit, high=config.high_limit
                ),
            )
        elif notification is Notification.HISTORY_DATA:
            history = HistoryResponse(
                response=ApiResponse.from_dict(payload),
                request_id=int(payload.get("requestId", -1)),
            )
            if not tracker.accept(history):
                return
            if history.response.error is not None:
                _LOGGER.warning("History fetch error: %s", history.response.error.message)
            else:
                _LOGGER.info(
                    "History: %d readings over %d minutes",
                    len(history.response.readings),
                    tracker.selected_minutes,
                )

    bridge = SugarValueBridge(_notify)
    await bridge.async_configure_from(config)
    try:
        if history_minutes:
            request = tracker.issue(history_minutes)
            await bridge.async_request_history(request.minutes, request.request_id)
        await asyncio.Event().wait()
    finally:
        await bridge.async_stop()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    try:
        config = config_from_args(args)
    except SugarValueConfigError as err:
        _LOGGER.error("%s", err)
        return 2

    try:
        asyncio.run(async_main(config, history_minutes=args.history))
    except KeyboardInterrupt:
        pass
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

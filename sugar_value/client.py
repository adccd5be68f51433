"""Standalone async Dexcom Share client.

This client owns connection details and the credential cache (account id and
session id). A fetch picks the shortest path the cache allows:

- session cached: fetch readings (1 request)
- account id cached: login by id, then fetch (2 requests)
- cold: authenticate, login by id, then fetch (3 requests)

Each fetch is a single attempt. Failures invalidate only the cache entry the
failing step used and are returned as `ApiError` values; retrying is the
caller's job (see `retry.py`).

TLS certificate validation is disabled for every request. Share regional hosts
present a certificate that does not match every endpoint name, and the mobile
clients this one imitates do not validate it either.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any

import aiohttp
import async_timeout
from yarl import URL

from .const import (
    ACCEPT,
    APPLICATION_ID,
    AUTHENTICATE_PATH,
    CONTENT_TYPE,
    DEFAULT_MAX_COUNT,
    DEFAULT_MINUTES,
    DEFAULT_TIMEOUT_SECONDS,
    LOGGER_NAME,
    LOGIN_BY_ID_PATH,
    READ_LATEST_PATH,
    USER_AGENT,
)
from .exceptions import (
    DexcomHttpError,
    DexcomProtocolError,
    DexcomStepError,
    DexcomTransportError,
)
from .models import ApiError, ApiResponse, ErrorKind
from .readings import parse_readings
from .util import clamp_min, strip_quotes

_LOGGER = logging.getLogger(LOGGER_NAME)

STEP_AUTHENTICATE = "Authenticate"
STEP_LOGIN = "Login"
STEP_FETCH = "Fetch readings"
STEP_PARSE = "Parse readings"

_REQUEST_HEADERS: dict[str, str] = {
    "User-Agent": USER_AGENT,
    "Content-Type": CONTENT_TYPE,
    "Accept": ACCEPT,
}


def build_base_url(server: str) -> str:
    """Build the base URL for a Share server.

    Args:
        server: Hostname (e.g. `share1.dexcom.com`) or URL.

    Returns:
        Base URL without trailing slash; bare hostnames get `https://`.
    """
    server = (server or "").strip()
    if server.startswith("http://") or server.startswith("https://"):
        return server.rstrip("/")
    return f"https://{server}".rstrip("/")


def build_error_message(
    step: str, *, body: str | None = None, error: Any = None
) -> str:
    """Build a readable message for a failed step.

    Prefers the server's JSON error (`Message`, plus `Code` when present), then
    the raw error, then a generic `<step> failed`.

    Args:
        step: Step name.
        body: Response body, if one was read.
        error: Transport/parse error or explanatory text.

    Returns:
        Message string.
    """
    message = f"{step} failed"
    if body:
        try:
            parsed: Any = json.loads(body)
        except ValueError:
            if error:
                message = f"{step}: {error}"
        else:
            if isinstance(parsed, dict) and parsed.get("Message"):
                message = f"{step}: {parsed['Message']}"
                if parsed.get("Code"):
                    message += f" ({parsed['Code']})"
    elif error:
        message = f"{step}: {error}"
    return message


def api_error_from_exception(err: DexcomStepError) -> ApiError:
    """Translate a step exception into an `ApiError`."""
    if isinstance(err, DexcomTransportError):
        kind = ErrorKind.TRANSPORT
    elif isinstance(err, DexcomProtocolError):
        kind = ErrorKind.PROTOCOL
    else:
        kind = ErrorKind.HTTP
    return ApiError(status_code=err.status_code, message=str(err), kind=kind)


@dataclass
class CredentialCache:
    """Tokens reused across polls.

    Attributes:
        account_id: Publisher account UUID; kept until a login with it fails.
        session_id: Session UUID; kept until a fetch with it fails.
    """

    account_id: str | None = None
    session_id: str | None = None

    @property
    def is_cold(self) -> bool:
        return not self.account_id and not self.session_id

    def clear(self) -> None:
        self.account_id = None
        self.session_id = None


class DexcomShareClient:
    """Async client for the Dexcom Share publisher endpoints."""

    def __init__(
        self,
        *,
        server: str,
        username: str,
        password: str,
        timeout_seconds: int | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.server = str(server or "")
        self.username = str(username or "")
        self.password = str(password or "")
        self.timeout_seconds = int(timeout_seconds or DEFAULT_TIMEOUT_SECONDS)

        self._session = session
        self._owns_session = session is None
        self._cache = CredentialCache()

        _LOGGER.debug(
            "Share client for %s created; TLS certificate validation is disabled",
            self.server,
        )

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    @property
    def cache(self) -> CredentialCache:
        return self._cache

    def reset_cache(self) -> None:
        """Forget both cached tokens; the next fetch authenticates from scratch."""
        self._cache.clear()

    async def async_close(self) -> None:
        """Close any internally-owned aiohttp session."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    # -------------------------------------------------------------------------
    # Single requests
    # -------------------------------------------------------------------------

    async def _async_post(
        self,
        *,
        step: str,
        path: str,
        payload: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
    ) -> str:
        """POST to a Share endpoint and return the body of a 200 response.

        Raises:
            DexcomTransportError: If no response was received.
            DexcomHttpError: If the status was not 200.
        """
        url = URL(build_base_url(self.server) + path)
        if query:
            url = url.with_query(query)
        data = json.dumps(payload) if payload is not None else ""

        _LOGGER.debug("POST %s", url.with_query(None))
        try:
            async with async_timeout.timeout(self.timeout_seconds):
                async with self.session.post(
                    url, data=data, headers=_REQUEST_HEADERS, ssl=False
                ) as resp:
                    status = resp.status
                    # Share bodies are not guaranteed to be UTF-8.
                    body = await resp.text(errors="replace")
        except (asyncio.TimeoutError, aiohttp.ClientError) as err:
            reason = str(err) or type(err).__name__
            raise DexcomTransportError(
                build_error_message(step, error=reason), step=step
            ) from err

        if status != 200:
            raise DexcomHttpError(
                build_error_message(step, body=body),
                step=step,
                status_code=status,
            )
        return body

    async def _async_authenticate(self) -> str:
        """Exchange username/password for the publisher account id."""
        body = await self._async_post(
            step=STEP_AUTHENTICATE,
            path=AUTHENTICATE_PATH,
            payload={
                "accountName": self.username,
                "password": self.password,
                "applicationId": APPLICATION_ID,
            },
        )
        account_id = strip_quotes(body)
        if not account_id:
            raise DexcomProtocolError(
                build_error_message(
                    STEP_AUTHENTICATE, body=body, error="Invalid accountId response"
                ),
                step=STEP_AUTHENTICATE,
                status_code=200,
            )
        return account_id

    async def _async_login_by_id(self, account_id: str) -> str:
        """Exchange the account id for a session id."""
        body = await self._async_post(
            step=STEP_LOGIN,
            path=LOGIN_BY_ID_PATH,
            payload={
                "accountId": account_id,
                "password": self.password,
                "applicationId": APPLICATION_ID,
            },
        )
        session_id = strip_quotes(body)
        if not session_id:
            raise DexcomProtocolError(
                build_error_message(
                    STEP_LOGIN, body=body, error="Invalid session response"
                ),
                step=STEP_LOGIN,
                status_code=200,
            )
        return session_id

    async def _async_read_latest(
        self, session_id: str, *, max_count: int, minutes: int
    ) -> ApiResponse:
        body = await self._async_post(
            step=STEP_FETCH,
            path=READ_LATEST_PATH,
            query={
                "sessionID": session_id,
                "minutes": minutes,
                "maxCount": max_count,
            },
        )
        try:
            readings = parse_readings(body)
        except ValueError as err:
            raise DexcomProtocolError(
                build_error_message(STEP_PARSE, body=body, error=err),
                step=STEP_PARSE,
                status_code=200,
            ) from err
        return ApiResponse.ok(readings)

    # -------------------------------------------------------------------------
    # Cache-aware steps
    # -------------------------------------------------------------------------

    async def _async_fetch_with_session(
        self, session_id: str, *, max_count: int, minutes: int
    ) -> ApiResponse:
        try:
            return await self._async_read_latest(
                session_id, max_count=max_count, minutes=minutes
            )
        except DexcomHttpError:
            # Another caller may have stored a newer session meanwhile.
            if self._cache.session_id == session_id:
                _LOGGER.debug("Fetch failed, clearing session")
                self._cache.session_id = None
            raise

    async def _async_login_then_fetch(
        self, account_id: str, *, max_count: int, minutes: int
    ) -> ApiResponse:
        try:
            session_id = await self._async_login_by_id(account_id)
        except DexcomHttpError:
            if self._cache.account_id == account_id:
                _LOGGER.debug("Login failed, clearing account id")
                self._cache.account_id = None
            raise

        self._cache.session_id = session_id
        _LOGGER.debug("Session obtained")
        return await self._async_fetch_with_session(
            session_id, max_count=max_count, minutes=minutes
        )

    async def async_fetch_cached(
        self, max_count: int | None = None, minutes: int | None = None
    ) -> ApiResponse:
        """Fetch readings once, reusing cached credentials where possible.

        Args:
            max_count: Maximum readings to return (at least 1).
            minutes: Look-back window in minutes (at least 1).

        Returns:
            Readings on success, otherwise an `ApiResponse` carrying an error.
        """
        count = clamp_min(max_count, default=DEFAULT_MAX_COUNT)
        window = clamp_min(minutes, default=DEFAULT_MINUTES)

        try:
            session_id = self._cache.session_id
            if session_id:
                _LOGGER.debug("Using cached session")
                return await self._async_fetch_with_session(
                    session_id, max_count=count, minutes=window
                )

            account_id = self._cache.account_id
            if account_id:
                _LOGGER.debug("Using cached account id, need new session")
                return await self._async_login_then_fetch(
                    account_id, max_count=count, minutes=window
                )

            _LOGGER.debug("Cold start, full authentication")
            account_id = await self._async_authenticate()
            self._cache.account_id = account_id
            _LOGGER.debug("Account id cached")
            return await self._async_login_then_fetch(
                account_id, max_count=count, minutes=window
            )
        except DexcomStepError as err:
            return ApiResponse.failed(api_error_from_exception(err))

    async def async_fetch_uncached(
        self, max_count: int | None = None, minutes: int | None = None
    ) -> ApiResponse:
        """Run authenticate, login and fetch without reading or writing the cache.

        Useful for validating credentials without disturbing a running poller.
        """
        count = clamp_min(max_count, default=DEFAULT_MAX_COUNT)
        window = clamp_min(minutes, default=DEFAULT_MINUTES)

        try:
            account_id = await self._async_authenticate()
            session_id = await self._async_login_by_id(account_id)
            return await self._async_read_latest(
                session_id, max_count=count, minutes=window
            )
        except DexcomStepError as err:
            return ApiResponse.failed(api_error_from_exception(err))

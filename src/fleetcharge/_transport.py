"""HTTP transport for the Fleet API with bearer auth and error mapping."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

import aiohttp

from fleetcharge._redact import redact_for_log
from fleetcharge.config import FleetConfig
from fleetcharge.exceptions import RateLimitError, RemoteAuthError, RemoteError

_logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Structural transport interface used by the dispatcher.

    Having a protocol here makes it easy to pass test doubles while
    keeping the production implementation (`HttpTransport`) concrete.
    """

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]: ...


def _provider_message(payload: Any) -> str:
    """Pull the provider's error text out of a decoded error body."""
    if not isinstance(payload, dict):
        return ""
    for key in ("error_description", "error", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return ""


def build_remote_error(status_code: int, text: str, endpoint: str) -> RemoteError:
    """Map a non-2xx response to the matching :class:`RemoteError` subclass."""
    try:
        payload = json.loads(text) if text else None
    except json.JSONDecodeError:
        payload = None
    provider_message = _provider_message(payload)
    detail = provider_message or text[:200]
    message = f"HTTP {status_code} from {endpoint}: {detail}"

    error_cls: type[RemoteError] = RemoteError
    if status_code == 401:
        error_cls = RemoteAuthError
    elif status_code == 429:
        error_cls = RateLimitError
        _logger.warning("Rate limit exceeded on %s", endpoint)
    return error_cls(
        message,
        status_code=status_code,
        provider_message=provider_message,
        raw_body=text,
        endpoint=endpoint,
    )


class HttpTransport:
    """aiohttp transport that sends JSON requests with the current bearer token."""

    def __init__(
        self,
        config: FleetConfig,
        http_session: aiohttp.ClientSession,
        *,
        token_provider: Callable[[], str | None] = lambda: None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        # Read at send time so a refresh between submit and dispatch is honoured.
        self._token_provider = token_provider

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "accept": "application/json",
            "content-type": "application/json",
            "user-agent": self._config.user_agent,
        }
        token = self._token_provider()
        if token:
            headers["authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON object.

        Every failure (network, timeout, non-2xx, non-JSON body) surfaces
        as :class:`RemoteError`.
        """
        url = f"{self._config.fleet_base_url.rstrip('/')}{path}"
        _logger.debug("%s %s body=%s", method, url, redact_for_log(body))

        try:
            async with self._http.request(
                method,
                url,
                json=dict(body) if body is not None else None,
                params=dict(params) if params else None,
                headers=self._headers(),
                timeout=self._timeout,
            ) as resp:
                text = await resp.text()
                status = resp.status
        except TimeoutError as exc:
            raise RemoteError(
                f"Request to {path} timed out after {self._config.request_timeout}s",
                endpoint=path,
            ) from exc
        except aiohttp.ClientError as exc:
            raise RemoteError(f"Request to {path} failed: {exc}", endpoint=path) from exc

        _logger.debug("Response %s %s %s", status, method, url)
        if not 200 <= status < 300:
            raise build_remote_error(status, text, path)

        if not text.strip():
            return {}
        try:
            decoded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise RemoteError(
                f"Invalid JSON from {path}: {text[:200]}",
                status_code=status,
                raw_body=text,
                endpoint=path,
            ) from exc
        if not isinstance(decoded, dict):
            raise RemoteError(
                f"Unexpected payload type from {path}: {type(decoded).__name__}",
                status_code=status,
                raw_body=text,
                endpoint=path,
            )
        return decoded

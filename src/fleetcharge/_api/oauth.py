"""OAuth token endpoint.

Endpoints:
  - {auth_base_url}/oauth2/v3/authorize (URL construction only)
  - {auth_base_url}/oauth2/v3/token
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any
from urllib.parse import urlencode

import aiohttp

from fleetcharge._constants import DEFAULT_SCOPES
from fleetcharge._crypto.signing import CommandSigner
from fleetcharge._redact import redact_for_log
from fleetcharge.config import FleetConfig
from fleetcharge.exceptions import AuthError
from fleetcharge.models.credential import Credential

_logger = logging.getLogger(__name__)

_CLIENT_ASSERTION_TYPE = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"


def build_authorization_url(
    config: FleetConfig,
    *,
    state: str,
    code_challenge: str,
    scopes: Iterable[str] = DEFAULT_SCOPES,
) -> str:
    """Authorize URL for the authorization-code + PKCE (S256) flow."""
    params = {
        "client_id": config.client_id,
        "locale": "en-US",
        "prompt": "consent",
        "redirect_uri": config.redirect_uri,
        "response_type": "code",
        "scope": " ".join(scopes),
        "state": state,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
    }
    return f"{config.authorize_url}?{urlencode(params)}"


class OAuthTokenClient:
    """Exchange authorization codes and refresh tokens for credentials.

    When a signer with key material is supplied, requests also carry a
    ``private_key_jwt`` client assertion next to the client secret.
    """

    def __init__(
        self,
        config: FleetConfig,
        http_session: aiohttp.ClientSession,
        *,
        signer: CommandSigner | None = None,
    ) -> None:
        self._config = config
        self._http = http_session
        self._signer = signer
        self._timeout = aiohttp.ClientTimeout(total=config.request_timeout)

    def _client_auth_fields(self) -> dict[str, str]:
        fields = {"client_id": self._config.client_id, "client_secret": self._config.client_secret}
        if self._signer is not None and self._signer.has_key:
            fields["client_assertion_type"] = _CLIENT_ASSERTION_TYPE
            fields["client_assertion"] = self._signer.client_assertion(
                self._config.client_id,
                self._config.fleet_auth_url,
            )
        return fields

    async def _post_token(self, form: Mapping[str, str]) -> dict[str, Any]:
        url = self._config.token_url
        _logger.debug("POST %s form=%s", url, redact_for_log(dict(form)))
        try:
            async with self._http.post(url, data=dict(form), timeout=self._timeout) as resp:
                status = resp.status
                payload = await resp.json(content_type=None)
        except (aiohttp.ClientError, TimeoutError, ValueError) as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if status != 200 or not isinstance(payload, dict) or not payload.get("access_token"):
            detail = ""
            if isinstance(payload, dict):
                detail = str(payload.get("error_description") or payload.get("error") or "")
            raise AuthError(f"Token request rejected (HTTP {status}): {detail or 'no access token'}")
        return payload

    async def refresh_credential(self, refresh_token: str) -> Credential:
        """Exchange *refresh_token* for a new credential."""
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            **self._client_auth_fields(),
        }
        payload = await self._post_token(form)
        return Credential.from_token_response(payload, previous_refresh_token=refresh_token)

    async def exchange_authorization_code(self, code: str, code_verifier: str) -> Credential:
        """Exchange an authorization code (plus PKCE verifier) for a credential."""
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self._config.redirect_uri,
            "code_verifier": code_verifier,
            **self._client_auth_fields(),
        }
        payload = await self._post_token(form)
        return Credential.from_token_response(payload)

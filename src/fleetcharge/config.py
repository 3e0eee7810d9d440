"""Client configuration for fleetcharge."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any

from fleetcharge._constants import (
    AUTH_BASE_URL,
    DEFAULT_MAX_REQUESTS_PER_SECOND,
    DEFAULT_OFF_PEAK_HOUR,
    DEFAULT_REQUEST_TIMEOUT,
    FLEET_AUTH_URL,
    FLEET_BASE_URL,
    USER_AGENT,
)
from fleetcharge.exceptions import FleetConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class FleetConfig:
    """Client configuration.

    Parameters
    ----------
    client_id : str
        OAuth client ID registered with the provider.
    client_secret : str
        OAuth client secret.
    redirect_uri : str
        OAuth redirect URI used by the authorization-code flow.
    fleet_base_url : str
        Fleet API base URL. Defaults to the North America region.
    auth_base_url : str
        Base URL of the OAuth authorize/token endpoints.
    fleet_auth_url : str
        Audience used in the JWT client assertion.
    domain : str
        Registered domain whose key pair signs vehicle commands.
    private_key : str or None
        PEM-encoded RSA private key text.
    private_key_path : str or None
        Path to a PEM file, used when ``private_key`` is not set.
    signed_commands : bool
        Send vehicle commands through the signed-command endpoint.
    max_requests_per_second : float
        Global outbound request ceiling enforced by the dispatcher.
    request_timeout : float
        Per-request timeout in seconds.
    off_peak_hour : int
        Local hour (0-23) at which deferred charging starts.
    time_zone : str or None
        IANA zone for off-peak scheduling. ``None`` uses the host zone.
    user_agent : str
        ``User-Agent`` header sent with every request.
    """

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    fleet_base_url: str = FLEET_BASE_URL
    auth_base_url: str = AUTH_BASE_URL
    fleet_auth_url: str = FLEET_AUTH_URL
    domain: str = ""
    private_key: str | None = None
    private_key_path: str | None = None
    signed_commands: bool = False
    max_requests_per_second: float = DEFAULT_MAX_REQUESTS_PER_SECOND
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    off_peak_hour: int = DEFAULT_OFF_PEAK_HOUR
    time_zone: str | None = None
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        if self.max_requests_per_second <= 0:
            raise FleetConfigError("max_requests_per_second must be positive")
        if self.request_timeout <= 0:
            raise FleetConfigError("request_timeout must be positive")
        if not 0 <= self.off_peak_hour <= 23:
            raise FleetConfigError(f"off_peak_hour must be between 0 and 23, got {self.off_peak_hour}")

    @property
    def token_url(self) -> str:
        return f"{self.auth_base_url.rstrip('/')}/oauth2/v3/token"

    @property
    def authorize_url(self) -> str:
        return f"{self.auth_base_url.rstrip('/')}/oauth2/v3/authorize"

    def private_key_pem(self) -> str | None:
        """Return the configured private key text, reading the file if needed."""
        if self.private_key:
            return self.private_key
        if self.private_key_path:
            path = Path(self.private_key_path)
            try:
                return path.read_text(encoding="utf-8")
            except OSError as exc:
                raise FleetConfigError(f"Cannot read private key from {path}: {exc}") from exc
        return None

    @classmethod
    def from_env(cls, **overrides: Any) -> FleetConfig:
        """Create configuration from environment variables.

        Reads ``TESLA_CLIENT_ID``, ``TESLA_CLIENT_SECRET`` and the optional
        ``TESLA_*`` variables below. Explicit keyword arguments override
        environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        FleetConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "TESLA_CLIENT_ID": "client_id",
            "TESLA_CLIENT_SECRET": "client_secret",
            "TESLA_REDIRECT_URI": "redirect_uri",
            "TESLA_FLEET_BASE_URL": "fleet_base_url",
            "TESLA_AUTH_BASE_URL": "auth_base_url",
            "TESLA_FLEET_AUTH_URL": "fleet_auth_url",
            "TESLA_DOMAIN": "domain",
            "TESLA_PRIVATE_KEY": "private_key",
            "TESLA_PRIVATE_KEY_PATH": "private_key_path",
            "TESLA_TIME_ZONE": "time_zone",
            "TESLA_USER_AGENT": "user_agent",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        # Derive the signing domain from the redirect URI when not set explicitly
        if "domain" not in config_kwargs and "redirect_uri" in config_kwargs:
            config_kwargs["domain"] = config_kwargs["redirect_uri"].replace("/auth/callback", "")

        rps_env = env.get("TESLA_MAX_RPS")
        if rps_env is not None and "max_requests_per_second" not in overrides:
            config_kwargs["max_requests_per_second"] = float(rps_env)

        timeout_env = env.get("TESLA_REQUEST_TIMEOUT")
        if timeout_env is not None and "request_timeout" not in overrides:
            config_kwargs["request_timeout"] = float(timeout_env)

        off_peak_env = env.get("TESLA_OFF_PEAK_HOUR")
        if off_peak_env is not None and "off_peak_hour" not in overrides:
            config_kwargs["off_peak_hour"] = int(off_peak_env)

        if "signed_commands" not in overrides:
            config_kwargs["signed_commands"] = _env_bool(env.get("TESLA_SIGNED_COMMANDS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)

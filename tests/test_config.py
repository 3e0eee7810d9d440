from __future__ import annotations

from pathlib import Path

import pytest

from fleetcharge.config import FleetConfig
from fleetcharge.exceptions import FleetConfigError

_ENV_KEYS = (
    "TESLA_CLIENT_ID",
    "TESLA_CLIENT_SECRET",
    "TESLA_REDIRECT_URI",
    "TESLA_DOMAIN",
    "TESLA_MAX_RPS",
    "TESLA_OFF_PEAK_HOUR",
    "TESLA_SIGNED_COMMANDS",
    "TESLA_TIME_ZONE",
    "TESLA_PRIVATE_KEY",
    "TESLA_PRIVATE_KEY_PATH",
    "TESLA_REQUEST_TIMEOUT",
    "TESLA_FLEET_BASE_URL",
    "TESLA_AUTH_BASE_URL",
    "TESLA_FLEET_AUTH_URL",
    "TESLA_USER_AGENT",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_reads_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESLA_CLIENT_ID", "client-1")
    monkeypatch.setenv("TESLA_CLIENT_SECRET", "secret-1")
    monkeypatch.setenv("TESLA_MAX_RPS", "5")
    monkeypatch.setenv("TESLA_OFF_PEAK_HOUR", "22")
    monkeypatch.setenv("TESLA_SIGNED_COMMANDS", "yes")
    monkeypatch.setenv("TESLA_TIME_ZONE", "Europe/Oslo")

    config = FleetConfig.from_env()

    assert config.client_id == "client-1"
    assert config.client_secret == "secret-1"
    assert config.max_requests_per_second == 5.0
    assert config.off_peak_hour == 22
    assert config.signed_commands is True
    assert config.time_zone == "Europe/Oslo"


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESLA_CLIENT_ID", "from-env")
    monkeypatch.setenv("TESLA_MAX_RPS", "5")

    config = FleetConfig.from_env(client_id="explicit", max_requests_per_second=2.0)

    assert config.client_id == "explicit"
    assert config.max_requests_per_second == 2.0


def test_domain_is_derived_from_redirect_uri(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TESLA_REDIRECT_URI", "https://fleet.example.com/auth/callback")

    assert FleetConfig.from_env().domain == "https://fleet.example.com"


def test_defaults() -> None:
    config = FleetConfig()

    assert config.max_requests_per_second == 20.0
    assert config.request_timeout == 30.0
    assert config.off_peak_hour == 23
    assert config.signed_commands is False
    assert config.token_url.endswith("/oauth2/v3/token")
    assert config.private_key_pem() is None


@pytest.mark.parametrize(
    "kwargs",
    [{"max_requests_per_second": 0}, {"request_timeout": -1}, {"off_peak_hour": 24}],
)
def test_invalid_values_raise(kwargs: dict[str, float]) -> None:
    with pytest.raises(FleetConfigError):
        FleetConfig(**kwargs)


def test_private_key_pem_prefers_inline_then_path(tmp_path: Path) -> None:
    path = tmp_path / "key.pem"
    path.write_text("FROM-FILE", encoding="utf-8")

    assert FleetConfig(private_key="INLINE", private_key_path=str(path)).private_key_pem() == "INLINE"
    assert FleetConfig(private_key_path=str(path)).private_key_pem() == "FROM-FILE"


def test_missing_key_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FleetConfigError):
        FleetConfig(private_key_path=str(tmp_path / "missing.pem")).private_key_pem()

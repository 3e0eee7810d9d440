from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from fleetcharge._crypto import verify_envelope
from fleetcharge.client import FleetClient
from fleetcharge.config import FleetConfig
from fleetcharge.exceptions import AuthError, FleetError, SigningError
from fleetcharge.models.command import SignedEnvelope
from fleetcharge.models.credential import Credential

_ACK = {"response": {"result": True, "reason": ""}}


class _FakeTransport:
    def __init__(self, responses: Mapping[str, dict[str, Any]] | None = None) -> None:
        self._responses = dict(responses or {})
        self.requests: list[tuple[str, str, dict[str, Any] | None]] = []

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.requests.append((method, path, dict(body) if body is not None else None))
        return self._responses.get(path, _ACK)


class _SlowRefresher:
    def __init__(self) -> None:
        self.calls = 0

    async def refresh_credential(self, refresh_token: str) -> Credential:
        self.calls += 1
        await asyncio.sleep(0.02)
        return Credential(
            access_token=f"access-{self.calls + 1}",
            refresh_token=refresh_token,
            expires_at=datetime.now(UTC) + timedelta(hours=8),
        )


def _credential(expires_in: timedelta) -> Credential:
    return Credential(access_token="access-1", refresh_token="refresh-1", expires_at=datetime.now(UTC) + expires_in)


def _client(
    transport: _FakeTransport,
    *,
    config: FleetConfig | None = None,
    credential: Credential | None = None,
    refresher: _SlowRefresher | None = None,
    **kwargs: Any,
) -> FleetClient:
    return FleetClient(
        config or FleetConfig(max_requests_per_second=1000),
        credential=credential or _credential(timedelta(hours=1)),
        transport=transport,
        refresher=refresher or _SlowRefresher(),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_concurrent_callers_share_a_single_refresh() -> None:
    refresher = _SlowRefresher()
    refreshed: list[Credential] = []
    client = _client(
        _FakeTransport(),
        credential=_credential(-timedelta(minutes=5)),
        refresher=refresher,
        on_credential_refreshed=refreshed.append,
    )

    async with client:
        results = await asyncio.gather(*(client.ensure_credential() for _ in range(10)))

    assert refresher.calls == 1
    assert {c.access_token for c in results} == {"access-2"}
    assert client.credential is not None and client.credential.access_token == "access-2"
    assert len(refreshed) == 1


@pytest.mark.asyncio
async def test_valid_credential_is_not_refreshed() -> None:
    refresher = _SlowRefresher()
    async with _client(_FakeTransport(), refresher=refresher) as client:
        await client.ensure_credential()

    assert refresher.calls == 0


@pytest.mark.asyncio
async def test_missing_credential_raises_auth_error() -> None:
    client = FleetClient(FleetConfig(), transport=_FakeTransport(), refresher=_SlowRefresher())

    async with client:
        with pytest.raises(AuthError):
            await client.get_vehicles()


@pytest.mark.asyncio
async def test_calls_outside_context_manager_fail() -> None:
    with pytest.raises(FleetError):
        await _client(_FakeTransport()).get_vehicles()


def test_set_credential_accepts_mapping() -> None:
    client = _client(_FakeTransport())

    client.set_credential({"accessToken": "tok", "refreshToken": "ref", "expiresAt": 1767225600000})

    assert client.credential is not None
    assert client.credential.access_token == "tok"
    assert client.credential.expires_at == datetime(2026, 1, 1, tzinfo=UTC)


@pytest.mark.asyncio
async def test_get_vehicles_goes_through_dispatcher() -> None:
    transport = _FakeTransport(
        {"/api/1/vehicles": {"response": [{"id": 11, "display_name": "Model 3", "state": "online"}], "count": 1}}
    )
    async with _client(transport) as client:
        vehicles = await client.get_vehicles()

    assert [(v.id, v.display_name, v.is_online) for v in vehicles] == [("11", "Model 3", True)]
    assert transport.requests == [("GET", "/api/1/vehicles", None)]


@pytest.mark.asyncio
async def test_unsigned_commands_use_command_endpoint() -> None:
    transport = _FakeTransport()
    async with _client(transport) as client:
        await client.start_charging("11")
        await client.schedule_charging("11", datetime(2026, 1, 15, 23, 0, tzinfo=UTC))
        await client.cancel_scheduled_charging("11")
        await client.set_charge_limit("11", 90)

    assert transport.requests == [
        ("POST", "/api/1/vehicles/11/command/charge_start", {}),
        ("POST", "/api/1/vehicles/11/command/scheduled_charging", {"enable": True, "time": 1768518000}),
        ("POST", "/api/1/vehicles/11/command/scheduled_charging", {"enable": False}),
        ("POST", "/api/1/vehicles/11/command/set_charge_limit", {"percent": 90}),
    ]


@pytest.mark.asyncio
async def test_signed_commands_carry_a_verifiable_envelope(rsa_key: rsa.RSAPrivateKey, rsa_pem: str) -> None:
    transport = _FakeTransport()
    config = FleetConfig(domain="fleet.example.com", private_key=rsa_pem, signed_commands=True)

    async with _client(transport, config=config) as client:
        await client.set_charging_amps("11", 16)

    ((method, path, body),) = transport.requests
    assert (method, path) == ("POST", "/api/1/vehicles/11/signed_command")
    assert body is not None and body["algorithm"] == "RS256"
    envelope = SignedEnvelope.model_validate(body)
    assert verify_envelope(envelope, "11", rsa_key.public_key())


@pytest.mark.asyncio
async def test_signed_commands_without_key_raise_before_sending() -> None:
    transport = _FakeTransport()
    config = FleetConfig(domain="fleet.example.com", signed_commands=True)

    async with _client(transport, config=config) as client:
        with pytest.raises(SigningError):
            await client.stop_charging("11")

    assert transport.requests == []


@pytest.mark.asyncio
async def test_invalid_charge_limit_is_rejected_locally() -> None:
    transport = _FakeTransport()
    async with _client(transport) as client:
        with pytest.raises(ValueError):
            await client.set_charge_limit("11", 30)

    assert transport.requests == []


@pytest.mark.asyncio
async def test_energy_site_calls() -> None:
    transport = _FakeTransport(
        {
            "/api/1/products": {
                "response": [
                    {"id": 1, "vin": "5YJ3E1EA0KF000001"},
                    {"energy_site_id": 99, "resource_type": "battery", "site_name": "Home"},
                ]
            },
            "/api/1/energy_sites/99/live_status": {
                "response": {"percentage_charged": 64.5, "solar_power": 3200, "grid_power": None}
            },
            "/api/1/energy_sites/99/backup": {"response": {"code": 201, "message": "Updated"}},
        }
    )
    async with _client(transport) as client:
        (product,) = await client.get_energy_products()
        status = await client.get_site_status(product.energy_site_id)
        ack = await client.set_backup_reserve(product.energy_site_id, 30)

    assert product.is_battery and product.site_name == "Home"
    assert status.percentage_charged == 64.5
    assert status.grid_power == 0
    assert ack.code == 201
    assert transport.requests[-1] == ("POST", "/api/1/energy_sites/99/backup", {"backup_reserve_percent": 30})


@pytest.mark.asyncio
async def test_history_and_site_settings_calls() -> None:
    transport = _FakeTransport(
        {
            "/api/1/vehicles/11/charging_history": {"response": {"data": [{"sessionId": 7}], "totalResults": 1}},
            "/api/1/energy_sites/99/history": {"response": {"period": "day", "time_series": []}},
            "/api/1/energy_sites/99/site_config": {"response": {"storm_mode_enabled": False}},
            "/api/1/energy_sites/99/storm_mode": {"response": {"code": 201, "message": "Updated"}},
        }
    )
    async with _client(transport) as client:
        charging = await client.get_charging_history("11", limit=5)
        history = await client.get_energy_history("99")
        config = await client.get_site_config("99")
        ack = await client.set_storm_watch("99", True)

    assert charging.sessions == [{"sessionId": 7}]
    assert history.period == "day"
    assert config.storm_mode_enabled is False
    assert ack.code == 201
    assert [path for _, path, _ in transport.requests] == [
        "/api/1/vehicles/11/charging_history",
        "/api/1/energy_sites/99/history",
        "/api/1/energy_sites/99/site_config",
        "/api/1/energy_sites/99/storm_mode",
    ]

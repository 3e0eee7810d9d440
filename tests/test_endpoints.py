from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import pytest

from fleetcharge._api import energy, vehicles
from fleetcharge._api._common import parse_command_ack, unwrap_response
from fleetcharge.exceptions import RemoteError
from fleetcharge.models.vehicle import VehicleState


class _StaticTransport:
    def __init__(self, payload: dict[str, Any]) -> None:
        self._payload = payload
        self.calls: list[tuple[str, str, Mapping[str, Any] | None]] = []
        self.params: list[Mapping[str, Any] | None] = []

    async def request(
        self,
        method: str,
        path: str,
        *,
        body: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        self.calls.append((method, path, body))
        self.params.append(params)
        return self._payload


def test_unwrap_requires_response_field() -> None:
    assert unwrap_response({"response": [1]}, "/x") == [1]
    with pytest.raises(RemoteError):
        unwrap_response({"error": "nope"}, "/x")


def test_rejected_command_raises_with_reason() -> None:
    with pytest.raises(RemoteError) as exc_info:
        parse_command_ack({"response": {"result": False, "reason": "is_charging"}}, "/cmd")

    assert exc_info.value.provider_message == "is_charging"
    assert exc_info.value.status_code == 200


@pytest.mark.asyncio
async def test_fetch_vehicle_data_parses_charge_state() -> None:
    transport = _StaticTransport(
        {
            "response": {
                "id": 11,
                "state": "ONLINE",
                "charge_state": {
                    "battery_level": 57,
                    "charging_state": "Charging",
                    "charge_port_door_open": True,
                    "charge_port_latch": "Engaged",
                    "charger_power": None,
                },
            }
        }
    )

    data = await vehicles.fetch_vehicle_data(transport, "11")

    assert data.id == "11"
    assert data.state == VehicleState.ONLINE
    assert data.charge_state is not None
    assert data.charge_state.battery_level == 57
    assert data.charge_state.is_plugged_in
    assert data.charge_state.is_charging
    assert data.charge_state.charger_power is None
    assert transport.calls == [("GET", "/api/1/vehicles/11/vehicle_data", None)]


@pytest.mark.asyncio
async def test_fetch_vehicles_tolerates_unexpected_shape() -> None:
    assert await vehicles.fetch_vehicles(_StaticTransport({"response": {"oops": True}})) == []


@pytest.mark.parametrize(
    ("command", "parameters"),
    [
        (vehicles.SET_CHARGE_LIMIT, {"percent": 49}),
        (vehicles.SET_CHARGE_LIMIT, {}),
        (vehicles.SET_CHARGING_AMPS, {"charging_amps": 64}),
        (vehicles.SCHEDULED_CHARGING, {"enable": True}),
    ],
)
def test_out_of_range_parameters_are_rejected(command: str, parameters: dict[str, Any]) -> None:
    with pytest.raises(ValueError):
        vehicles.validate_command_parameters(command, parameters)


@pytest.mark.asyncio
async def test_backup_reserve_range_is_checked() -> None:
    transport = _StaticTransport({"response": {"code": 201}})

    with pytest.raises(ValueError):
        await energy.set_backup_reserve(transport, "99", 101)
    assert transport.calls == []


@pytest.mark.asyncio
async def test_operation_mode_is_checked_and_sent() -> None:
    transport = _StaticTransport({"response": {"code": 201, "message": "Updated"}})

    with pytest.raises(ValueError):
        await energy.set_operation_mode(transport, "99", "turbo")
    ack = await energy.set_operation_mode(transport, "99", "self_consumption")

    assert ack.message == "Updated"
    assert transport.calls == [("POST", "/api/1/energy_sites/99/operation", {"default_real_mode": "self_consumption"})]


@pytest.mark.asyncio
async def test_site_info_parses_reserve() -> None:
    transport = _StaticTransport(
        {"response": {"id": 99, "site_name": "Home", "backup_reserve_percent": 25, "default_real_mode": "backup"}}
    )

    info = await energy.fetch_site_info(transport, "99")

    assert info.id == "99"
    assert info.backup_reserve_percent == 25
    assert info.default_real_mode == "backup"


@pytest.mark.asyncio
async def test_charging_history_sends_only_given_filters() -> None:
    transport = _StaticTransport(
        {"response": {"data": [{"sessionId": 1, "chargeStartDateTime": "2026-01-01T22:00:00Z"}], "totalResults": 1}}
    )

    history = await vehicles.fetch_charging_history(transport, "11", start_time="2026-01-01T00:00:00Z", limit=10)

    assert history.total_results == 1
    assert history.sessions[0]["sessionId"] == 1
    assert transport.calls == [("GET", "/api/1/vehicles/11/charging_history", None)]
    assert transport.params == [{"startTime": "2026-01-01T00:00:00Z", "limit": 10}]


@pytest.mark.asyncio
async def test_charging_history_accepts_bare_list() -> None:
    transport = _StaticTransport({"response": [{"sessionId": 1}, {"sessionId": 2}]})

    history = await vehicles.fetch_charging_history(transport, "11")

    assert [s["sessionId"] for s in history.sessions] == [1, 2]
    assert transport.params == [None]


@pytest.mark.asyncio
async def test_energy_history_checks_period_and_passes_filters() -> None:
    transport = _StaticTransport({"response": {"period": "week", "time_series": [{"solar_energy_exported": 12.5}]}})

    with pytest.raises(ValueError):
        await energy.fetch_energy_history(transport, "99", "hour")
    history = await energy.fetch_energy_history(transport, "99", "week", time_zone="Europe/Berlin")

    assert history.period == "week"
    assert history.time_series == [{"solar_energy_exported": 12.5}]
    assert transport.calls == [("GET", "/api/1/energy_sites/99/history", None)]
    assert transport.params == [{"period": "week", "time_zone": "Europe/Berlin"}]


@pytest.mark.asyncio
async def test_site_config_reads_nested_grid_charging_flag() -> None:
    transport = _StaticTransport(
        {
            "response": {
                "site_name": "Home",
                "backup_reserve_percent": 30,
                "storm_mode_enabled": True,
                "components": {"disallow_charge_from_grid_with_solar_installed": True},
            }
        }
    )

    config = await energy.fetch_site_config(transport, "99")

    assert config.site_name == "Home"
    assert config.backup_reserve_percent == 30
    assert config.storm_mode_enabled is True
    assert config.disallow_charge_from_grid_with_solar_installed is True


@pytest.mark.asyncio
async def test_site_toggles_post_expected_bodies() -> None:
    transport = _StaticTransport({"response": {"code": 201, "message": "Updated"}})
    tou = {"optimization_strategy": "economics", "schedule": []}

    await energy.set_grid_charging(transport, "99", True)
    await energy.set_storm_watch(transport, "99", False)
    await energy.set_time_based_control(transport, "99", tou)

    assert transport.calls == [
        ("POST", "/api/1/energy_sites/99/grid_import_export", {"disallow_charge_from_grid_with_solar_installed": True}),
        ("POST", "/api/1/energy_sites/99/storm_mode", {"enabled": False}),
        ("POST", "/api/1/energy_sites/99/time_of_use_settings", {"tou_settings": tou}),
    ]

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from fleetcharge.models import (
    ChargeState,
    ChargingAction,
    ChargingPlan,
    Credential,
    EnergyProduct,
    ExecutedItem,
    ExecutionResult,
    LoopOptions,
    PlanOptions,
    ProductKind,
    SiteStatus,
    SkippedItem,
    VehiclePlanEntry,
    VehicleSnapshot,
    VehicleState,
    parse_timestamp,
)


def test_parse_timestamp_accepts_seconds_millis_and_iso() -> None:
    expected = datetime(2026, 1, 1, tzinfo=UTC)

    assert parse_timestamp(1767225600) == expected
    assert parse_timestamp(1767225600000) == expected
    assert parse_timestamp("1767225600") == expected
    assert parse_timestamp("2026-01-01T00:00:00Z") == expected
    assert parse_timestamp(None) is None


def test_credential_accepts_camel_case_and_epoch_millis() -> None:
    credential = Credential.model_validate(
        {"accessToken": "tok", "refreshToken": "ref", "expiresAt": 1767225600000, "extra": "ignored"}
    )

    assert credential.access_token == "tok"
    assert credential.refresh_token == "ref"
    assert credential.expires_at == datetime(2026, 1, 1, tzinfo=UTC)
    assert credential.can_refresh


def test_credential_requires_access_token() -> None:
    with pytest.raises(ValidationError):
        Credential(access_token="", expires_at=datetime.now(UTC))


def test_credential_is_frozen() -> None:
    credential = Credential(access_token="tok", expires_at=datetime.now(UTC))

    with pytest.raises(ValidationError):
        credential.access_token = "other"


def test_credential_from_token_response_keeps_previous_refresh_token() -> None:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    credential = Credential.from_token_response(
        {"access_token": "new", "expires_in": 28800, "token_type": "Bearer"},
        previous_refresh_token="old-refresh",
        now=now,
    )

    assert credential.refresh_token == "old-refresh"
    assert credential.expires_at == now + timedelta(hours=8)
    assert credential.seconds_remaining(now) == 28800


def test_vehicle_state_is_case_insensitive_with_unknown_fallback() -> None:
    assert VehicleState("Online") == VehicleState.ONLINE
    assert VehicleState("charging") == VehicleState.UNKNOWN
    assert VehicleSnapshot.model_validate({"id": 123, "state": "asleep"}).state == VehicleState.ASLEEP


def test_vehicle_snapshot_keeps_raw_payload() -> None:
    payload = {"id": 1492931, "vehicle_id": 1234, "vin": "5YJ3E1EA0KF000001", "state": None, "in_service": False}
    snapshot = VehicleSnapshot.model_validate(payload)

    assert snapshot.id == "1492931"
    assert snapshot.vehicle_id == "1234"
    assert snapshot.state == VehicleState.UNKNOWN
    assert snapshot.raw == payload


@pytest.mark.parametrize(
    ("door_open", "latch", "plugged_in"),
    [(True, "Engaged", True), (True, "Disengaged", False), (False, "Engaged", False)],
)
def test_plugged_in_requires_open_door_and_engaged_latch(door_open: bool, latch: str, plugged_in: bool) -> None:
    state = ChargeState(charge_port_door_open=door_open, charge_port_latch=latch)

    assert state.is_plugged_in is plugged_in


def test_site_status_defaults_missing_readings_to_zero() -> None:
    status = SiteStatus.model_validate({"percentage_charged": float("nan"), "solar_power": 1200, "backup_reserve": 25})

    assert status.percentage_charged == 0
    assert status.solar_power == 1200
    assert status.load_power == 0
    assert status.backup_reserve_percent == 25


def test_energy_product_kind_falls_back_to_unknown() -> None:
    product = EnergyProduct.model_validate({"energy_site_id": 99, "resource_type": "wall_connector"})

    assert product.resource_type == ProductKind.UNKNOWN
    assert product.energy_site_id == "99"
    assert not product.is_battery


def test_plan_options_accept_camel_case_names() -> None:
    options = PlanOptions.model_validate(
        {
            "targetChargeLevels": {1: 90},
            "priorityVehicles": [1, "2"],
            "maxSimultaneousCharging": 3,
            "preservePowerwallReserve": 25,
        }
    )

    assert options.target_charge_levels == {"1": 90}
    assert options.priority_vehicles == frozenset({"1", "2"})
    assert options.max_simultaneous_charging == 3
    assert options.reserve_floor_percent == 25


def test_plan_options_defaults() -> None:
    options = PlanOptions()

    assert options.target_charge_levels == {}
    assert options.priority_vehicles == frozenset()
    assert options.max_simultaneous_charging == 2
    assert options.reserve_floor_percent == 20


@pytest.mark.parametrize(
    "payload",
    [{"reserve_floor_percent": 101}, {"reserve_floor_percent": -1}, {"max_simultaneous_charging": -1}],
)
def test_plan_options_reject_out_of_range(payload: dict[str, int]) -> None:
    with pytest.raises(ValidationError):
        PlanOptions.model_validate(payload)


def test_loop_options_split_into_plan_options() -> None:
    options = LoopOptions.model_validate({"intervalMinutes": 5, "autoExecute": True, "reserveFloorPercent": 30})

    assert options.interval_minutes == 5
    assert options.auto_execute
    plan_options = options.plan_options()
    assert type(plan_options) is PlanOptions
    assert plan_options.reserve_floor_percent == 30

    with pytest.raises(ValidationError):
        LoopOptions(interval_minutes=0)


def test_plan_counts_actionable_entries() -> None:
    def entry(vehicle_id: str, action: ChargingAction) -> VehiclePlanEntry:
        return VehiclePlanEntry(
            vehicle_id=vehicle_id,
            current_charge=50,
            target_charge=80,
            charging_needed=30,
            is_plugged_in=True,
            action=action,
        )

    plan = ChargingPlan(
        vehicles=(
            entry("a", ChargingAction.START_CHARGING),
            entry("b", ChargingAction.NONE),
            entry("c", ChargingAction.QUEUE_CHARGING),
        )
    )

    assert plan.actionable_count == 2
    assert [e.vehicle_id for e in plan.entries_with(ChargingAction.QUEUE_CHARGING)] == ["c"]


def test_execution_result_total() -> None:
    result = ExecutionResult()
    result.executed.append(ExecutedItem(vehicle_id="a", action="start_charging", message="ok"))
    result.skipped.append(SkippedItem(vehicle_id="b", action="none", message="No action required"))

    assert result.total == 2
    assert result.failed == []


def test_credential_from_dict_accepts_iso_and_seconds() -> None:
    expected = datetime(2026, 1, 1, tzinfo=UTC)

    from_iso = Credential.from_dict({"access_token": "tok", "expires_at": "2026-01-01T00:00:00Z"})
    from_seconds = Credential.from_dict({"accessToken": "tok", "expiresAt": 1767225600})

    assert from_iso.expires_at == expected
    assert from_seconds.expires_at == expected
    assert from_iso.refresh_token is None

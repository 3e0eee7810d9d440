"""Charging plan, options and execution result models.

Plans are immutable value objects: one ``create_plan`` call produces a
plan, at most one ``execute_plan`` call consumes it, and nothing in it
points back at live vehicle or site state.
"""

from __future__ import annotations

import enum
from datetime import UTC, datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from fleetcharge._constants import (
    DEFAULT_INTERVAL_MINUTES,
    DEFAULT_MAX_SIMULTANEOUS_CHARGING,
    DEFAULT_RESERVE_FLOOR,
)

# ------------------------------------------------------------------
# Enums
# ------------------------------------------------------------------


class ChargingAction(enum.StrEnum):
    """What the plan wants done with one vehicle."""

    NONE = "none"
    START_CHARGING = "start_charging"
    DELAY_CHARGING = "delay_charging"
    SCHEDULE_OFF_PEAK = "schedule_off_peak"
    QUEUE_CHARGING = "queue_charging"


class Priority(enum.StrEnum):
    HIGH = "high"
    NORMAL = "normal"


_FROZEN = ConfigDict(frozen=True, populate_by_name=True)


# ------------------------------------------------------------------
# Options
# ------------------------------------------------------------------


class PlanOptions(BaseModel):
    """Inputs to plan computation.

    Accepts both snake_case names and the camelCase names used by HTTP
    callers (``targetChargeLevels``, ``maxSimultaneousCharging``...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    target_charge_levels: dict[str, int] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("target_charge_levels", "targetChargeLevels"),
    )
    priority_vehicles: frozenset[str] = Field(
        default_factory=frozenset,
        validation_alias=AliasChoices("priority_vehicles", "priorityVehicles"),
    )
    max_simultaneous_charging: int = Field(
        default=DEFAULT_MAX_SIMULTANEOUS_CHARGING,
        ge=0,
        validation_alias=AliasChoices("max_simultaneous_charging", "maxSimultaneousCharging"),
    )
    reserve_floor_percent: int = Field(
        default=DEFAULT_RESERVE_FLOOR,
        ge=0,
        le=100,
        validation_alias=AliasChoices(
            "reserve_floor_percent",
            "reserveFloorPercent",
            "preservePowerwallReserve",
        ),
    )

    @field_validator("target_charge_levels", mode="before")
    @classmethod
    def _stringify_vehicle_keys(cls, value: object) -> object:
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items()}
        return value

    @field_validator("priority_vehicles", mode="before")
    @classmethod
    def _stringify_priority_ids(cls, value: object) -> object:
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(v) for v in value)
        return value


class LoopOptions(PlanOptions):
    """Plan options plus the recurring-loop settings."""

    interval_minutes: float = Field(
        default=DEFAULT_INTERVAL_MINUTES,
        gt=0,
        validation_alias=AliasChoices("interval_minutes", "intervalMinutes"),
    )
    auto_execute: bool = Field(default=False, validation_alias=AliasChoices("auto_execute", "autoExecute"))

    def plan_options(self) -> PlanOptions:
        return PlanOptions.model_validate(self.model_dump(include=set(PlanOptions.model_fields)))


# ------------------------------------------------------------------
# Plan
# ------------------------------------------------------------------


class VehiclePlanEntry(BaseModel):
    """The decision for one vehicle."""

    model_config = _FROZEN

    vehicle_id: str
    display_name: str = ""
    current_charge: int | None = None
    target_charge: int
    charging_needed: int | None = None
    is_plugged_in: bool
    priority: Priority = Priority.NORMAL
    action: ChargingAction = ChargingAction.NONE
    reason: str | None = None


class IncreaseBackupReserve(BaseModel):
    """Raise the storage reserve floor (low storage while exporting)."""

    model_config = _FROZEN

    kind: Literal["increase_backup_reserve"] = "increase_backup_reserve"
    energy_site_id: str
    current_reserve: int
    recommended_reserve: int
    reason: str


# Tagged by ``kind``; add variants here as a discriminated union.
StorageAction = IncreaseBackupReserve


class Recommendation(BaseModel):
    """Advisory note; executing a plan never acts on it."""

    model_config = _FROZEN

    kind: Literal["energy_optimization"] = "energy_optimization"
    message: str
    action: str


class ChargingPlan(BaseModel):
    """Charging decisions for every reachable vehicle plus storage actions."""

    model_config = _FROZEN

    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    vehicles: tuple[VehiclePlanEntry, ...] = ()
    storage_actions: tuple[StorageAction, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    storage_level: float = 0.0
    solar_power: float = 0.0
    load_power: float = 0.0
    grid_power: float = 0.0

    def entries_with(self, action: ChargingAction) -> list[VehiclePlanEntry]:
        return [entry for entry in self.vehicles if entry.action == action]

    @property
    def actionable_count(self) -> int:
        return sum(1 for entry in self.vehicles if entry.action != ChargingAction.NONE)


# ------------------------------------------------------------------
# Execution result
# ------------------------------------------------------------------


class ExecutedItem(BaseModel):
    model_config = _FROZEN

    vehicle_id: str | None = None
    action: str
    message: str


class FailedItem(BaseModel):
    model_config = _FROZEN

    vehicle_id: str | None = None
    action: str
    error: str


class SkippedItem(BaseModel):
    model_config = _FROZEN

    vehicle_id: str | None = None
    action: str
    message: str


class ExecutionResult(BaseModel):
    """Per-item outcomes of one plan execution.

    Lists are appended independently; a failure never removes or
    prevents other entries.
    """

    executed: list[ExecutedItem] = Field(default_factory=list)
    failed: list[FailedItem] = Field(default_factory=list)
    skipped: list[SkippedItem] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.executed) + len(self.failed) + len(self.skipped)

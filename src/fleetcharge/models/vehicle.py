"""Vehicle models.

Mapped from ``/api/1/vehicles``, ``/api/1/vehicles/{id}/vehicle_data`` and
``/api/1/vehicles/{id}/charging_history``.
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from fleetcharge.models._base import FleetBaseModel


class VehicleState(enum.StrEnum):
    """Connectivity state reported in the vehicle list."""

    ONLINE = "online"
    ASLEEP = "asleep"
    OFFLINE = "offline"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> VehicleState:
        if isinstance(value, str):
            lowered = value.strip().lower()
            for member in cls:
                if member.value == lowered:
                    return member
        return cls.UNKNOWN


def _coerce_id(value: Any) -> str:
    return "" if value is None else str(value)


class VehicleSnapshot(FleetBaseModel):
    """A vehicle on the account as listed by ``/api/1/vehicles``."""

    id: str = ""
    """Fleet API identifier used in request paths."""
    vehicle_id: str = ""
    """Secondary identifier (streaming/telemetry)."""
    vin: str = ""
    display_name: str = ""
    state: VehicleState = VehicleState.UNKNOWN

    @field_validator("id", "vehicle_id", mode="before")
    @classmethod
    def _ids_as_text(cls, value: Any) -> str:
        return _coerce_id(value)

    @property
    def is_online(self) -> bool:
        return self.state == VehicleState.ONLINE


class ChargeState(FleetBaseModel):
    """The ``charge_state`` block of ``vehicle_data``."""

    battery_level: int | None = None
    """State of charge (0-100 percent); ``None`` when not reported."""
    charge_limit_soc: int | None = None
    """Charge limit configured in the vehicle."""
    charging_state: str = ""
    """Provider charging state (``Charging``, ``Stopped``, ``Disconnected``...)."""
    charge_port_door_open: bool = False
    charge_port_latch: str = ""
    """``Engaged`` when a connector is latched."""
    charger_power: float | None = None
    scheduled_charging_pending: bool = False
    scheduled_charging_start_time: int | None = None

    @property
    def is_plugged_in(self) -> bool:
        """Whether a connector is inserted and latched."""
        return self.charge_port_door_open and self.charge_port_latch == "Engaged"

    @property
    def is_charging(self) -> bool:
        return self.charging_state == "Charging"


class VehicleData(FleetBaseModel):
    """Detailed vehicle data; only the charging-relevant part is modelled."""

    id: str = ""
    display_name: str = ""
    state: VehicleState = VehicleState.UNKNOWN
    charge_state: ChargeState | None = Field(default=None)

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return _coerce_id(value)


class ChargingHistory(FleetBaseModel):
    """Past charging sessions of a vehicle, newest first as returned."""

    sessions: list[dict[str, Any]] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sessions", "data", "charging_history"),
    )
    total_results: int | None = Field(default=None, validation_alias=AliasChoices("total_results", "totalResults"))

"""Aggregate status models returned by the coordinator."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field

from fleetcharge.models.energy import EnergyProduct, SiteStatus
from fleetcharge.models.plan import ExecutionResult
from fleetcharge.models.vehicle import VehicleSnapshot


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SystemStatus(BaseModel):
    """Vehicles, storage and solar products, and the first storage site's live status."""

    model_config = ConfigDict(frozen=True)

    vehicles: tuple[VehicleSnapshot, ...] = ()
    batteries: tuple[EnergyProduct, ...] = ()
    solar_systems: tuple[EnergyProduct, ...] = ()
    site_status: SiteStatus | None = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def primary_site_id(self) -> str | None:
        return self.batteries[0].energy_site_id if self.batteries else None


class LoopStatus(BaseModel):
    """Snapshot of the coordination loop."""

    model_config = ConfigDict(frozen=True)

    active: bool
    interval_minutes: float | None = None
    auto_execute: bool = False
    cycles_run: int = 0
    last_cycle_at: datetime | None = None
    last_error: str | None = None
    last_result: ExecutionResult | None = None
    checked_at: datetime = Field(default_factory=_utcnow)

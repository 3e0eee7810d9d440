"""Energy site models.

Mapped from ``/api/1/products`` and the ``/api/1/energy_sites/{id}/*`` reads
(``live_status``, ``site_info``, ``site_config``, ``history``).
"""

from __future__ import annotations

import enum
from typing import Any

from pydantic import AliasChoices, AliasPath, Field, field_validator

from fleetcharge.models._base import FleetBaseModel


class ProductKind(enum.StrEnum):
    """``resource_type`` of an energy product."""

    BATTERY = "battery"
    SOLAR = "solar"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value: object) -> ProductKind:
        return cls.UNKNOWN


class EnergyProduct(FleetBaseModel):
    """An energy product (storage battery or solar system) on the account."""

    energy_site_id: str = ""
    resource_type: ProductKind = ProductKind.UNKNOWN
    site_name: str = ""

    @field_validator("energy_site_id", mode="before")
    @classmethod
    def _site_id_as_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @property
    def is_battery(self) -> bool:
        return self.resource_type == ProductKind.BATTERY


class SiteStatus(FleetBaseModel):
    """Live power flows of an energy site.

    Power values are in watts. ``grid_power`` is negative while exporting.
    Readings missing from the payload default to ``0``.
    """

    percentage_charged: float = 0.0
    solar_power: float = 0.0
    load_power: float = 0.0
    grid_power: float = 0.0
    battery_power: float = 0.0
    grid_status: str = ""
    backup_reserve_percent: float | None = Field(
        default=None,
        validation_alias=AliasChoices("backup_reserve_percent", "backup_reserve"),
    )


class SiteInfo(FleetBaseModel):
    """Static configuration of an energy site."""

    id: str = ""
    site_name: str = ""
    backup_reserve_percent: float | None = None
    default_real_mode: str = ""
    battery_count: int = 0

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> str:
        return "" if value is None else str(value)


class SiteConfig(FleetBaseModel):
    """Writable settings of an energy site from ``site_config``."""

    site_name: str = ""
    backup_reserve_percent: float | None = None
    default_real_mode: str = ""
    storm_mode_enabled: bool | None = None
    disallow_charge_from_grid_with_solar_installed: bool | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "disallow_charge_from_grid_with_solar_installed",
            AliasPath("components", "disallow_charge_from_grid_with_solar_installed"),
        ),
    )
    tou_settings: dict[str, Any] = Field(default_factory=dict)


class EnergyHistory(FleetBaseModel):
    """Aggregated energy flows of a site over a period."""

    period: str = ""
    time_series: list[dict[str, Any]] = Field(default_factory=list)

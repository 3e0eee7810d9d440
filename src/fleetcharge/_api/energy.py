"""Energy site endpoints.

Endpoints:
  - GET  /api/1/products
  - GET  /api/1/energy_sites/{id}/live_status
  - GET  /api/1/energy_sites/{id}/site_info
  - GET  /api/1/energy_sites/{id}/site_config
  - GET  /api/1/energy_sites/{id}/history
  - POST /api/1/energy_sites/{id}/backup
  - POST /api/1/energy_sites/{id}/operation
  - POST /api/1/energy_sites/{id}/time_of_use_settings
  - POST /api/1/energy_sites/{id}/grid_import_export
  - POST /api/1/energy_sites/{id}/storm_mode
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fleetcharge._api._common import unwrap_response
from fleetcharge._constants import ENERGY_HISTORY_PERIODS, OPERATION_MODES
from fleetcharge._transport import Transport
from fleetcharge.models.command import CommandAck
from fleetcharge.models.energy import EnergyHistory, EnergyProduct, ProductKind, SiteConfig, SiteInfo, SiteStatus


async def fetch_energy_products(transport: Transport) -> list[EnergyProduct]:
    """List storage and solar products; vehicles and other products are dropped."""
    endpoint = "/api/1/products"
    response = unwrap_response(await transport.request("GET", endpoint), endpoint)
    items = response if isinstance(response, list) else []
    products = [EnergyProduct.model_validate(item) for item in items if isinstance(item, dict)]
    return [p for p in products if p.resource_type in (ProductKind.BATTERY, ProductKind.SOLAR)]


async def fetch_site_status(transport: Transport, site_id: str) -> SiteStatus:
    endpoint = f"/api/1/energy_sites/{site_id}/live_status"
    response = unwrap_response(await transport.request("GET", endpoint), endpoint)
    return SiteStatus.model_validate(response if isinstance(response, dict) else {})


async def fetch_site_info(transport: Transport, site_id: str) -> SiteInfo:
    endpoint = f"/api/1/energy_sites/{site_id}/site_info"
    response = unwrap_response(await transport.request("GET", endpoint), endpoint)
    return SiteInfo.model_validate(response if isinstance(response, dict) else {})


async def fetch_site_config(transport: Transport, site_id: str) -> SiteConfig:
    endpoint = f"/api/1/energy_sites/{site_id}/site_config"
    response = unwrap_response(await transport.request("GET", endpoint), endpoint)
    return SiteConfig.model_validate(response if isinstance(response, dict) else {})


async def fetch_energy_history(
    transport: Transport,
    site_id: str,
    period: str = "day",
    *,
    start_date: str | None = None,
    end_date: str | None = None,
    time_zone: str | None = None,
) -> EnergyHistory:
    """Fetch aggregated energy flows for *period* (day, week, month, year or lifetime)."""
    if period not in ENERGY_HISTORY_PERIODS:
        raise ValueError(f"Invalid period. Must be one of: {', '.join(ENERGY_HISTORY_PERIODS)}")
    params: dict[str, Any] = {"period": period}
    optional = {"start_date": start_date, "end_date": end_date, "time_zone": time_zone}
    params.update({key: value for key, value in optional.items() if value is not None})
    endpoint = f"/api/1/energy_sites/{site_id}/history"
    response = unwrap_response(await transport.request("GET", endpoint, params=params), endpoint)
    return EnergyHistory.model_validate(response if isinstance(response, dict) else {})


def _ack(payload: dict[str, Any], endpoint: str) -> CommandAck:
    response = unwrap_response(payload, endpoint)
    return CommandAck.model_validate(response if isinstance(response, dict) else {})


async def set_backup_reserve(transport: Transport, site_id: str, percent: int) -> CommandAck:
    """Set the reserve floor the storage system keeps back (0-100)."""
    if not 0 <= percent <= 100:
        raise ValueError("Backup reserve percent must be between 0 and 100")
    endpoint = f"/api/1/energy_sites/{site_id}/backup"
    payload = await transport.request("POST", endpoint, body={"backup_reserve_percent": percent})
    return _ack(payload, endpoint)


async def set_operation_mode(transport: Transport, site_id: str, mode: str) -> CommandAck:
    if mode not in OPERATION_MODES:
        raise ValueError(f"Invalid operation mode. Must be one of: {', '.join(sorted(OPERATION_MODES))}")
    endpoint = f"/api/1/energy_sites/{site_id}/operation"
    payload = await transport.request("POST", endpoint, body={"default_real_mode": mode})
    return _ack(payload, endpoint)


async def set_time_based_control(transport: Transport, site_id: str, settings: Mapping[str, Any]) -> CommandAck:
    """Replace the site's time-of-use schedule."""
    endpoint = f"/api/1/energy_sites/{site_id}/time_of_use_settings"
    payload = await transport.request("POST", endpoint, body={"tou_settings": dict(settings)})
    return _ack(payload, endpoint)


async def set_grid_charging(transport: Transport, site_id: str, disallow_from_grid: bool) -> CommandAck:
    """Allow or forbid charging storage from the grid on sites with solar."""
    endpoint = f"/api/1/energy_sites/{site_id}/grid_import_export"
    body = {"disallow_charge_from_grid_with_solar_installed": bool(disallow_from_grid)}
    payload = await transport.request("POST", endpoint, body=body)
    return _ack(payload, endpoint)


async def set_storm_watch(transport: Transport, site_id: str, enabled: bool) -> CommandAck:
    endpoint = f"/api/1/energy_sites/{site_id}/storm_mode"
    payload = await transport.request("POST", endpoint, body={"enabled": bool(enabled)})
    return _ack(payload, endpoint)

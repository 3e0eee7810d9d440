"""Vehicle endpoints.

Endpoints:
  - GET  /api/1/vehicles
  - GET  /api/1/vehicles/{id}/vehicle_data
  - GET  /api/1/vehicles/{id}/charging_history
  - POST /api/1/vehicles/{id}/wake_up
  - POST /api/1/vehicles/{id}/command/{command}
  - POST /api/1/vehicles/{id}/signed_command
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from fleetcharge._api._common import parse_command_ack, unwrap_response
from fleetcharge._constants import CHARGE_LIMIT_MAX, CHARGE_LIMIT_MIN, CHARGING_AMPS_MAX, CHARGING_AMPS_MIN
from fleetcharge._crypto.signing import CommandSigner
from fleetcharge._transport import Transport
from fleetcharge.models.command import CommandAck
from fleetcharge.models.vehicle import ChargingHistory, VehicleData, VehicleSnapshot

_logger = logging.getLogger(__name__)

CHARGE_START = "charge_start"
CHARGE_STOP = "charge_stop"
SCHEDULED_CHARGING = "scheduled_charging"
SET_CHARGE_LIMIT = "set_charge_limit"
SET_CHARGING_AMPS = "set_charging_amps"


async def fetch_vehicles(transport: Transport) -> list[VehicleSnapshot]:
    """List all vehicles on the account."""
    endpoint = "/api/1/vehicles"
    payload = await transport.request("GET", endpoint)
    items = payload.get("response") or []
    if not isinstance(items, list):
        _logger.debug("Unexpected vehicle list shape: %s", type(items).__name__)
        items = []
    return [VehicleSnapshot.model_validate(item) for item in items if isinstance(item, dict)]


async def fetch_vehicle_data(transport: Transport, vehicle_id: str) -> VehicleData:
    """Fetch detailed vehicle data (charge state included)."""
    endpoint = f"/api/1/vehicles/{vehicle_id}/vehicle_data"
    response = unwrap_response(await transport.request("GET", endpoint), endpoint)
    return VehicleData.model_validate(response if isinstance(response, dict) else {})


async def fetch_charging_history(
    transport: Transport,
    vehicle_id: str,
    *,
    start_time: str | None = None,
    end_time: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> ChargingHistory:
    """Fetch past charging sessions, optionally windowed and paged."""
    query = {"startTime": start_time, "endTime": end_time, "limit": limit, "offset": offset}
    params = {key: value for key, value in query.items() if value is not None}
    endpoint = f"/api/1/vehicles/{vehicle_id}/charging_history"
    response = unwrap_response(await transport.request("GET", endpoint, params=params or None), endpoint)
    if isinstance(response, list):
        response = {"sessions": response}
    return ChargingHistory.model_validate(response if isinstance(response, dict) else {})


async def wake_up(transport: Transport, vehicle_id: str) -> VehicleSnapshot:
    endpoint = f"/api/1/vehicles/{vehicle_id}/wake_up"
    response = unwrap_response(await transport.request("POST", endpoint), endpoint)
    return VehicleSnapshot.model_validate(response if isinstance(response, dict) else {})


def validate_command_parameters(command: str, parameters: Mapping[str, Any]) -> None:
    """Reject out-of-range values before anything is sent."""
    if command == SET_CHARGE_LIMIT:
        percent = int(parameters.get("percent", -1))
        if not CHARGE_LIMIT_MIN <= percent <= CHARGE_LIMIT_MAX:
            raise ValueError(f"Charge limit must be between {CHARGE_LIMIT_MIN}% and {CHARGE_LIMIT_MAX}%")
    elif command == SET_CHARGING_AMPS:
        amps = int(parameters.get("charging_amps", -1))
        if not CHARGING_AMPS_MIN <= amps <= CHARGING_AMPS_MAX:
            raise ValueError(f"Charging amps must be between {CHARGING_AMPS_MIN} and {CHARGING_AMPS_MAX}")
    elif command == SCHEDULED_CHARGING and parameters.get("enable") and "time" not in parameters:
        raise ValueError("Scheduled charging requires a 'time' when enabled")


async def send_command(
    transport: Transport,
    vehicle_id: str,
    command: str,
    parameters: Mapping[str, Any] | None = None,
    *,
    signer: CommandSigner | None = None,
) -> CommandAck:
    """Send a vehicle command, signed when *signer* is given.

    Raises
    ------
    SigningError
        *signer* was given but holds no private key.
    RemoteError
        The request failed or the vehicle rejected the command.
    """
    params = dict(parameters or {})
    validate_command_parameters(command, params)

    if signer is not None:
        endpoint = f"/api/1/vehicles/{vehicle_id}/signed_command"
        envelope = signer.sign(command, vehicle_id, params)
        payload = await transport.request("POST", endpoint, body=envelope.to_request_body())
    else:
        endpoint = f"/api/1/vehicles/{vehicle_id}/command/{command}"
        payload = await transport.request("POST", endpoint, body=params)

    ack = parse_command_ack(payload, endpoint)
    _logger.debug("Command %s accepted by vehicle %s", command, vehicle_id)
    return ack

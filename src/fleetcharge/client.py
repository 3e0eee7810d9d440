"""High-level async client for the Fleet vehicle and energy API."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

import aiohttp

from fleetcharge._api import energy as _energy_api
from fleetcharge._api import vehicles as _vehicles_api
from fleetcharge._api.oauth import OAuthTokenClient
from fleetcharge._crypto.signing import CommandSigner
from fleetcharge._dispatcher import RateLimitedDispatcher
from fleetcharge._transport import HttpTransport, Transport
from fleetcharge.auth import CredentialRefresher, TokenLifecycleManager
from fleetcharge.config import FleetConfig
from fleetcharge.exceptions import AuthError, FleetError
from fleetcharge.models.command import CommandAck
from fleetcharge.models.credential import Credential
from fleetcharge.models.energy import EnergyHistory, EnergyProduct, SiteConfig, SiteInfo, SiteStatus
from fleetcharge.models.vehicle import ChargingHistory, VehicleData, VehicleSnapshot

_logger = logging.getLogger(__name__)


class FleetClient:
    """Async client for the Fleet API.

    Every request goes through one :class:`RateLimitedDispatcher`, and the
    credential is checked (and refreshed at most once per expiry, however
    many callers are waiting) before each call.

    Usage::

        async with FleetClient(config) as client:
            client.set_credential(credential)
            vehicles = await client.get_vehicles()
    """

    def __init__(
        self,
        config: FleetConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        credential: Credential | None = None,
        signer: CommandSigner | None = None,
        transport: Transport | None = None,
        refresher: CredentialRefresher | None = None,
        on_credential_refreshed: Callable[[Credential], None] | None = None,
    ) -> None:
        self._config = config
        self._http_session = session
        self._external_session = session is not None
        self._credential = credential
        self._signer = signer or CommandSigner.from_pem(config.private_key_pem(), config.domain)
        self._transport = transport
        self._refresher = refresher
        self._dispatcher: RateLimitedDispatcher | None = None
        self._tokens: TokenLifecycleManager | None = None
        self._credential_lock = asyncio.Lock()
        self._on_credential_refreshed = on_credential_refreshed

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FleetClient:
        if (self._transport is None or self._refresher is None) and self._http_session is None:
            self._http_session = aiohttp.ClientSession()
        if self._transport is None:
            assert self._http_session is not None  # noqa: S101
            self._transport = HttpTransport(
                self._config,
                self._http_session,
                token_provider=lambda: self._credential.access_token if self._credential else None,
            )
        if self._refresher is None:
            assert self._http_session is not None  # noqa: S101
            self._refresher = OAuthTokenClient(self._config, self._http_session, signer=self._signer)
        self._dispatcher = RateLimitedDispatcher(
            self._transport,
            max_requests_per_second=self._config.max_requests_per_second,
        )
        self._tokens = TokenLifecycleManager(self._refresher)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        if self._dispatcher is not None:
            await self._dispatcher.close()
            self._dispatcher = None
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None

    # ------------------------------------------------------------------
    # Credential
    # ------------------------------------------------------------------

    @property
    def config(self) -> FleetConfig:
        return self._config

    @property
    def credential(self) -> Credential | None:
        return self._credential

    @property
    def signer(self) -> CommandSigner:
        return self._signer

    @property
    def dispatcher(self) -> RateLimitedDispatcher:
        return self._require_dispatcher()

    def set_credential(self, credential: Credential | Mapping[str, Any]) -> None:
        """Install the credential used for every subsequent call."""
        if not isinstance(credential, Credential):
            credential = Credential.from_dict(credential)
        self._credential = credential

    async def ensure_credential(self) -> Credential:
        """Return a usable credential, refreshing it if it is about to expire."""
        tokens = self._require_tokens()
        current = self._credential
        if current is None:
            raise AuthError("No credential set. Call set_credential() first.")
        if not tokens.is_expired(current):
            return current

        async with self._credential_lock:
            # Another caller may have refreshed while we waited for the lock.
            current = self._credential
            assert current is not None  # noqa: S101
            refreshed = await tokens.ensure_valid(current)
            if refreshed is not current:
                self._credential = refreshed
                _logger.info("Access token refreshed; valid until %s", refreshed.expires_at.isoformat())
                if self._on_credential_refreshed is not None:
                    try:
                        self._on_credential_refreshed(refreshed)
                    except Exception:
                        _logger.debug("on_credential_refreshed callback failed", exc_info=True)
            return refreshed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_dispatcher(self) -> RateLimitedDispatcher:
        if self._dispatcher is None:
            raise FleetError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._dispatcher

    def _require_tokens(self) -> TokenLifecycleManager:
        if self._tokens is None:
            raise FleetError("Client not initialized. Use 'async with FleetClient(...) as client:'")
        return self._tokens

    async def _authorized(self) -> RateLimitedDispatcher:
        dispatcher = self._require_dispatcher()
        await self.ensure_credential()
        return dispatcher

    # ------------------------------------------------------------------
    # Vehicle reads
    # ------------------------------------------------------------------

    async def get_vehicles(self) -> list[VehicleSnapshot]:
        """Fetch all vehicles associated with the account."""
        return await _vehicles_api.fetch_vehicles(await self._authorized())

    async def get_vehicle_data(self, vehicle_id: str) -> VehicleData:
        """Fetch detailed vehicle data including charge state."""
        return await _vehicles_api.fetch_vehicle_data(await self._authorized(), vehicle_id)

    async def get_charging_history(
        self,
        vehicle_id: str,
        *,
        start_time: str | None = None,
        end_time: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> ChargingHistory:
        return await _vehicles_api.fetch_charging_history(
            await self._authorized(),
            vehicle_id,
            start_time=start_time,
            end_time=end_time,
            limit=limit,
            offset=offset,
        )

    async def wake_up(self, vehicle_id: str) -> VehicleSnapshot:
        return await _vehicles_api.wake_up(await self._authorized(), vehicle_id)

    # ------------------------------------------------------------------
    # Vehicle commands
    # ------------------------------------------------------------------

    async def send_command(
        self,
        vehicle_id: str,
        command: str,
        parameters: Mapping[str, Any] | None = None,
    ) -> CommandAck:
        """Send a vehicle command, through the signed endpoint when configured."""
        signer = self._signer if self._config.signed_commands else None
        dispatcher = await self._authorized()
        return await _vehicles_api.send_command(dispatcher, vehicle_id, command, parameters, signer=signer)

    async def start_charging(self, vehicle_id: str) -> CommandAck:
        return await self.send_command(vehicle_id, _vehicles_api.CHARGE_START)

    async def stop_charging(self, vehicle_id: str) -> CommandAck:
        return await self.send_command(vehicle_id, _vehicles_api.CHARGE_STOP)

    async def schedule_charging(self, vehicle_id: str, start_at: int | datetime) -> CommandAck:
        """Schedule charging to start at a Unix timestamp (or aware datetime)."""
        timestamp = int(start_at.timestamp()) if isinstance(start_at, datetime) else int(start_at)
        return await self.send_command(
            vehicle_id,
            _vehicles_api.SCHEDULED_CHARGING,
            {"enable": True, "time": timestamp},
        )

    async def cancel_scheduled_charging(self, vehicle_id: str) -> CommandAck:
        return await self.send_command(vehicle_id, _vehicles_api.SCHEDULED_CHARGING, {"enable": False})

    async def set_charge_limit(self, vehicle_id: str, percent: int) -> CommandAck:
        return await self.send_command(vehicle_id, _vehicles_api.SET_CHARGE_LIMIT, {"percent": percent})

    async def set_charging_amps(self, vehicle_id: str, amps: int) -> CommandAck:
        return await self.send_command(vehicle_id, _vehicles_api.SET_CHARGING_AMPS, {"charging_amps": amps})

    # ------------------------------------------------------------------
    # Energy sites
    # ------------------------------------------------------------------

    async def get_energy_products(self) -> list[EnergyProduct]:
        """Fetch storage and solar products on the account."""
        return await _energy_api.fetch_energy_products(await self._authorized())

    async def get_site_status(self, site_id: str) -> SiteStatus:
        """Fetch live power flows and storage level of an energy site."""
        return await _energy_api.fetch_site_status(await self._authorized(), site_id)

    async def get_site_info(self, site_id: str) -> SiteInfo:
        return await _energy_api.fetch_site_info(await self._authorized(), site_id)

    async def get_site_config(self, site_id: str) -> SiteConfig:
        return await _energy_api.fetch_site_config(await self._authorized(), site_id)

    async def get_energy_history(
        self,
        site_id: str,
        period: str = "day",
        *,
        start_date: str | None = None,
        end_date: str | None = None,
        time_zone: str | None = None,
    ) -> EnergyHistory:
        """Fetch aggregated energy flows of a site for *period*."""
        return await _energy_api.fetch_energy_history(
            await self._authorized(),
            site_id,
            period,
            start_date=start_date,
            end_date=end_date,
            time_zone=time_zone,
        )

    async def set_backup_reserve(self, site_id: str, percent: int) -> CommandAck:
        return await _energy_api.set_backup_reserve(await self._authorized(), site_id, percent)

    async def set_operation_mode(self, site_id: str, mode: str) -> CommandAck:
        return await _energy_api.set_operation_mode(await self._authorized(), site_id, mode)

    async def set_time_based_control(self, site_id: str, settings: Mapping[str, Any]) -> CommandAck:
        return await _energy_api.set_time_based_control(await self._authorized(), site_id, settings)

    async def set_grid_charging(self, site_id: str, disallow_from_grid: bool) -> CommandAck:
        return await _energy_api.set_grid_charging(await self._authorized(), site_id, disallow_from_grid)

    async def set_storm_watch(self, site_id: str, enabled: bool) -> CommandAck:
        return await _energy_api.set_storm_watch(await self._authorized(), site_id, enabled)

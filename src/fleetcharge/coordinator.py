"""Charging coordinator: plan, execute and loop over vehicles and storage."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, tzinfo
from typing import Any, Protocol, TypeVar
from zoneinfo import ZoneInfo

from fleetcharge._constants import DEFAULT_OFF_PEAK_HOUR
from fleetcharge.exceptions import (
    AlreadyActiveError,
    AuthError,
    FleetConfigError,
    NotActiveError,
    SigningError,
)
from fleetcharge.models.command import CommandAck
from fleetcharge.models.credential import Credential
from fleetcharge.models.energy import EnergyProduct, ProductKind, SiteStatus
from fleetcharge.models.plan import (
    ChargingAction,
    ChargingPlan,
    ExecutedItem,
    ExecutionResult,
    FailedItem,
    LoopOptions,
    PlanOptions,
    SkippedItem,
    VehiclePlanEntry,
)
from fleetcharge.models.status import LoopStatus, SystemStatus
from fleetcharge.models.vehicle import VehicleData, VehicleSnapshot
from fleetcharge.planning import build_entry, build_plan, next_off_peak_time
from fleetcharge.scheduling import RecurringTask

_logger = logging.getLogger(__name__)

_OptionsT = TypeVar("_OptionsT", bound=PlanOptions)

# Raised out of plan/execute instead of being recorded per item.
_FATAL_ERRORS = (AuthError, SigningError)


class ChargingBackend(Protocol):
    """Remote operations the coordinator needs; :class:`FleetClient` implements it."""

    def set_credential(self, credential: Credential | Mapping[str, Any]) -> None: ...

    async def get_vehicles(self) -> list[VehicleSnapshot]: ...

    async def get_vehicle_data(self, vehicle_id: str) -> VehicleData: ...

    async def get_energy_products(self) -> list[EnergyProduct]: ...

    async def get_site_status(self, site_id: str) -> SiteStatus: ...

    async def start_charging(self, vehicle_id: str) -> CommandAck: ...

    async def stop_charging(self, vehicle_id: str) -> CommandAck: ...

    async def schedule_charging(self, vehicle_id: str, start_at: int | datetime) -> CommandAck: ...

    async def set_backup_reserve(self, site_id: str, percent: int) -> CommandAck: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _resolve_zone(time_zone: str | tzinfo | None) -> tzinfo | None:
    if time_zone is None or isinstance(time_zone, tzinfo):
        return time_zone
    try:
        return ZoneInfo(time_zone)
    except (KeyError, ValueError) as exc:
        raise FleetConfigError(f"Unknown time zone: {time_zone!r}") from exc


def _coerce_options(options: _OptionsT | Mapping[str, Any] | None, model: type[_OptionsT]) -> _OptionsT:
    if isinstance(options, model):
        return options
    if isinstance(options, PlanOptions):
        return model.model_validate(options.model_dump())
    return model.model_validate(dict(options or {}))


class ChargingCoordinator:
    """Coordinate vehicle charging against a home energy-storage site.

    Parameters
    ----------
    backend : ChargingBackend
        Remote operations, normally a :class:`~fleetcharge.client.FleetClient`.
    off_peak_hour : int
        Local hour deferred charging is scheduled for.
    time_zone : str, tzinfo or None
        Zone the off-peak hour is interpreted in. ``None`` uses the host zone.
    clock : callable
        Returns the current aware datetime; injectable for tests.
    """

    def __init__(
        self,
        backend: ChargingBackend,
        *,
        off_peak_hour: int = DEFAULT_OFF_PEAK_HOUR,
        time_zone: str | tzinfo | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if not 0 <= off_peak_hour <= 23:
            raise FleetConfigError(f"off_peak_hour must be between 0 and 23, got {off_peak_hour}")
        self._backend = backend
        self._off_peak_hour = off_peak_hour
        self._time_zone = _resolve_zone(time_zone)
        self._clock = clock

        self._active = False
        self._loop_options: LoopOptions | None = None
        self._task: RecurringTask | None = None
        # Stopped loops whose last cycle may still be running.
        self._retired: list[RecurringTask] = []
        self._cycle_lock = asyncio.Lock()
        self._cycles_run = 0
        self._last_cycle_at: datetime | None = None
        self._last_error: str | None = None
        self._last_result: ExecutionResult | None = None

    @classmethod
    def for_client(cls, client: Any, **kwargs: Any) -> ChargingCoordinator:
        """Build a coordinator around a FleetClient, taking off-peak settings from its config."""
        config = client.config
        kwargs.setdefault("off_peak_hour", config.off_peak_hour)
        kwargs.setdefault("time_zone", config.time_zone)
        return cls(client, **kwargs)

    def set_credential(self, credential: Credential | Mapping[str, Any]) -> None:
        self._backend.set_credential(credential)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_system_status(self) -> SystemStatus:
        """Fetch vehicles and energy products, plus live status of the first storage site."""
        vehicles, products = await asyncio.gather(
            self._backend.get_vehicles(),
            self._backend.get_energy_products(),
        )
        batteries = [p for p in products if p.resource_type == ProductKind.BATTERY]
        solar = [p for p in products if p.resource_type == ProductKind.SOLAR]

        site_status = None
        if batteries:
            site_status = await self._backend.get_site_status(batteries[0].energy_site_id)

        return SystemStatus(
            vehicles=tuple(vehicles),
            batteries=tuple(batteries),
            solar_systems=tuple(solar),
            site_status=site_status,
            timestamp=self._clock(),
        )

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def create_plan(self, options: PlanOptions | Mapping[str, Any] | None = None) -> ChargingPlan:
        """Compute a charging plan from the current system status.

        Vehicles that are not online are left out. A vehicle whose data
        cannot be fetched is logged and left out; the plan is still built
        for the rest.

        Raises
        ------
        AuthError
            The credential is unusable.
        RemoteError
            Listing vehicles or energy products failed.
        """
        opts = _coerce_options(options, PlanOptions)
        status = await self.get_system_status()
        site = status.site_status or SiteStatus()

        entries: list[VehiclePlanEntry] = []
        for vehicle in status.vehicles:
            if not vehicle.is_online:
                continue
            try:
                data = await self._backend.get_vehicle_data(vehicle.id)
            except _FATAL_ERRORS:
                raise
            except Exception as exc:
                _logger.warning("Failed to get data for vehicle %s: %s", vehicle.id, exc)
                continue
            if data.charge_state is None:
                _logger.debug("Vehicle %s returned no charge state; skipped", vehicle.id)
                continue
            entries.append(build_entry(vehicle.id, vehicle.display_name, data.charge_state, opts, site))

        plan = build_plan(entries, site, status.primary_site_id, opts, created_at=self._clock())
        _logger.debug(
            "Plan: %d vehicles, %d actionable, %d storage actions",
            len(plan.vehicles),
            plan.actionable_count,
            len(plan.storage_actions),
        )
        return plan

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute_entry(self, entry: VehiclePlanEntry, result: ExecutionResult) -> None:
        vehicle_id = entry.vehicle_id
        if entry.action == ChargingAction.START_CHARGING:
            await self._backend.start_charging(vehicle_id)
            message = "Charging started"
        elif entry.action == ChargingAction.DELAY_CHARGING:
            await self._backend.stop_charging(vehicle_id)
            message = "Charging stopped to preserve storage reserve"
        elif entry.action == ChargingAction.SCHEDULE_OFF_PEAK:
            start_at = next_off_peak_time(self._clock(), self._off_peak_hour, self._time_zone)
            await self._backend.schedule_charging(vehicle_id, start_at)
            message = f"Charging scheduled for {start_at.isoformat()}"
        else:
            note = "Queued for a slot" if entry.action == ChargingAction.QUEUE_CHARGING else "No action required"
            result.skipped.append(SkippedItem(vehicle_id=vehicle_id, action=entry.action.value, message=note))
            return
        result.executed.append(ExecutedItem(vehicle_id=vehicle_id, action=entry.action.value, message=message))

    async def execute_plan(self, plan: ChargingPlan) -> ExecutionResult:
        """Carry out *plan*: vehicle entries in order, then storage actions.

        Every item is attempted; a failure is recorded in ``failed`` and
        does not stop the others.

        Raises
        ------
        AuthError, SigningError
            Further calls cannot succeed, so execution stops.
        """
        result = ExecutionResult()

        for entry in plan.vehicles:
            try:
                await self._execute_entry(entry, result)
            except _FATAL_ERRORS:
                raise
            except Exception as exc:
                _logger.warning("%s failed for vehicle %s: %s", entry.action, entry.vehicle_id, exc)
                result.failed.append(
                    FailedItem(vehicle_id=entry.vehicle_id, action=entry.action.value, error=str(exc))
                )

        for action in plan.storage_actions:
            try:
                await self._backend.set_backup_reserve(action.energy_site_id, action.recommended_reserve)
            except _FATAL_ERRORS:
                raise
            except Exception as exc:
                _logger.warning("%s failed for site %s: %s", action.kind, action.energy_site_id, exc)
                result.failed.append(FailedItem(action=action.kind, error=str(exc)))
            else:
                result.executed.append(
                    ExecutedItem(
                        action=action.kind,
                        message=f"Backup reserve increased to {action.recommended_reserve}%",
                    )
                )

        return result

    # ------------------------------------------------------------------
    # Scheduled loop
    # ------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self._active

    def start_loop(self, options: LoopOptions | Mapping[str, Any] | None = None) -> LoopStatus:
        """Start the recurring coordination loop; the first cycle runs immediately.

        Must be called from a running event loop.

        Raises
        ------
        AlreadyActiveError
            A loop is already running on this coordinator.
        """
        opts = _coerce_options(options, LoopOptions)
        if self._active:
            raise AlreadyActiveError("Automatic coordination is already active")
        task = RecurringTask(
            lambda: self._run_cycle(opts),
            opts.interval_minutes * 60,
            name="charging-coordination",
            on_error=self._record_cycle_error,
        )
        task.start()
        if self._task is not None and self._task.running:
            self._retired.append(self._task)
        self._task = task
        self._active = True
        self._loop_options = opts
        _logger.info(
            "Automatic coordination started (every %s min, auto_execute=%s)",
            opts.interval_minutes,
            opts.auto_execute,
        )
        return self.loop_status()

    def stop_loop(self) -> LoopStatus:
        """Stop the loop; an in-flight cycle completes, no further cycle starts.

        Raises
        ------
        NotActiveError
            No loop is running.
        """
        if not self._active:
            raise NotActiveError("Automatic coordination is not active")
        self._active = False
        if self._task is not None:
            self._task.stop()
        _logger.info("Automatic coordination stopped")
        return self.loop_status()

    def loop_status(self) -> LoopStatus:
        opts = self._loop_options
        return LoopStatus(
            active=self._active,
            interval_minutes=opts.interval_minutes if opts else None,
            auto_execute=opts.auto_execute if opts else False,
            cycles_run=self._cycles_run,
            last_cycle_at=self._last_cycle_at,
            last_error=self._last_error,
            last_result=self._last_result,
            checked_at=self._clock(),
        )

    async def close(self) -> None:
        """Stop the loop if it is running and wait for its tasks to end."""
        if self._active:
            self.stop_loop()
        tasks = [*self._retired, *([self._task] if self._task is not None else [])]
        self._retired.clear()
        self._task = None
        for task in tasks:
            await task.wait()

    async def _run_cycle(self, options: LoopOptions) -> None:
        # A restarted loop must not overlap the previous loop's last cycle.
        async with self._cycle_lock:
            self._cycles_run += 1
            self._last_cycle_at = self._clock()
            plan = await self.create_plan(options.plan_options())
            _logger.info(
                "Charging plan created: %d vehicles, %d actions",
                len(plan.vehicles),
                plan.actionable_count,
            )
            if options.auto_execute:
                result = await self.execute_plan(plan)
                self._last_result = result
                _logger.info(
                    "Plan executed: %d executed, %d failed, %d skipped",
                    len(result.executed),
                    len(result.failed),
                    len(result.skipped),
                )
            self._last_error = None

    def _record_cycle_error(self, exc: BaseException) -> None:
        self._last_error = str(exc) or type(exc).__name__
        _logger.exception("Error in coordination cycle", exc_info=exc)

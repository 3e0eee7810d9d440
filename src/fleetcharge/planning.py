"""Charging decision policy.

Everything here is pure: given readings and options it returns plan
entries, storage actions and advisories without touching the network,
so the coordinator fetches state and this module decides.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta, tzinfo

from fleetcharge._constants import (
    DEFAULT_OFF_PEAK_HOUR,
    DEFAULT_TARGET_CHARGE,
    RESERVE_STEP_PERCENT,
    SOLAR_ADVISORY_STORAGE_PERCENT,
    SOLAR_ADVISORY_WATTS,
    SOLAR_SURPLUS_WATTS,
    STORAGE_HEADROOM_PERCENT,
)
from fleetcharge.models.energy import SiteStatus
from fleetcharge.models.plan import (
    ChargingAction,
    ChargingPlan,
    IncreaseBackupReserve,
    PlanOptions,
    Priority,
    Recommendation,
    StorageAction,
    VehiclePlanEntry,
)
from fleetcharge.models.vehicle import ChargeState

REASON_HIGH_STORAGE = "High storage level allows charging"
REASON_SOLAR_SURPLUS = "Excess solar production available"
REASON_PRESERVE_RESERVE = "Preserve storage reserve"
REASON_OFF_PEAK = "Deferred to off-peak window"
REASON_QUEUED = "Waiting for a charging slot"
REASON_UNKNOWN_LEVEL = "Battery level not reported"


def decide_action(
    *,
    charging_needed: int,
    is_plugged_in: bool,
    storage_level: float,
    solar_power: float,
    load_power: float,
    reserve_floor: int,
) -> tuple[ChargingAction, str | None]:
    """Pick the action for one vehicle; the first matching rule wins.

    A vehicle that is unplugged or already at target gets ``NONE``.
    """
    if charging_needed <= 0 or not is_plugged_in:
        return ChargingAction.NONE, None
    if storage_level > reserve_floor + STORAGE_HEADROOM_PERCENT:
        return ChargingAction.START_CHARGING, REASON_HIGH_STORAGE
    if solar_power > load_power + SOLAR_SURPLUS_WATTS:
        return ChargingAction.START_CHARGING, REASON_SOLAR_SURPLUS
    if storage_level < reserve_floor:
        return ChargingAction.DELAY_CHARGING, REASON_PRESERVE_RESERVE
    return ChargingAction.SCHEDULE_OFF_PEAK, REASON_OFF_PEAK


def build_entry(
    vehicle_id: str,
    display_name: str,
    charge_state: ChargeState,
    options: PlanOptions,
    site: SiteStatus,
) -> VehiclePlanEntry:
    """Build the plan entry for one vehicle from its charge state.

    Without a reported battery level no decision is made and the entry
    gets ``NONE``.
    """
    target = options.target_charge_levels.get(vehicle_id, DEFAULT_TARGET_CHARGE)
    current = charge_state.battery_level
    plugged_in = charge_state.is_plugged_in
    priority = Priority.HIGH if vehicle_id in options.priority_vehicles else Priority.NORMAL
    if current is None:
        return VehiclePlanEntry(
            vehicle_id=vehicle_id,
            display_name=display_name,
            target_charge=target,
            is_plugged_in=plugged_in,
            priority=priority,
            reason=REASON_UNKNOWN_LEVEL,
        )
    needed = target - current
    action, reason = decide_action(
        charging_needed=needed,
        is_plugged_in=plugged_in,
        storage_level=site.percentage_charged,
        solar_power=site.solar_power,
        load_power=site.load_power,
        reserve_floor=options.reserve_floor_percent,
    )
    return VehiclePlanEntry(
        vehicle_id=vehicle_id,
        display_name=display_name,
        current_charge=current,
        target_charge=target,
        charging_needed=needed,
        is_plugged_in=plugged_in,
        priority=priority,
        action=action,
        reason=reason,
    )


def _admission_key(entry: VehiclePlanEntry) -> tuple[int, int]:
    return (0 if entry.priority == Priority.HIGH else 1, -(entry.charging_needed or 0))


def apply_admission_control(
    entries: Sequence[VehiclePlanEntry],
    max_simultaneous: int,
) -> list[VehiclePlanEntry]:
    """Cap the number of ``START_CHARGING`` entries at *max_simultaneous*.

    Candidates are ranked high priority first, then by descending
    ``charging_needed``; the overflow is demoted to ``QUEUE_CHARGING``.
    Entry order is preserved.
    """
    starting = [e for e in entries if e.action == ChargingAction.START_CHARGING]
    if len(starting) <= max_simultaneous:
        return list(entries)

    # sorted() is stable, so ties keep their fetch order.
    demoted = {id(e) for e in sorted(starting, key=_admission_key)[max_simultaneous:]}
    return [
        e.model_copy(update={"action": ChargingAction.QUEUE_CHARGING, "reason": REASON_QUEUED})
        if id(e) in demoted
        else e
        for e in entries
    ]


def storage_actions(site: SiteStatus, site_id: str | None, reserve_floor: int) -> list[StorageAction]:
    """Raise the reserve floor when storage is low while exporting to the grid."""
    if site_id is None:
        return []
    if site.percentage_charged < reserve_floor and site.grid_power < 0:
        return [
            IncreaseBackupReserve(
                energy_site_id=site_id,
                current_reserve=reserve_floor,
                recommended_reserve=min(reserve_floor + RESERVE_STEP_PERCENT, 100),
                reason="Low storage level and grid export detected",
            )
        ]
    return []


def recommendations(site: SiteStatus) -> list[Recommendation]:
    if site.solar_power > site.load_power + SOLAR_ADVISORY_WATTS and (
        site.percentage_charged > SOLAR_ADVISORY_STORAGE_PERCENT
    ):
        return [
            Recommendation(
                message="High solar production and full storage - excellent time for vehicle charging",
                action="prioritize_vehicle_charging",
            )
        ]
    return []


def build_plan(
    entries: Iterable[VehiclePlanEntry],
    site: SiteStatus | None,
    site_id: str | None,
    options: PlanOptions,
    *,
    created_at: datetime | None = None,
) -> ChargingPlan:
    """Assemble a :class:`ChargingPlan` from per-vehicle entries and site readings.

    Parameters
    ----------
    entries:
        Entries from :func:`build_entry`, in vehicle order.
    site:
        Live status of the storage site, or ``None`` when there is none;
        missing readings count as zero.
    site_id:
        Storage site the reserve action targets.
    options:
        Plan options (admission cap and reserve floor are read here).
    """
    site = site or SiteStatus()
    admitted = apply_admission_control(list(entries), options.max_simultaneous_charging)
    return ChargingPlan(
        created_at=created_at or datetime.now(UTC),
        vehicles=tuple(admitted),
        storage_actions=tuple(storage_actions(site, site_id, options.reserve_floor_percent)),
        recommendations=tuple(recommendations(site)),
        storage_level=site.percentage_charged,
        solar_power=site.solar_power,
        load_power=site.load_power,
        grid_power=site.grid_power,
    )


def next_off_peak_time(now: datetime, hour: int = DEFAULT_OFF_PEAK_HOUR, tz: tzinfo | None = None) -> datetime:
    """Return the next ``hour``:00 in *tz* (local wall clock) after *now*.

    At or past the hour it rolls to the next day. *now* must be aware.
    """
    local = now.astimezone(tz)
    candidate = local.replace(hour=hour, minute=0, second=0, microsecond=0)
    if local.hour >= hour:
        candidate += timedelta(days=1)
    return candidate

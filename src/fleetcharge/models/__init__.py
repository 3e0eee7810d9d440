"""Data models for Fleet API responses, plans and results."""

from fleetcharge.models._base import FleetBaseModel, UtcTimestamp, parse_timestamp
from fleetcharge.models.command import CommandAck, SignedEnvelope
from fleetcharge.models.credential import Credential
from fleetcharge.models.energy import EnergyHistory, EnergyProduct, ProductKind, SiteConfig, SiteInfo, SiteStatus
from fleetcharge.models.plan import (
    ChargingAction,
    ChargingPlan,
    ExecutedItem,
    ExecutionResult,
    FailedItem,
    IncreaseBackupReserve,
    LoopOptions,
    PlanOptions,
    Priority,
    Recommendation,
    SkippedItem,
    StorageAction,
    VehiclePlanEntry,
)
from fleetcharge.models.status import LoopStatus, SystemStatus
from fleetcharge.models.vehicle import ChargeState, ChargingHistory, VehicleData, VehicleSnapshot, VehicleState

__all__ = [
    "ChargeState",
    "ChargingAction",
    "ChargingHistory",
    "ChargingPlan",
    "CommandAck",
    "Credential",
    "EnergyHistory",
    "EnergyProduct",
    "ExecutedItem",
    "ExecutionResult",
    "FailedItem",
    "FleetBaseModel",
    "IncreaseBackupReserve",
    "LoopOptions",
    "LoopStatus",
    "PlanOptions",
    "Priority",
    "ProductKind",
    "Recommendation",
    "SignedEnvelope",
    "SiteConfig",
    "SiteInfo",
    "SiteStatus",
    "SkippedItem",
    "StorageAction",
    "SystemStatus",
    "UtcTimestamp",
    "VehicleData",
    "VehiclePlanEntry",
    "VehicleSnapshot",
    "VehicleState",
    "parse_timestamp",
]

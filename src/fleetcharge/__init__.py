"""fleetcharge - Async EV charging coordinator for the Fleet vehicle and energy API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fleetcharge")
except PackageNotFoundError:
    __version__ = "0+local"
from fleetcharge._crypto.signing import CommandSigner
from fleetcharge._dispatcher import RateLimitedDispatcher
from fleetcharge.auth import TokenLifecycleManager
from fleetcharge.auth_state import PendingAuthStore, create_authorization_request
from fleetcharge.client import FleetClient
from fleetcharge.config import FleetConfig
from fleetcharge.coordinator import ChargingBackend, ChargingCoordinator
from fleetcharge.exceptions import (
    AlreadyActiveError,
    AuthError,
    FleetConfigError,
    FleetError,
    LoopStateError,
    NotActiveError,
    RateLimitError,
    RemoteAuthError,
    RemoteError,
    SigningError,
)
from fleetcharge.models import (
    ChargeState,
    ChargingAction,
    ChargingPlan,
    CommandAck,
    Credential,
    EnergyProduct,
    ExecutionResult,
    IncreaseBackupReserve,
    LoopOptions,
    LoopStatus,
    PlanOptions,
    Priority,
    Recommendation,
    SignedEnvelope,
    SiteStatus,
    SystemStatus,
    VehicleData,
    VehiclePlanEntry,
    VehicleSnapshot,
    VehicleState,
)
from fleetcharge.scheduling import RecurringTask

__all__ = [
    "__version__",
    "AlreadyActiveError",
    "AuthError",
    "ChargeState",
    "ChargingAction",
    "ChargingBackend",
    "ChargingCoordinator",
    "ChargingPlan",
    "CommandAck",
    "CommandSigner",
    "Credential",
    "EnergyProduct",
    "ExecutionResult",
    "FleetClient",
    "FleetConfig",
    "FleetConfigError",
    "FleetError",
    "IncreaseBackupReserve",
    "LoopOptions",
    "LoopStateError",
    "LoopStatus",
    "NotActiveError",
    "PendingAuthStore",
    "PlanOptions",
    "Priority",
    "RateLimitError",
    "RateLimitedDispatcher",
    "Recommendation",
    "RecurringTask",
    "RemoteAuthError",
    "RemoteError",
    "SignedEnvelope",
    "SigningError",
    "SiteStatus",
    "SystemStatus",
    "TokenLifecycleManager",
    "VehicleData",
    "VehiclePlanEntry",
    "VehicleSnapshot",
    "VehicleState",
    "create_authorization_request",
]

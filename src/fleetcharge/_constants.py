"""Internal constants shared across the library."""

FLEET_BASE_URL = "https://fleet-api.prd.na.vn.cloud.tesla.com"
AUTH_BASE_URL = "https://auth.tesla.com"
FLEET_AUTH_URL = "https://fleet-auth.prd.vn.cloud.tesla.com"
USER_AGENT = "fleetcharge/1.0"

DEFAULT_MAX_REQUESTS_PER_SECOND = 20.0
DEFAULT_REQUEST_TIMEOUT = 30.0

#: Seconds before ``expires_at`` at which a credential is treated as expired.
TOKEN_REFRESH_BUFFER_SECONDS = 60.0

DEFAULT_SCOPES: tuple[str, ...] = (
    "openid",
    "offline_access",
    "user_data",
    "vehicle_device_data",
    "vehicle_cmds",
    "vehicle_charging_cmds",
    "energy_device_data",
    "energy_cmds",
)

# ------------------------------------------------------------------
# Charging policy
# ------------------------------------------------------------------

DEFAULT_TARGET_CHARGE = 80
DEFAULT_RESERVE_FLOOR = 20
DEFAULT_MAX_SIMULTANEOUS_CHARGING = 2
DEFAULT_INTERVAL_MINUTES = 15.0
DEFAULT_OFF_PEAK_HOUR = 23

#: Storage must exceed the reserve floor by this many points to allow charging.
STORAGE_HEADROOM_PERCENT = 30
#: Solar surplus over home load (W) that allows charging.
SOLAR_SURPLUS_WATTS = 3000.0
#: Solar surplus (W) that, with a nearly full battery, triggers an advisory.
SOLAR_ADVISORY_WATTS = 5000.0
SOLAR_ADVISORY_STORAGE_PERCENT = 95
RESERVE_STEP_PERCENT = 10

# ------------------------------------------------------------------
# Command limits
# ------------------------------------------------------------------

CHARGE_LIMIT_MIN = 50
CHARGE_LIMIT_MAX = 100
CHARGING_AMPS_MIN = 5
CHARGING_AMPS_MAX = 48
OPERATION_MODES: frozenset[str] = frozenset({"autonomous", "backup", "self_consumption"})
ENERGY_HISTORY_PERIODS: tuple[str, ...] = ("day", "week", "month", "year", "lifetime")

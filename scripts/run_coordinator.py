#!/usr/bin/env python3
"""Plan, execute or loop EV charging against the home storage site.

Usage
-----
Set environment variables and run::

    export TESLA_CLIENT_ID="..."
    export TESLA_CLIENT_SECRET="..."
    export TESLA_ACCESS_TOKEN="..."
    export TESLA_REFRESH_TOKEN="..."        # optional
    export TESLA_EXPIRES_AT="1767225600"    # epoch seconds or ISO-8601
    python scripts/run_coordinator.py plan

Subcommands::

    plan        Print the charging plan as JSON
    execute     Compute the plan and execute it
    loop        Run the coordination loop until interrupted

Options::

    --target VEHICLE=PCT     Target charge for one vehicle (repeatable)
    --priority VEHICLE       Mark a vehicle high priority (repeatable)
    --max-charging N         Simultaneous charging cap (default 2)
    --reserve-floor PCT      Storage reserve floor (default 20)
    --interval MINUTES       Loop interval (loop only, default 15)
    --auto-execute           Execute each plan (loop only)
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetcharge import ChargingCoordinator, Credential, FleetClient, FleetConfig, FleetError  # noqa: E402

_logger = logging.getLogger("run_coordinator")


def _credential_from_env() -> Credential:
    access_token = os.environ.get("TESLA_ACCESS_TOKEN")
    if not access_token:
        raise SystemExit("TESLA_ACCESS_TOKEN is not set")
    expires_at: Any = os.environ.get("TESLA_EXPIRES_AT") or datetime.now(UTC) + timedelta(hours=8)
    return Credential(
        access_token=access_token,
        refresh_token=os.environ.get("TESLA_REFRESH_TOKEN") or None,
        expires_at=expires_at,
    )


def _parse_targets(values: list[str]) -> dict[str, int]:
    targets: dict[str, int] = {}
    for item in values:
        vehicle_id, sep, percent = item.partition("=")
        if not sep:
            raise SystemExit(f"--target expects VEHICLE=PCT, got {item!r}")
        targets[vehicle_id] = int(percent)
    return targets


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Coordinate EV charging with home energy storage.")
    parser.add_argument("command", choices=("plan", "execute", "loop"))
    parser.add_argument("--target", action="append", default=[], metavar="VEHICLE=PCT")
    parser.add_argument("--priority", action="append", default=[], metavar="VEHICLE")
    parser.add_argument("--max-charging", type=int, default=2)
    parser.add_argument("--reserve-floor", type=int, default=20)
    parser.add_argument("--interval", type=float, default=15.0, help="Loop interval in minutes")
    parser.add_argument("--auto-execute", action="store_true")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


async def run(args: argparse.Namespace) -> int:
    config = FleetConfig.from_env()
    options = {
        "target_charge_levels": _parse_targets(args.target),
        "priority_vehicles": args.priority,
        "max_simultaneous_charging": args.max_charging,
        "reserve_floor_percent": args.reserve_floor,
    }

    async with FleetClient(config, credential=_credential_from_env()) as client:
        coordinator = ChargingCoordinator.for_client(client)

        if args.command == "plan":
            plan = await coordinator.create_plan(options)
            print(plan.model_dump_json(indent=2))
            return 0

        if args.command == "execute":
            plan = await coordinator.create_plan(options)
            result = await coordinator.execute_plan(plan)
            print(result.model_dump_json(indent=2))
            return 1 if result.failed else 0

        coordinator.start_loop({**options, "interval_minutes": args.interval, "auto_execute": args.auto_execute})
        try:
            # Runs until interrupted.
            await asyncio.Event().wait()
        finally:
            with contextlib.suppress(FleetError):
                await coordinator.close()
            print(json.dumps(coordinator.loop_status().model_dump(mode="json"), indent=2))
    return 0


def main() -> None:
    args = _build_parser().parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        _logger.info("Interrupted")
    except FleetError as exc:
        _logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()

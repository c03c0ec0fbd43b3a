#!/usr/bin/env python3
"""Command line front end for pyfleet.

Usage
-----
::

    export FLEET_ROUTING_API_KEY="..."
    export FLEET_STORE_BASE_URL="http://localhost:5000"
    export FLEET_DESTINATION="12.7520,80.2032"

    python scripts/fleet_cli.py search "Central" "Campus" --eta
    python scripts/fleet_cli.py eta bus_no_12
    python scripts/fleet_cli.py watch bus_no_12 --seconds 60
    python scripts/fleet_cli.py route bus_no_12

Options::

    --data FILE      Serve documents from a JSON dump instead of the REST API
    --no-mqtt        Do not connect the live location feed
    --verbose / -v   Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyfleet import FleetClient, FleetConfig, FleetError, InMemoryDocumentStore  # noqa: E402
from pyfleet.models import EtaResult, SearchResult  # noqa: E402

_LOG = logging.getLogger("fleet_cli")


def _format_eta(eta: EtaResult | None) -> str:
    if eta is None:
        return "-"
    status = "DELAYED" if eta.delayed else "on time"
    origin = " (estimate)" if eta.is_fallback else ""
    return (
        f"{eta.distance_km:.1f} km, {eta.display_minutes} min, "
        f"arrives {eta.arrival_time:%H:%M} {status}{origin}"
    )


def _format_result(result: SearchResult) -> str:
    vehicle = result.vehicle
    position = result.position
    where = "unknown"
    if position is not None:
        where = f"{position.lat:.5f},{position.lng:.5f} ({position.source.value})"
    return (
        f"{vehicle.number or vehicle.id:>6}  route={vehicle.assigned_route_id} "
        f"[{vehicle.route_variant.value}]  stops={len(result.matched_route_stops)}  "
        f"at={where}  eta={_format_eta(result.eta)}"
    )


def _json_default(obj: Any) -> Any:
    if hasattr(obj, "model_dump"):
        return obj.model_dump(mode="json")
    return str(obj)


async def _cmd_search(client: FleetClient, args: argparse.Namespace) -> int:
    results = await client.search(args.source, args.dest, track=args.track, include_eta=args.eta)
    if args.track and results:
        await asyncio.sleep(args.settle)
        results = await client.search(args.source, args.dest, include_eta=args.eta)
    if args.json:
        print(json.dumps(results, default=_json_default, indent=2))
        return 0
    if not results:
        print(f"No vehicles serve {args.source!r} and {args.dest!r}.")
        return 0
    for result in results:
        print(_format_result(result))
    return 0


async def _cmd_eta(client: FleetClient, args: argparse.Namespace) -> int:
    await client.track(args.vehicle_id)
    await client.hub.wait_for_position(args.vehicle_id, args.settle)
    eta = await client.estimate_eta(args.vehicle_id)
    print(_format_eta(eta))
    return 0


async def _cmd_watch(client: FleetClient, args: argparse.Namespace) -> int:
    vehicle = await client.track(args.vehicle_id)
    print(f"Watching {vehicle.number or vehicle.id} on {client.hub.channel_for(vehicle.number)} (Ctrl+C to stop)")
    loop = asyncio.get_running_loop()
    deadline = loop.time() + args.seconds
    while True:
        remaining = deadline - loop.time()
        if remaining <= 0:
            break
        position = await client.hub.wait_for_position(vehicle.id, remaining)
        if position is None:
            continue
        print(f"{position.received_at:%H:%M:%S}  {position.lat:.6f},{position.lng:.6f}")
    return 0


async def _cmd_route(client: FleetClient, args: argparse.Namespace) -> int:
    line = await client.route_line(args.vehicle_id)
    if not line.waypoints:
        print("Route has no stops with a known location.")
        return 0
    for position, waypoint in enumerate(line.waypoints, start=1):
        coord = waypoint.coordinate
        print(f"{position:>3}. {waypoint.id}  ({coord.lat:.5f},{coord.lng:.5f})")
    print(f"geometry: {len(line.geometry)} points ({line.source.value})")
    return 0


_COMMANDS = {
    "search": _cmd_search,
    "eta": _cmd_eta,
    "watch": _cmd_watch,
    "route": _cmd_route,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fleet search, live positions and ETAs.")
    parser.add_argument("--data", help="JSON dump of the admin store to use instead of the REST API")
    parser.add_argument("--no-mqtt", action="store_true", help="Do not connect the live location feed")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", help="Vehicles serving a source/destination pair")
    search.add_argument("source")
    search.add_argument("dest")
    search.add_argument("--eta", action="store_true", help="Include ETA to the destination stop")
    search.add_argument("--track", action="store_true", help="Subscribe matched vehicles and re-run once")
    search.add_argument("--settle", type=float, default=3.0, help="Seconds to wait for live samples")
    search.add_argument("--json", action="store_true", help="Print results as JSON")

    eta = sub.add_parser("eta", help="ETA of a vehicle to the configured destination")
    eta.add_argument("vehicle_id")
    eta.add_argument("--settle", type=float, default=5.0, help="Seconds to wait for a live sample")

    watch = sub.add_parser("watch", help="Print live positions of a vehicle")
    watch.add_argument("vehicle_id")
    watch.add_argument("--seconds", type=float, default=300.0)

    route = sub.add_parser("route", help="Optimized stop order and route geometry of a vehicle")
    route.add_argument("vehicle_id")
    return parser


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.no_mqtt:
        overrides["mqtt_enabled"] = False
    config = FleetConfig.from_env(**overrides)
    store = InMemoryDocumentStore.from_json_file(args.data) if args.data else None
    async with FleetClient(config, store=store) as client:
        return await _COMMANDS[args.command](client, args)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130
    except FleetError as exc:
        _LOG.debug("Command failed", exc_info=True)
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())

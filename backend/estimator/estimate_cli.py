#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
import random
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from backend.estimator.contracts import Coordinate, DriverRecord  # noqa: E402
from backend.estimator.errors import EstimationFailure  # noqa: E402
from backend.estimator.estimation import RouteEstimator  # noqa: E402
from backend.estimator.markers import synthesize  # noqa: E402
from backend.estimator.region import compute_region  # noqa: E402
from backend.estimator.routing.factory import build_routing_client  # noqa: E402
from backend.estimator.settings import settings  # noqa: E402
from backend.estimator.utils import parse_lat_lon  # noqa: E402


def _coordinate(raw: str) -> Coordinate:
    try:
        lat, lon = parse_lat_lon(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return Coordinate(latitude=lat, longitude=lon)


def _load_drivers(path: Path) -> list[DriverRecord]:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(payload, dict):
        payload = payload.get("drivers", [])
    return [DriverRecord.model_validate(item) for item in payload]


async def _run(args: argparse.Namespace) -> int:
    rng = random.Random(args.seed) if args.seed is not None else None
    drivers = _load_drivers(args.drivers)
    region = compute_region(args.rider, args.destination)
    markers = synthesize(drivers, args.rider, rng=rng)

    client = build_routing_client(settings)
    estimator = RouteEstimator.from_settings(client)
    try:
        if args.partial:
            by_id = await estimator.estimate_each(markers, args.rider, args.destination)
            outcomes = [(marker, by_id[marker.id]) for marker in markers]
        else:
            enriched = await estimator.estimate(markers, args.rider, args.destination)
            outcomes = list(zip(markers, enriched))
    except EstimationFailure as exc:
        print(f"error [{exc.code}]: {exc}", file=sys.stderr)
        return 1
    finally:
        await client.aclose()

    if args.json:
        payload = {
            "region": region.model_dump(),
            "drivers": [
                {"driver_id": marker.id, "error": str(outcome), "code": outcome.code}
                if isinstance(outcome, EstimationFailure)
                else outcome.model_dump()
                for marker, outcome in outcomes
            ],
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    print(
        f"Region centre ({region.latitude:.5f}, {region.longitude:.5f}) "
        f"span {region.latitude_delta:.5f} x {region.longitude_delta:.5f}"
    )
    for marker, outcome in outcomes:
        if isinstance(outcome, EstimationFailure):
            print(f"  {marker.title}: unavailable ({outcome.code})")
        else:
            print(f"  {marker.title}: {outcome.estimated_minutes:.1f} min, {outcome.price}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Estimate trip time and fare for nearby drivers.")
    parser.add_argument("--rider", type=_coordinate, required=True, help="Rider position as LAT,LON")
    parser.add_argument(
        "--destination", type=_coordinate, required=True, help="Drop-off position as LAT,LON"
    )
    parser.add_argument(
        "--drivers", type=Path, required=True, help="JSON file with a list of driver records"
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for marker placement")
    parser.add_argument("--json", action="store_true", help="Emit JSON instead of text")
    parser.add_argument(
        "--partial",
        action="store_true",
        help="Report each driver separately instead of failing on the first error",
    )
    args = parser.parse_args(argv)
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())

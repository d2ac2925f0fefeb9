from __future__ import annotations

import random
from collections.abc import Iterable

from .contracts import Coordinate, DriverRecord, Marker

# Offsets fall in [-MAX_OFFSET, MAX_OFFSET) degrees on each axis
SCATTER_SPAN = 0.01
MAX_OFFSET = SCATTER_SPAN / 2

_RECORD_FIELDS = set(DriverRecord.model_fields)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def synthesize(
    drivers: Iterable[DriverRecord],
    rider_location: Coordinate,
    rng: random.Random | None = None,
) -> list[Marker]:
    """
    Place each driver at a random point near the rider.

    Driver GPS is not part of the driver records, so markers are scattered
    uniformly within MAX_OFFSET degrees of the rider on each axis. Calling
    again re-scatters them; pass a seeded `rng` for reproducible positions.
    """
    rng = rng or random.Random()
    markers: list[Marker] = []
    for driver in drivers:
        lat_offset = (rng.random() - 0.5) * SCATTER_SPAN
        lng_offset = (rng.random() - 0.5) * SCATTER_SPAN
        markers.append(
            Marker(
                **driver.model_dump(include=_RECORD_FIELDS),
                latitude=_clamp(rider_location.latitude + lat_offset, -90.0, 90.0),
                longitude=_clamp(rider_location.longitude + lng_offset, -180.0, 180.0),
                title=f"{driver.first_name} {driver.last_name}",
            )
        )
    return markers


__all__ = ["MAX_OFFSET", "synthesize"]

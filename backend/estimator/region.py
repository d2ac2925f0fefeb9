"""Map viewport framing for the rider and destination."""

from __future__ import annotations

from .contracts import Coordinate, Region

# Shown before the rider's location is known (downtown San Francisco)
DEFAULT_LATITUDE = 37.78825
DEFAULT_LONGITUDE = -122.4324
DEFAULT_DELTA = 0.01
PADDING_FACTOR = 1.3


def compute_region(
    rider: Coordinate | None,
    destination: Coordinate | None,
    *,
    default_center: Coordinate | None = None,
) -> Region:
    """
    Compute the viewport that frames the rider and, when known, the destination.

    Args:
        rider: Rider's current position, or None before location permission is granted
        destination: Chosen drop-off point, if any
        default_center: Overrides the fallback centre used when `rider` is None

    Returns:
        Region centred on the rider/destination midpoint with each span padded by 30%.
        The spans are not floored, so rider == destination yields zero deltas.
    """
    if rider is None:
        if default_center is None:
            latitude, longitude = DEFAULT_LATITUDE, DEFAULT_LONGITUDE
        else:
            latitude, longitude = default_center.latitude, default_center.longitude
        return Region(
            latitude=latitude,
            longitude=longitude,
            latitude_delta=DEFAULT_DELTA,
            longitude_delta=DEFAULT_DELTA,
        )

    if destination is None:
        return Region(
            latitude=rider.latitude,
            longitude=rider.longitude,
            latitude_delta=DEFAULT_DELTA,
            longitude_delta=DEFAULT_DELTA,
        )

    min_lat = min(rider.latitude, destination.latitude)
    max_lat = max(rider.latitude, destination.latitude)
    min_lng = min(rider.longitude, destination.longitude)
    max_lng = max(rider.longitude, destination.longitude)

    # Centre on the midpoint of the two points, not of the padded box
    return Region(
        latitude=(rider.latitude + destination.latitude) / 2,
        longitude=(rider.longitude + destination.longitude) / 2,
        latitude_delta=(max_lat - min_lat) * PADDING_FACTOR,
        longitude_delta=(max_lng - min_lng) * PADDING_FACTOR,
    )


__all__ = ["DEFAULT_DELTA", "PADDING_FACTOR", "compute_region"]

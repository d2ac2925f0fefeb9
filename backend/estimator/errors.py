"""Failures raised by the estimation engine and its routing layer."""

from __future__ import annotations

from typing import Literal

Leg = Literal["to_rider", "to_destination"]


class EstimationFailure(Exception):
    """Base class for anything that voids a driver estimate."""

    code = "estimation_failure"


class MissingLocation(EstimationFailure):
    """Rider or destination coordinate was not supplied."""

    code = "missing_location"

    def __init__(self, message: str = "Rider and destination locations are required") -> None:
        super().__init__(message)


class InvalidRoute(EstimationFailure):
    """The routing service answered without a usable duration for a leg."""

    code = "invalid_route"

    def __init__(self, leg: Leg, detail: str | None = None) -> None:
        self.leg = leg
        message = f"No usable route duration for leg '{leg}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class DuplicateDriver(EstimationFailure):
    """The same driver id appears more than once in one request."""

    code = "duplicate_driver"

    def __init__(self, driver_ids: list) -> None:
        self.driver_ids = driver_ids
        super().__init__(f"Driver ids must be unique, repeated: {driver_ids}")


class TransportFailure(EstimationFailure):
    """The routing service itself failed (network, HTTP status, timeout, bad JSON)."""

    code = "transport_failure"


__all__ = [
    "DuplicateDriver",
    "EstimationFailure",
    "InvalidRoute",
    "Leg",
    "MissingLocation",
    "TransportFailure",
]

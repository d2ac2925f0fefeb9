from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .contracts import Coordinate, DriverRecord, EnrichedMarker, Marker


class RegionRequest(BaseModel):
    rider: Coordinate | None = None
    destination: Coordinate | None = None


class MarkersRequest(BaseModel):
    drivers: list[DriverRecord] = Field(default_factory=list, max_length=200)
    rider: Coordinate
    # fixes the scatter, e.g. to keep markers stable across re-renders
    seed: int | None = None


class EstimateRequest(BaseModel):
    markers: list[Marker] = Field(default_factory=list, max_length=200)
    rider: Coordinate | None = None
    destination: Coordinate | None = None


class DriverEstimate(BaseModel):
    driver_id: int | str
    ok: bool
    marker: EnrichedMarker | None = None
    error: str | None = None
    code: str | None = None


class PartialEstimateResponse(BaseModel):
    results: list[DriverEstimate]


class ErrorResponse(BaseModel):
    detail: str
    code: Literal[
        "missing_location",
        "duplicate_driver",
        "invalid_route",
        "transport_failure",
        "estimation_failure",
    ]

from __future__ import annotations

import random

from fastapi import APIRouter, Depends

from ...contracts import Coordinate, EnrichedMarker, Marker, Region
from ...errors import EstimationFailure
from ...estimation import RouteEstimator
from ...logging_config import bind_estimate_context
from ...markers import synthesize
from ...region import compute_region
from ...routing.base import RoutingClient
from ...routing.factory import get_routing_client
from ...schemas import (
    DriverEstimate,
    ErrorResponse,
    EstimateRequest,
    MarkersRequest,
    PartialEstimateResponse,
    RegionRequest,
)
from ...settings import settings

router = APIRouter(tags=["estimates"])

_FAILURE_RESPONSES = {
    422: {
        "model": ErrorResponse,
        "description": "Rider or destination missing, or a repeated driver id",
    },
    502: {"model": ErrorResponse, "description": "Routing service returned no usable route"},
    503: {"model": ErrorResponse, "description": "Routing service unavailable"},
}


def get_estimator(client: RoutingClient = Depends(get_routing_client)) -> RouteEstimator:
    return RouteEstimator.from_settings(client)


@router.post("/region", response_model=Region)
def region(payload: RegionRequest) -> Region:
    default_center = Coordinate(
        latitude=settings.DEFAULT_REGION_LATITUDE,
        longitude=settings.DEFAULT_REGION_LONGITUDE,
    )
    return compute_region(payload.rider, payload.destination, default_center=default_center)


@router.post("/markers", response_model=list[Marker])
def markers(payload: MarkersRequest) -> list[Marker]:
    rng = random.Random(payload.seed) if payload.seed is not None else None
    return synthesize(payload.drivers, payload.rider, rng=rng)


@router.post("/estimates", response_model=list[EnrichedMarker], responses=_FAILURE_RESPONSES)
async def estimates(
    payload: EstimateRequest,
    estimator: RouteEstimator = Depends(get_estimator),
) -> list[EnrichedMarker]:
    bind_estimate_context("batch", len(payload.markers))
    return await estimator.estimate(payload.markers, payload.rider, payload.destination)


@router.post(
    "/estimates/partial",
    response_model=PartialEstimateResponse,
    responses={422: _FAILURE_RESPONSES[422]},
)
async def partial_estimates(
    payload: EstimateRequest,
    estimator: RouteEstimator = Depends(get_estimator),
) -> PartialEstimateResponse:
    bind_estimate_context("partial", len(payload.markers))
    outcomes = await estimator.estimate_each(payload.markers, payload.rider, payload.destination)
    results = []
    for driver_id, outcome in outcomes.items():
        if isinstance(outcome, EstimationFailure):
            results.append(
                DriverEstimate(driver_id=driver_id, ok=False, error=str(outcome), code=outcome.code)
            )
        else:
            results.append(DriverEstimate(driver_id=driver_id, ok=True, marker=outcome))
    return PartialEstimateResponse(results=results)


__all__ = ["get_estimator", "router"]

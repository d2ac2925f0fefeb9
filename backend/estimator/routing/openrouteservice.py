from __future__ import annotations

import logging
from typing import Any

import httpx

from ..contracts import Coordinate
from ..errors import TransportFailure
from .base import HttpRoutingProvider, Route, RouteResult, RouteSegment

logger = logging.getLogger(__name__)

# Generic profile names -> openrouteservice profile ids
PROFILE_ALIASES = {
    "driving": "driving-car",
    "cycling": "cycling-regular",
    "walking": "foot-walking",
}

# ORS answers 404 when a coordinate cannot be snapped to the road network
_NO_ROUTE_STATUSES = frozenset({404})


def _parse_features(data: dict[str, Any]) -> list[Route]:
    routes: list[Route] = []
    for feature in data.get("features") or []:
        properties = (feature or {}).get("properties") or {}
        segments = [
            RouteSegment(
                duration=segment.get("duration"),
                distance=segment.get("distance"),
            )
            for segment in properties.get("segments") or []
            if isinstance(segment, dict)
        ]
        routes.append(Route(segments=segments))
    return routes


class OpenRouteServiceClient(HttpRoutingProvider):
    """Directions client for the openrouteservice v2 GeoJSON endpoint."""

    provider = "openrouteservice"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openrouteservice.org",
        *,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            connect_timeout=connect_timeout,
            http_client=http_client,
        )
        self._api_key = api_key

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise TransportFailure("ORS_API_KEY not configured")
        return {
            "Authorization": self._api_key,
            "Accept": "application/geo+json, application/json",
            "Content-Type": "application/json",
        }

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: str = "driving",
    ) -> RouteResult:
        ors_profile = PROFILE_ALIASES.get(profile, profile)
        payload = {
            "coordinates": [
                [origin.longitude, origin.latitude],
                [destination.longitude, destination.latitude],
            ],
        }
        status, data = await self._request_json(
            "POST",
            f"/v2/directions/{ors_profile}/geojson",
            json=payload,
            headers=self._headers(),
            accept_statuses=_NO_ROUTE_STATUSES,
        )
        if status in _NO_ROUTE_STATUSES:
            error = data.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            logger.info(
                "ORS found no route origin=(%.4f,%.4f) dest=(%.4f,%.4f): %s",
                origin.latitude,
                origin.longitude,
                destination.latitude,
                destination.longitude,
                message,
            )
            return RouteResult(provider=self.provider, routes=[], raw=data)

        return RouteResult(provider=self.provider, routes=_parse_features(data), raw=data)


__all__ = ["OpenRouteServiceClient", "PROFILE_ALIASES"]

from __future__ import annotations

import logging
from typing import Any

from ..contracts import Coordinate
from ..errors import TransportFailure
from .base import HttpRoutingProvider, Route, RouteResult, RouteSegment

logger = logging.getLogger(__name__)

# OSRM reports unroutable input with a 400 and one of these codes
_NO_ROUTE_CODES = {"NoRoute", "NoSegment"}


def _parse_routes(data: dict[str, Any]) -> list[Route]:
    routes: list[Route] = []
    for route in data.get("routes") or []:
        legs = (route or {}).get("legs") or []
        segments = [
            RouteSegment(duration=leg.get("duration"), distance=leg.get("distance"))
            for leg in legs
            if isinstance(leg, dict)
        ]
        routes.append(Route(segments=segments))
    return routes


class OsrmRoutingClient(HttpRoutingProvider):
    """Client for an OSRM `/route/v1` service. Profiles map to the URL path."""

    provider = "osrm"

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: str = "driving",
    ) -> RouteResult:
        coordinates = (
            f"{origin.longitude},{origin.latitude};"
            f"{destination.longitude},{destination.latitude}"
        )
        params = {
            "alternatives": "false",
            "annotations": "false",
            "overview": "false",
            "steps": "false",
        }
        _, data = await self._request_json(
            "GET",
            f"/route/v1/{profile}/{coordinates}",
            params=params,
            accept_statuses=frozenset({400}),
        )

        code = data.get("code")
        if code != "Ok":
            if code in _NO_ROUTE_CODES:
                logger.info("OSRM found no route (%s): %s", code, data.get("message"))
                return RouteResult(provider=self.provider, routes=[], raw=data)
            raise TransportFailure(f"OSRM error: {data.get('message') or code or 'Unknown error'}")

        return RouteResult(provider=self.provider, routes=_parse_routes(data), raw=data)


__all__ = ["OsrmRoutingClient"]

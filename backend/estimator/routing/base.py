from __future__ import annotations

import asyncio
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from ..contracts import Coordinate
from ..errors import TransportFailure

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RouteSegment:
    duration: float | None
    distance: float | None = None


@dataclass(slots=True)
class Route:
    segments: list[RouteSegment] = field(default_factory=list)


@dataclass(slots=True)
class RouteResult:
    provider: str
    routes: list[Route] = field(default_factory=list)
    raw: dict[str, Any] | None = None


class RoutingClient(Protocol):
    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: str = "driving",
    ) -> RouteResult: ...


def leg_duration(result: RouteResult) -> float | None:
    """
    Duration in seconds of the first segment of the first route.

    Returns None when there is no route, no segment, or the duration is
    missing, non-numeric, non-finite or not positive.
    """
    if not result.routes:
        return None
    segments = result.routes[0].segments
    if not segments:
        return None
    duration = segments[0].duration
    if duration is None:
        return None
    try:
        value = float(duration)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return value


class HttpRoutingProvider:
    """
    Shared plumbing for HTTP routing providers.

    Owns a lazily created `httpx.AsyncClient` (or uses the one passed in, which
    the caller then owns) and turns transport problems into TransportFailure.
    """

    provider = "http"

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        connect_timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self._client = http_client
        self._owns_client = http_client is None
        self._client_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            async with self._client_lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                    )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        accept_statuses: frozenset[int] = frozenset(),
        **kwargs: Any,
    ) -> tuple[int, dict[str, Any]]:
        """Send a request and decode the JSON body; statuses >= 400 fail unless accepted."""
        client = await self._get_client()
        started = time.perf_counter()
        try:
            response = await client.request(method, f"{self.base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            raise TransportFailure(f"{self.provider} request failed: {exc}") from exc
        elapsed = (time.perf_counter() - started) * 1000

        if response.status_code >= 400 and response.status_code not in accept_statuses:
            raise TransportFailure(
                f"{self.provider} error {response.status_code}: {response.text[:200]}"
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportFailure(f"Invalid JSON from {self.provider}") from exc
        if not isinstance(payload, dict):
            raise TransportFailure(f"Unexpected payload from {self.provider}")

        logger.debug(
            "%s %s status=%s latency=%.1fms",
            self.provider,
            path,
            response.status_code,
            elapsed,
        )
        return response.status_code, payload


__all__ = [
    "HttpRoutingProvider",
    "Route",
    "RouteResult",
    "RouteSegment",
    "RoutingClient",
    "leg_duration",
]

"""
Trip time and fare estimation for candidate drivers.

Every driver needs two routing queries: driver -> rider, then rider ->
destination. Drivers are estimated concurrently inside one TaskGroup.
`RouteEstimator.estimate` is all-or-nothing: the first failed driver cancels
the others and its failure is raised for the whole batch.
`RouteEstimator.estimate_each` keeps going and reports failures per driver.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Iterable

from .contracts import Coordinate, EnrichedMarker, Marker
from .errors import (
    DuplicateDriver,
    EstimationFailure,
    InvalidRoute,
    Leg,
    MissingLocation,
    TransportFailure,
)
from .metrics import estimate_drivers, estimate_duration_seconds, estimates_total
from .pricing import PerMinutePricing, PricingStrategy
from .routing.base import RoutingClient, leg_duration
from .routing.factory import get_routing_client
from .settings import Settings, settings

logger = logging.getLogger(__name__)

_MARKER_FIELDS = set(Marker.model_fields)

DriverId = int | str


def _first_failure(group: BaseExceptionGroup) -> EstimationFailure | None:
    for exc in group.exceptions:
        if isinstance(exc, EstimationFailure):
            return exc
        if isinstance(exc, BaseExceptionGroup):
            nested = _first_failure(exc)
            if nested is not None:
                return nested
    return None


class RouteEstimator:
    def __init__(
        self,
        client: RoutingClient,
        pricing: PricingStrategy | None = None,
        *,
        profile: str = "driving",
        max_concurrency: int | None = None,
    ) -> None:
        """
        Args:
            client: Routing capability queried twice per driver
            pricing: Turns total trip minutes into a price string
            profile: Travel profile passed to every routing query
            max_concurrency: Cap on drivers estimated at once; None or 0 for no cap
        """
        self.client = client
        self.pricing = pricing or PerMinutePricing()
        self.profile = profile
        self.max_concurrency = max_concurrency or None

    @classmethod
    def from_settings(
        cls, client: RoutingClient, config: Settings = settings
    ) -> RouteEstimator:
        return cls(
            client,
            PerMinutePricing(config.PRICE_PER_MINUTE),
            profile=config.ROUTING_PROFILE,
            max_concurrency=config.ESTIMATE_MAX_CONCURRENCY,
        )

    @staticmethod
    def _require_locations(
        rider: Coordinate | None, destination: Coordinate | None
    ) -> tuple[Coordinate, Coordinate]:
        if rider is None or destination is None:
            logger.error("Missing location data for driver time calculation")
            raise MissingLocation()
        return rider, destination

    @staticmethod
    def _require_unique_ids(markers: list[Marker]) -> None:
        seen: set[DriverId] = set()
        repeated: list[DriverId] = []
        for marker in markers:
            if marker.id in seen and marker.id not in repeated:
                repeated.append(marker.id)
            seen.add(marker.id)
        if repeated:
            logger.error("Duplicate driver ids in estimate request: %s", repeated)
            raise DuplicateDriver(repeated)

    def _limiter(self) -> contextlib.AbstractAsyncContextManager:
        if self.max_concurrency is None:
            return contextlib.nullcontext()
        return asyncio.Semaphore(self.max_concurrency)

    async def _leg_seconds(self, origin: Coordinate, destination: Coordinate, leg: Leg) -> float:
        try:
            result = await self.client.route(origin, destination, self.profile)
        except EstimationFailure:
            raise
        except Exception as exc:
            raise TransportFailure(f"Routing query for leg '{leg}' failed: {exc}") from exc

        duration = leg_duration(result)
        if duration is None:
            raise InvalidRoute(leg)
        return duration

    async def _estimate_one(
        self,
        marker: Marker,
        rider: Coordinate,
        destination: Coordinate,
        limiter: contextlib.AbstractAsyncContextManager,
    ) -> EnrichedMarker:
        async with limiter:
            to_rider = await self._leg_seconds(marker.coordinate, rider, "to_rider")
            to_destination = await self._leg_seconds(rider, destination, "to_destination")

        minutes = (to_rider + to_destination) / 60
        return EnrichedMarker(
            **marker.model_dump(include=_MARKER_FIELDS),
            estimated_minutes=minutes,
            price=self.pricing.quote(minutes),
        )

    async def estimate(
        self,
        markers: Iterable[Marker],
        rider: Coordinate | None,
        destination: Coordinate | None,
    ) -> list[EnrichedMarker]:
        """
        Estimate trip time and price for every marker, failing the whole batch on any error.

        Raises:
            MissingLocation: rider or destination is None; no routing query is made
            DuplicateDriver: two markers share an id; no routing query is made
            InvalidRoute: a leg came back without a usable duration
            TransportFailure: the routing service failed
        """
        rider, destination = self._require_locations(rider, destination)
        markers = list(markers)
        self._require_unique_ids(markers)
        estimate_drivers.observe(len(markers))
        if not markers:
            estimates_total.labels(mode="batch", result="ok").inc()
            return []

        limiter = self._limiter()
        started = time.perf_counter()
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self._estimate_one(marker, rider, destination, limiter))
                    for marker in markers
                ]
        except ExceptionGroup as eg:
            failure = _first_failure(eg)
            estimates_total.labels(mode="batch", result="failed").inc()
            if failure is None:
                raise
            logger.error(
                "Error calculating driver times drivers=%d code=%s: %s",
                len(markers),
                failure.code,
                failure,
            )
            raise failure from None
        finally:
            estimate_duration_seconds.labels(mode="batch").observe(
                time.perf_counter() - started
            )

        estimates_total.labels(mode="batch", result="ok").inc()
        logger.info(
            "Estimated %d drivers in %.1fms",
            len(markers),
            (time.perf_counter() - started) * 1000,
        )
        return [task.result() for task in tasks]

    async def estimate_each(
        self,
        markers: Iterable[Marker],
        rider: Coordinate | None,
        destination: Coordinate | None,
    ) -> dict[DriverId, EnrichedMarker | EstimationFailure]:
        """
        Estimate every marker independently, keeping successes when some drivers fail.

        Returns a mapping of driver id to its EnrichedMarker or the failure that
        voided it, in input order.

        Raises:
            MissingLocation: rider or destination is None; no routing query is made
            DuplicateDriver: two markers share an id; no routing query is made
        """
        rider, destination = self._require_locations(rider, destination)
        markers = list(markers)
        self._require_unique_ids(markers)
        estimate_drivers.observe(len(markers))
        limiter = self._limiter()

        async def _settle(marker: Marker) -> EnrichedMarker | EstimationFailure:
            try:
                return await self._estimate_one(marker, rider, destination, limiter)
            except EstimationFailure as exc:
                logger.warning("Driver %s estimate failed (%s): %s", marker.id, exc.code, exc)
                return exc

        started = time.perf_counter()
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(_settle(marker)) for marker in markers]
        estimate_duration_seconds.labels(mode="partial").observe(time.perf_counter() - started)

        results: dict[DriverId, EnrichedMarker | EstimationFailure] = {}
        for marker, task in zip(markers, tasks):
            results[marker.id] = task.result()

        failed = sum(isinstance(value, EstimationFailure) for value in results.values())
        if not failed:
            outcome = "ok"
        elif failed == len(results):
            outcome = "failed"
        else:
            outcome = "partial"
        estimates_total.labels(mode="partial", result=outcome).inc()
        logger.info(
            "Estimated %d drivers (%d failed) in %.1fms",
            len(results),
            failed,
            (time.perf_counter() - started) * 1000,
        )
        return results


async def estimate(
    markers: Iterable[Marker],
    rider: Coordinate | None,
    destination: Coordinate | None,
    *,
    client: RoutingClient | None = None,
) -> list[EnrichedMarker]:
    """Estimate with a RouteEstimator built from settings and the shared routing client."""
    if client is None:
        client = get_routing_client()
    return await RouteEstimator.from_settings(client).estimate(markers, rider, destination)


__all__ = ["RouteEstimator", "estimate"]

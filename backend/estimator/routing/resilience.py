"""Deadline, retry and circuit breaking around a routing provider."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

from ..circuit_breaker import CircuitBreaker, CircuitOpenError
from ..contracts import Coordinate
from ..errors import TransportFailure
from ..metrics import routing_queries_total, routing_query_duration_seconds, routing_retries_total
from ..settings import Settings
from .base import RouteResult, RoutingClient

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """
    How hard to try a single routing query.

    `max_attempts=1` means no retry. Backoff before attempt n (n >= 2) is
    `backoff_seconds * backoff_multiplier ** (n - 2)`. `timeout_seconds`
    bounds each attempt; None leaves only the HTTP client's own timeout.
    """

    max_attempts: int = 1
    backoff_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    timeout_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_seconds < 0 or self.backoff_multiplier < 1:
            raise ValueError("backoff must be non-negative and non-shrinking")

    @classmethod
    def from_settings(cls, config: Settings) -> RetryPolicy:
        return cls(
            max_attempts=config.ROUTING_MAX_ATTEMPTS,
            backoff_seconds=config.ROUTING_BACKOFF_SECONDS,
            backoff_multiplier=config.ROUTING_BACKOFF_MULTIPLIER,
            timeout_seconds=config.ROUTING_TIMEOUT_SECONDS,
        )

    def delay_before(self, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        return self.backoff_seconds * self.backoff_multiplier ** (attempt - 2)


class ResilientRoutingClient:
    """
    RoutingClient wrapper applying a RetryPolicy and an optional CircuitBreaker.

    Only transport problems are retried. A response without a usable route is
    returned as-is; deciding whether that is fatal belongs to the caller.
    """

    def __init__(
        self,
        inner: RoutingClient,
        policy: RetryPolicy | None = None,
        breaker: CircuitBreaker | None = None,
        *,
        provider: str | None = None,
    ) -> None:
        self.inner = inner
        self.policy = policy or RetryPolicy()
        self.breaker = breaker
        self.provider = provider or getattr(inner, "provider", type(inner).__name__)

    async def _attempt(
        self, origin: Coordinate, destination: Coordinate, profile: str
    ) -> RouteResult:
        async with asyncio.timeout(self.policy.timeout_seconds):
            return await self.inner.route(origin, destination, profile)

    async def _guarded_attempt(
        self, origin: Coordinate, destination: Coordinate, profile: str
    ) -> RouteResult:
        if self.breaker is None:
            return await self._attempt(origin, destination, profile)
        return await self.breaker.call_async(self._attempt, origin, destination, profile)

    async def route(
        self,
        origin: Coordinate,
        destination: Coordinate,
        profile: str = "driving",
    ) -> RouteResult:
        attempt = 0
        while True:
            attempt += 1
            delay = self.policy.delay_before(attempt)
            if delay:
                routing_retries_total.labels(provider=self.provider).inc()
                await asyncio.sleep(delay)

            started = time.perf_counter()
            try:
                result = await self._guarded_attempt(origin, destination, profile)
            except CircuitOpenError as exc:
                routing_queries_total.labels(provider=self.provider, result="rejected").inc()
                raise TransportFailure(str(exc)) from exc
            except TimeoutError as exc:
                routing_queries_total.labels(provider=self.provider, result="timeout").inc()
                error = TransportFailure(
                    f"{self.provider} query exceeded {self.policy.timeout_seconds}s"
                )
                error.__cause__ = exc
            except TransportFailure as exc:
                routing_queries_total.labels(provider=self.provider, result="error").inc()
                error = exc
            else:
                routing_queries_total.labels(provider=self.provider, result="ok").inc()
                return result
            finally:
                routing_query_duration_seconds.labels(provider=self.provider).observe(
                    time.perf_counter() - started
                )

            logger.warning(
                "Routing query failed provider=%s attempt=%d/%d: %s",
                self.provider,
                attempt,
                self.policy.max_attempts,
                error,
            )
            if attempt >= self.policy.max_attempts:
                raise error

    async def aclose(self) -> None:
        close = getattr(self.inner, "aclose", None)
        if close is not None:
            await close()


__all__ = ["ResilientRoutingClient", "RetryPolicy"]

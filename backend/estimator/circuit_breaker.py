"""Circuit breaker guarding calls to the routing provider."""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass
from enum import Enum
from threading import Lock
from typing import Any, TypeVar

from .metrics import track_circuit_breaker_metrics

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states"""

    CLOSED = "closed"  # Normal operation, requests allowed
    OPEN = "open"  # Circuit broken, requests rejected
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class CircuitBreakerStats:
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0
    rejected_calls: int = 0
    last_failure_time: float | None = None
    last_success_time: float | None = None
    consecutive_failures: int = 0
    circuit_opened_count: int = 0


class CircuitOpenError(Exception):
    """Raised instead of calling the provider while the circuit is open."""


class CircuitBreaker:
    """
    Circuit breaker to protect against cascading failures.

    The circuit breaker has three states:
    - CLOSED: Normal operation, all requests pass through
    - OPEN: After failure threshold, requests are immediately rejected
    - HALF_OPEN: After cooldown, requests are let through until one succeeds or fails

    Only exceptions listed in `failure_exceptions` count against the circuit;
    anything else propagates without touching the failure streak.
    """

    def __init__(
        self,
        name: str,
        failure_threshold: int = 5,
        cooldown_seconds: float = 30.0,
        success_threshold: int = 1,
        enabled: bool = True,
        failure_exceptions: tuple[type[BaseException], ...] = (Exception,),
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.cooldown_seconds = cooldown_seconds
        self.success_threshold = success_threshold
        self.enabled = enabled
        self.failure_exceptions = failure_exceptions

        self._state = CircuitState.CLOSED
        self._stats = CircuitBreakerStats()
        self._lock = Lock()
        self._last_state_change = time.monotonic()
        self._half_open_successes = 0

    @property
    def state(self) -> CircuitState:
        """Get current circuit state, checking for automatic transitions."""
        with self._lock:
            if self._state == CircuitState.OPEN:
                if time.monotonic() - self._last_state_change >= self.cooldown_seconds:
                    self._transition_to(CircuitState.HALF_OPEN)
            return self._state

    @property
    def stats(self) -> CircuitBreakerStats:
        return self._stats

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        self._last_state_change = time.monotonic()

        if new_state == CircuitState.OPEN:
            self._stats.circuit_opened_count += 1
            logger.warning(
                "Circuit breaker '%s' opened after %d consecutive failures",
                self.name,
                self._stats.consecutive_failures,
            )
        elif new_state == CircuitState.CLOSED:
            self._stats.consecutive_failures = 0
            self._half_open_successes = 0
            if old_state == CircuitState.HALF_OPEN:
                logger.info("Circuit breaker '%s' closed after successful recovery", self.name)
        elif new_state == CircuitState.HALF_OPEN:
            self._half_open_successes = 0
            logger.info("Circuit breaker '%s' entering half-open state for testing", self.name)

    def _publish(self) -> None:
        track_circuit_breaker_metrics(self.name, self._state.value, asdict(self._stats))

    async def call_async(
        self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any
    ) -> T:
        """
        Await `func(*args, **kwargs)` through the circuit breaker.

        Raises:
            CircuitOpenError: If circuit is open
            Original exception: If func fails
        """
        if not self.enabled:
            return await func(*args, **kwargs)

        if not self._can_execute():
            self._stats.rejected_calls += 1
            self._publish()
            raise CircuitOpenError(
                f"Circuit breaker '{self.name}' is open. "
                f"Service will be retried after {self.cooldown_seconds} seconds."
            )

        try:
            result = await func(*args, **kwargs)
        except self.failure_exceptions:
            self._on_failure()
            raise
        self._on_success()
        return result

    def _can_execute(self) -> bool:
        return self.state != CircuitState.OPEN

    def _on_success(self) -> None:
        with self._lock:
            self._stats.total_calls += 1
            self._stats.successful_calls += 1
            self._stats.last_success_time = time.time()
            self._stats.consecutive_failures = 0

            if self._state == CircuitState.HALF_OPEN:
                self._half_open_successes += 1
                if self._half_open_successes >= self.success_threshold:
                    self._transition_to(CircuitState.CLOSED)
            self._publish()

    def _on_failure(self) -> None:
        with self._lock:
            self._stats.total_calls += 1
            self._stats.failed_calls += 1
            self._stats.last_failure_time = time.time()
            self._stats.consecutive_failures += 1

            if self._state == CircuitState.HALF_OPEN:
                # Failure in half-open state immediately opens circuit
                self._transition_to(CircuitState.OPEN)
            elif (
                self._state == CircuitState.CLOSED
                and self._stats.consecutive_failures >= self.failure_threshold
            ):
                self._transition_to(CircuitState.OPEN)
            self._publish()

    def reset(self) -> None:
        """Manually reset the circuit breaker to closed state."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self._stats.consecutive_failures = 0
            self._half_open_successes = 0
            self._last_state_change = time.monotonic()
            logger.info("Circuit breaker '%s' manually reset", self.name)
            self._publish()

    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def is_closed(self) -> bool:
        return self.state == CircuitState.CLOSED


__all__ = [
    "CircuitBreaker",
    "CircuitBreakerStats",
    "CircuitOpenError",
    "CircuitState",
]

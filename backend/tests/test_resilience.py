"""Retry, deadline and circuit breaking around routing providers."""

import asyncio

import pytest
from backend.estimator.circuit_breaker import CircuitBreaker, CircuitState
from backend.estimator.errors import TransportFailure
from backend.estimator.routing.base import leg_duration
from backend.estimator.routing.resilience import ResilientRoutingClient, RetryPolicy
from conftest import DESTINATION, RIDER, StubRoutingClient, route_result


class FlakyClient(StubRoutingClient):
    """Fails the first `failures` queries, then answers normally."""

    def __init__(self, failures: int, error: Exception | None = None) -> None:
        super().__init__()
        self.failures = failures
        self.error = error or TransportFailure("temporarily unavailable")

    async def route(self, origin, destination, profile="driving"):
        self.calls.append((origin, destination, profile))
        if len(self.calls) <= self.failures:
            raise self.error
        return route_result(600.0)


class TestRetryPolicy:
    def test_defaults_mean_single_attempt(self):
        policy = RetryPolicy()

        assert policy.max_attempts == 1
        assert policy.delay_before(1) == 0.0

    def test_exponential_backoff(self):
        policy = RetryPolicy(max_attempts=4, backoff_seconds=0.5, backoff_multiplier=2.0)

        assert [policy.delay_before(n) for n in range(1, 5)] == [0.0, 0.5, 1.0, 2.0]

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"backoff_seconds": -1}, {"backoff_multiplier": 0.5}],
    )
    def test_invalid_policies_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)

    def test_from_settings(self):
        from backend.estimator.settings import settings

        settings.ROUTING_MAX_ATTEMPTS = 3
        settings.ROUTING_TIMEOUT_SECONDS = 4.0

        policy = RetryPolicy.from_settings(settings)

        assert policy.max_attempts == 3
        assert policy.timeout_seconds == 4.0


class TestResilientRoutingClient:
    def test_passes_through_success(self):
        inner = StubRoutingClient()
        client = ResilientRoutingClient(inner)

        result = asyncio.run(client.route(RIDER, DESTINATION, "driving"))

        assert leg_duration(result) == 600.0
        assert inner.calls == [(RIDER, DESTINATION, "driving")]

    def test_no_retry_by_default(self):
        inner = FlakyClient(failures=1)

        with pytest.raises(TransportFailure, match="temporarily unavailable"):
            asyncio.run(ResilientRoutingClient(inner).route(RIDER, DESTINATION))

        assert len(inner.calls) == 1

    def test_retries_transport_failures(self):
        inner = FlakyClient(failures=2)
        policy = RetryPolicy(max_attempts=3, backoff_seconds=0.0)

        result = asyncio.run(ResilientRoutingClient(inner, policy).route(RIDER, DESTINATION))

        assert leg_duration(result) == 600.0
        assert len(inner.calls) == 3

    def test_gives_up_after_max_attempts(self):
        inner = FlakyClient(failures=10)
        policy = RetryPolicy(max_attempts=2, backoff_seconds=0.0)

        with pytest.raises(TransportFailure):
            asyncio.run(ResilientRoutingClient(inner, policy).route(RIDER, DESTINATION))

        assert len(inner.calls) == 2

    def test_empty_route_is_not_retried(self):
        inner = StubRoutingClient(lambda origin, destination: route_result())
        policy = RetryPolicy(max_attempts=3, backoff_seconds=0.0)

        result = asyncio.run(ResilientRoutingClient(inner, policy).route(RIDER, DESTINATION))

        assert leg_duration(result) is None
        assert len(inner.calls) == 1

    def test_slow_query_times_out_as_transport_failure(self):
        class SlowClient:
            provider = "slow"

            async def route(self, origin, destination, profile="driving"):
                await asyncio.sleep(5)
                return route_result(600.0)

        policy = RetryPolicy(timeout_seconds=0.05)

        with pytest.raises(TransportFailure, match="exceeded"):
            asyncio.run(ResilientRoutingClient(SlowClient(), policy).route(RIDER, DESTINATION))

    def test_open_circuit_fails_fast_without_retry(self):
        inner = FlakyClient(failures=10)
        breaker = CircuitBreaker(
            "routing:stub",
            failure_threshold=2,
            cooldown_seconds=60,
            failure_exceptions=(TransportFailure, TimeoutError),
        )
        policy = RetryPolicy(max_attempts=5, backoff_seconds=0.0)
        client = ResilientRoutingClient(inner, policy, breaker)

        with pytest.raises(TransportFailure, match="is open"):
            asyncio.run(client.route(RIDER, DESTINATION))

        assert len(inner.calls) == 2
        assert breaker.state == CircuitState.OPEN

        with pytest.raises(TransportFailure, match="is open"):
            asyncio.run(client.route(RIDER, DESTINATION))
        assert len(inner.calls) == 2

    def test_provider_name_taken_from_inner_client(self):
        assert ResilientRoutingClient(StubRoutingClient()).provider == "stub"

    def test_aclose_delegates(self):
        inner = StubRoutingClient()

        asyncio.run(ResilientRoutingClient(inner).aclose())

        assert inner.closed

    def test_last_attempt_error_is_raised(self):
        class CountingFailures(StubRoutingClient):
            async def route(self, origin, destination, profile="driving"):
                self.calls.append((origin, destination, profile))
                raise TransportFailure(f"attempt {len(self.calls)} failed")

        inner = CountingFailures()
        policy = RetryPolicy(max_attempts=3, backoff_seconds=0.0)

        with pytest.raises(TransportFailure, match="attempt 3 failed"):
            asyncio.run(ResilientRoutingClient(inner, policy).route(RIDER, DESTINATION))

        assert len(inner.calls) == 3

    def test_timeout_is_retried(self):
        class SlowOnce(StubRoutingClient):
            async def route(self, origin, destination, profile="driving"):
                self.calls.append((origin, destination, profile))
                if len(self.calls) == 1:
                    await asyncio.sleep(5)
                return route_result(600.0)

        inner = SlowOnce()
        policy = RetryPolicy(max_attempts=2, backoff_seconds=0.0, timeout_seconds=0.05)

        result = asyncio.run(ResilientRoutingClient(inner, policy).route(RIDER, DESTINATION))

        assert leg_duration(result) == 600.0
        assert len(inner.calls) == 2

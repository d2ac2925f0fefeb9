"""Test circuit breaker implementation."""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest
from backend.estimator.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from backend.estimator.errors import TransportFailure


def call(breaker: CircuitBreaker, func, *args, **kwargs):
    return asyncio.run(breaker.call_async(func, *args, **kwargs))


class TestCircuitBreaker:
    """Test the circuit breaker pattern implementation."""

    def test_circuit_starts_closed(self):
        """Circuit should start in closed state."""
        breaker = CircuitBreaker("test", failure_threshold=3, cooldown_seconds=1)
        assert breaker.state == CircuitState.CLOSED
        assert breaker.is_closed()
        assert not breaker.is_open()

    def test_successful_calls_pass_through(self):
        """Successful calls should pass through when circuit is closed."""
        breaker = CircuitBreaker("test", failure_threshold=3)
        func = AsyncMock(return_value="success")

        result = call(breaker, func, "arg1", key="value")

        assert result == "success"
        func.assert_awaited_once_with("arg1", key="value")
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.successful_calls == 1
        assert breaker.stats.failed_calls == 0

    def test_circuit_opens_after_threshold(self):
        """Circuit should open after consecutive failures reach threshold."""
        breaker = CircuitBreaker("test", failure_threshold=3, cooldown_seconds=10)
        failing_func = AsyncMock(side_effect=TransportFailure("upstream down"))

        for _ in range(2):
            with pytest.raises(TransportFailure, match="upstream down"):
                call(breaker, failing_func)
            assert breaker.state == CircuitState.CLOSED

        with pytest.raises(TransportFailure):
            call(breaker, failing_func)
        assert breaker.state == CircuitState.OPEN
        assert breaker.stats.consecutive_failures == 3
        assert breaker.stats.circuit_opened_count == 1

    def test_open_circuit_rejects_calls(self):
        """Open circuit should reject calls without invoking the function."""
        breaker = CircuitBreaker("routing:test", failure_threshold=1, cooldown_seconds=10)

        with pytest.raises(TransportFailure):
            call(breaker, AsyncMock(side_effect=TransportFailure("boom")))
        assert breaker.state == CircuitState.OPEN

        func = AsyncMock(return_value="success")
        with pytest.raises(CircuitOpenError) as exc_info:
            call(breaker, func)

        func.assert_not_awaited()
        assert "Circuit breaker 'routing:test' is open" in str(exc_info.value)
        assert breaker.stats.rejected_calls == 1

    def test_success_resets_failure_streak(self):
        breaker = CircuitBreaker("test", failure_threshold=2)
        failing_func = AsyncMock(side_effect=TransportFailure("boom"))

        with pytest.raises(TransportFailure):
            call(breaker, failing_func)
        call(breaker, AsyncMock(return_value="ok"))
        with pytest.raises(TransportFailure):
            call(breaker, failing_func)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.consecutive_failures == 1

    def test_unlisted_exceptions_do_not_count(self):
        """Only failure_exceptions move the circuit towards open."""
        breaker = CircuitBreaker(
            "test", failure_threshold=1, failure_exceptions=(TransportFailure,)
        )

        with pytest.raises(KeyError):
            call(breaker, AsyncMock(side_effect=KeyError("missing")))

        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.failed_calls == 0

    def test_circuit_transitions_to_half_open(self):
        """Circuit should transition to half-open after cooldown."""
        breaker = CircuitBreaker("test", failure_threshold=1, cooldown_seconds=0.1)

        with pytest.raises(TransportFailure):
            call(breaker, AsyncMock(side_effect=TransportFailure("boom")))
        assert breaker.state == CircuitState.OPEN

        time.sleep(0.15)

        assert breaker.state == CircuitState.HALF_OPEN

    def test_half_open_closes_on_success(self):
        """Half-open circuit should close after successful call."""
        breaker = CircuitBreaker(
            "test", failure_threshold=1, cooldown_seconds=0.1, success_threshold=1
        )

        with pytest.raises(TransportFailure):
            call(breaker, AsyncMock(side_effect=TransportFailure("boom")))
        time.sleep(0.15)
        assert breaker.state == CircuitState.HALF_OPEN

        result = call(breaker, AsyncMock(return_value="success"))

        assert result == "success"
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.consecutive_failures == 0

    def test_half_open_reopens_on_failure(self):
        """Half-open circuit should reopen immediately on failure."""
        breaker = CircuitBreaker("test", failure_threshold=2, cooldown_seconds=0.1)
        failing_func = AsyncMock(side_effect=TransportFailure("boom"))

        for _ in range(2):
            with pytest.raises(TransportFailure):
                call(breaker, failing_func)
        time.sleep(0.15)
        assert breaker.state == CircuitState.HALF_OPEN

        with pytest.raises(TransportFailure):
            call(breaker, failing_func)
        assert breaker.state == CircuitState.OPEN

    def test_manual_reset(self):
        """Manual reset should close the circuit."""
        breaker = CircuitBreaker("test", failure_threshold=1)

        with pytest.raises(TransportFailure):
            call(breaker, AsyncMock(side_effect=TransportFailure("boom")))
        assert breaker.state == CircuitState.OPEN

        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.consecutive_failures == 0
        assert call(breaker, AsyncMock(return_value="success")) == "success"

    def test_disabled_circuit_breaker(self):
        """Disabled circuit breaker should always pass through calls."""
        breaker = CircuitBreaker("test", failure_threshold=1, enabled=False)
        failing_func = AsyncMock(side_effect=TransportFailure("boom"))

        for _ in range(5):
            with pytest.raises(TransportFailure, match="boom"):
                call(breaker, failing_func)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.stats.failed_calls == 0

    def test_circuit_breaker_stats(self):
        """Circuit breaker should track statistics correctly."""
        breaker = CircuitBreaker("test", failure_threshold=2)
        success_func = AsyncMock(return_value="success")

        for _ in range(3):
            call(breaker, success_func)
        with pytest.raises(TransportFailure):
            call(breaker, AsyncMock(side_effect=TransportFailure("failure")))

        stats = breaker.stats
        assert stats.total_calls == 4
        assert stats.successful_calls == 3
        assert stats.failed_calls == 1
        assert stats.consecutive_failures == 1
        assert stats.last_failure_time is not None

    def test_uses_default_thresholds(self):
        """Circuit breaker should fall back to built-in defaults."""
        breaker = CircuitBreaker("test")

        assert breaker.failure_threshold == 5
        assert breaker.cooldown_seconds == 30.0
        assert breaker.enabled is True

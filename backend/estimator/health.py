"""Health checks for the routing dependency and observability wiring."""

from __future__ import annotations

import time
from typing import Any

from .circuit_breaker import CircuitState
from .routing.factory import get_routing_client
from .settings import settings


def _is_configured(value: str | None) -> bool:
    """Return True when a config string is non-empty after trimming."""
    if value is None:
        return False
    return bool(value.strip())


class HealthChecker:
    """Reports whether estimates can currently be served."""

    async def check_all(self) -> dict[str, Any]:
        checks = {
            "routing": self._check_routing(),
            "sentry": self._check_sentry(),
        }
        all_ok = all(check.get("status") in {"ok", "disabled"} for check in checks.values())
        return {
            "status": "healthy" if all_ok else "degraded",
            "timestamp": time.time(),
            "checks": checks,
        }

    def _check_routing(self) -> dict[str, Any]:
        provider = settings.ROUTING_PROVIDER
        if not settings.routing_configured:
            return {
                "status": "error",
                "provider": provider,
                "error": "Routing provider is not configured",
            }

        breaker = get_routing_client().breaker
        circuit = breaker.state.value if breaker is not None else CircuitState.CLOSED.value
        return {
            "status": "error" if circuit == CircuitState.OPEN.value else "ok",
            "provider": provider,
            "circuit": circuit,
            "max_attempts": settings.ROUTING_MAX_ATTEMPTS,
            "timeout_seconds": settings.ROUTING_TIMEOUT_SECONDS,
        }

    def _check_sentry(self) -> dict[str, Any]:
        """Check if Sentry is configured (doesn't actually test connectivity)."""
        dsn = settings.SENTRY_DSN
        if not _is_configured(dsn):
            return {"status": "disabled", "reason": "SENTRY_DSN not configured"}
        if "@" in dsn and "//" in dsn:
            return {
                "status": "ok",
                "environment": settings.SENTRY_ENVIRONMENT,
                "release": settings.SENTRY_RELEASE or "unset",
            }
        return {"status": "error", "error": "Invalid SENTRY_DSN format"}


health_checker = HealthChecker()


__all__ = ["HealthChecker", "health_checker"]

from __future__ import annotations

from functools import lru_cache

from ..circuit_breaker import CircuitBreaker
from ..errors import TransportFailure
from ..settings import Settings, settings
from .base import HttpRoutingProvider
from .openrouteservice import OpenRouteServiceClient
from .osrm import OsrmRoutingClient
from .resilience import ResilientRoutingClient, RetryPolicy


def build_provider(config: Settings) -> HttpRoutingProvider:
    if config.ROUTING_PROVIDER == "osrm":
        return OsrmRoutingClient(
            config.OSRM_BASE_URL,
            timeout=config.ROUTING_TIMEOUT_SECONDS,
            connect_timeout=config.ROUTING_CONNECT_TIMEOUT_SECONDS,
        )

    return OpenRouteServiceClient(
        config.ORS_API_KEY,
        config.ORS_BASE_URL,
        timeout=config.ROUTING_TIMEOUT_SECONDS,
        connect_timeout=config.ROUTING_CONNECT_TIMEOUT_SECONDS,
    )


def build_routing_client(config: Settings) -> ResilientRoutingClient:
    provider = build_provider(config)
    breaker = CircuitBreaker(
        f"routing:{provider.provider}",
        failure_threshold=config.ROUTING_BREAKER_FAILURE_THRESHOLD,
        cooldown_seconds=config.ROUTING_BREAKER_COOLDOWN_SECONDS,
        enabled=config.ROUTING_BREAKER_ENABLED,
        failure_exceptions=(TransportFailure, TimeoutError),
    )
    return ResilientRoutingClient(provider, RetryPolicy.from_settings(config), breaker)


@lru_cache(maxsize=1)
def get_routing_client() -> ResilientRoutingClient:
    return build_routing_client(settings)


async def close_routing_client() -> None:
    if get_routing_client.cache_info().currsize:
        await get_routing_client().aclose()
    get_routing_client.cache_clear()


__all__ = ["build_provider", "build_routing_client", "close_routing_client", "get_routing_client"]

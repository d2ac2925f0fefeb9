"""Routing providers and the resilience layer used for driver estimates."""

from .base import Route, RouteResult, RouteSegment, RoutingClient, leg_duration
from .factory import build_routing_client, close_routing_client, get_routing_client
from .openrouteservice import OpenRouteServiceClient
from .osrm import OsrmRoutingClient
from .resilience import ResilientRoutingClient, RetryPolicy

__all__ = [
    "OpenRouteServiceClient",
    "OsrmRoutingClient",
    "ResilientRoutingClient",
    "RetryPolicy",
    "Route",
    "RouteResult",
    "RouteSegment",
    "RoutingClient",
    "build_routing_client",
    "close_routing_client",
    "get_routing_client",
    "leg_duration",
]

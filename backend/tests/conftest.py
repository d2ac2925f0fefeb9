import os
import sys
from collections.abc import Callable
from pathlib import Path

import pytest
import sentry_sdk
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Disable outbound Sentry calls during tests
sentry_sdk.init = lambda *args, **kwargs: None  # type: ignore[assignment]
os.environ["SENTRY_DSN"] = ""
os.environ.setdefault("ORS_API_KEY", "test-key")

from backend.estimator.contracts import Coordinate, Marker  # noqa: E402
from backend.estimator.main import app  # noqa: E402
from backend.estimator.routing.base import Route, RouteResult, RouteSegment  # noqa: E402
from backend.estimator.routing.factory import get_routing_client  # noqa: E402
from backend.estimator.settings import settings  # noqa: E402

RIDER = Coordinate(latitude=37.7749, longitude=-122.4194)
DESTINATION = Coordinate(latitude=37.8044, longitude=-122.2712)


def route_result(*durations: float | None, provider: str = "stub") -> RouteResult:
    """One route whose segments carry the given durations."""
    return RouteResult(
        provider=provider,
        routes=[Route(segments=[RouteSegment(duration=d) for d in durations])],
    )


class StubRoutingClient:
    """
    Records every query and answers through `responder(origin, destination)`.

    The responder returns a RouteResult or an exception instance to raise.
    By default every leg takes 600 seconds.
    """

    provider = "stub"

    def __init__(
        self,
        responder: Callable[[Coordinate, Coordinate], RouteResult | Exception] | None = None,
    ) -> None:
        self.responder = responder or (lambda origin, destination: route_result(600.0))
        self.calls: list[tuple[Coordinate, Coordinate, str]] = []
        self.closed = False

    async def route(self, origin, destination, profile="driving"):
        self.calls.append((origin, destination, profile))
        outcome = self.responder(origin, destination)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def aclose(self) -> None:
        self.closed = True


def make_marker(driver_id, latitude, longitude, first_name="Jane", last_name="Doe") -> Marker:
    return Marker(
        id=driver_id,
        first_name=first_name,
        last_name=last_name,
        latitude=latitude,
        longitude=longitude,
        title=f"{first_name} {last_name}",
    )


@pytest.fixture
def rider() -> Coordinate:
    return RIDER


@pytest.fixture
def destination() -> Coordinate:
    return DESTINATION


@pytest.fixture
def routing_stub() -> StubRoutingClient:
    return StubRoutingClient()


@pytest.fixture
def client(routing_stub) -> TestClient:
    app.dependency_overrides[get_routing_client] = lambda: routing_stub
    yield TestClient(app, base_url="http://api.testserver")
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_settings():
    snapshot = settings.model_dump()
    settings.ORS_API_KEY = "test-key"
    settings.ROUTING_PROVIDER = "openrouteservice"
    settings.SENTRY_DSN = None
    get_routing_client.cache_clear()
    yield
    for key, value in snapshot.items():
        setattr(settings, key, value)
    get_routing_client.cache_clear()

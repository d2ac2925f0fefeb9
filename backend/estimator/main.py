from __future__ import annotations

from contextlib import asynccontextmanager

import sentry_sdk
from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, RedirectResponse
from sentry_sdk.integrations.fastapi import FastApiIntegration

from .api.routes import estimates as estimates_routes
from .api.routes import maps as maps_routes
from .api.utils import register_error_handlers
from .geocoding import close_geocoder
from .health import health_checker
from .logging_config import SERVICE_NAME, SERVICE_VERSION, configure_structlog, get_logger
from .metrics import PrometheusMiddleware, get_metrics
from .routing.factory import close_routing_client
from .settings import settings
from .utils import add_cors, add_request_id_tracing

# Configure structured logging (must be done before any logging calls)
configure_structlog(json_logs=not settings.DEBUG)

if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        release=settings.SENTRY_RELEASE or f"{SERVICE_NAME}@dev",
        integrations=[FastApiIntegration()],
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
    )

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "service_started",
        routing_provider=settings.ROUTING_PROVIDER,
        routing_configured=settings.routing_configured,
    )
    yield
    await close_routing_client()
    await close_geocoder()


app = FastAPI(
    title="Ride Estimates API",
    version=SERVICE_VERSION,
    description="Map framing, driver markers and trip time/fare estimates",
    lifespan=lifespan,
)
add_cors(app)
add_request_id_tracing(app)
app.add_middleware(PrometheusMiddleware)
register_error_handlers(app)

API_PREFIX = "/v1"

app.include_router(estimates_routes.router, prefix=API_PREFIX)
app.include_router(maps_routes.router, prefix=API_PREFIX)


@app.get("/health")
async def health():
    """Return service health including routing provider checks."""
    health_status = await health_checker.check_all()
    status_code = 200 if health_status["status"] == "healthy" else 503
    body = {
        "status": health_status["status"],
        "timestamp": health_status.get("timestamp"),
        "checks": health_status.get("checks", {}),
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
    }
    return JSONResponse(content=body, status_code=status_code)


@app.get("/metrics")
def metrics():
    """Expose Prometheus metrics."""
    try:
        return get_metrics()
    except Exception:  # pragma: no cover
        logger.exception("Metrics export failed")
        raise HTTPException(status_code=503, detail="metrics unavailable")


@app.get("/", include_in_schema=False)
def root_redirect():
    return RedirectResponse(url="/docs", status_code=307)

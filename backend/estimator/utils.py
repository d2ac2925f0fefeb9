from __future__ import annotations

import logging
from contextvars import ContextVar
from uuid import uuid4

import structlog
from fastapi import Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from .settings import settings

# Context variable for request ID (accessible throughout the request lifecycle)
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")


def add_cors(app):
    origins = settings.allow_origins
    if not origins:
        # Default is explicit opt-in; skip middleware when nothing configured
        return
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an ID for log correlation.

    Reuses an incoming X-Request-ID header or generates a UUID, stores it in
    `request_id_ctx` for the duration of the request and echoes it back on
    the response.
    """

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        request_id = request.headers.get("X-Request-ID")
        if not request_id:
            request_id = str(uuid4())

        structlog.contextvars.clear_contextvars()
        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response


class RequestIDLogFilter(logging.Filter):
    """Logging filter that adds `request_id` to stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = request_id_ctx.get("")
        record.request_id = request_id if request_id else "-"  # type: ignore[attr-defined]
        return True


def add_request_id_tracing(app):
    app.add_middleware(RequestIDMiddleware)
    logging.getLogger().addFilter(RequestIDLogFilter())


def get_request_id() -> str:
    """Get the current request ID from context."""
    return request_id_ctx.get("")


def parse_lat_lon(raw: str) -> tuple[float, float]:
    """Parse a "lat,lon" string, raising ValueError on bad input or out-of-range values."""
    try:
        lat_str, lon_str = raw.split(",", 1)
        lat = float(lat_str)
        lon = float(lon_str)
    except ValueError as exc:
        raise ValueError(f"Invalid coordinates: {raw!r}") from exc
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError(f"Latitude/longitude out of range: {raw!r}")
    return lat, lon

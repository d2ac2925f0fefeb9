from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import (
    DuplicateDriver,
    EstimationFailure,
    InvalidRoute,
    MissingLocation,
    TransportFailure,
)
from ..geocoding import GeocodingUnavailable
from ..logging_config import get_logger
from ..utils import get_request_id

logger = get_logger(__name__)

_FAILURE_STATUS: dict[type[EstimationFailure], int] = {
    MissingLocation: 422,
    DuplicateDriver: 422,
    InvalidRoute: 502,
    TransportFailure: 503,
}


def failure_status(exc: EstimationFailure) -> int:
    for failure_type, status_code in _FAILURE_STATUS.items():
        if isinstance(exc, failure_type):
            return status_code
    return 500


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(EstimationFailure)
    async def _estimation_failure(request: Request, exc: EstimationFailure):
        status_code = failure_status(exc)
        logger.warning(
            "estimate_failed",
            path=request.url.path,
            request_id=get_request_id(),
            code=exc.code,
            status=status_code,
            error=str(exc),
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    @app.exception_handler(GeocodingUnavailable)
    async def _geocoding_unavailable(request: Request, exc: GeocodingUnavailable):
        return JSONResponse(status_code=503, content={"detail": str(exc)})

"""
structlog setup for the estimates service.

Every entry carries the service identity, the routing provider and profile
in use, and, inside a request, the request id plus whatever estimate context
the route bound (batch mode and driver count).
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from .settings import settings
from .utils import request_id_ctx

SERVICE_NAME = "ride-estimates"
SERVICE_VERSION = "0.1.0"

# Chatty per-request loggers; routing queries alone would double the log volume
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def add_request_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_ctx.get("")
    if request_id:
        event_dict["request_id"] = request_id
    return event_dict


def add_service_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    event_dict["version"] = SERVICE_VERSION
    event_dict["environment"] = settings.SENTRY_ENVIRONMENT
    return event_dict


def add_routing_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Tag entries with the configured routing backend unless the caller already did."""
    event_dict.setdefault("routing_provider", settings.ROUTING_PROVIDER)
    event_dict.setdefault("routing_profile", settings.ROUTING_PROFILE)
    return event_dict


def drop_color_message_key(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    # uvicorn duplicates the message with ANSI colours for its console handler
    event_dict.pop("color_message", None)
    return event_dict


def bind_estimate_context(mode: str, drivers: int) -> None:
    """Attach estimate details to every structlog entry for the rest of the request."""
    structlog.contextvars.bind_contextvars(estimate_mode=mode, estimate_drivers=drivers)


def _processors(json_logs: bool) -> list[Processor]:
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_request_id,
        add_service_context,
        add_routing_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
    ]
    if json_logs:
        return [
            *shared,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            drop_color_message_key,
            structlog.processors.JSONRenderer(),
        ]
    return [
        *shared,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.ConsoleRenderer(),
    ]


def configure_structlog(json_logs: bool = False) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        json_logs: Emit JSON lines. Console output is only used when this is
                   False and DEBUG is on.
    """
    structlog.configure(
        processors=_processors(json_logs or not settings.DEBUG),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=logging.INFO)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["bind_estimate_context", "configure_structlog", "get_logger"]

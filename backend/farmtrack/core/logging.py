"""Structured logging for the tracking service.

Every log line carries:
- service name, log level, logger name, ISO timestamp
- correlation_id of the HTTP request (asgi-correlation-id), when there is one
- order_id / stage_id bound for the duration of an order operation

Enum members (RejectionReason, StageStatus) and datetimes are rendered as
plain strings, so ledger code can log domain values directly. Production
output is JSON; debug output uses the ConsoleRenderer.
"""

import logging
import logging.config
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import Enum

import structlog
from asgi_correlation_id.context import correlation_id

SERVICE_NAME = "farmtrack"


def get_correlation_id() -> str | None:
    """Correlation ID of the current request, or None outside a request."""
    return correlation_id.get(None)


def add_correlation_id(logger, method, event_dict):
    cid = get_correlation_id()
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def add_service(logger, method, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def render_domain_values(logger, method, event_dict):
    """Flatten enums to their value and datetimes to ISO strings."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, datetime):
            event_dict[key] = value.isoformat()
    return event_dict


@contextmanager
def bind_order_context(order_id: str, **extra) -> Iterator[None]:
    """Bind order_id (and any extra keys) to every log line inside the block."""
    with structlog.contextvars.bound_contextvars(order_id=order_id, **extra):
        yield


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Configure structlog and route stdlib logging through the same renderer.

    Must run before any module logs (structlog caches the processor chain
    on first use).
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service,
        add_correlation_id,
        render_domain_values,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    renderer,
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "structured",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": log_level},
        "loggers": {
            "uvicorn.access": {"level": "WARNING"},
        },
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping

import structlog

from sync_reservations.config import LOG_LEVEL

Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

# Notifier HTTP traffic, SQL pool chatter and per-request access lines
NOISY_LOGGERS = ("urllib3", "requests", "sqlalchemy.pool", "uvicorn.access")


def build_renderer(log_level: str = LOG_LEVEL) -> list[Processor]:
    """
    Pick the final processors for the given level.

    INFO and above ship to log aggregation as one JSON object per line, with
    Korean guest names and room texts left readable and tracebacks flattened
    into the "exception" key. DEBUG renders for a terminal.
    """
    if log_level == "DEBUG":
        return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(ensure_ascii=False),
    ]


def setup_logging(log_level: str = LOG_LEVEL) -> None:
    """
    Configure structlog for the API process and the batch script.

    Every event carries tenant_id and channel while a batch runs and request_id
    while an HTTP request is served; both are bound as contextvars, so the
    merge_contextvars processor must stay first.
    """
    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s:%(lineno)d: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=log_level,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            *build_renderer(log_level),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

"""Structured logging configuration for hwguard."""

from __future__ import annotations

import logging
import sys
from typing import List, Literal

import structlog

# Stdlib loggers that log once per poll or per request at INFO
CHATTY_LOGGERS = (
    "apscheduler.executors.default",
    "apscheduler.scheduler",
    "uvicorn.access",
    "httpx",
)

_STDLIB_FORMATS = {
    "json": '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "event": "%(message)s"}',
    "text": "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
}


def configure_logging(
    log_format: Literal["json", "text"] = "json",
    log_level: str = "INFO",
) -> None:
    """Configure structlog and the stdlib loggers used by uvicorn and APScheduler.

    Safe to call again (SIGHUP reload): loggers are not cached, so module
    level loggers pick up the new level and renderer on their next call.

    Args:
        log_format: "json" for machine-readable output, "text" for a console.
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    processors: List[structlog.typing.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(
        format=_STDLIB_FORMATS.get(log_format, _STDLIB_FORMATS["text"]),
        stream=sys.stdout,
        level=level,
        force=True,
    )
    # Per-tick and per-request lines only at DEBUG
    chatty_level = logging.DEBUG if level <= logging.DEBUG else max(level, logging.WARNING)
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(chatty_level)


def get_logger(**initial_values: object) -> structlog.typing.FilteringBoundLogger:
    """Get a logger, optionally bound to ``initial_values``."""
    return structlog.get_logger(**initial_values)

"""Logging setup for solrgate.

structlog renders one event per line: JSON by default, a console format for
local runs (``JSON_LOGS=false``). Request-scoped values are bound with
``structlog.contextvars`` by the request handler (the per-request
``request_id``) and merged into every event emitted while that request is in
flight, including events from the forwarder.
"""

import logging
import os
import sys

import structlog
from structlog.types import FilteringBoundLogger, Processor

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def json_logs_enabled() -> bool:
    """JSON output unless ``JSON_LOGS`` is set to anything but ``true``."""
    return os.getenv("JSON_LOGS", "true").lower() == "true"


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog for the process.

    Loggers cache their configuration on first use, so call this before the
    server starts handling requests.

    Args:
        log_level: One of LOG_LEVELS (case-insensitive).
        json_output: JSON lines when True, human-readable console lines otherwise.

    Raises:
        ValueError: Unknown log level.
    """
    level = log_level.upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"unknown log level: {log_level!r}")

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "solrgate") -> FilteringBoundLogger:
    """Logger whose events carry ``logger=<name>``."""
    return structlog.get_logger().bind(logger=name)


configure_logging()

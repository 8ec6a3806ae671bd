"""
Structured logging for tablemap.

Thin structlog setup shared by every module in the package. Library code
only ever calls ``get_logger(__name__)``; applications that embed tablemap
call ``configure_logging`` once at startup (or let their own structlog
configuration apply).

Architecture:
    ::

        configure_logging(level="INFO", json_format=None, service="tablemap")
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. add_log_level / add_logger_name
          3. add_service_metadata
          4. JSONRenderer  (or ConsoleRenderer on a tty)

        logger = get_logger(__name__)
        logger.debug("sql_generated", record_type="Order", kind="update")

Events emitted by the package:
    - ``table_mapping_built`` (debug)
    - ``database_product_resolved`` (info)
    - ``sql_generated`` (debug)
    - ``record_inserted`` / ``record_updated`` / ``record_deleted`` (debug)
    - ``optimistic_lock_failed`` (warning)

Tags:
    logging, structlog, observability, tablemap

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

_SERVICE_NAME = "tablemap"


def _add_service_metadata(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add service-level metadata to all logs."""
    event_dict.setdefault("service", _SERVICE_NAME)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool | None = None,
    service: str = "tablemap",
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: Service name to include in logs

    Example:
        configure_logging(level="DEBUG", json_format=False)
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service

    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.StackInfoRenderer(),
        _add_service_metadata,
    ]

    if json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    numeric_level = getattr(logging, level.upper())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


__all__ = [
    "configure_logging",
    "get_logger",
]

"""Structured logging for the gateway, built on structlog.

setup_logging() runs once from the app lifespan. Per-request fields
(method, request id, session id) are bound through contextvars so every
log line emitted while handling a JSON-RPC request carries them.
"""

from __future__ import annotations

import logging
from typing import Any

import structlog

# Third-party loggers that go through stdlib logging rather than structlog.
_STDLIB_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx")


def _service_field(service: str) -> structlog.types.Processor:
    def add_service(
        logger: Any, method_name: str, event_dict: structlog.types.EventDict
    ) -> structlog.types.EventDict:
        event_dict.setdefault("service", service)
        return event_dict

    return add_service


def setup_logging(
    *,
    json_output: bool = True,
    log_level: str = "INFO",
    service: str = "codex-mcp-gateway",
) -> None:
    """Configure structlog and align stdlib logger levels.

    Args:
        json_output: JSON lines when True, console renderer otherwise.
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        service: Value of the ``service`` field on every event.
    """
    level = logging.getLevelName(log_level.upper())

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        _service_field(service),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    for name in _STDLIB_LOGGERS:
        logging.getLogger(name).setLevel(level)


def bind_request_context(**fields: Any) -> None:
    """Replace the per-request log context. None values are dropped."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        **{key: value for key, value in fields.items() if value is not None}
    )

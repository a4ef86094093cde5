"""
TaskDeps — Structured Logging
===============================
structlog over stdlib logging.  Every entry carries the application name,
the correlation ID of the HTTP request (when there is one) and the graph
scope (project) the engine is operating on.

Usage:
    from taskdeps.core.logging import get_logger, graph_scope
    logger = get_logger(__name__)

    with graph_scope("proj-1"):
        logger.info("dependencies.added", task_id="task_1", added=2)
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator

import structlog
from structlog.types import EventDict, WrappedLogger

from taskdeps.core.config import get_settings

DEFAULT_SCOPE = "default"

# Project whose graph the current call is reading or mutating.
graph_scope_ctx: ContextVar[str | None] = ContextVar("graph_scope", default=None)


@contextmanager
def graph_scope(project_id: str | None) -> Iterator[str]:
    """Bind ``project_id`` as the graph scope for log entries in this block."""
    scope = project_id or DEFAULT_SCOPE
    token = graph_scope_ctx.set(scope)
    try:
        yield scope
    finally:
        graph_scope_ctx.reset(token)


def _add_app_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    settings = get_settings()
    event_dict.setdefault("app", settings.app_name)
    event_dict.setdefault("environment", settings.environment.value)
    return event_dict


def _add_request_context(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach correlation ID and graph scope when they are set."""
    from taskdeps.core.middleware import correlation_id_ctx

    cid = correlation_id_ctx.get(None)
    if cid is not None:
        event_dict.setdefault("correlation_id", cid)
    scope = graph_scope_ctx.get(None)
    if scope is not None:
        event_dict.setdefault("graph_scope", scope)
    return event_dict


def _build_renderer(log_format: str) -> Any:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer(sort_keys=True)


def configure_logging(stream: Any = None) -> None:
    """
    Configure structlog + stdlib logging from settings.

    Call once at startup.  ``stream`` defaults to stdout; tests pass a
    buffer to capture rendered output.
    """
    settings = get_settings()

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_app_context,
        _add_request_context,
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _build_renderer(settings.log_format),
        ],
    )

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structured logger bound to the given module name."""
    return structlog.get_logger(name)

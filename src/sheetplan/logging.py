"""Structured logging configuration for sheetplan.

Events are emitted through structlog. Every PlanStore call runs inside a
``log_context`` that binds the plan cell and spreadsheet, so retry and
write events can be traced back to the plan they touched.
"""

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from sheetplan.config import Settings

# Event keys whose values must never reach the log output
SECRET_KEYS = frozenset({"token", "access_token", "authorization", "sheets_access_token"})


def redact_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential values bound to an event."""
    for key in SECRET_KEYS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = "***"
    return event_dict


def configure_logging(settings: "Settings | None" = None) -> None:
    """Configure structlog from ``settings.log_level`` and ``settings.log_format``.

    Console output is the default; ``log_format="json"`` emits one JSON
    object per event. Both go to stderr so stdout stays free for results.
    """
    log_level = logging.WARNING
    log_format = "console"

    if settings is not None:
        log_level = getattr(logging, settings.log_level.upper(), logging.WARNING)
        log_format = settings.log_format

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if log_format == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # httpx logs every request at INFO
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, optionally named."""
    return structlog.get_logger(name) if name else structlog.get_logger()


def bind_context(**kwargs: Any) -> None:
    """Bind key-value pairs to every subsequent event in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove keys from the logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


@contextmanager
def log_context(**kwargs: Any) -> Iterator[None]:
    """Bind ``kwargs`` for the duration of the block.

    Values bound by an enclosing block are restored on exit, so nested
    scopes (a store call inside another) leave the outer context intact.
    None values are skipped.
    """
    fields = {key: value for key, value in kwargs.items() if value is not None}
    outer = structlog.contextvars.get_contextvars()
    previous = {key: outer[key] for key in fields if key in outer}

    bind_context(**fields)
    try:
        yield
    finally:
        unbind_context(*fields)
        if previous:
            bind_context(**previous)


class Loggers:
    """Pre-configured logger instances for sheetplan components."""

    @staticmethod
    def remote() -> structlog.stdlib.BoundLogger:
        """Logger for transports and the resilient access layer."""
        return get_logger("sheetplan.remote")

    @staticmethod
    def planning() -> structlog.stdlib.BoundLogger:
        """Logger for the plan store."""
        return get_logger("sheetplan.planning")

    @staticmethod
    def tools() -> structlog.stdlib.BoundLogger:
        """Logger for agent-facing tools."""
        return get_logger("sheetplan.tools")

    @staticmethod
    def config() -> structlog.stdlib.BoundLogger:
        """Logger for configuration."""
        return get_logger("sheetplan.config")

"""Structured Logging for tagrules

- Colored, human-readable dev output
- JSON structured production output
- Context propagation through contextvars
- Domain loggers for the engine, the rule cache and the registry
"""
import logging
import sys

import structlog
from structlog.types import EventDict, Processor

from tagrules import __version__
from tagrules.config import get_settings


def _add_service_info(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor that adds library metadata."""
    event_dict.setdefault("service", "tagrules")
    event_dict.setdefault("version", __version__)
    return event_dict


def _truncate_values(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Processor that keeps validated payloads from flooding the log."""
    for key, value in event_dict.items():
        if isinstance(value, str) and len(value) > 200:
            event_dict[key] = value[:200] + "..."
    return event_dict


def get_shared_processors() -> list[Processor]:
    """Processors used in both dev and prod configurations."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        _add_service_info,
        _truncate_values,
    ]


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure the logging system.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL); defaults to TAGRULES_LOG_LEVEL
        json_logs: If True, output JSON format. If False, colored console output.
            Defaults to TAGRULES_LOG_JSON.
    """
    settings = get_settings()
    if level is None: level = settings.LOG_LEVEL
    if json_logs is None: json_logs = settings.LOG_JSON
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = get_shared_processors()

    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    tagrules_logger = logging.getLogger("tagrules")
    tagrules_logger.handlers = [handler]
    tagrules_logger.setLevel(log_level)
    tagrules_logger.propagate = False


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__ from the calling module)
    """
    return structlog.get_logger(name)


class LoggerRegistry:
    """Registry of pre-configured loggers for the library's domains."""

    _loggers: dict[str, structlog.stdlib.BoundLogger] = {}

    @classmethod
    def get(cls, name: str) -> structlog.stdlib.BoundLogger:
        """Get or create a logger for the given domain."""
        if name not in cls._loggers:
            cls._loggers[name] = get_logger(f"tagrules.{name}")
        return cls._loggers[name]


def engine_logger() -> structlog.stdlib.BoundLogger:
    """Logger for traversal events."""
    return LoggerRegistry.get("engine")


def cache_logger() -> structlog.stdlib.BoundLogger:
    """Logger for rule compilation events."""
    return LoggerRegistry.get("cache")


def registry_logger() -> structlog.stdlib.BoundLogger:
    """Logger for predicate/alias/hook registration."""
    return LoggerRegistry.get("registry")

"""
Structured logging for artgallery.

Modules log through structlog on top of the standard library logging tree.
Events are snake_case names with keyword context, e.g.
``logger.warning("upload_task_failed", key=key, error=message)``.
"""

import logging
import os
import sys
from typing import Any

import structlog

DEVELOPMENT_ENVIRONMENTS = ("development", "dev", "local")

# Third-party loggers that flood DEBUG output with HTTP traffic
QUIET_LOGGERS = ("urllib3", "google.auth", "google.resumable_media")


def get_log_level() -> int:
    """Numeric level for LOG_LEVEL; unknown names fall back to INFO."""
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def is_development_environment() -> bool:
    return os.getenv("ENVIRONMENT", "development").lower() in DEVELOPMENT_ENVIRONMENTS


def _build_processors(json_output: bool, colors: bool) -> list[Any]:
    renderer: Any = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=colors)
    return [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]


def configure_structured_logging(json_output: bool | None = None) -> None:
    """
    Route structlog through stdlib logging on stderr.

    Args:
        json_output: One JSON object per line when True, the console renderer
            when False. Defaults to JSON outside development.
    """
    level = get_log_level()
    if json_output is None:
        json_output = not is_development_environment()
    colors = not json_output and sys.stderr.isatty()

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    structlog.configure(
        processors=_build_processors(json_output, colors),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    get_logger("artgallery.logging").info(
        "logging_configured", level=logging.getLevelName(level), json_output=json_output, colors=colors
    )


def get_logger(name: str | None = None) -> Any:
    """structlog logger bound to ``name`` (the package logger when omitted)."""
    return structlog.get_logger(name or "artgallery")


def log_performance(operation: str, duration: float, **context: Any) -> None:
    """
    Log how long an operation took.

    Args:
        operation: Operation name, e.g. ``upload_task`` or ``batch_upload``
        duration: Elapsed time in seconds
        **context: Extra fields such as file or image identifiers
    """
    get_logger("artgallery.performance").info(
        "operation_timed", operation=operation, duration_ms=round(duration * 1000, 1), **context
    )


def log_user_action(action: str, **context: Any) -> None:
    """Audit log entry for a change made through the admin console or CLI."""
    get_logger("artgallery.audit").info(action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """
    Log an exception with its type and message.

    Context keys override the defaults, so callers can pass a more specific
    ``error_type``.
    """
    fields = {"error_type": type(error).__name__, "error_message": str(error), **(context or {})}
    get_logger("artgallery.errors").error("error_logged", **fields)

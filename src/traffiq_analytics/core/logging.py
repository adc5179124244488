"""Logging configuration for TraffiQ Analytics.

Provides structured logging with JSON formatting in production and
Rich console output during development.
"""

import logging
import logging.handlers
import sys
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import structlog
from rich.console import Console
from rich.logging import RichHandler

from .config import Settings

logger = structlog.get_logger()

LOG_FILE_NAME = "traffiq-analytics.log"


def setup_logging(
    settings: Settings,
    enable_json: bool | None = None,
    enable_rich: bool | None = None,
) -> None:
    """Configure application logging.

    Args:
        settings: Application settings
        enable_json: Force JSON formatting (None = auto-detect from env)
        enable_rich: Force Rich formatting (None = auto-detect from env)
    """
    if enable_json is None:
        enable_json = settings.is_production()
    if enable_rich is None:
        enable_rich = settings.is_development() and not enable_json

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if enable_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=enable_rich))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers: list[logging.Handler] = []

    if enable_rich and not enable_json:
        console = Console(stderr=True)
        rich_handler = RichHandler(
            console=console,
            show_time=True,
            show_level=True,
            show_path=True,
            markup=False,
            rich_tracebacks=True,
        )
        rich_handler.setLevel(settings.log_level)
        handlers.append(rich_handler)
    else:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(_build_formatter(enable_json))
        stream_handler.setLevel(settings.log_level)
        handlers.append(stream_handler)

    if settings.logs_dir:
        settings.logs_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.logs_dir / LOG_FILE_NAME,
            maxBytes=5_000_000,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setFormatter(_build_formatter(enable_json))
        file_handler.setLevel(settings.log_level)
        handlers.append(file_handler)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.handlers.clear()
    for handler in handlers:
        root_logger.addHandler(handler)

    _configure_third_party_loggers(settings.log_level)

    logger.info(
        "Logging configured",
        log_level=settings.log_level,
        json_logging=enable_json,
        rich_logging=enable_rich,
        log_file=(
            str(settings.logs_dir / LOG_FILE_NAME) if settings.logs_dir else None
        ),
    )


def _build_formatter(enable_json: bool) -> logging.Formatter:
    if enable_json:
        return logging.Formatter(fmt="%(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    return logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _configure_third_party_loggers(log_level: str) -> None:
    """Configure third-party library loggers."""
    for logger_name in ("redis", "urllib3.connectionpool", "asyncio"):
        logging.getLogger(logger_name).setLevel(
            max(logging.WARNING, getattr(logging, log_level))
        )


class ContextualLogger:
    """Logger with automatic context management."""

    def __init__(self, name: str, **context: Any) -> None:
        self.name = name
        self._logger = structlog.get_logger(name)
        self._context = context

    def bind(self, **new_context: Any) -> "ContextualLogger":
        """Create a new logger with additional context."""
        return ContextualLogger(self.name, **{**self._context, **new_context})

    def _log(self, level: str, message: str, **kwargs: Any) -> None:
        getattr(self._logger, level)(message, **{**self._context, **kwargs})

    def debug(self, message: str, **kwargs: Any) -> None:
        self._log("debug", message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._log("info", message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._log("warning", message, **kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._log("error", message, **kwargs)

    def exception(self, message: str, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log("exception", message, **kwargs)


def get_logger(name: str, **context: Any) -> ContextualLogger:
    """Get a contextual logger instance.

    Args:
        name: Logger name
        **context: Additional context to include in all log messages

    Returns:
        ContextualLogger: Configured logger instance
    """
    return ContextualLogger(name, **context)


@contextmanager
def log_context(**context: Any) -> Generator[None, None, None]:
    """Context manager for temporary logging context.

    Args:
        **context: Context to add to all log messages within this block
    """
    tokens = structlog.contextvars.bind_contextvars(**context)
    try:
        yield
    finally:
        structlog.contextvars.reset_contextvars(**tokens)


class LoggingMixin:
    """Mixin class to add logging capabilities to any class."""

    @property
    def logger(self) -> ContextualLogger:
        """Get logger for this class."""
        if not hasattr(self, "_logger"):
            self._logger = get_logger(
                self.__class__.__module__ + "." + self.__class__.__name__
            )
        return self._logger

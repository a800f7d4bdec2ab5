"""Logging configuration for cluster-up.

Configures structlog with human-readable output for the CLI, JSON output
when requested. Components receive a :class:`Logger` through their
constructor instead of reaching for a global backend.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, NoReturn

import structlog

# Default --loglevel value. Debug messages need a higher value, failures
# wrapped through Logger.error are only logged from ERROR_VERBOSITY up.
DEFAULT_VERBOSITY = 3
DEBUG_VERBOSITY = 4
ERROR_VERBOSITY = 5


def level_for_verbosity(verbosity: int) -> str:
    """Map a --loglevel integer to a stdlib logging level name."""
    if verbosity >= DEBUG_VERBOSITY:
        return "debug"
    return "info"


def configure_logging(
    level: str = "info",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging for the application.

    Called once on startup. Configures both standard logging and structlog.

    Args:
        level: Log level (debug, info, warning, error, critical)
        log_file: Optional path to log file
        json_output: If True, output JSON format
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    if log_file:
        file_handler = logging.FileHandler(str(log_file))
        file_handler.setLevel(log_level)
        handlers.append(file_handler)
    else:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setLevel(log_level)
        handlers.append(stream_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        format="%(message)s",
        force=True,
    )

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class Logger:
    """Leveled logging capability handed to each component.

    Debug output and wrapped errors are gated by ``verbosity`` rather than
    by the backend level, so the same logger can be passed around without
    any process-wide state.
    """

    def __init__(
        self,
        name: str = "cluster_up",
        verbosity: int = DEFAULT_VERBOSITY,
        backend: Any | None = None,
    ):
        self.name = name
        self.verbosity = verbosity
        self._backend = backend if backend is not None else structlog.get_logger(name)

    def bind(self, **values: Any) -> Logger:
        """Return a logger carrying extra context (e.g. component=...)."""
        return Logger(self.name, self.verbosity, self._backend.bind(**values))

    def info(self, message: str, **values: Any) -> None:
        self._backend.info(message, **values)

    def debug(self, message: str, **values: Any) -> None:
        if self.verbosity < DEBUG_VERBOSITY:
            return
        self._backend.debug(message, **values)

    def error(self, message: str, err: BaseException) -> BaseException:
        """Log ``err`` under ``message`` (at high verbosity) and return it unchanged."""
        if self.verbosity >= ERROR_VERBOSITY:
            self._backend.error(message, error=str(err), error_type=type(err).__name__)
        return err

    def fatal(self, err: BaseException) -> NoReturn:
        """Log ``err`` and terminate. Only used at the CLI boundary."""
        self._backend.error(str(err))
        raise SystemExit(1)


def get_logger(name: str, verbosity: int = DEFAULT_VERBOSITY) -> Logger:
    """Get a logging capability.

    Args:
        name: Logger name (typically __name__)
        verbosity: --loglevel value

    Returns:
        Configured Logger
    """
    return Logger(name, verbosity)

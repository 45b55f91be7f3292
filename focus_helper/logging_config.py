"""Logging configuration for focusctl and the focus helper daemon.

Provides:
- Configurable log levels (WARNING, INFO, DEBUG)
- Colored output when stderr is a terminal
- Subprocess call logging
- Timing logs for store operations
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Any


# Default log format
DEFAULT_FORMAT = "%(levelname)s: %(message)s"
VERBOSE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DAEMON_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

ROOT_LOGGER = "focus_helper"


class ColoredFormatter(logging.Formatter):
    """Colored log formatter for terminal output."""

    COLORS = {
        'DEBUG': '\033[36m',      # Cyan
        'INFO': '\033[32m',       # Green
        'WARNING': '\033[33m',    # Yellow
        'ERROR': '\033[31m',      # Red
        'CRITICAL': '\033[35m',   # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        """Format log record with colors."""
        # Work on a copy so other handlers see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Configure logging for the focusctl CLI.

    Args:
        verbose: Enable verbose logging (INFO level)
        debug: Enable debug logging (DEBUG level)

    Returns:
        Configured package logger

    Examples:
        >>> logger = setup_logging(verbose=True)
        >>> logger.info("Adding class")
        2025-10-21 10:30:45 [INFO] focus_helper: Adding class
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()

    if debug:
        logger.setLevel(logging.DEBUG)
        log_format = DEBUG_FORMAT
    elif verbose:
        logger.setLevel(logging.INFO)
        log_format = VERBOSE_FORMAT
    else:
        logger.setLevel(logging.WARNING)
        log_format = DEFAULT_FORMAT

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logger.level)

    if sys.stderr.isatty():
        formatter = ColoredFormatter(log_format)
    else:
        formatter = logging.Formatter(log_format)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def setup_daemon_logging(debug: bool = False) -> None:
    """Configure root logging for the long-running daemon."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=DAEMON_FORMAT
    )


def set_debug(enabled: bool) -> None:
    """Switch the package logger between INFO and DEBUG at runtime."""
    logging.getLogger(ROOT_LOGGER).setLevel(logging.DEBUG if enabled else logging.INFO)


def log_subprocess_call(cmd: list, result: Any, logger: logging.Logger) -> None:
    """Log subprocess call with result.

    Args:
        cmd: Command list
        result: subprocess.CompletedProcess result
        logger: Logger instance
    """
    logger.debug(f"Subprocess call: {' '.join(cmd)}")
    logger.debug(f"  Return code: {result.returncode}")

    if getattr(result, 'stderr', None):
        stderr = result.stderr if isinstance(result.stderr, str) else result.stderr.decode()
        logger.debug(f"  stderr: {stderr[:200]}")


@contextmanager
def log_timing(operation: str, logger: logging.Logger):
    """Context manager for logging operation timing at DEBUG level.

    Examples:
        >>> with log_timing("add-class", logger):
        ...     store.add("firefox")
    """
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(f"{operation} completed in {elapsed_ms:.2f}ms")

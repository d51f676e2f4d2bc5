"""Logging configuration for hostform.

This module provides multi-level logging support with both console
and file handlers. Verbosity can be controlled via CLI flags:
- No flag: WARNING only
- -v: INFO level (every remote action is logged)
- -vv: DEBUG level (also logs skipped and unchanged groups)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Module-level logger cache
_loggers: dict[str, logging.Logger] = {}


def get_log_level(verbosity: int) -> int:
    """Convert verbosity count to log level.

    Args:
        verbosity: Number of -v flags.

    Returns:
        Logging level constant.
    """
    levels = {
        0: logging.WARNING,
        1: logging.INFO,
        2: logging.DEBUG,
    }
    return levels.get(min(verbosity, 2), logging.WARNING)


def configure_logging(
    verbosity: int = 0,
    log_file: str | Path | None = None,
    log_level: str | None = None,
) -> None:
    """Configure logging for hostform.

    Sets up a console (stderr) handler and an optional file handler.
    The console handler respects the verbosity level, while the file
    handler always logs at DEBUG level.

    Args:
        verbosity: Number of -v flags from CLI.
        log_file: Optional path to log file.
        log_level: Override log level (DEBUG, INFO, WARNING, ERROR).

    Example:
        >>> configure_logging(verbosity=2)  # DEBUG level
        >>> configure_logging(log_file="~/.hostform/logs/hostform.log")
    """
    if log_level:
        level = getattr(logging, log_level.upper(), logging.WARNING)
    else:
        level = get_log_level(verbosity)

    root_logger = logging.getLogger("hostform")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Always debug in file
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module.

    Creates child loggers under the 'hostform' namespace.

    Args:
        name: Name of the module (e.g., 'reconcilers.vm', 'engine').

    Returns:
        Configured logger instance.

    Example:
        >>> logger = get_logger("engine")
        >>> logger.info("Applying plan")
    """
    full_name = f"hostform.{name}" if not name.startswith("hostform.") else name

    if full_name not in _loggers:
        _loggers[full_name] = logging.getLogger(full_name)

    return _loggers[full_name]

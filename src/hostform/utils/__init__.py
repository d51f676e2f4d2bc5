"""Utility modules for hostform.

This package contains shared utilities for logging and output formatting.
"""

from hostform.utils.logging import configure_logging, get_logger
from hostform.utils.output import OutputFormatter, console

__all__ = [
    "OutputFormatter",
    "configure_logging",
    "console",
    "get_logger",
]

"""CLI module for hostform.

This package contains all Click command definitions for the hostform CLI.
"""

from hostform.cli.main import cli

__all__ = ["cli"]

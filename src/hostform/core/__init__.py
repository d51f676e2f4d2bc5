"""Core functionality for hostform.

This package contains the reconciliation primitives (set diff,
replacement policy, existence checks, spec building), the hosting
interface with its local backend, configuration, state and the
plan/apply engine.
"""

from hostform.core.config import Config, ConfigManager, ReconcileConfig
from hostform.core.exceptions import (
    ConfigurationError,
    HostformError,
    MonotonicViolationError,
    PartialUpdateError,
    RemoteOperationError,
    ResourceNotFoundError,
    ValidationRejectedError,
)
from hostform.core.hosting import Hosting
from hostform.core.local import LocalHosting
from hostform.core.state import StateStore

__all__ = [
    "Config",
    "ConfigManager",
    "ConfigurationError",
    "Hosting",
    "HostformError",
    "LocalHosting",
    "MonotonicViolationError",
    "PartialUpdateError",
    "ReconcileConfig",
    "RemoteOperationError",
    "ResourceNotFoundError",
    "StateStore",
    "ValidationRejectedError",
]

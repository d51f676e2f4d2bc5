"""Configuration management for hostform.

This module provides a Pydantic-based configuration system that supports:
- YAML configuration files
- Environment variable override of the file location
- Default values with validation
- Automatic directory creation

The default config location is ~/.hostform/config.yaml, which can be
overridden with the HOSTFORM_CONFIG environment variable.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from hostform.core.exceptions import ConfigNotFoundError, ConfigurationError
from hostform.core.policy import ShrinkPolicy


def get_default_config_path() -> Path:
    """Get the default configuration file path.

    The path can be overridden by setting the HOSTFORM_CONFIG
    environment variable.

    Returns:
        Path to the configuration file.
    """
    env_path = os.environ.get("HOSTFORM_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".hostform" / "config.yaml"


def get_default_home() -> Path:
    """Directory holding the default state, backend and log files."""
    return Path.home() / ".hostform"


class UpdateStrategy(str, Enum):
    """What an update does after an attribute group fails."""

    CONTINUE = "continue"
    ABORT = "abort"


class IPReplacement(str, Enum):
    """Order of operations when an IP address must be replaced."""

    CREATE_FIRST = "create_first"
    DELETE_FIRST = "delete_first"


class LoggingConfig(BaseModel):
    """Logging configuration.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        file: Path to log file (optional).
    """

    level: str = Field(default="WARNING", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper


class HostingConfig(BaseModel):
    """Hosting backend selection.

    Args:
        backend: Backend implementation. Only ``local`` ships with hostform.
        path: File the local backend persists its resources to.
    """

    backend: Literal["local"] = Field(default="local", description="Hosting backend")
    path: str = Field(
        default=str(get_default_home() / "hosting.yaml"),
        description="Local backend file",
    )


class StateConfig(BaseModel):
    """Where managed resource state is recorded."""

    path: str = Field(
        default=str(get_default_home() / "state.yaml"),
        description="State file path",
    )


class ReconcileConfig(BaseModel):
    """Behaviour of the reconcilers.

    Args:
        update_strategy: ``continue`` attempts every attribute group and
            reports all failures; ``abort`` skips the groups after the
            first failure.
        shrink_policy: ``reject`` refuses to shrink a disk; ``replace``
            destroys and recreates it at the smaller size.
        ip_replacement: ``create_first`` obtains the new address before
            releasing the old one; ``delete_first`` releases first.
    """

    update_strategy: UpdateStrategy = Field(default=UpdateStrategy.CONTINUE)
    shrink_policy: ShrinkPolicy = Field(default=ShrinkPolicy.REJECT)
    ip_replacement: IPReplacement = Field(default=IPReplacement.CREATE_FIRST)

    @property
    def fail_fast(self) -> bool:
        return self.update_strategy is UpdateStrategy.ABORT


class Config(BaseModel):
    """Main configuration model for hostform.

    Args:
        hosting: Hosting backend settings.
        state: State file settings.
        reconcile: Reconciler behaviour.
        logging: Logging configuration.

    Example config.yaml:
        ```yaml
        hosting:
          backend: local
          path: ~/.hostform/hosting.yaml

        state:
          path: ~/.hostform/state.yaml

        reconcile:
          update_strategy: continue
          shrink_policy: reject
          ip_replacement: create_first

        logging:
          level: WARNING
          file: ~/.hostform/logs/hostform.log
        ```
    """

    hosting: HostingConfig = Field(default_factory=HostingConfig, description="Hosting backend")
    state: StateConfig = Field(default_factory=StateConfig, description="State file")
    reconcile: ReconcileConfig = Field(default_factory=ReconcileConfig, description="Reconcile")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging config")


class ConfigManager:
    """Manages reading and writing hostform configuration.

    A missing file means defaults; it is only written when
    :meth:`save` is called.

    Args:
        path: Optional path to config file. Uses default if not specified.

    Attributes:
        path: Path to the configuration file.
        config: The loaded and validated Config object.

    Example:
        >>> cm = ConfigManager()
        >>> cm.config.reconcile.update_strategy
        <UpdateStrategy.CONTINUE: 'continue'>
    """

    def __init__(self, path: Path | str | None = None) -> None:
        if path is None:
            self.path = get_default_config_path()
        else:
            self.path = Path(path).expanduser()

        self.config = self._load_or_create()

    def _load_or_create(self) -> Config:
        if self.path.exists():
            return self._load()
        return Config()

    def _load(self) -> Config:
        """Load and validate configuration from file.

        Returns:
            Validated Config object.

        Raises:
            ConfigurationError: If the config file is invalid.
            ConfigNotFoundError: If the config file doesn't exist.
        """
        if not self.path.exists():
            raise ConfigNotFoundError(str(self.path))

        try:
            with self.path.open("r") as f:
                data = yaml.safe_load(f) or {}
            return Config.model_validate(data)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in config file: {e}",
                details={"path": str(self.path)},
            ) from e
        except ValidationError as e:
            raise ConfigurationError(
                f"Failed to load config: {e}",
                details={"path": str(self.path)},
            ) from e

    def save(self) -> None:
        """Save current configuration to file.

        Raises:
            ConfigurationError: If saving fails.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w") as f:
                yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save config: {e}",
                details={"path": str(self.path)},
            ) from e

    def reload(self) -> None:
        """Reload configuration from disk."""
        self.config = self._load_or_create()

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of the config.
        """
        return self.config.model_dump(exclude_none=True, mode="json")

    @classmethod
    def create_example_config(cls, path: Path | None = None) -> Path:
        """Create an example configuration file.

        Args:
            path: Optional path for the config. Uses default if not specified.

        Returns:
            Path to the created config file.
        """
        path = get_default_config_path() if path is None else Path(path).expanduser()

        path.parent.mkdir(parents=True, exist_ok=True)

        home = get_default_home()
        example_config = {
            "hosting": {
                "backend": "local",
                "path": str(home / "hosting.yaml"),
            },
            "state": {
                "path": str(home / "state.yaml"),
            },
            "reconcile": {
                "update_strategy": UpdateStrategy.CONTINUE.value,
                "shrink_policy": ShrinkPolicy.REJECT.value,
                "ip_replacement": IPReplacement.CREATE_FIRST.value,
            },
            "logging": {
                "level": "WARNING",
                "file": str(home / "logs" / "hostform.log"),
            },
        }

        with path.open("w") as f:
            yaml.safe_dump(example_config, f, default_flow_style=False, sort_keys=False)

        return path

"""State store for managed resources.

The state file records, for every resource hostform manages, its
provider ID and the configuration last applied to it (with every
reference already resolved to an ID). It is how a later run knows which
remote resource a manifest entry refers to.

Example state.yaml:
    ```yaml
    resources:
      disk.system:
        kind: disk
        name: system
        id: '12'
        config:
          region_id: '5'
          name: system
          size: 10
          image: Debian 12
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from hostform.core.exceptions import ConfigurationError
from hostform.models.desired import CONFIG_MODELS
from hostform.models.state import ResourceKind, ResourceState
from hostform.utils.logging import get_logger

logger = get_logger("state")


def make_address(kind: ResourceKind, name: str) -> str:
    return f"{kind.value}.{name}"


def split_address(address: str) -> tuple[ResourceKind, str]:
    """Split ``kind.name`` into its parts.

    Raises:
        ConfigurationError: If the address is malformed or the kind unknown.
    """
    kind_value, sep, name = address.partition(".")
    if not sep or not name:
        raise ConfigurationError(f"Invalid resource address: '{address}'")
    try:
        return ResourceKind(kind_value), name
    except ValueError:
        raise ConfigurationError(f"Unknown resource kind in address: '{address}'") from None


class StateStore:
    """Reads and writes the state file.

    Args:
        path: Path to the state file. It is created on first save.

    Attributes:
        path: Path to the state file.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()
        self._entries: dict[str, dict[str, Any]] = {}
        if self.path.exists():
            self._load()

    def _load(self) -> None:
        try:
            with self.path.open("r") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in state file: {e}",
                details={"path": str(self.path)},
            ) from e
        resources = data.get("resources") if isinstance(data, dict) else None
        if not isinstance(resources, dict):
            raise ConfigurationError(
                "State file has no 'resources' mapping",
                details={"path": str(self.path)},
            )
        self._entries = resources
        logger.debug(f"Loaded {len(resources)} resources from {self.path}")

    def save(self) -> None:
        """Write the state file.

        Raises:
            ConfigurationError: If the file cannot be written.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w") as f:
                yaml.safe_dump(
                    {"resources": self._entries},
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                )
        except OSError as e:
            raise ConfigurationError(
                f"Failed to save state: {e}",
                details={"path": str(self.path)},
            ) from e

    def addresses(self, kind: ResourceKind | None = None) -> list[str]:
        """Addresses of managed resources, optionally of one kind only."""
        if kind is None:
            return list(self._entries)
        return [a for a, e in self._entries.items() if e.get("kind") == kind.value]

    def __contains__(self, address: object) -> bool:
        return address in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def id_of(self, address: str) -> str | None:
        entry = self._entries.get(address)
        return entry.get("id") if entry else None

    def get(self, address: str) -> ResourceState | None:
        """Return the state recorded at ``address``, or None.

        Raises:
            ConfigurationError: If the recorded config no longer validates.
        """
        entry = self._entries.get(address)
        if entry is None:
            return None
        kind, _ = split_address(address)
        raw_config = entry.get("config")
        config: BaseModel | None = None
        if raw_config is not None:
            try:
                config = CONFIG_MODELS[kind].model_validate(raw_config)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid config recorded for {address}: {e}",
                    details={"path": str(self.path)},
                ) from e
        return ResourceState(
            kind=kind,
            id=entry.get("id"),
            config=config,
            imported=bool(entry.get("imported", False)),
        )

    def put(self, address: str, state: ResourceState) -> None:
        """Record ``state`` at ``address``; an absent resource is removed."""
        if not state.present:
            self.remove(address)
            return
        kind, name = split_address(address)
        config = state.config
        self._entries[address] = {
            "kind": kind.value,
            "name": name,
            "id": state.id,
            "config": config.model_dump(mode="json", exclude_none=True)
            if isinstance(config, BaseModel)
            else config,
        }
        if state.imported:
            self._entries[address]["imported"] = True

    def remove(self, address: str) -> bool:
        """Forget ``address``. Returns True if it was recorded."""
        return self._entries.pop(address, None) is not None

    def to_dict(self) -> dict[str, Any]:
        return {"resources": dict(self._entries)}

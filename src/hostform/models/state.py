"""Managed resource state.

A ``ResourceState`` is the explicit state object every reconciler verb
operates on. It records the provider ID of a managed resource (None when
the resource is absent), the desired configuration last applied to it
and the last read-back from the hosting service.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel


class ResourceKind(str, Enum):
    """Kinds of resources hostform manages, in dependency order."""

    SSH_KEY = "ssh_key"
    VLAN = "vlan"
    DISK = "disk"
    IP = "ip"
    PRIVATE_IP = "private_ip"
    VM = "vm"

    @classmethod
    def creation_order(cls) -> list[ResourceKind]:
        """Kinds ordered so that referenced resources come first."""
        return list(cls)

    @classmethod
    def deletion_order(cls) -> list[ResourceKind]:
        """Kinds ordered so that referencing resources go first."""
        return list(reversed(cls))


@dataclass
class ResourceState:
    """State of a single managed resource.

    Args:
        kind: Kind of the resource.
        id: Provider ID, or None when the resource is absent.
        config: Desired configuration last applied.
        observed: Last read-back from the hosting service.
        imported: True for a resource adopted rather than created, until
            its first update records a full configuration.
    """

    kind: ResourceKind
    id: str | None = None
    config: Any = None
    observed: BaseModel | None = None
    imported: bool = False

    @property
    def present(self) -> bool:
        """True when the resource is known to exist remotely."""
        return bool(self.id)

    def mark_absent(self) -> None:
        """Forget the managed identity; the resource no longer exists."""
        self.id = None
        self.observed = None

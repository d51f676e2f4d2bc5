"""Disk model for hostform."""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, Field


class Disk(BaseModel):
    """A block disk on the hosting service.

    A disk is an attachable resource: it exists independently of any VM
    and can be bound to one. Identity is the ``id``; ``name`` is a
    secondary, mutable key.

    Args:
        id: Provider ID of the disk.
        name: User-facing name, unique per account.
        size: Size in GB.
        type: Provider disk type (e.g. 'data').
        state: Provider state (e.g. 'created', 'being_created').
        region_id: Region the disk lives in.
        vm_ids: IDs of the VMs the disk is attached to.
        boot_disk: True when the disk is at position 0 of a VM.
    """

    id: Annotated[str, Field(min_length=1, description="Disk ID")]
    name: str = Field(default="", description="Disk name")
    size: int = Field(default=0, ge=0, description="Size in GB")
    type: str = Field(default="data", description="Disk type")
    state: str = Field(default="created", description="Disk state")
    region_id: str = Field(default="", description="Region ID")
    vm_ids: list[str] = Field(default_factory=list, description="Attached VM IDs")
    boot_disk: bool = Field(default=False, description="Attached at position 0")

    def summary(self) -> dict[str, Any]:
        """Short form used when listing the disks of a VM."""
        return {"id": self.id, "name": self.name, "size": self.size}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(mode="json")

"""VM models for hostform.

This module defines the read-back model of a virtual machine as the
hosting service reports it, including its ordered disk list and the
IP addresses attached to it.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field

from hostform.models.disk import Disk
from hostform.models.network import IPAddress


class VMState(str, Enum):
    """Possible states for a virtual machine."""

    RUNNING = "running"
    HALTED = "halted"
    DELETED = "deleted"
    BEING_CREATED = "being_created"
    PAUSED = "paused"
    LOCKED = "locked"
    INVALID = "invalid"
    UNKNOWN = "unknown"

    @classmethod
    def desired_values(cls) -> tuple[VMState, ...]:
        """States a user may ask for; the others are only ever observed."""
        return (cls.RUNNING, cls.HALTED, cls.DELETED)

    @property
    def color(self) -> str:
        """Rich color for this state.

        Returns:
            Color name for Rich console output.
        """
        colors = {
            VMState.RUNNING: "green",
            VMState.HALTED: "red",
            VMState.DELETED: "dim",
            VMState.BEING_CREATED: "yellow",
            VMState.PAUSED: "blue",
            VMState.LOCKED: "yellow",
            VMState.INVALID: "red",
            VMState.UNKNOWN: "dim",
        }
        return colors.get(self, "white")

    @property
    def symbol(self) -> str:
        """Status symbol for this state.

        Returns:
            Unicode symbol representing the state.
        """
        symbols = {
            VMState.RUNNING: "●",
            VMState.HALTED: "○",
            VMState.DELETED: "✗",
            VMState.BEING_CREATED: "◐",
            VMState.PAUSED: "◉",
            VMState.LOCKED: "◑",
            VMState.INVALID: "!",
            VMState.UNKNOWN: "?",
        }
        return symbols.get(self, "?")


class VM(BaseModel):
    """Represents a virtual machine on the hosting service.

    The disk list is positional: the disk at index 0 is the boot disk.

    Args:
        id: Provider ID of the VM.
        hostname: Hostname of the VM.
        region_id: Region (datacenter) the VM lives in.
        farm: Optional farm label grouping VMs.
        memory: Memory in MB.
        cores: Number of CPU cores.
        state: Current state of the VM.
        disks: Attached disks, boot disk first.
        ips: Attached IP addresses.
        ssh_key_ids: IDs of the SSH keys installed at creation.

    Example:
        >>> vm = VM(
        ...     id="42",
        ...     hostname="web-1",
        ...     region_id="1",
        ...     memory=1024,
        ...     cores=2,
        ...     state=VMState.RUNNING,
        ... )
    """

    id: Annotated[str, Field(min_length=1, description="VM ID")]
    hostname: str = Field(default="", description="VM hostname")
    region_id: str = Field(default="", description="Region ID")
    farm: str | None = Field(default=None, description="Farm label")
    memory: int | None = Field(default=None, ge=1, description="Memory in MB")
    cores: int | None = Field(default=None, ge=1, description="CPU cores")
    state: VMState = Field(default=VMState.UNKNOWN, description="Current VM state")
    disks: list[Disk] = Field(default_factory=list, description="Disks, boot first")
    ips: list[IPAddress] = Field(default_factory=list, description="Attached IPs")
    ssh_key_ids: list[str] = Field(default_factory=list, description="SSH key IDs")

    @property
    def boot_disk(self) -> Disk | None:
        """The disk at position 0, or None if no disk is attached."""
        return self.disks[0] if self.disks else None

    @property
    def data_disks(self) -> list[Disk]:
        """Every attached disk except the boot disk, in order."""
        return self.disks[1:]

    @property
    def status_display(self) -> str:
        """Formatted status string with symbol.

        Returns:
            String like "● running" for display.
        """
        return f"{self.state.symbol} {self.state.value}"

    @property
    def memory_display(self) -> str:
        """Human-readable memory string.

        Returns:
            String like "8 GB" or "N/A" if not set.
        """
        if self.memory is None:
            return "N/A"
        if self.memory >= 1024 and self.memory % 1024 == 0:
            return f"{self.memory // 1024} GB"
        return f"{self.memory} MB"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization.

        The disk list is split the same way it is presented to users:
        ``boot_disk`` holds position 0 and ``disks`` the remainder.

        Returns:
            Dictionary representation suitable for JSON/YAML output.
        """
        data = self.model_dump(exclude_none=True, exclude={"disks", "ips"}, mode="json")
        data["state"] = self.state.value
        boot = self.boot_disk
        data["boot_disk"] = boot.summary() if boot else None
        data["disks"] = [d.summary() for d in self.data_disks]
        data["ips"] = [{"id": ip.id, "ip": ip.ip} for ip in self.ips]
        return data

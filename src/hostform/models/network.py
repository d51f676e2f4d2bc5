"""Network models for hostform.

Public and private IP addresses and the VLANs private addresses
belong to.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any

from pydantic import BaseModel, Field


class IPVersion(IntEnum):
    """IP protocol versions the hosting service can issue."""

    V4 = 4
    V6 = 6


class IPAddress(BaseModel):
    """An IP address issued by the hosting service.

    IPs are immutable once issued: changing region or version means
    releasing the address and obtaining a new one with a new ID.

    Args:
        id: Provider ID of the address (interface).
        ip: The address literal.
        version: 4 or 6.
        region_id: Region the address was issued in.
        vm_id: ID of the VM it is attached to, if any.
        state: Provider state.
        vlan_id: VLAN for private addresses, None for public ones.
    """

    id: Annotated[str, Field(min_length=1, description="IP ID")]
    ip: str = Field(default="", description="Address literal")
    version: IPVersion = Field(default=IPVersion.V4, description="IP version")
    region_id: str = Field(default="", description="Region ID")
    vm_id: str | None = Field(default=None, description="Attached VM ID")
    state: str = Field(default="created", description="IP state")
    vlan_id: str | None = Field(default=None, description="VLAN ID for private IPs")

    @property
    def is_private(self) -> bool:
        """True for addresses that live on a VLAN."""
        return self.vlan_id is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = self.model_dump(exclude_none=True, mode="json")
        data["version"] = int(self.version)
        return data


class Vlan(BaseModel):
    """A private VLAN.

    Args:
        id: Provider ID of the VLAN.
        name: VLAN name, unique per account.
        region_id: Region of the VLAN.
        subnet: CIDR of the VLAN.
        gateway: Gateway address inside the subnet.
    """

    id: Annotated[str, Field(min_length=1, description="VLAN ID")]
    name: str = Field(default="", description="VLAN name")
    region_id: str = Field(default="", description="Region ID")
    subnet: str | None = Field(default=None, description="Subnet CIDR")
    gateway: str | None = Field(default=None, description="Gateway address")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return self.model_dump(exclude_none=True, mode="json")

"""Data models for hostform.

This module contains Pydantic models for observed resources, creation
specs, desired configuration and managed state.
"""

from hostform.models.catalog import Image, Region, SSHKey
from hostform.models.desired import (
    DiskConfig,
    IPConfig,
    Manifest,
    PrivateIPConfig,
    SSHKeyConfig,
    UserPass,
    VlanConfig,
    VMConfig,
)
from hostform.models.disk import Disk
from hostform.models.network import IPAddress, IPVersion, Vlan
from hostform.models.spec import DiskSpec, VlanSpec, VMSpec
from hostform.models.state import ResourceKind, ResourceState
from hostform.models.vm import VM, VMState

__all__ = [
    "VM",
    "Disk",
    "DiskConfig",
    "DiskSpec",
    "IPAddress",
    "IPConfig",
    "IPVersion",
    "Image",
    "Manifest",
    "PrivateIPConfig",
    "Region",
    "ResourceKind",
    "ResourceState",
    "SSHKey",
    "SSHKeyConfig",
    "UserPass",
    "VMConfig",
    "VMSpec",
    "VMState",
    "Vlan",
    "VlanConfig",
    "VlanSpec",
]

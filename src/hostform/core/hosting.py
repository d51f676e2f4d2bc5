"""The hosting service capability interface.

Every reconciler receives an object satisfying :class:`Hosting` as an
explicit constructor argument. The interface is synchronous: each call
is a blocking round trip, and failures are raised as
:class:`~hostform.core.exceptions.RemoteOperationError`.

Lookups by name (``disk_from_name``, ``vlan_from_name``,
``key_from_name``) return None when nothing matches. Region and image
lookups raise :class:`~hostform.core.exceptions.ResourceNotFoundError`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from hostform.models.catalog import Image, Region, SSHKey
from hostform.models.disk import Disk
from hostform.models.network import IPAddress, IPVersion, Vlan
from hostform.models.spec import DiskSpec, VlanSpec, VMSpec
from hostform.models.vm import VM


@dataclass(frozen=True)
class DiskFilter:
    """Filter for :meth:`Hosting.list_disks`; unset fields match anything."""

    id: str | None = None
    name: str | None = None
    region_id: str | None = None
    vm_id: str | None = None


@dataclass(frozen=True)
class IPFilter:
    """Filter for :meth:`Hosting.list_ips`."""

    id: str | None = None
    ip: str | None = None
    region_id: str | None = None
    vm_id: str | None = None
    version: IPVersion | None = None


@dataclass(frozen=True)
class VMFilter:
    """Filter for :meth:`Hosting.describe_vm`."""

    id: str | None = None
    hostname: str | None = None
    region_id: str | None = None


@dataclass(frozen=True)
class VlanFilter:
    """Filter for :meth:`Hosting.list_vlans`."""

    ids: tuple[str, ...] = field(default_factory=tuple)
    name: str | None = None
    region_id: str | None = None


@runtime_checkable
class Hosting(Protocol):
    """Operations the hosting service exposes to the reconcilers."""

    # Disks
    def create_disk(self, spec: DiskSpec) -> Disk: ...

    def create_disk_from_image(self, spec: DiskSpec, image: Image) -> Disk: ...

    def list_disks(self, disk_filter: DiskFilter) -> list[Disk]: ...

    def rename_disk(self, disk: Disk, name: str) -> Disk: ...

    def extend_disk(self, disk: Disk, delta: int) -> Disk: ...

    def delete_disk(self, disk: Disk) -> None: ...

    def disk_from_name(self, name: str) -> Disk | None: ...

    # IPs
    def create_ip(self, region: Region, version: IPVersion) -> IPAddress: ...

    def list_ips(self, ip_filter: IPFilter) -> list[IPAddress]: ...

    def delete_ip(self, ip: IPAddress) -> None: ...

    def create_private_ip(self, vlan: Vlan, ip: str) -> IPAddress: ...

    # VMs
    def create_vm_with_existing_disk_and_ip(
        self, spec: VMSpec, ip: IPAddress, boot_disk: Disk
    ) -> tuple[VM, IPAddress, Disk]: ...

    def attach_ip(self, vm: VM, ip: IPAddress) -> tuple[VM, IPAddress]: ...

    def detach_ip(self, vm: VM, ip: IPAddress) -> tuple[VM, IPAddress]: ...

    def attach_disk(self, vm: VM, disk: Disk) -> tuple[VM, Disk]: ...

    def attach_disk_at_position(
        self, vm: VM, disk: Disk, position: int
    ) -> tuple[VM, Disk]: ...

    def detach_disk(self, vm: VM, disk: Disk) -> tuple[VM, Disk]: ...

    def update_vm_memory(self, vm: VM, memory: int) -> VM: ...

    def update_vm_cores(self, vm: VM, cores: int) -> VM: ...

    def rename_vm(self, vm: VM, name: str) -> VM: ...

    def start_vm(self, vm: VM) -> None: ...

    def stop_vm(self, vm: VM) -> None: ...

    def delete_vm(self, vm: VM) -> None: ...

    def describe_vm(self, vm_filter: VMFilter) -> list[VM]: ...

    # VLANs
    def create_vlan(self, spec: VlanSpec) -> Vlan: ...

    def list_vlans(self, vlan_filter: VlanFilter) -> list[Vlan]: ...

    def rename_vlan(self, vlan: Vlan, name: str) -> Vlan: ...

    def update_vlan_gateway(self, vlan: Vlan, gateway: str) -> Vlan: ...

    def delete_vlan(self, vlan: Vlan) -> None: ...

    def vlan_from_name(self, name: str) -> Vlan | None: ...

    # SSH keys
    def create_key(self, name: str, value: str) -> SSHKey: ...

    def key_from_name(self, name: str) -> SSHKey | None: ...

    def delete_key(self, key: SSHKey) -> None: ...

    # Lookups
    def region_by_code(self, code: str) -> Region: ...

    def image_by_name(self, name: str, region: Region) -> Image: ...

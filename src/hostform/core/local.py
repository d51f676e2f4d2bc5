"""In-memory hosting backend.

:class:`LocalHosting` implements the :class:`~hostform.core.hosting.Hosting`
interface without any remote service. It enforces the rules a real
provider enforces (a disk or IP is attached to at most one VM, disks
only grow, attached resources cannot be deleted, a VM must be halted to
be deleted, names are unique per kind) so that plans applied against
it behave like plans applied against production.

When given a path, the whole inventory is loaded from and saved to a
YAML file after every change.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import ipaddress
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from hostform.core.exceptions import (
    ConfigurationError,
    RemoteOperationError,
    ResourceNotFoundError,
)
from hostform.core.hosting import DiskFilter, IPFilter, VlanFilter, VMFilter
from hostform.models.catalog import Image, Region, SSHKey
from hostform.models.disk import Disk
from hostform.models.network import IPAddress, IPVersion, Vlan
from hostform.models.spec import DiskSpec, VlanSpec, VMSpec
from hostform.models.vm import VM, VMState
from hostform.utils.logging import get_logger

logger = get_logger("local")

DEFAULT_DISK_SIZE = 10
DEFAULT_MEMORY = 256
DEFAULT_CORES = 1

# Documentation and benchmark ranges; never routable
IPV4_POOL = ipaddress.IPv4Address("198.18.0.0")
IPV6_POOL = ipaddress.IPv6Address("2001:db8::")

DEFAULT_REGIONS = [
    Region(id="1", code="FR-SD2", country="France", name="Paris"),
    Region(id="2", code="LU-BI1", country="Luxembourg", name="Bissen"),
    Region(id="3", code="FR-SD3", country="France", name="Paris"),
    Region(id="4", code="FR-SD5", country="France", name="Paris"),
    Region(id="5", code="FR-SD6", country="France", name="Paris"),
]

DEFAULT_IMAGES = [
    Image(
        id=f"{region.id}{n}",
        name=name,
        disk_id=f"image-{region.id}-{n}",
        size=3,
        region_id=region.id,
    )
    for region in DEFAULT_REGIONS
    for n, name in enumerate(["Debian 11", "Debian 12", "Ubuntu 22.04 LTS", "Ubuntu 24.04 LTS"])
]


def fingerprint(value: str) -> str:
    """OpenSSH SHA256 fingerprint of a public key line.

    Raises:
        ValueError: If the key data is not valid base64.
    """
    blob = value.split()[1]
    try:
        raw = base64.b64decode(blob, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid key data: {e}") from e
    digest = base64.b64encode(hashlib.sha256(raw).digest()).decode().rstrip("=")
    return f"SHA256:{digest}"


def _matches(model: BaseModel, **criteria: Any) -> bool:
    return all(value is None or getattr(model, key) == value for key, value in criteria.items())


class LocalHosting:
    """A hosting service kept in memory.

    Args:
        path: Optional YAML file to load the inventory from and save it to.
        regions: Region catalog; a small default catalog if omitted.
        images: Image catalog; a few images per region if omitted.

    Example:
        >>> hosting = LocalHosting()
        >>> region = hosting.region_by_code("FR-SD6")
        >>> ip = hosting.create_ip(region, IPVersion.V4)
    """

    def __init__(
        self,
        path: Path | str | None = None,
        regions: list[Region] | None = None,
        images: list[Image] | None = None,
    ) -> None:
        self.path = Path(path).expanduser() if path is not None else None
        self.regions = list(regions if regions is not None else DEFAULT_REGIONS)
        self.images = list(images if images is not None else DEFAULT_IMAGES)

        self._next_id = 1
        self._disks: dict[str, Disk] = {}
        self._ips: dict[str, IPAddress] = {}
        self._vms: dict[str, VM] = {}
        self._vm_disks: dict[str, list[str]] = {}
        self._vm_ips: dict[str, list[str]] = {}
        self._vlans: dict[str, Vlan] = {}
        self._keys: dict[str, SSHKey] = {}

        if self.path is not None and self.path.exists():
            self.load()

    # Persistence

    def load(self) -> None:
        """Load the inventory from :attr:`path`.

        Raises:
            ConfigurationError: If the file is not a valid inventory.
        """
        if self.path is None:
            return
        try:
            with self.path.open("r") as f:
                data = yaml.safe_load(f) or {}
            self._next_id = int(data.get("next_id", 1))
            self._disks = {d["id"]: Disk.model_validate(d) for d in data.get("disks", [])}
            self._ips = {i["id"]: IPAddress.model_validate(i) for i in data.get("ips", [])}
            self._vlans = {v["id"]: Vlan.model_validate(v) for v in data.get("vlans", [])}
            self._keys = {k["id"]: SSHKey.model_validate(k) for k in data.get("ssh_keys", [])}
            self._vms = {}
            for raw in data.get("vms", []):
                vm = VM.model_validate({k: v for k, v in raw.items() if k not in ("disks", "ips")})
                self._vms[vm.id] = vm
                self._vm_disks[vm.id] = list(raw.get("disks", []))
                self._vm_ips[vm.id] = list(raw.get("ips", []))
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in hosting file: {e}",
                details={"path": str(self.path)},
            ) from e
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Failed to load hosting file: {e}",
                details={"path": str(self.path)},
            ) from e

    def save(self) -> None:
        """Write the inventory to :attr:`path`, if one is set."""
        if self.path is None:
            return
        data = {
            "next_id": self._next_id,
            "ssh_keys": [k.to_dict() for k in self._keys.values()],
            "vlans": [v.model_dump(mode="json") for v in self._vlans.values()],
            "disks": [d.to_dict() for d in self._disks.values()],
            "ips": [i.model_dump(mode="json") for i in self._ips.values()],
            "vms": [
                {
                    **vm.model_dump(mode="json", exclude={"disks", "ips"}),
                    "disks": self._vm_disks.get(vm.id, []),
                    "ips": self._vm_ips.get(vm.id, []),
                }
                for vm in self._vms.values()
            ],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def _new_id(self) -> str:
        new_id = str(self._next_id)
        self._next_id += 1
        return new_id

    # Lookups

    def region_by_code(self, code: str) -> Region:
        for region in self.regions:
            if region.code == code:
                return region
        raise ResourceNotFoundError("region", code)

    def image_by_name(self, name: str, region: Region) -> Image:
        for image in self.images:
            if image.name == name and image.region_id == region.id:
                return image
        raise ResourceNotFoundError("image", name)

    def _check_region(self, operation: str, region_id: str) -> None:
        if not any(r.id == region_id for r in self.regions):
            raise RemoteOperationError(operation, f"unknown region '{region_id}'")

    # Disks

    def _disk(self, operation: str, disk_id: str) -> Disk:
        disk = self._disks.get(disk_id)
        if disk is None:
            raise RemoteOperationError(operation, "no such disk", disk_id)
        return disk

    def _check_disk_name(self, operation: str, name: str, own_id: str | None = None) -> None:
        if any(d.name == name and d.id != own_id for d in self._disks.values()):
            raise RemoteOperationError(operation, f"disk name '{name}' already in use")

    def create_disk(self, spec: DiskSpec) -> Disk:
        return self._create_disk("create_disk", spec, DEFAULT_DISK_SIZE)

    def create_disk_from_image(self, spec: DiskSpec, image: Image) -> Disk:
        source_size = None
        for known in self.images:
            if known.disk_id == image.disk_id:
                source_size = known.size
        if image.disk_id in self._disks:
            source_size = self._disks[image.disk_id].size
        if source_size is None:
            raise RemoteOperationError(
                "create_disk_from_image", "no such source disk", image.disk_id
            )
        if spec.size is not None and spec.size < source_size:
            raise RemoteOperationError(
                "create_disk_from_image",
                f"size {spec.size} GB is smaller than the source ({source_size} GB)",
            )
        return self._create_disk("create_disk_from_image", spec, source_size)

    def _create_disk(self, operation: str, spec: DiskSpec, default_size: int) -> Disk:
        self._check_region(operation, spec.region_id)
        disk_id = self._new_id()
        name = spec.name or f"disk{disk_id}"
        self._check_disk_name(operation, name)
        disk = Disk(
            id=disk_id,
            name=name,
            size=spec.size or default_size,
            region_id=spec.region_id,
        )
        self._disks[disk_id] = disk
        self.save()
        return disk

    def list_disks(self, disk_filter: DiskFilter) -> list[Disk]:
        disks = [
            d
            for d in self._disks.values()
            if _matches(
                d, id=disk_filter.id, name=disk_filter.name, region_id=disk_filter.region_id
            )
        ]
        if disk_filter.vm_id is not None:
            disks = [d for d in disks if disk_filter.vm_id in d.vm_ids]
        return disks

    def rename_disk(self, disk: Disk, name: str) -> Disk:
        current = self._disk("rename_disk", disk.id)
        self._check_disk_name("rename_disk", name, own_id=disk.id)
        return self._store_disk(current.model_copy(update={"name": name}))

    def extend_disk(self, disk: Disk, delta: int) -> Disk:
        current = self._disk("extend_disk", disk.id)
        if delta <= 0:
            raise RemoteOperationError("extend_disk", "disks can only grow", disk.id)
        return self._store_disk(current.model_copy(update={"size": current.size + delta}))

    def delete_disk(self, disk: Disk) -> None:
        current = self._disk("delete_disk", disk.id)
        if current.vm_ids:
            raise RemoteOperationError("delete_disk", "disk is attached to a VM", disk.id)
        del self._disks[disk.id]
        self.save()

    def disk_from_name(self, name: str) -> Disk | None:
        for disk in self._disks.values():
            if disk.name == name:
                return disk
        return None

    def _store_disk(self, disk: Disk) -> Disk:
        self._disks[disk.id] = disk
        self.save()
        return disk

    # IPs

    def _ip(self, operation: str, ip_id: str) -> IPAddress:
        ip = self._ips.get(ip_id)
        if ip is None:
            raise RemoteOperationError(operation, "no such IP", ip_id)
        return ip

    def create_ip(self, region: Region, version: IPVersion) -> IPAddress:
        self._check_region("create_ip", region.id)
        ip_id = self._new_id()
        pool = IPV4_POOL if version is IPVersion.V4 else IPV6_POOL
        ip = IPAddress(
            id=ip_id,
            ip=str(pool + int(ip_id)),
            version=version,
            region_id=region.id,
        )
        self._ips[ip_id] = ip
        self.save()
        return ip

    def list_ips(self, ip_filter: IPFilter) -> list[IPAddress]:
        return [
            ip
            for ip in self._ips.values()
            if _matches(
                ip,
                id=ip_filter.id,
                ip=ip_filter.ip,
                region_id=ip_filter.region_id,
                vm_id=ip_filter.vm_id,
                version=ip_filter.version,
            )
        ]

    def delete_ip(self, ip: IPAddress) -> None:
        current = self._ip("delete_ip", ip.id)
        if current.vm_id:
            raise RemoteOperationError("delete_ip", "IP is attached to a VM", ip.id)
        del self._ips[ip.id]
        self.save()

    def create_private_ip(self, vlan: Vlan, ip: str) -> IPAddress:
        current = self._vlan("create_private_ip", vlan.id)
        try:
            address = ipaddress.ip_address(ip)
        except ValueError as e:
            raise RemoteOperationError("create_private_ip", str(e)) from e
        if current.subnet and address not in ipaddress.ip_network(current.subnet, strict=False):
            raise RemoteOperationError(
                "create_private_ip", f"{ip} is outside subnet {current.subnet}", vlan.id
            )
        if any(i.vlan_id == vlan.id and i.ip == ip for i in self._ips.values()):
            raise RemoteOperationError("create_private_ip", f"{ip} already in use", vlan.id)
        ip_id = self._new_id()
        private = IPAddress(
            id=ip_id,
            ip=ip,
            version=IPVersion(address.version),
            region_id=current.region_id,
            vlan_id=vlan.id,
        )
        self._ips[ip_id] = private
        self.save()
        return private

    # VMs

    def _vm(self, operation: str, vm_id: str) -> VM:
        if vm_id not in self._vms:
            raise RemoteOperationError(operation, "no such VM", vm_id)
        return self._render(vm_id)

    def _render(self, vm_id: str) -> VM:
        vm = self._vms[vm_id]
        disks = [
            self._disks[d].model_copy(update={"boot_disk": i == 0})
            for i, d in enumerate(self._vm_disks.get(vm_id, []))
        ]
        ips = [self._ips[i] for i in self._vm_ips.get(vm_id, [])]
        return vm.model_copy(update={"disks": disks, "ips": ips})

    def _check_hostname(self, operation: str, hostname: str, own_id: str | None = None) -> None:
        if any(v.hostname == hostname and v.id != own_id for v in self._vms.values()):
            raise RemoteOperationError(operation, f"hostname '{hostname}' already in use")

    def create_vm_with_existing_disk_and_ip(
        self, spec: VMSpec, ip: IPAddress, boot_disk: Disk
    ) -> tuple[VM, IPAddress, Disk]:
        operation = "create_vm"
        self._check_region(operation, spec.region_id)
        disk = self._disk(operation, boot_disk.id)
        address = self._ip(operation, ip.id)
        if disk.vm_ids:
            raise RemoteOperationError(operation, "boot disk is attached to another VM", disk.id)
        if address.vm_id:
            raise RemoteOperationError(operation, "IP is attached to another VM", address.id)
        for key_id in spec.ssh_key_ids:
            if key_id not in self._keys:
                raise RemoteOperationError(operation, f"unknown SSH key '{key_id}'")

        vm_id = self._new_id()
        hostname = spec.hostname or f"vm{vm_id}"
        self._check_hostname(operation, hostname)
        self._vms[vm_id] = VM(
            id=vm_id,
            hostname=hostname,
            region_id=spec.region_id,
            farm=spec.farm,
            memory=spec.memory or DEFAULT_MEMORY,
            cores=spec.cores or DEFAULT_CORES,
            state=VMState.RUNNING,
            ssh_key_ids=list(spec.ssh_key_ids),
        )
        self._vm_disks[vm_id] = [disk.id]
        self._vm_ips[vm_id] = [address.id]
        self._disks[disk.id] = disk.model_copy(update={"vm_ids": [vm_id]})
        self._ips[address.id] = address.model_copy(update={"vm_id": vm_id})
        self.save()
        return self._render(vm_id), self._ips[address.id], self._disks[disk.id]

    def attach_ip(self, vm: VM, ip: IPAddress) -> tuple[VM, IPAddress]:
        self._vm("attach_ip", vm.id)
        address = self._ip("attach_ip", ip.id)
        if address.vm_id:
            raise RemoteOperationError("attach_ip", f"IP is attached to VM {address.vm_id}", ip.id)
        if address.region_id != self._vms[vm.id].region_id:
            raise RemoteOperationError("attach_ip", "IP and VM are in different regions", ip.id)
        self._vm_ips[vm.id].append(ip.id)
        self._ips[ip.id] = address.model_copy(update={"vm_id": vm.id})
        self.save()
        return self._render(vm.id), self._ips[ip.id]

    def detach_ip(self, vm: VM, ip: IPAddress) -> tuple[VM, IPAddress]:
        self._vm("detach_ip", vm.id)
        address = self._ip("detach_ip", ip.id)
        if address.vm_id != vm.id:
            raise RemoteOperationError("detach_ip", f"IP is not attached to VM {vm.id}", ip.id)
        self._vm_ips[vm.id].remove(ip.id)
        self._ips[ip.id] = address.model_copy(update={"vm_id": None})
        self.save()
        return self._render(vm.id), self._ips[ip.id]

    def attach_disk(self, vm: VM, disk: Disk) -> tuple[VM, Disk]:
        position = len(self._vm_disks.get(vm.id, []))
        return self._attach_disk("attach_disk", vm, disk, position)

    def attach_disk_at_position(self, vm: VM, disk: Disk, position: int) -> tuple[VM, Disk]:
        return self._attach_disk("attach_disk_at_position", vm, disk, position)

    def _attach_disk(self, operation: str, vm: VM, disk: Disk, position: int) -> tuple[VM, Disk]:
        self._vm(operation, vm.id)
        current = self._disk(operation, disk.id)
        attached = self._vm_disks[vm.id]
        if current.vm_ids and current.vm_ids != [vm.id]:
            raise RemoteOperationError(
                operation, f"disk is attached to VM {current.vm_ids[0]}", disk.id
            )
        if current.region_id != self._vms[vm.id].region_id:
            raise RemoteOperationError(operation, "disk and VM are in different regions", disk.id)
        if disk.id in attached:
            # already on this VM: only its position changes
            attached.remove(disk.id)
        attached.insert(position, disk.id)
        self._disks[disk.id] = current.model_copy(update={"vm_ids": [vm.id]})
        self.save()
        return self._render(vm.id), self._disks[disk.id]

    def detach_disk(self, vm: VM, disk: Disk) -> tuple[VM, Disk]:
        current_vm = self._vm("detach_disk", vm.id)
        current = self._disk("detach_disk", disk.id)
        attached = self._vm_disks[vm.id]
        if disk.id not in attached:
            raise RemoteOperationError(
                "detach_disk", f"disk is not attached to VM {vm.id}", disk.id
            )
        if attached[0] == disk.id and current_vm.state is not VMState.HALTED:
            raise RemoteOperationError(
                "detach_disk", "VM must be halted to detach its boot disk", disk.id
            )
        attached.remove(disk.id)
        self._disks[disk.id] = current.model_copy(update={"vm_ids": []})
        self.save()
        return self._render(vm.id), self._disks[disk.id]

    def update_vm_memory(self, vm: VM, memory: int) -> VM:
        self._vm("update_vm_memory", vm.id)
        if memory <= 0:
            raise RemoteOperationError("update_vm_memory", f"invalid memory {memory}", vm.id)
        return self._update_vm(vm.id, memory=memory)

    def update_vm_cores(self, vm: VM, cores: int) -> VM:
        self._vm("update_vm_cores", vm.id)
        if cores <= 0:
            raise RemoteOperationError("update_vm_cores", f"invalid cores {cores}", vm.id)
        return self._update_vm(vm.id, cores=cores)

    def rename_vm(self, vm: VM, name: str) -> VM:
        self._vm("rename_vm", vm.id)
        self._check_hostname("rename_vm", name, own_id=vm.id)
        return self._update_vm(vm.id, hostname=name)

    def start_vm(self, vm: VM) -> None:
        self._vm("start_vm", vm.id)
        if not self._vm_disks[vm.id]:
            raise RemoteOperationError("start_vm", "VM has no boot disk", vm.id)
        self._update_vm(vm.id, state=VMState.RUNNING)

    def stop_vm(self, vm: VM) -> None:
        self._vm("stop_vm", vm.id)
        self._update_vm(vm.id, state=VMState.HALTED)

    def delete_vm(self, vm: VM) -> None:
        """Delete a halted VM together with everything still attached to it."""
        current = self._vm("delete_vm", vm.id)
        if current.state is not VMState.HALTED:
            raise RemoteOperationError("delete_vm", "VM must be halted", vm.id)
        for disk_id in self._vm_disks.pop(vm.id, []):
            logger.debug(f"Deleting disk {disk_id} along with VM {vm.id}")
            del self._disks[disk_id]
        for ip_id in self._vm_ips.pop(vm.id, []):
            logger.debug(f"Deleting IP {ip_id} along with VM {vm.id}")
            del self._ips[ip_id]
        del self._vms[vm.id]
        self.save()

    def describe_vm(self, vm_filter: VMFilter) -> list[VM]:
        return [
            self._render(vm.id)
            for vm in self._vms.values()
            if _matches(
                vm, id=vm_filter.id, hostname=vm_filter.hostname, region_id=vm_filter.region_id
            )
        ]

    def _update_vm(self, vm_id: str, **changes: Any) -> VM:
        self._vms[vm_id] = self._vms[vm_id].model_copy(update=changes)
        self.save()
        return self._render(vm_id)

    # VLANs

    def _vlan(self, operation: str, vlan_id: str) -> Vlan:
        vlan = self._vlans.get(vlan_id)
        if vlan is None:
            raise RemoteOperationError(operation, "no such VLAN", vlan_id)
        return vlan

    def _check_vlan_name(self, operation: str, name: str, own_id: str | None = None) -> None:
        if any(v.name == name and v.id != own_id for v in self._vlans.values()):
            raise RemoteOperationError(operation, f"VLAN name '{name}' already in use")

    def create_vlan(self, spec: VlanSpec) -> Vlan:
        self._check_region("create_vlan", spec.region_id)
        self._check_vlan_name("create_vlan", spec.name)
        vlan = Vlan(id=self._new_id(), name=spec.name, region_id=spec.region_id, subnet=spec.subnet)
        self._vlans[vlan.id] = vlan
        self.save()
        return vlan

    def list_vlans(self, vlan_filter: VlanFilter) -> list[Vlan]:
        return [
            v
            for v in self._vlans.values()
            if (not vlan_filter.ids or v.id in vlan_filter.ids)
            and _matches(v, name=vlan_filter.name, region_id=vlan_filter.region_id)
        ]

    def rename_vlan(self, vlan: Vlan, name: str) -> Vlan:
        current = self._vlan("rename_vlan", vlan.id)
        self._check_vlan_name("rename_vlan", name, own_id=vlan.id)
        return self._store_vlan(current.model_copy(update={"name": name}))

    def update_vlan_gateway(self, vlan: Vlan, gateway: str) -> Vlan:
        current = self._vlan("update_vlan_gateway", vlan.id)
        if current.subnet:
            try:
                inside = ipaddress.ip_address(gateway) in ipaddress.ip_network(
                    current.subnet, strict=False
                )
            except ValueError as e:
                raise RemoteOperationError("update_vlan_gateway", str(e), vlan.id) from e
            if not inside:
                raise RemoteOperationError(
                    "update_vlan_gateway", f"{gateway} is outside subnet {current.subnet}", vlan.id
                )
        return self._store_vlan(current.model_copy(update={"gateway": gateway}))

    def delete_vlan(self, vlan: Vlan) -> None:
        self._vlan("delete_vlan", vlan.id)
        if any(i.vlan_id == vlan.id for i in self._ips.values()):
            raise RemoteOperationError("delete_vlan", "VLAN still has private IPs", vlan.id)
        del self._vlans[vlan.id]
        self.save()

    def vlan_from_name(self, name: str) -> Vlan | None:
        for vlan in self._vlans.values():
            if vlan.name == name:
                return vlan
        return None

    def _store_vlan(self, vlan: Vlan) -> Vlan:
        self._vlans[vlan.id] = vlan
        self.save()
        return vlan

    # SSH keys

    def create_key(self, name: str, value: str) -> SSHKey:
        if self.key_from_name(name) is not None:
            raise RemoteOperationError("create_key", f"key name '{name}' already in use")
        try:
            key_fingerprint = fingerprint(value)
        except (ValueError, IndexError) as e:
            raise RemoteOperationError("create_key", str(e)) from e
        key = SSHKey(id=self._new_id(), name=name, value=value, fingerprint=key_fingerprint)
        self._keys[key.id] = key
        self.save()
        return key

    def key_from_name(self, name: str) -> SSHKey | None:
        for key in self._keys.values():
            if key.name == name:
                return key
        return None

    def delete_key(self, key: SSHKey) -> None:
        if key.id not in self._keys:
            raise RemoteOperationError("delete_key", "no such key", key.id)
        del self._keys[key.id]
        self.save()

"""Existence checks.

Answers "does the resource with this ID still exist remotely?" with a
filtered list query. An empty result means absent; a failing query is
not treated as absence and propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Callable

from hostform.core.hosting import DiskFilter, Hosting, IPFilter, VlanFilter, VMFilter
from hostform.models.state import ResourceKind


def vm_exists(hosting: Hosting, vm_id: str) -> bool:
    return bool(hosting.describe_vm(VMFilter(id=vm_id)))


def disk_exists(hosting: Hosting, disk_id: str) -> bool:
    return bool(hosting.list_disks(DiskFilter(id=disk_id)))


def ip_exists(hosting: Hosting, ip_id: str) -> bool:
    return bool(hosting.list_ips(IPFilter(id=ip_id)))


def vlan_exists(hosting: Hosting, vlan_id: str) -> bool:
    return bool(hosting.list_vlans(VlanFilter(ids=(vlan_id,))))


def ssh_key_exists(hosting: Hosting, key_id: str, name: str | None = None) -> bool:
    """SSH keys can only be listed by name; the ID must also match."""
    if not name:
        return False
    key = hosting.key_from_name(name)
    return key is not None and key.id == key_id


_CHECKS: dict[ResourceKind, Callable[[Hosting, str], bool]] = {
    ResourceKind.VM: vm_exists,
    ResourceKind.DISK: disk_exists,
    ResourceKind.IP: ip_exists,
    ResourceKind.PRIVATE_IP: ip_exists,
    ResourceKind.VLAN: vlan_exists,
}


def exists(
    hosting: Hosting,
    kind: ResourceKind,
    resource_id: str | None,
    name: str | None = None,
) -> bool:
    """Check whether a managed resource still exists.

    Args:
        hosting: Hosting service to query.
        kind: Kind of the resource.
        resource_id: Provider ID; None or empty is always absent.
        name: Resource name, only used for SSH keys.

    Returns:
        True if the filtered query returned at least one result.

    Raises:
        RemoteOperationError: If the list query itself fails.
    """
    if not resource_id:
        return False
    if kind is ResourceKind.SSH_KEY:
        return ssh_key_exists(hosting, resource_id, name)
    return _CHECKS[kind](hosting, resource_id)

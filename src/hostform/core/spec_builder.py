"""Resource spec builder.

Turns validated desired configurations into the immutable creation
specs handed to the hosting service, and resolves the ID references a
create needs before it can be issued.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ValidationError

from hostform.core.exceptions import ResourceNotFoundError, ValidationRejectedError
from hostform.core.hosting import DiskFilter, Hosting, IPFilter, VlanFilter
from hostform.models.desired import CONFIG_MODELS, DiskConfig, VlanConfig, VMConfig
from hostform.models.disk import Disk
from hostform.models.network import IPAddress, Vlan
from hostform.models.spec import DiskSpec, VlanSpec, VMSpec
from hostform.models.state import ResourceKind


def format_validation_error(error: ValidationError) -> str:
    """Flatten a pydantic error into a single readable line."""
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"])
        message = item["msg"].removeprefix("Value error, ")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts)


def parse_config(kind: ResourceKind, data: dict[str, Any] | BaseModel) -> BaseModel:
    """Validate raw desired configuration for ``kind``.

    Args:
        kind: Kind of the resource.
        data: Mapping (e.g. parsed from YAML) or an already typed config.

    Returns:
        The typed config model for ``kind``.

    Raises:
        ValidationRejectedError: If any constraint is violated.
    """
    model = CONFIG_MODELS[kind]
    if isinstance(data, model):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ValidationRejectedError(
            f"Invalid {kind.value} configuration: {format_validation_error(e)}",
            details={"kind": kind.value},
        ) from e


def build_vm_spec(config: VMConfig) -> VMSpec:
    """Build the creation spec of a VM.

    Raises:
        ValidationRejectedError: If no authentication method is set.
    """
    try:
        return VMSpec(
            region_id=config.region_id,
            hostname=config.name,
            farm=config.farm,
            memory=config.memory,
            cores=config.cores,
            ssh_key_ids=tuple(config.ssh_keys),
            login=config.userpass.login if config.userpass else None,
            password=config.userpass.password if config.userpass else None,
        )
    except ValidationError as e:
        raise ValidationRejectedError(format_validation_error(e)) from e


def build_disk_spec(config: DiskConfig) -> DiskSpec:
    return DiskSpec(region_id=config.region_id, name=config.name, size=config.size)


def build_vlan_spec(config: VlanConfig) -> VlanSpec:
    return VlanSpec(region_id=config.region_id, name=config.name, subnet=config.subnet)


def resolve_disk(hosting: Hosting, disk_id: str) -> Disk:
    """Look up a disk by ID.

    Raises:
        ResourceNotFoundError: If no disk has this ID.
    """
    disks = hosting.list_disks(DiskFilter(id=disk_id))
    if not disks:
        raise ResourceNotFoundError("disk", disk_id)
    return disks[0]


def resolve_ip(hosting: Hosting, ip_id: str) -> IPAddress:
    """Look up an IP address by ID.

    Raises:
        ResourceNotFoundError: If no IP has this ID.
    """
    ips = hosting.list_ips(IPFilter(id=ip_id))
    if not ips:
        raise ResourceNotFoundError("ip", ip_id)
    return ips[0]


def resolve_vlan(hosting: Hosting, vlan_id: str) -> Vlan:
    """Look up a VLAN by ID.

    Raises:
        ResourceNotFoundError: If no VLAN has this ID.
    """
    vlans = hosting.list_vlans(VlanFilter(ids=(vlan_id,)))
    if not vlans:
        raise ResourceNotFoundError("vlan", vlan_id)
    return vlans[0]

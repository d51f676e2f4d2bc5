"""Desired configuration models.

One typed model per resource kind. Values are validated here, once, at
the configuration boundary; the reconcilers only ever see instances of
these models and never inspect untyped mappings.

Fields holding the ID of another resource accept either a literal
provider ID or a ``${kind.name}`` reference to a resource declared in
the same manifest.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

from hostform.models.network import IPVersion
from hostform.models.state import ResourceKind
from hostform.models.vm import VMState

# Memory must be allocated in multiples of this many MB
MEMORY_GRANULARITY = 64

DISK_NAME_PATTERN = re.compile(r"^[-_0-9a-z]{1,15}$")
SSH_KEY_PATTERN = re.compile(
    r"^(?:ssh-(?:rsa|dss|ed25519)|ecdsa-\S+) [A-Za-z0-9/+=]+(?: (\S+))?$"
)
RESOURCE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _check_unique(values: list[str], field: str) -> list[str]:
    seen: set[str] = set()
    for value in values:
        if value in seen:
            raise ValueError(f"duplicate entry '{value}' in {field}")
        seen.add(value)
    return values


class UserPass(BaseModel):
    """Login/password authentication for a VM."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    login: str = Field(min_length=1)
    password: str = Field(min_length=1, repr=False)


class VMConfig(BaseModel):
    """Desired configuration of a VM.

    Args:
        region_id: Region to create the VM in. Changing it replaces the VM.
        name: Hostname.
        farm: Optional farm label, fixed at creation.
        memory: Memory in MB, a positive multiple of 64.
        cores: Number of CPU cores.
        ssh_keys: IDs of SSH keys to install. Fixed at creation.
        userpass: Login/password pair. Fixed at creation.
        boot_disk: ID of the disk to boot from (position 0).
        disks: IDs of additional disks, in attachment order.
        ips: IDs of IP addresses; the first is bound at creation.
        state: One of running, halted or deleted.

    Example:
        >>> VMConfig(
        ...     region_id="1",
        ...     memory=1024,
        ...     ssh_keys=["7"],
        ...     boot_disk="${disk.system}",
        ...     ips=["${ip.public}"],
        ... )
    """

    model_config = ConfigDict(extra="forbid")

    region_id: str = Field(min_length=1)
    name: str | None = None
    farm: str | None = None
    memory: int | None = None
    cores: int | None = Field(default=None, ge=1)
    ssh_keys: list[str] = Field(default_factory=list)
    userpass: UserPass | None = None
    boot_disk: str = Field(min_length=1)
    disks: list[str] = Field(default_factory=list)
    ips: list[str] = Field(min_length=1)
    state: VMState | None = None

    @field_validator("memory")
    @classmethod
    def validate_memory(cls, v: int | None) -> int | None:
        """Memory must be a positive multiple of the allocation granularity."""
        if v is not None and (v <= 0 or v % MEMORY_GRANULARITY != 0):
            raise ValueError(
                f"memory must be a positive multiple of {MEMORY_GRANULARITY}, got: {v}"
            )
        return v

    @field_validator("state")
    @classmethod
    def validate_state(cls, v: VMState | None) -> VMState | None:
        """Only running, halted and deleted can be requested."""
        if v is not None and v not in VMState.desired_values():
            raise ValueError(f"Invalid option for state '{v.value}'")
        return v

    @field_validator("disks", "ips", "ssh_keys")
    @classmethod
    def validate_unique(cls, v: list[str], info: ValidationInfo) -> list[str]:
        return _check_unique(v, info.field_name or "list")

    @model_validator(mode="after")
    def check_consistency(self) -> VMConfig:
        """Require authentication and keep the boot disk out of ``disks``."""
        if not self.ssh_keys and self.userpass is None:
            raise ValueError("SSH keys or login/password required but not provided")
        if self.boot_disk in self.disks:
            raise ValueError(f"boot disk '{self.boot_disk}' must not be listed in disks")
        return self


class DiskConfig(BaseModel):
    """Desired configuration of a disk.

    At most one source may be set: ``src_disk_id`` (clone an existing
    disk) or ``image`` (name of a system image in the region). Without a
    source a blank disk is created.
    """

    model_config = ConfigDict(extra="forbid")

    region_id: str = Field(min_length=1)
    name: str | None = None
    size: int | None = Field(default=None, ge=1)
    src_disk_id: str | None = None
    image: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        if v is not None and not DISK_NAME_PATTERN.match(v):
            raise ValueError(f"Invalid name: '{v}', does not match {DISK_NAME_PATTERN.pattern}")
        return v

    @model_validator(mode="after")
    def check_source(self) -> DiskConfig:
        if self.src_disk_id and self.image:
            raise ValueError("src_disk_id conflicts with image, set at most one")
        return self


class IPConfig(BaseModel):
    """Desired configuration of a public IP address."""

    model_config = ConfigDict(extra="forbid")

    region_id: str = Field(min_length=1)
    version: IPVersion

    @field_validator("version", mode="before")
    @classmethod
    def validate_version(cls, v: Any) -> Any:
        if v not in (4, 6):
            raise ValueError(f"version must be either 4 or 6, got: {v}")
        return v


class PrivateIPConfig(BaseModel):
    """Desired configuration of a private address on a VLAN."""

    model_config = ConfigDict(extra="forbid")

    region_id: str = Field(min_length=1)
    vlan_id: str = Field(min_length=1)
    ip: str = Field(min_length=1)

    @field_validator("ip")
    @classmethod
    def validate_ip(cls, v: str) -> str:
        ipaddress.ip_address(v)
        return v


class VlanConfig(BaseModel):
    """Desired configuration of a VLAN."""

    model_config = ConfigDict(extra="forbid")

    region_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    subnet: str | None = None
    gateway: str | None = None

    @field_validator("subnet")
    @classmethod
    def validate_subnet(cls, v: str | None) -> str | None:
        if v is not None:
            ipaddress.ip_network(v, strict=False)
        return v

    @field_validator("gateway")
    @classmethod
    def validate_gateway(cls, v: str | None) -> str | None:
        if v is not None:
            ipaddress.ip_address(v)
        return v


class SSHKeyConfig(BaseModel):
    """Desired configuration of an SSH key."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    value: str = Field(min_length=1)

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        v = v.strip()
        if not SSH_KEY_PATTERN.match(v):
            raise ValueError(f"Invalid value: '{v}', does not match {SSH_KEY_PATTERN.pattern}")
        return v


CONFIG_MODELS: dict[ResourceKind, type[BaseModel]] = {
    ResourceKind.SSH_KEY: SSHKeyConfig,
    ResourceKind.VLAN: VlanConfig,
    ResourceKind.DISK: DiskConfig,
    ResourceKind.IP: IPConfig,
    ResourceKind.PRIVATE_IP: PrivateIPConfig,
    ResourceKind.VM: VMConfig,
}

# Manifest section holding each kind
MANIFEST_SECTIONS: dict[ResourceKind, str] = {
    ResourceKind.SSH_KEY: "ssh_keys",
    ResourceKind.VLAN: "vlans",
    ResourceKind.DISK: "disks",
    ResourceKind.IP: "ips",
    ResourceKind.PRIVATE_IP: "private_ips",
    ResourceKind.VM: "vms",
}


class Manifest(BaseModel):
    """The full desired configuration: named resources grouped by kind.

    Example manifest.yaml:
        ```yaml
        ssh_keys:
          admin:
            name: admin
            value: ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAA admin@example
        disks:
          system:
            region_id: "1"
            image: Debian 12
            name: system
            size: 10
        ips:
          public:
            region_id: "1"
            version: 4
        vms:
          web:
            region_id: "1"
            memory: 1024
            ssh_keys: ["${ssh_key.admin}"]
            boot_disk: ${disk.system}
            ips: ["${ip.public}"]
        ```
    """

    model_config = ConfigDict(extra="forbid")

    ssh_keys: dict[str, SSHKeyConfig] = Field(default_factory=dict)
    vlans: dict[str, VlanConfig] = Field(default_factory=dict)
    disks: dict[str, DiskConfig] = Field(default_factory=dict)
    ips: dict[str, IPConfig] = Field(default_factory=dict)
    private_ips: dict[str, PrivateIPConfig] = Field(default_factory=dict)
    vms: dict[str, VMConfig] = Field(default_factory=dict)

    @model_validator(mode="after")
    def check_names(self) -> Manifest:
        for kind in ResourceKind:
            for name in self.section(kind):
                if not RESOURCE_NAME_PATTERN.match(name):
                    raise ValueError(f"Invalid resource name '{name}' in {MANIFEST_SECTIONS[kind]}")
        return self

    def section(self, kind: ResourceKind) -> dict[str, Any]:
        """Return the name-to-config mapping for ``kind``."""
        section: dict[str, Any] = getattr(self, MANIFEST_SECTIONS[kind])
        return section

    def resources(self) -> list[tuple[ResourceKind, str, BaseModel]]:
        """All declared resources, referenced kinds first."""
        return [
            (kind, name, config)
            for kind in ResourceKind.creation_order()
            for name, config in self.section(kind).items()
        ]

    def addresses(self) -> list[str]:
        """Addresses (``kind.name``) of every declared resource."""
        return [f"{kind.value}.{name}" for kind, name, _ in self.resources()]

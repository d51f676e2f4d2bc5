"""Creation specs handed to the hosting service.

A spec holds the immutable parameters of a single create call. It is
built fresh from a desired configuration for every create and never
stored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class VMSpec(BaseModel):
    """Parameters for creating a VM.

    At least one authentication method is required: SSH key IDs or a
    login/password pair.
    """

    model_config = ConfigDict(frozen=True)

    region_id: str = Field(min_length=1)
    hostname: str | None = None
    farm: str | None = None
    memory: int | None = None
    cores: int | None = None
    ssh_key_ids: tuple[str, ...] = ()
    login: str | None = None
    password: str | None = Field(default=None, repr=False)

    @model_validator(mode="after")
    def check_auth(self) -> VMSpec:
        """Reject specs without any way to log in."""
        if not self.ssh_key_ids and not self.login:
            raise ValueError("SSH keys or login/password required but not provided")
        return self


class DiskSpec(BaseModel):
    """Parameters for creating a disk."""

    model_config = ConfigDict(frozen=True)

    region_id: str = Field(min_length=1)
    name: str | None = None
    size: int | None = None


class VlanSpec(BaseModel):
    """Parameters for creating a VLAN."""

    model_config = ConfigDict(frozen=True)

    region_id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    subnet: str | None = None

"""Catalog models: SSH keys, regions and images.

Regions and images are read-only lookups; SSH keys are managed but
carry no attachable relationship.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class SSHKey(BaseModel):
    """An SSH public key registered with the hosting account."""

    id: str = Field(description="Key ID")
    name: str = Field(description="Key name")
    value: str = Field(default="", description="Public key line")
    fingerprint: str = Field(default="", description="Key fingerprint")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Region(BaseModel):
    """A datacenter region."""

    id: str = Field(description="Region ID")
    code: str = Field(description="Region code, e.g. FR-SD6")
    country: str = Field(default="", description="Country")
    name: str = Field(default="", description="Display name")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class Image(BaseModel):
    """A system image disks can be created from.

    Args:
        id: Image ID (empty when the source is a plain disk).
        name: Image name, e.g. 'Debian 12'.
        disk_id: ID of the source disk backing the image.
        size: Size of the source disk in GB.
        region_id: Region the image is available in.
    """

    id: str = Field(default="", description="Image ID")
    name: str = Field(default="", description="Image name")
    disk_id: str = Field(description="Source disk ID")
    size: int = Field(default=0, ge=0, description="Size in GB")
    region_id: str = Field(default="", description="Region ID")

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")

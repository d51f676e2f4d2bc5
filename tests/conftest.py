"""Pytest configuration and fixtures for hostform tests.

This module provides shared fixtures for testing hostform components
including an in-memory hosting service, a mocked hosting service,
sample configurations and temporary state files.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
import yaml

from hostform.core.config import ConfigManager, ReconcileConfig, UpdateStrategy
from hostform.core.hosting import Hosting
from hostform.core.local import LocalHosting
from hostform.core.state import StateStore
from hostform.models.catalog import Region
from hostform.models.desired import DiskConfig, IPConfig, VMConfig
from hostform.models.disk import Disk
from hostform.models.network import IPAddress, IPVersion
from hostform.models.spec import DiskSpec
from hostform.models.vm import VM, VMState

if TYPE_CHECKING:
    from collections.abc import Callable, Generator

REGION_ID = "1"
SSH_KEY_VALUE = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5 admin@example"
OTHER_SSH_KEY_VALUE = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAA other@example"


@pytest.fixture
def region() -> Region:
    """The region most tests create resources in."""
    return Region(id=REGION_ID, code="FR-SD2")


@pytest.fixture
def hosting() -> LocalHosting:
    """Create an in-memory hosting service."""
    return LocalHosting()


@pytest.fixture
def mock_hosting() -> MagicMock:
    """Create a mocked hosting service."""
    return MagicMock(spec=Hosting)


@pytest.fixture
def settings() -> ReconcileConfig:
    """Default reconciler settings (continue on failure)."""
    return ReconcileConfig()


@pytest.fixture
def abort_settings() -> ReconcileConfig:
    """Reconciler settings that stop at the first failed group."""
    return ReconcileConfig(update_strategy=UpdateStrategy.ABORT)


@pytest.fixture
def make_disk(hosting: LocalHosting) -> Callable[..., Disk]:
    """Factory creating blank disks in the default region."""

    def _make(name: str | None = None, size: int | None = None) -> Disk:
        return hosting.create_disk(DiskSpec(region_id=REGION_ID, name=name, size=size))

    return _make


@pytest.fixture
def make_ip(hosting: LocalHosting, region: Region) -> Callable[[], IPAddress]:
    """Factory creating IPv4 addresses in the default region."""

    def _make() -> IPAddress:
        return hosting.create_ip(region, IPVersion.V4)

    return _make


@pytest.fixture
def ssh_key_id(hosting: LocalHosting) -> str:
    """ID of an SSH key registered with the hosting service."""
    return hosting.create_key("admin", SSH_KEY_VALUE).id


@pytest.fixture
def vm_config(
    make_disk: Callable[..., Disk], make_ip: Callable[[], IPAddress], ssh_key_id: str
) -> VMConfig:
    """A VM config whose boot disk and IP exist."""
    boot = make_disk("system")
    ip = make_ip()
    return VMConfig(
        region_id=REGION_ID,
        name="web-1",
        memory=1024,
        cores=2,
        ssh_keys=[ssh_key_id],
        boot_disk=boot.id,
        ips=[ip.id],
    )


@pytest.fixture
def sample_vm() -> VM:
    """Create a sample VM read-back for mocked tests."""
    return VM(
        id="42",
        hostname="web-1",
        region_id=REGION_ID,
        memory=1024,
        cores=2,
        state=VMState.RUNNING,
        disks=[Disk(id="10", name="system", size=10, boot_disk=True)],
        ips=[IPAddress(id="20", ip="198.18.0.20", region_id=REGION_ID, vm_id="42")],
        ssh_key_ids=["7"],
    )


@pytest.fixture
def disk_config() -> DiskConfig:
    return DiskConfig(region_id=REGION_ID, name="data", size=20)


@pytest.fixture
def ip_config() -> IPConfig:
    return IPConfig(region_id=REGION_ID, version=IPVersion.V4)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for config, state and hosting files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store(temp_dir: Path) -> StateStore:
    """Create an empty state store in a temporary directory."""
    return StateStore(temp_dir / "state.yaml")


@pytest.fixture
def sample_config_data(temp_dir: Path) -> dict:
    """Create sample configuration data pointing into ``temp_dir``."""
    return {
        "hosting": {"backend": "local", "path": str(temp_dir / "hosting.yaml")},
        "state": {"path": str(temp_dir / "state.yaml")},
        "reconcile": {
            "update_strategy": "continue",
            "shrink_policy": "reject",
            "ip_replacement": "create_first",
        },
        "logging": {"level": "WARNING"},
    }


@pytest.fixture
def temp_config_file(temp_dir: Path, sample_config_data: dict) -> Path:
    """Create a temporary config file with sample data."""
    config_path = temp_dir / "config.yaml"
    with config_path.open("w") as f:
        yaml.safe_dump(sample_config_data, f)
    return config_path


@pytest.fixture
def config_manager(temp_config_file: Path) -> ConfigManager:
    """Create a ConfigManager with a temporary config file."""
    return ConfigManager(temp_config_file)


@pytest.fixture
def manifest_data() -> dict:
    """A manifest declaring one of everything a VM needs."""
    return {
        "ssh_keys": {"admin": {"name": "admin", "value": SSH_KEY_VALUE}},
        "disks": {
            "system": {"region_id": REGION_ID, "image": "Debian 12", "name": "system", "size": 10},
            "data": {"region_id": REGION_ID, "name": "data", "size": 20},
        },
        "ips": {"public": {"region_id": REGION_ID, "version": 4}},
        "vms": {
            "web": {
                "region_id": REGION_ID,
                "name": "web-1",
                "memory": 1024,
                "ssh_keys": ["${ssh_key.admin}"],
                "boot_disk": "${disk.system}",
                "disks": ["${disk.data}"],
                "ips": ["${ip.public}"],
            }
        },
    }


@pytest.fixture
def manifest_file(temp_dir: Path, manifest_data: dict) -> Path:
    """Write ``manifest_data`` to a temporary manifest file."""
    path = temp_dir / "manifest.yaml"
    with path.open("w") as f:
        yaml.safe_dump(manifest_data, f)
    return path

"""Tests for spec building and ID resolution."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from hostform.core.exceptions import ResourceNotFoundError, ValidationRejectedError
from hostform.core.hosting import DiskFilter, IPFilter, VlanFilter
from hostform.core.spec_builder import (
    build_disk_spec,
    build_vlan_spec,
    build_vm_spec,
    parse_config,
    resolve_disk,
    resolve_ip,
    resolve_vlan,
)
from hostform.models.desired import DiskConfig, IPConfig, UserPass, VlanConfig, VMConfig
from hostform.models.disk import Disk
from hostform.models.network import IPAddress, Vlan
from hostform.models.state import ResourceKind


class TestParseConfig:
    """Tests for parse_config()."""

    def test_mapping(self) -> None:
        config = parse_config(ResourceKind.IP, {"region_id": "1", "version": 6})

        assert isinstance(config, IPConfig)
        assert config.version == 6

    def test_typed_passthrough(self, disk_config: DiskConfig) -> None:
        assert parse_config(ResourceKind.DISK, disk_config) is disk_config

    def test_rejected(self) -> None:
        with pytest.raises(ValidationRejectedError) as exc_info:
            parse_config(ResourceKind.DISK, {"region_id": "1", "name": "Bad Name"})

        message = str(exc_info.value)
        assert message.startswith("Invalid disk configuration: name: Invalid name")
        assert "Value error" not in message


class TestBuildSpecs:
    """Tests for the spec builders."""

    def test_vm_spec(self) -> None:
        config = VMConfig(
            region_id="1",
            name="web-1",
            memory=512,
            cores=2,
            ssh_keys=["7", "8"],
            userpass=UserPass(login="root", password="secret"),
            boot_disk="10",
            ips=["20"],
        )

        spec = build_vm_spec(config)

        assert spec.hostname == "web-1"
        assert spec.ssh_key_ids == ("7", "8")
        assert spec.login == "root"
        assert spec.password == "secret"
        assert spec.memory == 512

    def test_vm_spec_without_auth(self) -> None:
        """A config built without validation still cannot produce a spec."""
        config = VMConfig.model_construct(
            region_id="1",
            name=None,
            farm=None,
            memory=None,
            cores=None,
            ssh_keys=[],
            userpass=None,
            boot_disk="10",
            disks=[],
            ips=["20"],
            state=None,
        )

        with pytest.raises(ValidationRejectedError, match="SSH keys or login/password"):
            build_vm_spec(config)

    def test_disk_spec(self, disk_config: DiskConfig) -> None:
        spec = build_disk_spec(disk_config)

        assert spec.region_id == "1"
        assert spec.name == "data"
        assert spec.size == 20

    def test_vlan_spec(self) -> None:
        spec = build_vlan_spec(VlanConfig(region_id="1", name="lan", subnet="10.0.0.0/24"))

        assert spec.name == "lan"
        assert spec.subnet == "10.0.0.0/24"


class TestResolve:
    """Tests for ID resolution."""

    def test_resolve_disk(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_disks.return_value = [Disk(id="10")]

        assert resolve_disk(mock_hosting, "10").id == "10"
        mock_hosting.list_disks.assert_called_once_with(DiskFilter(id="10"))

    def test_resolve_disk_missing(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_disks.return_value = []

        with pytest.raises(ResourceNotFoundError, match="disk '10' not found"):
            resolve_disk(mock_hosting, "10")

    def test_resolve_ip(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_ips.return_value = [IPAddress(id="20")]

        assert resolve_ip(mock_hosting, "20").id == "20"
        mock_hosting.list_ips.assert_called_once_with(IPFilter(id="20"))

    def test_resolve_ip_missing(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_ips.return_value = []

        with pytest.raises(ResourceNotFoundError):
            resolve_ip(mock_hosting, "20")

    def test_resolve_vlan(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_vlans.return_value = [Vlan(id="3", name="lan")]

        assert resolve_vlan(mock_hosting, "3").name == "lan"
        mock_hosting.list_vlans.assert_called_once_with(VlanFilter(ids=("3",)))

    def test_resolve_vlan_missing(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_vlans.return_value = []

        with pytest.raises(ResourceNotFoundError, match="vlan '3' not found"):
            resolve_vlan(mock_hosting, "3")

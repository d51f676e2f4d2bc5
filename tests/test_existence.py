"""Tests for the existence checks."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from hostform.core import existence
from hostform.core.exceptions import RemoteOperationError
from hostform.core.hosting import DiskFilter, IPFilter, VlanFilter, VMFilter
from hostform.core.local import LocalHosting
from hostform.models.catalog import Region, SSHKey
from hostform.models.disk import Disk
from hostform.models.network import IPVersion
from hostform.models.spec import DiskSpec, VlanSpec
from hostform.models.state import ResourceKind


class TestExists:
    """Tests for existence.exists() against a mocked hosting service."""

    def test_empty_id_is_absent(self, mock_hosting: MagicMock) -> None:
        assert existence.exists(mock_hosting, ResourceKind.DISK, None) is False
        assert existence.exists(mock_hosting, ResourceKind.DISK, "") is False
        mock_hosting.list_disks.assert_not_called()

    def test_disk_filter(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_disks.return_value = [Disk(id="12")]

        assert existence.exists(mock_hosting, ResourceKind.DISK, "12") is True
        mock_hosting.list_disks.assert_called_once_with(DiskFilter(id="12"))

    def test_empty_list_is_absent(self, mock_hosting: MagicMock) -> None:
        mock_hosting.describe_vm.return_value = []

        assert existence.exists(mock_hosting, ResourceKind.VM, "42") is False
        mock_hosting.describe_vm.assert_called_once_with(VMFilter(id="42"))

    @pytest.mark.parametrize("kind", [ResourceKind.IP, ResourceKind.PRIVATE_IP])
    def test_ips(self, mock_hosting: MagicMock, kind: ResourceKind) -> None:
        mock_hosting.list_ips.return_value = []

        assert existence.exists(mock_hosting, kind, "5") is False
        mock_hosting.list_ips.assert_called_once_with(IPFilter(id="5"))

    def test_vlan(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_vlans.return_value = []

        existence.exists(mock_hosting, ResourceKind.VLAN, "3")

        mock_hosting.list_vlans.assert_called_once_with(VlanFilter(ids=("3",)))

    def test_query_failure_propagates(self, mock_hosting: MagicMock) -> None:
        """A failing query is not mistaken for absence."""
        mock_hosting.list_disks.side_effect = RemoteOperationError("list_disks", "timeout")

        with pytest.raises(RemoteOperationError):
            existence.exists(mock_hosting, ResourceKind.DISK, "12")


class TestSSHKeyExists:
    """SSH keys are looked up by name and matched by ID."""

    def test_match(self, mock_hosting: MagicMock) -> None:
        mock_hosting.key_from_name.return_value = SSHKey(id="7", name="admin")

        assert existence.exists(mock_hosting, ResourceKind.SSH_KEY, "7", name="admin") is True

    def test_same_name_other_id(self, mock_hosting: MagicMock) -> None:
        mock_hosting.key_from_name.return_value = SSHKey(id="8", name="admin")

        assert existence.exists(mock_hosting, ResourceKind.SSH_KEY, "7", name="admin") is False

    def test_not_found(self, mock_hosting: MagicMock) -> None:
        mock_hosting.key_from_name.return_value = None

        assert existence.exists(mock_hosting, ResourceKind.SSH_KEY, "7", name="admin") is False

    def test_no_name(self, mock_hosting: MagicMock) -> None:
        assert existence.exists(mock_hosting, ResourceKind.SSH_KEY, "7") is False
        mock_hosting.key_from_name.assert_not_called()


class TestExistsLocal:
    """existence.exists() against the in-memory hosting service."""

    def test_disk_lifecycle(self, hosting: LocalHosting) -> None:
        disk = hosting.create_disk(DiskSpec(region_id="1"))
        assert existence.exists(hosting, ResourceKind.DISK, disk.id)

        hosting.delete_disk(disk)
        assert not existence.exists(hosting, ResourceKind.DISK, disk.id)

    def test_ip_and_vlan(self, hosting: LocalHosting, region: Region) -> None:
        ip = hosting.create_ip(region, IPVersion.V6)
        vlan = hosting.create_vlan(VlanSpec(region_id="1", name="lan"))

        assert existence.exists(hosting, ResourceKind.IP, ip.id)
        assert existence.exists(hosting, ResourceKind.VLAN, vlan.id)
        assert not existence.exists(hosting, ResourceKind.VLAN, ip.id)

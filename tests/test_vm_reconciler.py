"""Tests for the VM reconciler."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from hostform.core.config import ReconcileConfig
from hostform.core.exceptions import (
    PartialUpdateError,
    RemoteOperationError,
    ResourceNotFoundError,
    ValidationRejectedError,
)
from hostform.core.hosting import DiskFilter, IPFilter, VMFilter
from hostform.core.local import LocalHosting
from hostform.models.desired import VMConfig
from hostform.models.disk import Disk
from hostform.models.network import IPAddress
from hostform.models.state import ResourceKind, ResourceState
from hostform.models.vm import VM, VMState
from hostform.reconcilers import GroupStatus, VMReconciler

if TYPE_CHECKING:
    from collections.abc import Callable


def call_names(mock: MagicMock, *ignore: str) -> list[str]:
    """Names of the calls made on ``mock``, in order."""
    return [name for name, _, _ in mock.mock_calls if name not in ignore]


class TestVMDeleteSequence:
    """Deleting a VM with a disk and an IP attached, on a mocked service."""

    @pytest.fixture
    def reconciler(self, mock_hosting: MagicMock) -> VMReconciler:
        return VMReconciler(mock_hosting)

    @pytest.fixture
    def state(self) -> ResourceState:
        return ResourceState(kind=ResourceKind.VM, id="42")

    def test_order(
        self,
        reconciler: VMReconciler,
        mock_hosting: MagicMock,
        sample_vm: VM,
        state: ResourceState,
    ) -> None:
        """Stop, detach the disk, detach the IP, then delete."""
        mock_hosting.describe_vm.return_value = [sample_vm]
        mock_hosting.detach_disk.side_effect = lambda vm, disk: (vm, disk)
        mock_hosting.detach_ip.side_effect = lambda vm, ip: (vm, ip)

        reconciler.delete(state)

        assert call_names(mock_hosting, "describe_vm") == [
            "stop_vm",
            "detach_disk",
            "detach_ip",
            "delete_vm",
        ]
        mock_hosting.describe_vm.assert_called_with(VMFilter(id="42"))
        assert not state.present

    def test_halted_vm_is_not_stopped(
        self,
        reconciler: VMReconciler,
        mock_hosting: MagicMock,
        sample_vm: VM,
        state: ResourceState,
    ) -> None:
        halted = sample_vm.model_copy(update={"state": VMState.HALTED})
        mock_hosting.describe_vm.return_value = [halted]
        mock_hosting.detach_disk.side_effect = lambda vm, disk: (vm, disk)
        mock_hosting.detach_ip.side_effect = lambda vm, ip: (vm, ip)

        reconciler.delete(state)

        mock_hosting.stop_vm.assert_not_called()
        mock_hosting.delete_vm.assert_called_once()

    def test_failed_detach_prevents_delete(
        self,
        reconciler: VMReconciler,
        mock_hosting: MagicMock,
        sample_vm: VM,
        state: ResourceState,
    ) -> None:
        mock_hosting.describe_vm.return_value = [sample_vm]
        mock_hosting.detach_disk.side_effect = RemoteOperationError("detach_disk", "busy", "10")

        with pytest.raises(RemoteOperationError):
            reconciler.delete(state)

        mock_hosting.detach_ip.assert_not_called()
        mock_hosting.delete_vm.assert_not_called()
        assert state.id == "42"

    def test_delete_absent_is_noop(
        self,
        reconciler: VMReconciler,
        mock_hosting: MagicMock,
        state: ResourceState,
    ) -> None:
        mock_hosting.describe_vm.return_value = []

        reconciler.delete(state)
        reconciler.delete(state)

        mock_hosting.stop_vm.assert_not_called()
        mock_hosting.delete_vm.assert_not_called()
        assert not state.present


class TestVMCreateMocked:
    """Create call order on a mocked service."""

    def test_create_then_attach(
        self,
        mock_hosting: MagicMock,
        sample_vm: VM,
    ) -> None:
        """The VM is created with its boot disk and first IP, then the rest is attached."""
        boot = Disk(id="10", name="system")
        first_ip = IPAddress(id="20")
        mock_hosting.list_disks.side_effect = lambda f: [Disk(id=f.id)]
        mock_hosting.list_ips.side_effect = lambda f: [IPAddress(id=f.id)]
        mock_hosting.create_vm_with_existing_disk_and_ip.return_value = (sample_vm, first_ip, boot)
        mock_hosting.attach_ip.side_effect = lambda vm, ip: (vm, ip)
        mock_hosting.attach_disk.side_effect = lambda vm, disk: (vm, disk)
        mock_hosting.describe_vm.return_value = [sample_vm]
        config = VMConfig(
            region_id="1",
            ssh_keys=["7"],
            boot_disk="10",
            disks=["11"],
            ips=["20", "21"],
        )

        report = VMReconciler(mock_hosting).create(config)

        assert call_names(mock_hosting, "list_disks", "list_ips", "describe_vm") == [
            "create_vm_with_existing_disk_and_ip",
            "attach_ip",
            "attach_disk",
        ]
        mock_hosting.list_ips.assert_any_call(IPFilter(id="20"))
        mock_hosting.list_disks.assert_any_call(DiskFilter(id="10"))
        assert report.operation == "create"
        assert report.resource_id == "42"
        assert report.group("ips").status is GroupStatus.APPLIED
        assert report.group("disks").status is GroupStatus.APPLIED

    def test_missing_boot_disk_is_fatal(self, mock_hosting: MagicMock) -> None:
        mock_hosting.list_ips.return_value = [IPAddress(id="20")]
        mock_hosting.list_disks.return_value = []
        config = VMConfig(region_id="1", ssh_keys=["7"], boot_disk="10", ips=["20"])

        with pytest.raises(ResourceNotFoundError, match="disk '10'"):
            VMReconciler(mock_hosting).create(config)

        mock_hosting.create_vm_with_existing_disk_and_ip.assert_not_called()


class TestVMCreate:
    """Create against the in-memory service."""

    def test_create(self, hosting: LocalHosting, vm_config: VMConfig) -> None:
        report = VMReconciler(hosting).create(vm_config)
        vm = report.state.observed

        assert report.ok
        assert isinstance(vm, VM)
        assert vm.hostname == "web-1"
        assert vm.memory == 1024
        assert vm.state is VMState.RUNNING
        assert vm.boot_disk is not None
        assert vm.boot_disk.id == vm_config.boot_disk
        assert [ip.id for ip in vm.ips] == vm_config.ips
        assert report.state.config == vm_config

    def test_create_deleted_rejected(self, hosting: LocalHosting, vm_config: VMConfig) -> None:
        config = vm_config.model_copy(update={"state": VMState.DELETED})

        with pytest.raises(ValidationRejectedError):
            VMReconciler(hosting).create(config)

        assert hosting.describe_vm(VMFilter()) == []

    def test_create_halted(self, hosting: LocalHosting, vm_config: VMConfig) -> None:
        config = vm_config.model_copy(update={"state": VMState.HALTED})

        report = VMReconciler(hosting).create(config)

        assert report.group("state").status is GroupStatus.APPLIED
        assert report.state.observed.state is VMState.HALTED

    def test_best_effort_attachments(
        self,
        hosting: LocalHosting,
        vm_config: VMConfig,
        make_disk: Callable[..., Disk],
    ) -> None:
        """A missing extra IP fails its group but the VM is still created."""
        data = make_disk("data")
        config = vm_config.model_copy(
            update={"ips": [*vm_config.ips, "999"], "disks": [data.id]}
        )

        report = VMReconciler(hosting).create(config)

        assert report.state.present
        assert report.group("ips").status is GroupStatus.FAILED
        assert isinstance(report.group("ips").errors[0], ResourceNotFoundError)
        assert report.group("disks").status is GroupStatus.APPLIED
        assert not report.ok
        assert [d.id for d in report.state.observed.disks] == [vm_config.boot_disk, data.id]


class TestVMUpdate:
    """In-place updates against the in-memory service."""

    @pytest.fixture
    def created(self, hosting: LocalHosting, vm_config: VMConfig) -> ResourceState:
        return VMReconciler(hosting).create(vm_config).state

    def test_no_change(
        self, hosting: LocalHosting, vm_config: VMConfig, created: ResourceState
    ) -> None:
        report = VMReconciler(hosting).update(created, vm_config)

        assert report.ok
        assert not report.changed
        assert [g.name for g in report.groups] == [
            "memory",
            "cores",
            "state",
            "name",
            "boot_disk",
            "disks",
            "ips",
        ]

    def test_memory_cores_name(
        self, hosting: LocalHosting, vm_config: VMConfig, created: ResourceState
    ) -> None:
        config = vm_config.model_copy(update={"memory": 2048, "cores": 4, "name": "web-2"})

        report = VMReconciler(hosting).update(created, config)

        assert report.ok
        assert [g.name for g in report.committed] == ["memory", "cores", "name"]
        vm = created.observed
        assert (vm.memory, vm.cores, vm.hostname) == (2048, 4, "web-2")
        assert created.config == config

    def test_partial_failure_continues(
        self,
        hosting: LocalHosting,
        vm_config: VMConfig,
        created: ResourceState,
        mocker: MockerFixture,
    ) -> None:
        """A failed group does not stop the following ones, nor undo earlier ones."""
        mocker.patch.object(
            hosting,
            "update_vm_cores",
            side_effect=RemoteOperationError("update_vm_cores", "quota exceeded"),
        )
        config = vm_config.model_copy(update={"memory": 2048, "cores": 4, "name": "web-2"})

        report = VMReconciler(hosting).update(created, config)

        assert report.group("memory").status is GroupStatus.APPLIED
        assert report.group("cores").status is GroupStatus.FAILED
        assert report.group("name").status is GroupStatus.APPLIED
        assert created.observed.memory == 2048
        assert created.observed.hostname == "web-2"
        # the record still describes what was last fully applied
        assert created.config == vm_config
        with pytest.raises(PartialUpdateError, match="cores"):
            report.raise_for_failures()

    def test_partial_failure_aborts(
        self,
        hosting: LocalHosting,
        vm_config: VMConfig,
        created: ResourceState,
        abort_settings: ReconcileConfig,
        mocker: MockerFixture,
    ) -> None:
        mocker.patch.object(
            hosting,
            "update_vm_cores",
            side_effect=RemoteOperationError("update_vm_cores", "quota exceeded"),
        )
        config = vm_config.model_copy(update={"memory": 2048, "cores": 4, "name": "web-2"})

        report = VMReconciler(hosting, abort_settings).update(created, config)

        assert report.group("memory").status is GroupStatus.APPLIED
        assert report.group("cores").status is GroupStatus.FAILED
        assert report.group("name").status is GroupStatus.SKIPPED
        assert report.group("ips").status is GroupStatus.SKIPPED
        assert created.observed.hostname == "web-1"

    def test_stop_and_start(
        self, hosting: LocalHosting, vm_config: VMConfig, created: ResourceState
    ) -> None:
        reconciler = VMReconciler(hosting)

        reconciler.update(created, vm_config.model_copy(update={"state": VMState.HALTED}))
        assert created.observed.state is VMState.HALTED

        reconciler.update(created, vm_config.model_copy(update={"state": VMState.RUNNING}))
        assert created.observed.state is VMState.RUNNING

    def test_state_deleted(
        self, hosting: LocalHosting, vm_config: VMConfig, created: ResourceState
    ) -> None:
        """Asking for state deleted removes the VM and skips the remaining groups."""
        config = vm_config.model_copy(update={"state": VMState.DELETED, "name": "web-2"})

        report = VMReconciler(hosting).update(created, config)

        assert not created.present
        assert report.group("state").status is GroupStatus.APPLIED
        assert report.group("name").status is GroupStatus.SKIPPED
        assert hosting.describe_vm(VMFilter()) == []
        # disks and addresses survive the VM
        assert hosting.list_disks(DiskFilter(id=vm_config.boot_disk))

    def test_boot_disk_swap(
        self,
        hosting: LocalHosting,
        vm_config: VMConfig,
        created: ResourceState,
        make_disk: Callable[..., Disk],
    ) -> None:
        """The new boot disk is at position 0 and the old one is detached."""
        new_boot = make_disk("system2")
        config = vm_config.model_copy(update={"boot_disk": new_boot.id})

        report = VMReconciler(hosting).update(created, config)

        assert report.group("boot_disk").status is GroupStatus.APPLIED
        vm = created.observed
        assert vm.boot_disk is not None
        assert vm.boot_disk.id == new_boot.id
        assert [d.id for d in vm.disks] == [new_boot.id]
        old = hosting.list_disks(DiskFilter(id=vm_config.boot_disk))[0]
        assert old.vm_ids == []

    def test_disk_and_ip_sets(
        self,
        hosting: LocalHosting,
        vm_config: VMConfig,
        make_disk: Callable[..., Disk],
        make_ip: Callable[[], IPAddress],
    ) -> None:
        first, second = make_disk("data1"), make_disk("data2")
        extra_ip = make_ip()
        reconciler = VMReconciler(hosting)
        state = reconciler.create(vm_config.model_copy(update={"disks": [first.id]})).state

        config = vm_config.model_copy(
            update={"disks": [second.id], "ips": [*vm_config.ips, extra_ip.id]}
        )
        report = reconciler.update(state, config)

        assert report.group("disks").status is GroupStatus.APPLIED
        assert report.group("ips").status is GroupStatus.APPLIED
        vm = state.observed
        assert [d.id for d in vm.disks] == [vm_config.boot_disk, second.id]
        assert sorted(ip.id for ip in vm.ips) == sorted([*vm_config.ips, extra_ip.id])

    def test_external_detach_is_corrected(
        self,
        hosting: LocalHosting,
        vm_config: VMConfig,
        created: ResourceState,
        make_disk: Callable[..., Disk],
    ) -> None:
        """Attachments are compared with what is attached now, not with the record."""
        data = make_disk("data")
        reconciler = VMReconciler(hosting)
        config = vm_config.model_copy(update={"disks": [data.id]})
        reconciler.update(created, config)
        vm = hosting.describe_vm(VMFilter(id=created.id))[0]
        hosting.detach_disk(vm, data)

        report = reconciler.update(created, config)

        assert report.group("disks").status is GroupStatus.APPLIED
        assert [d.id for d in created.observed.data_disks] == [data.id]

    def test_vanished_vm(
        self, hosting: LocalHosting, vm_config: VMConfig, created: ResourceState
    ) -> None:
        vm = hosting.describe_vm(VMFilter(id=created.id))[0]
        hosting.stop_vm(vm)
        hosting.delete_vm(vm)

        with pytest.raises(ResourceNotFoundError):
            VMReconciler(hosting).update(created, vm_config.model_copy(update={"memory": 2048}))

        assert not created.present

    def test_force_replace(
        self, hosting: LocalHosting, vm_config: VMConfig, created: ResourceState
    ) -> None:
        """A new SSH key set recreates the VM around the same disk and IP."""
        other = hosting.create_key("other", "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAA other@example")
        old_id = created.id
        config = vm_config.model_copy(update={"ssh_keys": [other.id]})

        report = VMReconciler(hosting).update(created, config)

        assert report.operation == "replace"
        assert created.id != old_id
        assert created.observed.ssh_key_ids == [other.id]
        assert created.observed.boot_disk.id == vm_config.boot_disk


class TestVMReadDelete:
    """Read and delete against the in-memory service."""

    def test_read_vanished(self, hosting: LocalHosting) -> None:
        state = ResourceState(kind=ResourceKind.VM, id="404")

        VMReconciler(hosting).read(state)

        assert not state.present

    def test_delete_keeps_disks_and_ips(self, hosting: LocalHosting, vm_config: VMConfig) -> None:
        reconciler = VMReconciler(hosting)
        state = reconciler.create(vm_config).state

        reconciler.delete(state)
        reconciler.delete(state)

        assert not state.present
        assert not reconciler.exists(state)
        assert hosting.list_disks(DiskFilter(id=vm_config.boot_disk))[0].vm_ids == []
        assert hosting.list_ips(IPFilter(id=vm_config.ips[0]))[0].vm_id is None


class TestVMAdopt:
    """Importing a VM that was created outside hostform."""

    def test_adopt(self, hosting: LocalHosting, vm_config: VMConfig) -> None:
        vm_id = VMReconciler(hosting).create(vm_config).state.id

        state = VMReconciler(hosting).adopt(vm_id)

        assert state.imported
        assert state.config.model_copy(update={"state": None}) == vm_config
        assert state.config.state == VMState.RUNNING

    def test_update_after_adopt(self, hosting: LocalHosting, vm_config: VMConfig) -> None:
        vm_id = VMReconciler(hosting).create(vm_config).state.id
        state = VMReconciler(hosting).adopt(vm_id)

        report = VMReconciler(hosting).update(state, vm_config)

        assert report.operation == "update"
        assert not report.changed
        assert state.id == vm_id
        assert not state.imported

    def test_adopt_without_ssh_keys(self, mock_hosting: MagicMock, sample_vm: VM) -> None:
        mock_hosting.describe_vm.return_value = [sample_vm.model_copy(update={"ssh_key_ids": []})]

        with pytest.raises(ValidationRejectedError, match="SSH keys"):
            VMReconciler(mock_hosting).adopt("42")

    def test_adopt_missing(self, mock_hosting: MagicMock) -> None:
        mock_hosting.describe_vm.return_value = []

        with pytest.raises(ResourceNotFoundError, match="vm '42' not found"):
            VMReconciler(mock_hosting).adopt("42")

"""VM lifecycle reconciler.

A VM owns no disks or IPs: it is created bound to an existing boot disk
and IP, and every other disk and address is attached to it afterwards.
Deleting a VM detaches everything first so its disks and addresses
survive it.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

from hostform.core.diff import DiffResult, Identified, diff
from hostform.core.exceptions import (
    HostformError,
    ResourceNotFoundError,
    ValidationRejectedError,
)
from hostform.core.hosting import VMFilter
from hostform.core.spec_builder import build_vm_spec, resolve_disk, resolve_ip
from hostform.models.desired import VMConfig
from hostform.models.state import ResourceKind, ResourceState
from hostform.models.vm import VM, VMState
from hostform.reconcilers.base import GroupAction, GroupStatus, ReconcileReport, Reconciler
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers.vm")


class VMReconciler(Reconciler[VMConfig, VM]):
    """Creates, updates and deletes VMs.

    Update groups run in this order: memory, cores, state, name,
    boot_disk, disks, ips. Disk and IP groups compare what is attached
    right now with the desired IDs, so attachments changed outside
    hostform are corrected too.
    """

    kind = ResourceKind.VM
    unobservable = frozenset({"userpass"})

    def fetch(self, state: ResourceState) -> VM | None:
        if not state.id:
            return None
        vms = self.hosting.describe_vm(VMFilter(id=state.id))
        return vms[0] if vms else None

    def create(self, config: VMConfig) -> ReconcileReport:
        """Create a VM and attach its remaining disks and addresses.

        The first IP and the boot disk are bound by the create call
        itself; failing to resolve either is fatal. Additional IPs and
        data disks are attached best effort: failures are logged and
        recorded in the ``ips`` and ``disks`` groups of the report.

        Raises:
            ValidationRejectedError: If the config has no way to log in,
                or asks for a VM in state deleted.
            ResourceNotFoundError: If the first IP or the boot disk
                does not exist.
            RemoteOperationError: If the create call fails.
        """
        if config.state is VMState.DELETED:
            raise ValidationRejectedError("Cannot create a VM in state 'deleted'")
        spec = build_vm_spec(config)
        first_ip = resolve_ip(self.hosting, config.ips[0])
        boot_disk = resolve_disk(self.hosting, config.boot_disk)

        vm, _, _ = self.hosting.create_vm_with_existing_disk_and_ip(spec, first_ip, boot_disk)
        logger.info(f"Created VM '{vm.hostname}' ({vm.id})")

        state = self.new_state(vm.id, config, vm)
        report = ReconcileReport(kind=self.kind, operation="create", state=state)

        vm = self._attach_best_effort(
            report, "ips", vm, config.ips[1:], self._resolve_ip, self.hosting.attach_ip
        )
        vm = self._attach_best_effort(
            report, "disks", vm, config.disks, self._resolve_disk, self.hosting.attach_disk
        )

        state_group = report.group("state")
        if config.state is VMState.HALTED:
            try:
                self.hosting.stop_vm(vm)
                state_group.status = GroupStatus.APPLIED
            except HostformError as e:
                logger.warning(f"Error stopping VM '{vm.hostname}': {e}")
                state_group.fail(e)

        self.read(state)
        return report

    def _resolve_ip(self, ip_id: str) -> Identified:
        return resolve_ip(self.hosting, ip_id)

    def _resolve_disk(self, disk_id: str) -> Identified:
        return resolve_disk(self.hosting, disk_id)

    def _attach_best_effort(
        self,
        report: ReconcileReport,
        name: str,
        vm: VM,
        ids: Sequence[str],
        resolve: Callable[[str], Identified],
        attach: Callable[..., tuple[VM, object]],
    ) -> VM:
        group = report.group(name)
        for resource_id in ids:
            logger.info(f"Attaching {name[:-1]} '{resource_id}' to VM '{vm.hostname}'...")
            try:
                vm, _ = attach(vm, resolve(resource_id))
            except HostformError as e:
                logger.warning(
                    f"Error attaching {name[:-1]} '{resource_id}' to VM '{vm.hostname}': {e}"
                )
                group.fail(e)
            else:
                if group.status is GroupStatus.UNCHANGED:
                    group.status = GroupStatus.APPLIED
        return vm

    def update_groups(
        self, state: ResourceState, config: VMConfig, observed: VM
    ) -> list[tuple[str, GroupAction]]:
        def memory() -> bool:
            if config.memory is None or observed.memory == config.memory:
                return False
            vm = self.hosting.update_vm_memory(observed, config.memory)
            logger.info(f"Memory for VM '{vm.hostname}' updated to {vm.memory_display}")
            return True

        def cores() -> bool:
            if config.cores is None or observed.cores == config.cores:
                return False
            vm = self.hosting.update_vm_cores(observed, config.cores)
            logger.info(f"Number of cores for VM '{vm.hostname}' updated to {vm.cores}")
            return True

        def vm_state() -> bool:
            return self._apply_state(state, observed, config.state)

        def name() -> bool:
            if config.name is None or observed.hostname == config.name:
                return False
            vm = self.hosting.rename_vm(observed, config.name)
            logger.info(f"VM '{observed.hostname}' renamed to '{vm.hostname}'")
            return True

        def boot_disk() -> bool:
            return self._replace_boot_disk(state, config.boot_disk)

        def disks() -> bool:
            vm = self._current(state)
            desired = [resolve_disk(self.hosting, disk_id) for disk_id in config.disks]
            result = diff(vm.data_disks, desired)
            return self._sync(
                vm, result, self.hosting.detach_disk, self.hosting.attach_disk, "disk"
            )

        def ips() -> bool:
            vm = self._current(state)
            desired = [resolve_ip(self.hosting, ip_id) for ip_id in config.ips]
            result = diff(vm.ips, desired)
            return self._sync(vm, result, self.hosting.detach_ip, self.hosting.attach_ip, "IP")

        return [
            ("memory", memory),
            ("cores", cores),
            ("state", vm_state),
            ("name", name),
            ("boot_disk", boot_disk),
            ("disks", disks),
            ("ips", ips),
        ]

    def _current(self, state: ResourceState) -> VM:
        vm = self.fetch(state)
        if vm is None:
            raise ResourceNotFoundError("vm", state.id or "")
        return vm

    def _apply_state(self, state: ResourceState, vm: VM, desired: VMState | None) -> bool:
        if desired is None or vm.state is desired:
            return False
        if desired is VMState.HALTED:
            self.hosting.stop_vm(vm)
        elif desired is VMState.RUNNING:
            self.hosting.start_vm(vm)
        elif desired is VMState.DELETED:
            self.delete(state)
        else:
            raise ValidationRejectedError(f"Invalid option for state '{desired.value}'")
        logger.info(f"VM '{vm.hostname}' is now {desired.value}")
        return True

    def _replace_boot_disk(self, state: ResourceState, disk_id: str) -> bool:
        """Attach the new boot disk at position 0, then detach the old one.

        Attaching at position 0 leaves the previous boot disk attached,
        so the VM is never without a boot disk in between.
        """
        vm = self._current(state)
        old = vm.boot_disk
        if old is not None and old.id == disk_id:
            return False
        new = resolve_disk(self.hosting, disk_id)
        vm, _ = self.hosting.attach_disk_at_position(vm, new, 0)
        if old is not None:
            vm, _ = self.hosting.detach_disk(vm, old)
        logger.info(f"Boot disk of VM '{vm.hostname}' is now '{new.name}'")
        return True

    def _sync(
        self,
        vm: VM,
        result: DiffResult[Any],
        detach: Callable[[VM, Any], tuple[VM, Any]],
        attach: Callable[[VM, Any], tuple[VM, Any]],
        label: str,
    ) -> bool:
        """Detach what is no longer wanted, then attach what is missing."""
        for item in result.to_detach:
            logger.info(f"Detaching {label} '{item.id}' from VM '{vm.hostname}'")
            vm, _ = detach(vm, item)
        for item in result.to_attach:
            logger.info(f"Attaching {label} '{item.id}' to VM '{vm.hostname}'")
            vm, _ = attach(vm, item)
        return not result.empty

    def config_data(self, observed: VM) -> dict[str, Any]:
        """Describe a live VM as desired configuration.

        The login and password are never reported back, so a VM that
        has no SSH keys cannot be described and is rejected.
        """
        boot = observed.boot_disk
        data: dict[str, Any] = {
            "region_id": observed.region_id,
            "name": observed.hostname or None,
            "farm": observed.farm,
            "memory": observed.memory,
            "cores": observed.cores,
            "ssh_keys": list(observed.ssh_key_ids),
            "boot_disk": boot.id if boot else None,
            "disks": [d.id for d in observed.data_disks],
            "ips": [ip.id for ip in observed.ips],
        }
        if observed.state in VMState.desired_values():
            data["state"] = observed.state.value
        return {k: v for k, v in data.items() if v is not None}

    def remove(self, state: ResourceState) -> None:
        """Stop the VM, detach every disk and IP, then delete it.

        Any failure aborts the sequence before the VM is deleted, so a
        disk or address is never destroyed along with it.
        """
        vm = self.fetch(state)
        if vm is None:
            return
        if vm.state is not VMState.HALTED:
            logger.info(f"Stopping VM '{vm.hostname}'")
            self.hosting.stop_vm(vm)
        for disk in list(vm.disks):
            logger.info(f"Detaching disk '{disk.name}' from VM '{vm.hostname}'")
            vm, _ = self.hosting.detach_disk(vm, disk)
        for ip in list(vm.ips):
            logger.info(f"Detaching IP '{ip.ip}' from VM '{vm.hostname}'")
            vm, _ = self.hosting.detach_ip(vm, ip)
        self.hosting.delete_vm(vm)

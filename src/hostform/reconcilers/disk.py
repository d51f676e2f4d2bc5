"""Disk lifecycle reconciler."""

from __future__ import annotations

from typing import Any

from hostform.core.exceptions import MonotonicViolationError
from hostform.core.hosting import DiskFilter
from hostform.core.lookups import image_by_name
from hostform.core.policy import ShrinkPolicy
from hostform.core.spec_builder import build_disk_spec
from hostform.models.catalog import Image
from hostform.models.desired import DiskConfig
from hostform.models.disk import Disk
from hostform.models.state import ResourceKind, ResourceState
from hostform.reconcilers.base import GroupAction, ReconcileReport, Reconciler
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers.disk")


class DiskReconciler(Reconciler[DiskConfig, Disk]):
    """Creates, renames, extends and deletes disks.

    A disk is created from one of three sources: a copy of an existing
    disk (``src_disk_id``), a system image looked up by name in the
    disk's region (``image``), or nothing (a blank disk).
    """

    kind = ResourceKind.DISK
    unobservable = frozenset({"src_disk_id", "image"})

    def fetch(self, state: ResourceState) -> Disk | None:
        if not state.id:
            return None
        disks = self.hosting.list_disks(DiskFilter(id=state.id))
        return disks[0] if disks else None

    def create(self, config: DiskConfig) -> ReconcileReport:
        """Create a disk.

        Raises:
            ResourceNotFoundError: If ``image`` names an image that does
                not exist in the region.
            RemoteOperationError: If the create call fails.
        """
        spec = build_disk_spec(config)
        if config.src_disk_id:
            source = Image(disk_id=config.src_disk_id, region_id=config.region_id)
            disk = self.hosting.create_disk_from_image(spec, source)
        elif config.image:
            image = image_by_name(self.hosting, config.image, config.region_id)
            disk = self.hosting.create_disk_from_image(spec, image)
        else:
            disk = self.hosting.create_disk(spec)
        logger.info(f"Created disk '{disk.name}' ({disk.id}) of {disk.size} GB")

        state = self.new_state(disk.id, config, disk)
        report = ReconcileReport(kind=self.kind, operation="create", state=state)
        self.read(state)
        return report

    def update_groups(
        self, state: ResourceState, config: DiskConfig, observed: Disk
    ) -> list[tuple[str, GroupAction]]:
        def name() -> bool:
            if config.name is None or observed.name == config.name:
                return False
            disk = self.hosting.rename_disk(observed, config.name)
            logger.info(f"Disk '{observed.name}' renamed to '{disk.name}'")
            return True

        def size() -> bool:
            if config.size is None or observed.size == config.size:
                return False
            # extend adds to the current size
            disk = self.hosting.extend_disk(observed, config.size - observed.size)
            logger.info(f"Disk '{disk.name}' extended to {disk.size} GB")
            return True

        return [("name", name), ("size", size)]

    def check_observed(self, config: DiskConfig, observed: Disk) -> list[str]:
        """Refuse to shrink below the live size.

        The live disk may be larger than the applied config says, e.g.
        when it was extended outside hostform or the size was left unset.

        Raises:
            MonotonicViolationError: If the desired size is below the
                live size and the shrink policy is reject.
        """
        if config.size is None or config.size >= observed.size:
            return []
        if self.settings.shrink_policy is ShrinkPolicy.REJECT:
            raise MonotonicViolationError(self.kind.value, "size", observed.size, config.size)
        logger.info(
            f"Disk '{observed.name}' is {observed.size} GB, replacing it to get {config.size} GB"
        )
        return ["size"]

    def config_data(self, observed: Disk) -> dict[str, Any]:
        return {"region_id": observed.region_id, "name": observed.name, "size": observed.size}

    def remove(self, state: ResourceState) -> None:
        disk = self.fetch(state)
        if disk is not None:
            self.hosting.delete_disk(disk)

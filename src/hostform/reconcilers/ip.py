"""Public IP address reconciler.

IP addresses are immutable once issued. Any change means releasing the
address and obtaining a new one, which has a new ID; the managed state
follows the new address.
"""

from __future__ import annotations

from typing import Any

from hostform.core.config import IPReplacement
from hostform.core.exceptions import HostformError, ValidationRejectedError
from hostform.core.hosting import IPFilter
from hostform.core.policy import ChangeSet
from hostform.models.catalog import Region
from hostform.models.desired import IPConfig
from hostform.models.network import IPAddress
from hostform.models.state import ResourceKind, ResourceState
from hostform.reconcilers.base import GroupAction, GroupStatus, ReconcileReport, Reconciler
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers.ip")


class IPReconciler(Reconciler[IPConfig, IPAddress]):
    """Creates, replaces and releases public IP addresses."""

    kind = ResourceKind.IP

    def fetch(self, state: ResourceState) -> IPAddress | None:
        if not state.id:
            return None
        ips = self.hosting.list_ips(IPFilter(id=state.id))
        return ips[0] if ips else None

    def create(self, config: IPConfig) -> ReconcileReport:
        ip = self.hosting.create_ip(Region(id=config.region_id, code=""), config.version)
        logger.info(f"Created IPv{int(ip.version)} address {ip.ip} ({ip.id})")
        state = self.new_state(ip.id, config, ip)
        report = ReconcileReport(kind=self.kind, operation="create", state=state)
        self.read(state)
        return report

    def update_groups(
        self, state: ResourceState, config: IPConfig, observed: IPAddress
    ) -> list[tuple[str, GroupAction]]:
        return []

    def replace(
        self, state: ResourceState, config: IPConfig, changes: ChangeSet
    ) -> ReconcileReport:
        """Swap the address for a new one.

        With ``create_first`` the new address is obtained before the old
        one is released. A failed release is then logged and recorded in
        the ``release`` group; the new address is kept and the old one
        has to be released by hand.

        With ``delete_first`` the old address is released first and a
        failed release stops the replacement: nothing is created and the
        state still tracks the old address.

        Raises:
            RemoteOperationError: If the old address cannot be released
                in ``delete_first`` mode, or the new one cannot be created.
        """
        old = ResourceState(kind=self.kind, id=state.id, config=state.config)
        release = GroupStatus.UNCHANGED
        errors: list[HostformError] = []

        if self.settings.ip_replacement is IPReplacement.DELETE_FIRST:
            self.remove(old)
            release = GroupStatus.APPLIED
            state.mark_absent()
            report = self.create(config)
        else:
            report = self.create(config)
            try:
                self.remove(old)
                release = GroupStatus.APPLIED
            except HostformError as e:
                logger.warning(f"Error deleting IP {old.id}: {e}")
                release = GroupStatus.FAILED
                errors.append(e)

        report.operation = "replace"
        result = report.group("release")
        result.status = release
        result.errors.extend(errors)

        state.id = report.state.id
        state.config = report.state.config
        state.observed = report.state.observed
        report.state = state
        logger.info(f"IP {old.id} replaced by {state.id}")
        return report

    def config_data(self, observed: IPAddress) -> dict[str, Any]:
        if observed.is_private:
            raise ValidationRejectedError(
                f"IP {observed.id} is a private address, import it as a private_ip resource"
            )
        return {"region_id": observed.region_id, "version": int(observed.version)}

    def remove(self, state: ResourceState) -> None:
        ip = self.fetch(state)
        if ip is not None:
            self.hosting.delete_ip(ip)

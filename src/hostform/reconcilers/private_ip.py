"""Private IP address reconciler.

A private address is a literal IP on a VLAN. Nothing about it can be
updated; every change deletes the address and creates it again.
"""

from __future__ import annotations

from typing import Any

from hostform.core.exceptions import ValidationRejectedError
from hostform.core.hosting import IPFilter
from hostform.core.spec_builder import resolve_vlan
from hostform.models.desired import PrivateIPConfig
from hostform.models.network import IPAddress
from hostform.models.state import ResourceKind, ResourceState
from hostform.reconcilers.base import GroupAction, ReconcileReport, Reconciler
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers.private_ip")


class PrivateIPReconciler(Reconciler[PrivateIPConfig, IPAddress]):
    """Creates and deletes addresses on private VLANs.

    Replacement always deletes first: the same literal cannot be held
    twice on one VLAN.
    """

    kind = ResourceKind.PRIVATE_IP

    def fetch(self, state: ResourceState) -> IPAddress | None:
        if not state.id:
            return None
        ips = self.hosting.list_ips(IPFilter(id=state.id))
        return ips[0] if ips else None

    def create(self, config: PrivateIPConfig) -> ReconcileReport:
        """Create the address on its VLAN.

        Raises:
            ResourceNotFoundError: If the VLAN does not exist.
            RemoteOperationError: If the address is taken or invalid for
                the VLAN subnet.
        """
        vlan = resolve_vlan(self.hosting, config.vlan_id)
        ip = self.hosting.create_private_ip(vlan, config.ip)
        logger.info(f"Created private address {ip.ip} on VLAN '{vlan.name}' ({ip.id})")
        state = self.new_state(ip.id, config, ip)
        report = ReconcileReport(kind=self.kind, operation="create", state=state)
        self.read(state)
        return report

    def update_groups(
        self, state: ResourceState, config: PrivateIPConfig, observed: IPAddress
    ) -> list[tuple[str, GroupAction]]:
        return []

    def config_data(self, observed: IPAddress) -> dict[str, Any]:
        if not observed.is_private:
            raise ValidationRejectedError(
                f"IP {observed.id} is a public address, import it as an ip resource"
            )
        return {"region_id": observed.region_id, "vlan_id": observed.vlan_id, "ip": observed.ip}

    def remove(self, state: ResourceState) -> None:
        ip = self.fetch(state)
        if ip is not None:
            self.hosting.delete_ip(ip)

"""VLAN lifecycle reconciler."""

from __future__ import annotations

from typing import Any

from hostform.core.hosting import VlanFilter
from hostform.core.spec_builder import build_vlan_spec
from hostform.models.desired import VlanConfig
from hostform.models.network import Vlan
from hostform.models.state import ResourceKind, ResourceState
from hostform.reconcilers.base import GroupAction, ReconcileReport, Reconciler
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers.vlan")


class VlanReconciler(Reconciler[VlanConfig, Vlan]):
    """Creates, renames and deletes VLANs and sets their gateway."""

    kind = ResourceKind.VLAN

    def fetch(self, state: ResourceState) -> Vlan | None:
        if not state.id:
            return None
        vlans = self.hosting.list_vlans(VlanFilter(ids=(state.id,)))
        return vlans[0] if vlans else None

    def create(self, config: VlanConfig) -> ReconcileReport:
        """Create a VLAN, then set its gateway if one is configured.

        The gateway cannot be passed at creation; setting it is recorded
        as the ``gateway`` group of the report.
        """
        vlan = self.hosting.create_vlan(build_vlan_spec(config))
        logger.info(f"Created VLAN '{vlan.name}' ({vlan.id})")
        state = self.new_state(vlan.id, config, vlan)
        report = ReconcileReport(kind=self.kind, operation="create", state=state)
        if config.gateway:
            groups = [("gateway", lambda: self._set_gateway(vlan, config.gateway))]
            self.run_groups(report, groups)
        self.read(state)
        return report

    def _set_gateway(self, vlan: Vlan, gateway: str | None) -> bool:
        if gateway is None or vlan.gateway == gateway:
            return False
        updated = self.hosting.update_vlan_gateway(vlan, gateway)
        logger.info(f"Gateway of VLAN '{updated.name}' set to {updated.gateway}")
        return True

    def update_groups(
        self, state: ResourceState, config: VlanConfig, observed: Vlan
    ) -> list[tuple[str, GroupAction]]:
        def name() -> bool:
            if observed.name == config.name:
                return False
            vlan = self.hosting.rename_vlan(observed, config.name)
            logger.info(f"VLAN '{observed.name}' renamed to '{vlan.name}'")
            return True

        def gateway() -> bool:
            return self._set_gateway(observed, config.gateway)

        return [("name", name), ("gateway", gateway)]

    def config_data(self, observed: Vlan) -> dict[str, Any]:
        data = {
            "region_id": observed.region_id,
            "name": observed.name,
            "subnet": observed.subnet,
            "gateway": observed.gateway,
        }
        return {k: v for k, v in data.items() if v is not None}

    def remove(self, state: ResourceState) -> None:
        vlan = self.fetch(state)
        if vlan is not None:
            self.hosting.delete_vlan(vlan)

"""Lifecycle reconcilers, one per resource kind.

Each reconciler drives one resource kind from its current state to its
desired configuration through the hosting service it is given.
"""

from typing import Any

from hostform.core.config import ReconcileConfig
from hostform.core.hosting import Hosting
from hostform.models.state import ResourceKind
from hostform.reconcilers.base import GroupResult, GroupStatus, ReconcileReport, Reconciler
from hostform.reconcilers.disk import DiskReconciler
from hostform.reconcilers.ip import IPReconciler
from hostform.reconcilers.private_ip import PrivateIPReconciler
from hostform.reconcilers.ssh_key import SSHKeyReconciler
from hostform.reconcilers.vlan import VlanReconciler
from hostform.reconcilers.vm import VMReconciler

RECONCILERS: dict[ResourceKind, type[Reconciler[Any, Any]]] = {
    ResourceKind.SSH_KEY: SSHKeyReconciler,
    ResourceKind.VLAN: VlanReconciler,
    ResourceKind.DISK: DiskReconciler,
    ResourceKind.IP: IPReconciler,
    ResourceKind.PRIVATE_IP: PrivateIPReconciler,
    ResourceKind.VM: VMReconciler,
}


def reconciler_for(
    kind: ResourceKind,
    hosting: Hosting,
    settings: ReconcileConfig | None = None,
) -> Reconciler[Any, Any]:
    """Build the reconciler for ``kind``."""
    return RECONCILERS[kind](hosting, settings)


__all__ = [
    "RECONCILERS",
    "DiskReconciler",
    "GroupResult",
    "GroupStatus",
    "IPReconciler",
    "PrivateIPReconciler",
    "ReconcileReport",
    "Reconciler",
    "SSHKeyReconciler",
    "VMReconciler",
    "VlanReconciler",
    "reconciler_for",
]

"""Forced-replacement policy.

Classifies every governed field of a resource kind as updatable in
place, fixed at creation (a change forces destroy and recreate) or
monotonic (may only grow), and evaluates a pair of desired
configurations against those rules without touching the remote service.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from hostform.core.exceptions import MonotonicViolationError
from hostform.models.state import ResourceKind
from hostform.utils.logging import get_logger

logger = get_logger("policy")


class FieldPolicy(str, Enum):
    """How a change to a field can be realized."""

    IN_PLACE = "in_place"
    FORCE_REPLACE = "force_replace"
    MONOTONIC_ONLY = "monotonic_only"


class ShrinkPolicy(str, Enum):
    """What to do when a monotonic field is asked to decrease."""

    REJECT = "reject"
    REPLACE = "replace"


IN_PLACE = FieldPolicy.IN_PLACE
FORCE_REPLACE = FieldPolicy.FORCE_REPLACE
MONOTONIC_ONLY = FieldPolicy.MONOTONIC_ONLY

POLICIES: dict[ResourceKind, dict[str, FieldPolicy]] = {
    ResourceKind.VM: {
        "region_id": FORCE_REPLACE,
        "farm": FORCE_REPLACE,
        # keys and login are only installed on first boot
        "ssh_keys": FORCE_REPLACE,
        "userpass": FORCE_REPLACE,
        "memory": IN_PLACE,
        "cores": IN_PLACE,
        "state": IN_PLACE,
        "name": IN_PLACE,
        "boot_disk": IN_PLACE,
        "disks": IN_PLACE,
        "ips": IN_PLACE,
    },
    ResourceKind.DISK: {
        "region_id": FORCE_REPLACE,
        "src_disk_id": FORCE_REPLACE,
        "image": FORCE_REPLACE,
        "name": IN_PLACE,
        "size": MONOTONIC_ONLY,
    },
    ResourceKind.IP: {
        "region_id": FORCE_REPLACE,
        "version": FORCE_REPLACE,
    },
    ResourceKind.PRIVATE_IP: {
        "region_id": FORCE_REPLACE,
        "vlan_id": FORCE_REPLACE,
        "ip": FORCE_REPLACE,
    },
    ResourceKind.VLAN: {
        "region_id": FORCE_REPLACE,
        "subnet": FORCE_REPLACE,
        "name": IN_PLACE,
        "gateway": IN_PLACE,
    },
    ResourceKind.SSH_KEY: {
        "name": FORCE_REPLACE,
        "value": FORCE_REPLACE,
    },
}

# Optional fields the provider fills in; leaving them unset is not a change
COMPUTED_FIELDS: dict[ResourceKind, frozenset[str]] = {
    ResourceKind.VM: frozenset({"name", "memory", "cores", "state"}),
    ResourceKind.DISK: frozenset({"name", "size"}),
    ResourceKind.VLAN: frozenset({"subnet"}),
}

# Compared without regard to order
UNORDERED_FIELDS = frozenset({"ssh_keys", "ips"})


def classify(kind: ResourceKind, field_name: str) -> FieldPolicy:
    """Return the policy governing ``field_name`` of ``kind``.

    Raises:
        KeyError: If the field is not governed for this kind.
    """
    try:
        return POLICIES[kind][field_name]
    except KeyError:
        raise KeyError(f"No policy for field '{field_name}' of {kind.value}") from None


@dataclass
class ChangeSet:
    """Fields that differ between two configurations, grouped by policy.

    Attributes:
        kind: Resource kind the configurations belong to.
        in_place: Changed fields that can be updated in place.
        force_replace: Changed fields that require replacement.
    """

    kind: ResourceKind
    in_place: list[str] = field(default_factory=list)
    force_replace: list[str] = field(default_factory=list)

    @property
    def changed(self) -> list[str]:
        """Every changed field, in policy-table order."""
        order = list(POLICIES[self.kind])
        return sorted(self.in_place + self.force_replace, key=order.index)

    @property
    def requires_replacement(self) -> bool:
        """True when the change can only be realized by destroy and recreate."""
        return bool(self.force_replace)

    @property
    def empty(self) -> bool:
        return not self.in_place and not self.force_replace

    def __contains__(self, field_name: object) -> bool:
        return field_name in self.in_place or field_name in self.force_replace


def _normalize(field_name: str, value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, Enum):
        return value.value
    if field_name in UNORDERED_FIELDS and value is not None:
        return sorted(value)
    return value


def evaluate(
    kind: ResourceKind,
    old: BaseModel | None,
    new: BaseModel,
    shrink_policy: ShrinkPolicy = ShrinkPolicy.REJECT,
) -> ChangeSet:
    """Compare two desired configurations of the same resource.

    No remote call is made; a monotonic violation is therefore always
    detected before any side effect.

    Args:
        kind: Kind of the resource.
        old: Configuration currently applied (None if unknown).
        new: Requested configuration.
        shrink_policy: Reject a monotonic decrease, or treat it as a
            forced replacement.

    Returns:
        ChangeSet listing in-place and force-replace fields.

    Raises:
        MonotonicViolationError: If a monotonic field decreases and
            ``shrink_policy`` is REJECT.
    """
    changes = ChangeSet(kind=kind)
    if old is None:
        return changes

    computed = COMPUTED_FIELDS.get(kind, frozenset())
    for field_name, policy in POLICIES[kind].items():
        old_value = getattr(old, field_name)
        new_value = getattr(new, field_name)
        if new_value is None and field_name in computed:
            continue
        if _normalize(field_name, old_value) == _normalize(field_name, new_value):
            continue

        if policy is FORCE_REPLACE:
            changes.force_replace.append(field_name)
        elif policy is MONOTONIC_ONLY and old_value is not None and new_value < old_value:
            if shrink_policy is ShrinkPolicy.REJECT:
                raise MonotonicViolationError(kind.value, field_name, old_value, new_value)
            logger.info(
                f"{kind.value} {field_name} decreases from {old_value} to {new_value}, "
                "replacing resource"
            )
            changes.force_replace.append(field_name)
        else:
            changes.in_place.append(field_name)

    return changes

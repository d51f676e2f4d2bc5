"""Shared lifecycle machinery for the resource reconcilers.

Every reconciler exposes the same five verbs over an explicit
:class:`~hostform.models.state.ResourceState`: ``create``, ``read``,
``update``, ``delete`` and ``exists``. Updates run as a fixed sequence
of attribute groups, each of which is a separate remote interaction.
A failure in one group does not undo the groups that already
committed; the :class:`ReconcileReport` says exactly which ones did.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from pydantic import BaseModel

from hostform.core import existence
from hostform.core.config import ReconcileConfig
from hostform.core.exceptions import HostformError, PartialUpdateError, ResourceNotFoundError
from hostform.core.hosting import Hosting
from hostform.core.policy import ChangeSet, evaluate
from hostform.core.spec_builder import parse_config
from hostform.models.state import ResourceKind, ResourceState
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers")

C = TypeVar("C", bound=BaseModel)
O = TypeVar("O", bound=BaseModel)

# A group returns True when it changed something remotely
GroupAction = Callable[[], bool]


class GroupStatus(str, Enum):
    """Outcome of a single attribute group."""

    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"
    UNCHANGED = "unchanged"

    @property
    def color(self) -> str:
        colors = {
            GroupStatus.APPLIED: "green",
            GroupStatus.FAILED: "red",
            GroupStatus.SKIPPED: "yellow",
            GroupStatus.UNCHANGED: "dim",
        }
        return colors[self]


@dataclass
class GroupResult:
    """Result of one attribute group.

    Attributes:
        name: Group name, e.g. 'memory' or 'disks'.
        status: What happened to the group.
        errors: Failures recorded in the group. A group that records
            any error ends up FAILED, even if it kept going.
    """

    name: str
    status: GroupStatus = GroupStatus.UNCHANGED
    errors: list[HostformError] = field(default_factory=list)

    def fail(self, error: HostformError) -> None:
        self.status = GroupStatus.FAILED
        self.errors.append(error)


@dataclass
class ReconcileReport:
    """What a create, update or replace did.

    Attributes:
        kind: Kind of the resource.
        operation: 'create', 'update' or 'replace'.
        state: The resource state after the operation.
        groups: Per-group results, in execution order.
    """

    kind: ResourceKind
    operation: str
    state: ResourceState
    groups: list[GroupResult] = field(default_factory=list)

    @property
    def resource_id(self) -> str | None:
        return self.state.id

    @property
    def failed(self) -> list[GroupResult]:
        return [g for g in self.groups if g.status is GroupStatus.FAILED]

    @property
    def committed(self) -> list[GroupResult]:
        return [g for g in self.groups if g.status is GroupStatus.APPLIED]

    @property
    def errors(self) -> list[HostformError]:
        return [e for g in self.groups for e in g.errors]

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def changed(self) -> bool:
        return bool(self.committed)

    def group(self, name: str) -> GroupResult:
        """Return the result of the group called ``name``, adding it if new."""
        for result in self.groups:
            if result.name == name:
                return result
        result = GroupResult(name=name)
        self.groups.append(result)
        return result

    def raise_for_failures(self) -> None:
        """Raise :class:`PartialUpdateError` if any group failed."""
        if self.failed:
            raise PartialUpdateError(self)


class Reconciler(ABC, Generic[C, O]):
    """Base class for the per-kind lifecycle reconcilers.

    Args:
        hosting: Hosting service every remote call goes through.
        settings: Reconciler behaviour; defaults apply when omitted.
    """

    kind: ClassVar[ResourceKind]
    # Fields set at creation that the hosting service never reports back
    unobservable: ClassVar[frozenset[str]] = frozenset()

    def __init__(self, hosting: Hosting, settings: ReconcileConfig | None = None) -> None:
        self.hosting = hosting
        self.settings = settings or ReconcileConfig()

    @abstractmethod
    def create(self, config: C) -> ReconcileReport:
        """Create the resource described by ``config``."""

    @abstractmethod
    def fetch(self, state: ResourceState) -> O | None:
        """Read the resource back, or None when it no longer exists."""

    @abstractmethod
    def update_groups(
        self, state: ResourceState, config: C, observed: O
    ) -> list[tuple[str, GroupAction]]:
        """Return the ordered attribute groups of an in-place update."""

    @abstractmethod
    def remove(self, state: ResourceState) -> None:
        """Delete a resource known to exist."""

    @abstractmethod
    def config_data(self, observed: O) -> dict[str, Any]:
        """Rebuild raw desired configuration from a read-back."""

    def read(self, state: ResourceState) -> ResourceState:
        """Refresh ``state`` from the hosting service.

        A resource that vanished is not an error: its ID is cleared and
        a warning is logged.
        """
        if not state.present:
            return state
        observed = self.fetch(state)
        if observed is None:
            logger.warning(f"{self.kind.value} {state.id} not found, removing from state")
            state.mark_absent()
        else:
            state.observed = observed
        return state

    def exists(self, state: ResourceState) -> bool:
        return existence.exists(self.hosting, self.kind, state.id)

    def update(self, state: ResourceState, config: C) -> ReconcileReport:
        """Bring an existing resource in line with ``config``.

        Fields fixed at creation route to :meth:`replace`. Everything
        else runs as attribute groups in a fixed order.

        Raises:
            MonotonicViolationError: If a field that may only grow is
                asked to shrink, compared with both the applied config
                and the live resource; raised before any update call.
            ResourceNotFoundError: If the resource no longer exists.
        """
        if state.imported:
            state.config = self.baseline(state, config)
            state.imported = False
        changes = evaluate(self.kind, state.config, config, self.settings.shrink_policy)
        if changes.requires_replacement:
            logger.info(
                f"{self.kind.value} {state.id} must be replaced, changed: "
                f"{', '.join(changes.force_replace)}"
            )
            return self.replace(state, config, changes)

        observed = self.fetch(state)
        if observed is None:
            missing_id = state.id or ""
            state.mark_absent()
            raise ResourceNotFoundError(self.kind.value, missing_id)

        forced = self.check_observed(config, observed)
        if forced:
            changes.force_replace.extend(forced)
            logger.info(
                f"{self.kind.value} {state.id} must be replaced, live value of "
                f"{', '.join(forced)} cannot be reached in place"
            )
            return self.replace(state, config, changes)

        report = ReconcileReport(kind=self.kind, operation="update", state=state)
        self.run_groups(report, self.update_groups(state, config, observed))
        if report.ok:
            state.config = config
        self.read(state)
        return report

    def check_observed(self, config: C, observed: O) -> list[str]:
        """Compare ``config`` with the live resource before any update call.

        Returns:
            Fields that can only be reached by replacing the resource.
        """
        return []

    def baseline(self, state: ResourceState, config: C) -> Any:
        """Return the applied configuration ``config`` is compared with.

        An imported resource has no record of the fields that cannot be
        read back; their desired values are taken as applied.
        """
        if not state.imported or not isinstance(state.config, BaseModel):
            return state.config
        known = {name: getattr(config, name) for name in self.unobservable}
        return state.config.model_copy(update=known)

    def adopt(self, resource_id: str) -> ResourceState:
        """Start managing an existing resource.

        The configuration is rebuilt from what the hosting service
        reports, so a later update still sees fields fixed at creation.

        Raises:
            ResourceNotFoundError: If nothing exists with that ID.
            ValidationRejectedError: If the resource cannot be described
                by a valid configuration.
        """
        state = ResourceState(kind=self.kind, id=resource_id, imported=True)
        if not self.exists(state):
            raise ResourceNotFoundError(self.kind.value, resource_id)
        self.read(state)
        if state.observed is None:
            raise ResourceNotFoundError(self.kind.value, resource_id)
        state.config = parse_config(self.kind, self.config_data(state.observed))
        logger.info(f"Imported {self.kind.value} {resource_id}")
        return state

    def replace(self, state: ResourceState, config: C, changes: ChangeSet) -> ReconcileReport:
        """Destroy the resource and create it again from ``config``.

        ``state`` is updated in place to track the new resource.
        """
        self.delete(state)
        report = self.create(config)
        report.operation = "replace"
        state.id = report.state.id
        state.config = report.state.config
        state.observed = report.state.observed
        report.state = state
        return report

    def delete(self, state: ResourceState) -> None:
        """Delete the resource; deleting an absent resource is a no-op."""
        if not self.exists(state):
            logger.info(f"{self.kind.value} {state.id} already absent")
            state.mark_absent()
            return
        self.remove(state)
        logger.info(f"Deleted {self.kind.value} {state.id}")
        state.mark_absent()

    def run_groups(self, report: ReconcileReport, groups: list[tuple[str, GroupAction]]) -> None:
        """Run attribute groups in order, recording each outcome.

        A group that raises is marked FAILED. The following groups still
        run unless the update strategy is ``abort``, in which case they
        are marked SKIPPED. Groups are also skipped once the resource
        itself has been deleted.
        """
        aborted = False
        for name, action in groups:
            result = report.group(name)
            if aborted or not report.state.present:
                result.status = GroupStatus.SKIPPED
                logger.debug(f"Skipped {self.kind.value} group {name}")
                continue
            try:
                result.status = GroupStatus.APPLIED if action() else GroupStatus.UNCHANGED
            except HostformError as e:
                logger.warning(f"{self.kind.value} {report.resource_id}: {name} update failed: {e}")
                result.fail(e)
                aborted = self.settings.fail_fast
            else:
                if result.errors and result.status is not GroupStatus.FAILED:
                    result.status = GroupStatus.FAILED
            logger.debug(f"{self.kind.value} group {name}: {result.status.value}")

    def new_state(self, resource_id: str, config: C, observed: Any = None) -> ResourceState:
        return ResourceState(kind=self.kind, id=resource_id, config=config, observed=observed)

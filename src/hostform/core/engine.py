"""Plan and apply a manifest against the hosting service.

The engine ties the pieces together: it reads managed state from the
:class:`~hostform.core.state.StateStore`, resolves ``${kind.name}``
references to provider IDs, compares each manifest entry with what was
last applied, and drives the reconcilers in dependency order.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel

from hostform.core.config import ReconcileConfig
from hostform.core.exceptions import ConfigurationError, HostformError, PartialUpdateError
from hostform.core.hosting import Hosting
from hostform.core.manifest import parse_reference
from hostform.core.policy import evaluate
from hostform.core.spec_builder import parse_config
from hostform.core.state import StateStore, make_address, split_address
from hostform.models.desired import Manifest
from hostform.models.state import ResourceKind, ResourceState
from hostform.models.vm import VMState
from hostform.reconcilers import ReconcileReport, Reconciler, reconciler_for
from hostform.utils.logging import get_logger

logger = get_logger("engine")


class ChangeAction(str, Enum):
    """What applying a plan will do to one resource."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "noop"

    @property
    def symbol(self) -> str:
        symbols = {
            ChangeAction.CREATE: "+",
            ChangeAction.UPDATE: "~",
            ChangeAction.REPLACE: "-/+",
            ChangeAction.DELETE: "-",
            ChangeAction.NOOP: " ",
        }
        return symbols[self]

    @property
    def color(self) -> str:
        colors = {
            ChangeAction.CREATE: "green",
            ChangeAction.UPDATE: "yellow",
            ChangeAction.REPLACE: "magenta",
            ChangeAction.DELETE: "red",
            ChangeAction.NOOP: "dim",
        }
        return colors[self]


@dataclass
class PlannedChange:
    """One entry of a plan.

    Attributes:
        address: Resource address, ``kind.name``.
        action: What will be done.
        fields: Fields whose change caused the action.
        resource_id: Current provider ID, if the resource exists.
        error: Problem that prevents this change from being applied.
    """

    address: str
    action: ChangeAction
    fields: list[str] = field(default_factory=list)
    resource_id: str | None = None
    error: HostformError | None = None

    @property
    def kind(self) -> ResourceKind:
        return split_address(self.address)[0]

    @property
    def name(self) -> str:
        return split_address(self.address)[1]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"address": self.address, "action": self.action.value}
        if self.fields:
            data["fields"] = list(self.fields)
        if self.resource_id:
            data["id"] = self.resource_id
        if self.error is not None:
            data["error"] = str(self.error)
        return data


@dataclass
class Plan:
    """Ordered list of planned changes, in the order they will run."""

    changes: list[PlannedChange] = field(default_factory=list)

    @property
    def pending(self) -> list[PlannedChange]:
        return [c for c in self.changes if c.action is not ChangeAction.NOOP]

    @property
    def errors(self) -> list[PlannedChange]:
        return [c for c in self.changes if c.error is not None]

    @property
    def has_changes(self) -> bool:
        return bool(self.pending)

    def summary(self) -> dict[str, int]:
        """Number of changes per action."""
        counts = {action.value: 0 for action in ChangeAction}
        for change in self.changes:
            counts[change.action.value] += 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "changes": [c.to_dict() for c in self.changes],
            "summary": self.summary(),
        }


@dataclass
class ApplyResult:
    """Outcome of applying a plan.

    Attributes:
        created: Addresses of created resources.
        updated: Addresses of resources updated in place.
        replaced: Addresses of resources destroyed and recreated.
        deleted: Addresses of deleted resources.
        unchanged: Addresses left alone.
        errors: ``(address, message)`` for every failure.
        reports: Reconcile reports per address.
    """

    created: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    replaced: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    errors: list[tuple[str, str]] = field(default_factory=list)
    reports: dict[str, ReconcileReport] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "replaced": self.replaced,
            "deleted": self.deleted,
            "unchanged": self.unchanged,
            "errors": [{"address": a, "error": e} for a, e in self.errors],
        }


def iter_references(value: Any) -> Iterator[str]:
    """Yield every ``${kind.name}`` string found in a config mapping."""
    if isinstance(value, dict):
        for item in value.values():
            yield from iter_references(item)
    elif isinstance(value, list | tuple):
        for item in value:
            yield from iter_references(item)
    elif parse_reference(value) is not None:
        yield value


class Engine:
    """Plans and applies manifests.

    Args:
        hosting: Hosting service handed to every reconciler.
        store: Managed state.
        settings: Reconciler behaviour.

    Example:
        >>> engine = Engine(LocalHosting(), StateStore("state.yaml"))
        >>> plan = engine.plan(load_manifest("manifest.yaml"))
        >>> result = engine.apply(load_manifest("manifest.yaml"))
    """

    def __init__(
        self,
        hosting: Hosting,
        store: StateStore,
        settings: ReconcileConfig | None = None,
    ) -> None:
        self.hosting = hosting
        self.store = store
        self.settings = settings or ReconcileConfig()
        self._reconcilers: dict[ResourceKind, Reconciler[Any, Any]] = {}

    def reconciler(self, kind: ResourceKind) -> Reconciler[Any, Any]:
        if kind not in self._reconcilers:
            self._reconcilers[kind] = reconciler_for(kind, self.hosting, self.settings)
        return self._reconcilers[kind]

    def resolve(self, kind: ResourceKind, config: BaseModel, strict: bool = True) -> BaseModel:
        """Replace references in ``config`` with the IDs of managed resources.

        Args:
            kind: Kind of the resource ``config`` describes.
            config: Desired configuration, possibly holding references.
            strict: Raise on a reference to a resource not yet managed.
                When False such references are left as they are.

        Raises:
            ConfigurationError: If a reference names an unknown kind, or
                cannot be resolved in strict mode.
        """

        def substitute(value: Any) -> Any:
            if isinstance(value, dict):
                return {k: substitute(v) for k, v in value.items()}
            if isinstance(value, list | tuple):
                return [substitute(v) for v in value]
            reference = parse_reference(value)
            if reference is None:
                return value
            ref_kind, ref_name = reference
            try:
                address = make_address(ResourceKind(ref_kind), ref_name)
            except ValueError:
                raise ConfigurationError(f"Unknown resource kind in reference '{value}'") from None
            resource_id = self.store.id_of(address)
            if resource_id is None:
                if strict:
                    raise ConfigurationError(f"Unresolved reference '{value}'")
                return value
            return resource_id

        return parse_config(kind, substitute(config.model_dump()))

    def refresh(self) -> list[str]:
        """Read every managed resource back and forget the vanished ones.

        Returns:
            Addresses removed from state.
        """
        removed = []
        for address in self.store.addresses():
            state = self.store.get(address)
            if state is None:
                continue
            self.reconciler(state.kind).read(state)
            if not state.present:
                self.store.remove(address)
                removed.append(address)
        self.store.save()
        return removed

    def plan(self, manifest: Manifest) -> Plan:
        """Compute what :meth:`apply` would do, without any change.

        Evaluation problems (a disk asked to shrink, a dangling
        reference) are attached to the change concerned rather than
        raised.
        """
        plan = Plan()
        declared = set(manifest.addresses())

        for kind, name, config in manifest.resources():
            address = make_address(kind, name)
            plan.changes.append(self._plan_one(address, kind, config, declared))

        for kind in ResourceKind.deletion_order():
            for address in self.store.addresses(kind):
                if address not in declared:
                    change = PlannedChange(
                        address=address,
                        action=ChangeAction.DELETE,
                        resource_id=self.store.id_of(address),
                    )
                    plan.changes.append(change)
        return plan

    def _plan_one(
        self, address: str, kind: ResourceKind, config: BaseModel, declared: set[str]
    ) -> PlannedChange:
        state = self.store.get(address)
        resource_id = state.id if state is not None else None
        change = PlannedChange(address=address, action=ChangeAction.NOOP, resource_id=resource_id)

        for reference in iter_references(config.model_dump()):
            ref_kind, ref_name = parse_reference(reference) or ("", "")
            target = f"{ref_kind}.{ref_name}"
            if target not in declared and target not in self.store:
                change.error = ConfigurationError(
                    f"Reference '{reference}' does not name a declared resource"
                )

        wants_deleted = getattr(config, "state", None) is VMState.DELETED
        if state is None or not state.present:
            if not wants_deleted:
                change.action = ChangeAction.CREATE
            return change

        reconciler = self.reconciler(kind)
        try:
            resolved = self.resolve(kind, config, strict=False)
            baseline = reconciler.baseline(state, resolved)
            changes = evaluate(kind, baseline, resolved, self.settings.shrink_policy)
            if not changes.empty and not changes.requires_replacement:
                observed = reconciler.fetch(state)
                if observed is not None:
                    changes.force_replace.extend(reconciler.check_observed(resolved, observed))
        except HostformError as e:
            change.action = ChangeAction.UPDATE
            change.error = e
            return change

        change.fields = changes.changed
        if changes.requires_replacement:
            change.action = ChangeAction.REPLACE
        elif not changes.empty:
            change.action = ChangeAction.UPDATE
        return change

    def apply(self, manifest: Manifest) -> ApplyResult:
        """Apply ``manifest``.

        Creates and updates run in dependency order, then deletions run
        in reverse order. State is saved after every resource. A failing
        resource is recorded in the result and the run goes on.

        Each declared resource is planned again right before it runs, so
        that a reference to a resource replaced earlier in the same run
        resolves to the new ID.
        """
        plan = self.plan(manifest)
        declared = set(manifest.addresses())
        result = ApplyResult()

        for change in plan.changes:
            if change.action is not ChangeAction.DELETE:
                config = manifest.section(change.kind)[change.name]
                change = self._plan_one(change.address, change.kind, config, declared)
            if change.error is not None:
                logger.warning(f"Skipping {change.address}: {change.error}")
                result.errors.append((change.address, str(change.error)))
                continue
            if change.action is ChangeAction.NOOP:
                result.unchanged.append(change.address)
                continue
            if change.action is ChangeAction.DELETE:
                self._delete(change.address, result)
            else:
                self._apply_one(change, config, result)
            self.store.save()

        logger.info(
            f"Apply complete: {len(result.created)} created, {len(result.updated)} updated, "
            f"{len(result.replaced)} replaced, {len(result.deleted)} deleted, "
            f"{len(result.errors)} failed"
        )
        return result

    def _apply_one(self, change: PlannedChange, config: BaseModel, result: ApplyResult) -> None:
        address = change.address
        reconciler = self.reconciler(change.kind)
        state: ResourceState | None = None
        try:
            resolved = self.resolve(change.kind, config)
            if change.action is ChangeAction.CREATE:
                logger.info(f"Creating {address}")
                report = reconciler.create(resolved)
            else:
                state = self.store.get(address)
                if state is None:
                    raise ConfigurationError(f"{address} is not in state")
                logger.info(f"Updating {address}")
                report = reconciler.update(state, resolved)
        except HostformError as e:
            logger.warning(f"{address} failed: {e}")
            result.errors.append((address, str(e)))
            if state is not None:
                self.store.put(address, state)
            return

        self.store.put(address, report.state)
        result.reports[address] = report
        if report.operation == "create":
            result.created.append(address)
        elif report.operation == "replace":
            result.replaced.append(address)
        elif report.state.present:
            result.updated.append(address)
        else:
            result.deleted.append(address)
        if not report.ok:
            result.errors.append((address, str(PartialUpdateError(report))))

    def _delete(self, address: str, result: ApplyResult) -> None:
        state = self.store.get(address)
        if state is None:
            return
        try:
            logger.info(f"Deleting {address}")
            self.reconciler(state.kind).delete(state)
        except HostformError as e:
            logger.warning(f"{address} failed: {e}")
            result.errors.append((address, str(e)))
            return
        self.store.remove(address)
        result.deleted.append(address)

    def import_resource(self, address: str, resource_id: str) -> ResourceState:
        """Start managing an existing resource under ``address``.

        The resource is read back and its configuration rebuilt from
        what the hosting service reports. Fields that are never reported
        back (a disk's image, a VM's login) are taken from the manifest
        the next time it is applied.

        Args:
            address: Address to record the resource at, ``kind.name``.
            resource_id: Provider ID of the resource. SSH keys are
                identified by name.

        Returns:
            The recorded state.

        Raises:
            ConfigurationError: If the address is malformed or already
                managed, or the resource is managed under another address.
            ResourceNotFoundError: If the resource does not exist.
            ValidationRejectedError: If the resource cannot be described
                by a valid configuration.
        """
        kind, _ = split_address(address)
        if address in self.store:
            raise ConfigurationError(
                f"{address} is already managed (ID {self.store.id_of(address)})"
            )
        state = self.reconciler(kind).adopt(resource_id)
        for other in self.store.addresses(kind):
            if self.store.id_of(other) == state.id:
                raise ConfigurationError(f"{kind.value} {state.id} is already managed as {other}")

        self.store.put(address, state)
        self.store.save()
        logger.info(f"Imported {address} ({state.id})")
        return state

    def destroy(self) -> ApplyResult:
        """Delete every managed resource, referencing kinds first."""
        result = ApplyResult()
        for kind in ResourceKind.deletion_order():
            for address in self.store.addresses(kind):
                self._delete(address, result)
                self.store.save()
        return result

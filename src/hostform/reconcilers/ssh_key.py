"""SSH key reconciler.

Keys can only be looked up by name, so the managed state keeps the name
from the applied configuration. Keys have no update verb: a new name or
value replaces the key.
"""

from __future__ import annotations

from typing import Any

from hostform.core import existence
from hostform.core.exceptions import ResourceNotFoundError
from hostform.core.spec_builder import parse_config
from hostform.models.catalog import SSHKey
from hostform.models.desired import SSHKeyConfig
from hostform.models.state import ResourceKind, ResourceState
from hostform.reconcilers.base import GroupAction, ReconcileReport, Reconciler
from hostform.utils.logging import get_logger

logger = get_logger("reconcilers.ssh_key")


def _key_name(state: ResourceState) -> str | None:
    config = state.config
    return config.name if isinstance(config, SSHKeyConfig) else None


class SSHKeyReconciler(Reconciler[SSHKeyConfig, SSHKey]):
    """Registers and removes SSH public keys."""

    kind = ResourceKind.SSH_KEY

    def fetch(self, state: ResourceState) -> SSHKey | None:
        name = _key_name(state)
        if not state.id or not name:
            return None
        key = self.hosting.key_from_name(name)
        return key if key is not None and key.id == state.id else None

    def exists(self, state: ResourceState) -> bool:
        return existence.exists(self.hosting, self.kind, state.id, name=_key_name(state))

    def create(self, config: SSHKeyConfig) -> ReconcileReport:
        key = self.hosting.create_key(config.name, config.value)
        logger.info(f"Registered SSH key '{key.name}' ({key.fingerprint or key.id})")
        state = self.new_state(key.id, config, key)
        report = ReconcileReport(kind=self.kind, operation="create", state=state)
        self.read(state)
        return report

    def update_groups(
        self, state: ResourceState, config: SSHKeyConfig, observed: SSHKey
    ) -> list[tuple[str, GroupAction]]:
        return []

    def adopt(self, resource_id: str) -> ResourceState:
        """Start managing an existing key, given its name.

        Keys are only looked up by name, so the name is what identifies
        the key to import.

        Raises:
            ResourceNotFoundError: If no key has that name.
        """
        key = self.hosting.key_from_name(resource_id)
        if key is None:
            raise ResourceNotFoundError(self.kind.value, resource_id)
        config = parse_config(self.kind, self.config_data(key))
        logger.info(f"Imported SSH key '{key.name}' ({key.id})")
        return ResourceState(kind=self.kind, id=key.id, config=config, observed=key, imported=True)

    def config_data(self, observed: SSHKey) -> dict[str, Any]:
        return {"name": observed.name, "value": observed.value}

    def remove(self, state: ResourceState) -> None:
        key = self.fetch(state)
        if key is not None:
            self.hosting.delete_key(key)

"""Tests for the plan/apply engine."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

import pytest

from hostform.core.engine import ChangeAction, Engine, iter_references
from hostform.core.exceptions import (
    ConfigurationError,
    MonotonicViolationError,
    ResourceNotFoundError,
)
from hostform.core.hosting import DiskFilter, IPFilter, VMFilter
from hostform.core.local import LocalHosting
from hostform.core.state import StateStore
from hostform.models.desired import DiskConfig, Manifest, VMConfig
from hostform.models.state import ResourceKind
from hostform.models.vm import VMState

if TYPE_CHECKING:
    from collections.abc import Callable

    from hostform.models.disk import Disk

ALL_ADDRESSES = {"ssh_key.admin", "disk.system", "disk.data", "ip.public", "vm.web"}


@pytest.fixture
def engine(hosting: LocalHosting, store: StateStore) -> Engine:
    return Engine(hosting, store)


@pytest.fixture
def manifest(manifest_data: dict) -> Manifest:
    return Manifest.model_validate(manifest_data)


@pytest.fixture
def applied(engine: Engine, manifest: Manifest) -> Engine:
    result = engine.apply(manifest)
    assert result.success, result.errors
    return engine


def modified(manifest_data: dict, **sections: dict) -> Manifest:
    data = copy.deepcopy(manifest_data)
    for section, entries in sections.items():
        for name, changes in entries.items():
            if changes is None:
                del data[section][name]
            else:
                data[section][name].update(changes)
    return Manifest.model_validate(data)


class TestIterReferences:
    def test_nested(self) -> None:
        config = {"boot_disk": "${disk.system}", "disks": ["${disk.data}", "12"], "memory": 512}

        assert list(iter_references(config)) == ["${disk.system}", "${disk.data}"]


class TestPlan:
    """Tests for Engine.plan()."""

    def test_fresh_plan_creates_everything(self, engine: Engine, manifest: Manifest) -> None:
        plan = engine.plan(manifest)

        assert [c.address for c in plan.changes] == [
            "ssh_key.admin",
            "disk.system",
            "disk.data",
            "ip.public",
            "vm.web",
        ]
        assert all(c.action is ChangeAction.CREATE for c in plan.changes)
        assert plan.summary()["create"] == 5
        assert plan.errors == []

    def test_plan_makes_no_change(
        self, engine: Engine, manifest: Manifest, hosting: LocalHosting
    ) -> None:
        engine.plan(manifest)

        assert hosting.list_disks(DiskFilter()) == []
        assert len(engine.store) == 0

    def test_noop_after_apply(self, applied: Engine, manifest: Manifest) -> None:
        plan = applied.plan(manifest)

        assert not plan.has_changes
        assert {c.action for c in plan.changes} == {ChangeAction.NOOP}

    def test_update_and_replace(self, applied: Engine, manifest_data: dict) -> None:
        manifest = modified(
            manifest_data,
            disks={"data": {"size": 40}},
            ips={"public": {"version": 6}},
        )

        changes = {c.address: c for c in applied.plan(manifest).changes}

        assert changes["disk.data"].action is ChangeAction.UPDATE
        assert changes["disk.data"].fields == ["size"]
        assert changes["ip.public"].action is ChangeAction.REPLACE
        assert changes["ip.public"].fields == ["version"]

    def test_shrink_is_a_plan_error(self, applied: Engine, manifest_data: dict) -> None:
        plan = applied.plan(modified(manifest_data, disks={"data": {"size": 5}}))

        [error] = plan.errors
        assert error.address == "disk.data"
        assert isinstance(error.error, MonotonicViolationError)

    def test_undeclared_resources_are_deleted_referencing_first(
        self, applied: Engine, manifest_data: dict
    ) -> None:
        plan = applied.plan(Manifest())

        assert [c.address for c in plan.changes] == [
            "vm.web",
            "ip.public",
            "disk.system",
            "disk.data",
            "ssh_key.admin",
        ]
        assert {c.action for c in plan.changes} == {ChangeAction.DELETE}

    def test_dangling_reference(self, engine: Engine, manifest_data: dict) -> None:
        manifest = modified(manifest_data, vms={"web": {"disks": ["${disk.missing}"]}})

        [error] = engine.plan(manifest).errors

        assert error.address == "vm.web"
        assert "${disk.missing}" in str(error.error)

    def test_deleted_vm_not_created(self, engine: Engine, manifest_data: dict) -> None:
        manifest = modified(manifest_data, vms={"web": {"state": "deleted"}})

        changes = {c.address: c for c in engine.plan(manifest).changes}

        assert changes["vm.web"].action is ChangeAction.NOOP


class TestApply:
    """Tests for Engine.apply()."""

    def test_creates_everything(
        self, engine: Engine, manifest: Manifest, hosting: LocalHosting
    ) -> None:
        result = engine.apply(manifest)

        assert result.success
        assert set(result.created) == ALL_ADDRESSES
        assert set(engine.store.addresses()) == ALL_ADDRESSES

        [vm] = hosting.describe_vm(VMFilter(id=engine.store.id_of("vm.web")))
        assert vm.hostname == "web-1"
        assert vm.state is VMState.RUNNING
        assert [d.id for d in vm.disks] == [
            engine.store.id_of("disk.system"),
            engine.store.id_of("disk.data"),
        ]
        assert [i.id for i in vm.ips] == [engine.store.id_of("ip.public")]

    def test_state_records_resolved_ids(self, applied: Engine) -> None:
        state = applied.store.get("vm.web")

        assert isinstance(state.config, VMConfig)
        assert state.config.boot_disk == applied.store.id_of("disk.system")
        assert state.config.ssh_keys == [applied.store.id_of("ssh_key.admin")]

    def test_state_is_saved(self, applied: Engine) -> None:
        reloaded = StateStore(applied.store.path)

        assert set(reloaded.addresses()) == ALL_ADDRESSES

    def test_reapply_is_idempotent(
        self, applied: Engine, manifest: Manifest, hosting: LocalHosting
    ) -> None:
        ids = {a: applied.store.id_of(a) for a in ALL_ADDRESSES}

        result = applied.apply(manifest)

        assert set(result.unchanged) == ALL_ADDRESSES
        assert result.created == result.updated == result.replaced == []
        assert {a: applied.store.id_of(a) for a in ALL_ADDRESSES} == ids

    def test_update_in_place(
        self, applied: Engine, manifest_data: dict, hosting: LocalHosting
    ) -> None:
        manifest = modified(
            manifest_data,
            disks={"data": {"size": 40}},
            vms={"web": {"memory": 2048, "state": "halted"}},
        )

        result = applied.apply(manifest)

        assert result.success
        assert set(result.updated) == {"disk.data", "vm.web"}
        [vm] = hosting.describe_vm(VMFilter(id=applied.store.id_of("vm.web")))
        assert vm.memory == 2048
        assert vm.state is VMState.HALTED
        assert vm.disks[1].size == 40

    def test_replaced_ip_is_reattached(
        self, applied: Engine, manifest_data: dict, hosting: LocalHosting
    ) -> None:
        """An attached IP cannot be released, so the old one is reported."""
        old_id = applied.store.id_of("ip.public")

        result = applied.apply(modified(manifest_data, ips={"public": {"version": 6}}))

        new_id = applied.store.id_of("ip.public")
        assert new_id != old_id
        assert result.replaced == ["ip.public"]
        assert [a for a, _ in result.errors] == ["ip.public"]
        # the VM now follows the new address
        assert result.updated == ["vm.web"]
        [vm] = hosting.describe_vm(VMFilter(id=applied.store.id_of("vm.web")))
        assert [i.id for i in vm.ips] == [new_id]
        assert hosting.list_ips(IPFilter(id=old_id))

    def test_shrink_skipped(self, applied: Engine, manifest_data: dict) -> None:
        result = applied.apply(modified(manifest_data, disks={"data": {"size": 5}}))

        assert [a for a, _ in result.errors] == ["disk.data"]
        assert "cannot decrease from 20 to 5" in result.errors[0][1]
        assert applied.store.get("disk.data").config.size == 20

    def test_removed_entries_are_deleted(
        self, applied: Engine, manifest_data: dict, hosting: LocalHosting
    ) -> None:
        data_id = applied.store.id_of("disk.data")
        manifest = modified(manifest_data, disks={"data": None}, vms={"web": {"disks": []}})

        result = applied.apply(manifest)

        assert result.success
        assert result.updated == ["vm.web"]
        assert result.deleted == ["disk.data"]
        assert "disk.data" not in applied.store
        assert hosting.list_disks(DiskFilter(id=data_id)) == []

    def test_failed_create_records_nothing(self, engine: Engine, manifest_data: dict) -> None:
        manifest = modified(manifest_data, disks={"system": {"image": "Plan 9"}})

        result = engine.apply(manifest)

        failed = [a for a, _ in result.errors]
        assert failed[0] == "disk.system"
        assert "disk.system" not in engine.store
        # the VM cannot be resolved without its boot disk
        assert "vm.web" in failed
        assert "vm.web" not in engine.store
        assert "disk.data" in engine.store


class TestResolve:
    def test_resolve(self, applied: Engine) -> None:
        config = DiskConfig(region_id="1", src_disk_id="${disk.system}")

        resolved = applied.resolve(ResourceKind.DISK, config)

        assert resolved.src_disk_id == applied.store.id_of("disk.system")

    def test_unresolved_strict(self, engine: Engine) -> None:
        config = DiskConfig(region_id="1", src_disk_id="${disk.system}")

        with pytest.raises(ConfigurationError, match="Unresolved reference"):
            engine.resolve(ResourceKind.DISK, config)

        assert engine.resolve(ResourceKind.DISK, config, strict=False) == config

    def test_unknown_kind(self, engine: Engine) -> None:
        config = DiskConfig(region_id="1", src_disk_id="${server.web}")

        with pytest.raises(ConfigurationError, match="Unknown resource kind"):
            engine.resolve(ResourceKind.DISK, config)


class TestDestroyRefresh:
    def test_destroy(self, applied: Engine, hosting: LocalHosting) -> None:
        result = applied.destroy()

        assert result.success
        assert result.deleted[0] == "vm.web"
        assert result.deleted[-1] == "ssh_key.admin"
        assert set(result.deleted) == ALL_ADDRESSES
        assert len(applied.store) == 0
        assert hosting.list_disks(DiskFilter()) == []
        assert hosting.list_ips(IPFilter()) == []
        assert hosting.key_from_name("admin") is None

    def test_destroy_empty(self, engine: Engine) -> None:
        assert engine.destroy().deleted == []

    def test_refresh(self, applied: Engine, hosting: LocalHosting) -> None:
        key = hosting.key_from_name("admin")
        hosting.delete_key(key)

        removed = applied.refresh()

        assert removed == ["ssh_key.admin"]
        assert "ssh_key.admin" not in applied.store
        assert "vm.web" in applied.store

    def test_refresh_then_recreate(
        self, applied: Engine, manifest: Manifest, hosting: LocalHosting
    ) -> None:
        hosting.delete_key(hosting.key_from_name("admin"))
        applied.refresh()

        plan = applied.plan(manifest)

        actions = {c.address: c.action for c in plan.changes}
        assert actions["ssh_key.admin"] is ChangeAction.CREATE


class TestImport:
    """Tests for Engine.import_resource()."""

    def test_import_disk(self, engine: Engine, make_disk: Callable[..., Disk]) -> None:
        disk = make_disk("data", 20)

        state = engine.import_resource("disk.data", disk.id)

        assert state.imported
        assert state.config == DiskConfig(region_id="1", name="data", size=20)
        assert engine.store.id_of("disk.data") == disk.id
        reloaded = StateStore(engine.store.path).get("disk.data")
        assert reloaded.imported

    def test_missing_resource(self, engine: Engine) -> None:
        with pytest.raises(ResourceNotFoundError, match="disk '404' not found"):
            engine.import_resource("disk.data", "404")

        assert "disk.data" not in engine.store

    def test_address_already_managed(self, applied: Engine, make_disk: Callable[..., Disk]) -> None:
        disk = make_disk("other", 20)

        with pytest.raises(ConfigurationError, match="disk.data is already managed"):
            applied.import_resource("disk.data", disk.id)

    def test_id_managed_under_other_address(self, applied: Engine) -> None:
        disk_id = applied.store.id_of("disk.data")

        with pytest.raises(ConfigurationError, match="already managed as disk.data"):
            applied.import_resource("disk.copy", disk_id)

        assert "disk.copy" not in applied.store

    def test_malformed_address(self, engine: Engine) -> None:
        with pytest.raises(ConfigurationError):
            engine.import_resource("volume.data", "1")

    def test_imported_image_disk_is_not_replaced(
        self, engine: Engine, manifest_data: dict
    ) -> None:
        system = manifest_data["disks"]["system"]
        created = engine.reconciler(ResourceKind.DISK).create(DiskConfig(**system)).state
        engine.import_resource("disk.system", created.id)

        [change] = engine.plan(Manifest.model_validate({"disks": {"system": system}})).changes

        assert change.error is None
        assert change.action is ChangeAction.NOOP

        grown = Manifest.model_validate({"disks": {"system": {**system, "size": 12}}})
        result = engine.apply(grown)

        assert result.updated == ["disk.system"]
        assert engine.store.id_of("disk.system") == created.id
        state = engine.store.get("disk.system")
        assert not state.imported
        assert state.config.image == "Debian 12"


class TestLiveShrink:
    """A disk grown outside hostform cannot be shrunk back by a manifest."""

    def test_plan_error(self, applied: Engine, manifest_data: dict, hosting: LocalHosting) -> None:
        disk = hosting.list_disks(DiskFilter(id=applied.store.id_of("disk.data")))[0]
        hosting.extend_disk(disk, 30)

        plan = applied.plan(modified(manifest_data, disks={"data": {"size": 30}}))

        [error] = plan.errors
        assert error.address == "disk.data"
        assert isinstance(error.error, MonotonicViolationError)
        assert "from 50 to 30" in str(error.error)

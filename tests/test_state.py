"""Tests for the state store."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from hostform.core.exceptions import ConfigurationError
from hostform.core.state import StateStore, make_address, split_address
from hostform.models.desired import DiskConfig, IPConfig
from hostform.models.state import ResourceKind, ResourceState


class TestAddresses:
    def test_make(self) -> None:
        assert make_address(ResourceKind.PRIVATE_IP, "lan") == "private_ip.lan"

    def test_split(self) -> None:
        assert split_address("private_ip.lan") == (ResourceKind.PRIVATE_IP, "lan")

    @pytest.mark.parametrize("address", ["disk", "disk.", ""])
    def test_malformed(self, address: str) -> None:
        with pytest.raises(ConfigurationError, match="Invalid resource address"):
            split_address(address)

    def test_unknown_kind(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown resource kind"):
            split_address("server.web")


class TestStateStore:
    """Tests for StateStore."""

    def test_empty(self, store: StateStore) -> None:
        assert len(store) == 0
        assert store.get("disk.data") is None
        assert store.id_of("disk.data") is None

    def test_put_and_get(self, store: StateStore, disk_config: DiskConfig) -> None:
        store.put("disk.data", ResourceState(kind=ResourceKind.DISK, id="12", config=disk_config))

        state = store.get("disk.data")

        assert state is not None
        assert state.id == "12"
        assert state.config == disk_config
        assert "disk.data" in store

    def test_round_trip(
        self, store: StateStore, disk_config: DiskConfig, ip_config: IPConfig
    ) -> None:
        store.put("disk.data", ResourceState(kind=ResourceKind.DISK, id="12", config=disk_config))
        store.put("ip.public", ResourceState(kind=ResourceKind.IP, id="20", config=ip_config))
        store.save()

        reloaded = StateStore(store.path)

        assert reloaded.addresses() == ["disk.data", "ip.public"]
        assert reloaded.addresses(ResourceKind.IP) == ["ip.public"]
        assert reloaded.get("ip.public").config == ip_config

    def test_saved_layout(self, store: StateStore, disk_config: DiskConfig) -> None:
        store.put("disk.data", ResourceState(kind=ResourceKind.DISK, id="12", config=disk_config))
        store.save()

        data = yaml.safe_load(store.path.read_text())

        assert data["resources"]["disk.data"] == {
            "kind": "disk",
            "name": "data",
            "id": "12",
            "config": {"region_id": "1", "name": "data", "size": 20},
        }

    def test_imported_flag(self, store: StateStore, disk_config: DiskConfig) -> None:
        state = ResourceState(kind=ResourceKind.DISK, id="12", config=disk_config, imported=True)
        store.put("disk.data", state)
        store.put("disk.other", ResourceState(kind=ResourceKind.DISK, id="13", config=disk_config))
        store.save()

        reloaded = StateStore(store.path)

        assert reloaded.get("disk.data").imported
        assert not reloaded.get("disk.other").imported
        assert "imported" not in reloaded.to_dict()["resources"]["disk.other"]

    def test_put_absent_removes(self, store: StateStore, disk_config: DiskConfig) -> None:
        store.put("disk.data", ResourceState(kind=ResourceKind.DISK, id="12", config=disk_config))

        store.put("disk.data", ResourceState(kind=ResourceKind.DISK))

        assert "disk.data" not in store

    def test_remove(self, store: StateStore) -> None:
        store.put("ip.public", ResourceState(kind=ResourceKind.IP, id="20"))

        assert store.remove("ip.public") is True
        assert store.remove("ip.public") is False

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        path = temp_dir / "state.yaml"
        path.write_text("resources: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            StateStore(path)

    def test_missing_resources(self, temp_dir: Path) -> None:
        path = temp_dir / "state.yaml"
        path.write_text("something: else\n")

        with pytest.raises(ConfigurationError, match="no 'resources' mapping"):
            StateStore(path)

    def test_invalid_recorded_config(self, temp_dir: Path) -> None:
        path = temp_dir / "state.yaml"
        path.write_text(
            yaml.safe_dump(
                {"resources": {"disk.data": {"kind": "disk", "id": "12", "config": {"size": -1}}}}
            )
        )

        with pytest.raises(ConfigurationError, match="Invalid config recorded for disk.data"):
            StateStore(path).get("disk.data")

    def test_save_creates_directory(self, temp_dir: Path) -> None:
        store = StateStore(temp_dir / "nested" / "state.yaml")

        store.save()

        assert store.path.exists()
        assert store.to_dict() == {"resources": {}}

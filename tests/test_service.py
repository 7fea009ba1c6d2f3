"""End-to-end tests for SaveKeeperService with a real Config."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers import SAVE_FILES, FakeClock, read_tree, write_tree

from savekeeper.config import Config
from savekeeper.context import create_context
from savekeeper.errors import (
    InvalidInterval,
    InvalidRetentionCount,
    InvalidSavePath,
    SaveNotFound,
)
from savekeeper.service import SaveKeeperService

SAVE = "Sandbox/MySave"


@pytest.fixture
def config(tmp_path: Path, saves_root: Path) -> Config:
    config = Config(tmp_path / "cfg")
    with config.batch_update():
        config.save_path = saves_root
        config.backup_path = tmp_path / "backups"
    return config


@pytest.fixture
def service(config: Config, clock: FakeClock, save):
    svc = SaveKeeperService(create_context(config, clock=clock, tick_seconds=0.01))
    yield svc
    svc.shutdown()


class TestServiceBackups:
    def test_create_and_list(self, service: SaveKeeperService, tmp_path: Path) -> None:
        created = service.create_backup(SAVE)
        assert created["backup_name"] == "MySave_2024-12-28_14-30-45"
        assert created["deleted_count"] == 0

        listed = service.list_backups(SAVE)
        assert [b["name"] for b in listed] == [created["backup_name"]]
        assert Path(listed[0]["path"]).parent == tmp_path / "backups" / "Sandbox__MySave"
        assert service.list_saves_with_backups() == ["Sandbox__MySave"]

    def test_delete(self, service: SaveKeeperService) -> None:
        created = service.create_backup(SAVE)
        service.delete_backup(SAVE, created["backup_name"])
        assert service.list_backups(SAVE) == []

    def test_missing_save(self, service: SaveKeeperService) -> None:
        with pytest.raises(SaveNotFound):
            service.create_backup("Sandbox/Nope")

    def test_path_outside_saves_root(self, service: SaveKeeperService) -> None:
        with pytest.raises(InvalidSavePath):
            service.create_backup("../outside")

    def test_set_retention_count(self, service: SaveKeeperService, config: Config, clock: FakeClock) -> None:
        service.set_retention_count(2)
        assert config.retention_count == 2
        for _ in range(3):
            service.create_backup(SAVE)
            clock.advance(1)
        assert len(service.list_backups(SAVE)) == 2

        with pytest.raises(InvalidRetentionCount):
            service.set_retention_count(0)


class TestServiceRestore:
    def test_restore_and_undo(
        self, service: SaveKeeperService, saves_root: Path, clock: FakeClock
    ) -> None:
        save_dir = saves_root / SAVE
        backup = service.create_backup(SAVE)
        write_tree(save_dir, {"map_p.bin": b"changed"})
        modified = read_tree(save_dir)
        clock.advance(30)

        restored = service.restore_backup(SAVE, backup["backup_name"])
        assert restored["has_undo_snapshot"]
        assert read_tree(save_dir) == SAVE_FILES

        snapshots = service.list_undo_snapshots(SAVE)
        assert [s["path"] for s in snapshots] == [restored["undo_snapshot_path"]]

        clock.advance(30)
        service.restore_from_undo_snapshot(SAVE, snapshots[0]["name"])
        assert read_tree(save_dir) == modified

        service.delete_undo_snapshot(SAVE, snapshots[0]["name"])
        assert len(service.list_undo_snapshots(SAVE)) == 1


class TestServiceAutoBackup:
    def test_status(self, service: SaveKeeperService) -> None:
        service.enable_auto_backup(SAVE)
        status = service.get_auto_backup_status()
        assert status["is_running"] is False
        assert status["saves"][SAVE]["enabled"] is True

        service.disable_auto_backup(SAVE)
        assert service.get_auto_backup_status()["saves"][SAVE]["enabled"] is False

    def test_interval_persisted(self, service: SaveKeeperService, config: Config) -> None:
        service.set_auto_backup_interval(900)
        assert service.get_auto_backup_status()["interval_seconds"] == 900
        assert Config(config.data_dir).auto_backup_interval == 900

    def test_enable_outside_saves_root_rejected(
        self, service: SaveKeeperService, saves_root: Path
    ) -> None:
        (saves_root.parent / "outside").mkdir()
        with pytest.raises(InvalidSavePath):
            service.enable_auto_backup("../outside")
        assert service.get_auto_backup_status()["saves"] == {}

    def test_invalid_interval(self, service: SaveKeeperService, config: Config) -> None:
        with pytest.raises(InvalidInterval):
            service.set_auto_backup_interval(30)
        assert config.auto_backup_interval == 300

    def test_shutdown_stops_scheduler(self, config: Config, clock: FakeClock, save) -> None:
        service = SaveKeeperService(create_context(config, clock=clock, tick_seconds=0.01))
        service.start_auto_backup()
        assert service.get_auto_backup_status()["is_running"]
        service.shutdown()
        assert not service.context.scheduler.is_running


class TestServiceSubmit:
    def test_submit_returns_future(self, service: SaveKeeperService) -> None:
        future = service.submit("create_backup", SAVE)
        assert future.result(timeout=10)["backup_name"] == "MySave_2024-12-28_14-30-45"

    def test_submit_propagates_errors(self, service: SaveKeeperService) -> None:
        future = service.submit("create_backup", "Sandbox/Nope")
        with pytest.raises(SaveNotFound):
            future.result(timeout=10)

    def test_unknown_operation(self, service: SaveKeeperService) -> None:
        with pytest.raises(ValueError):
            service.submit("shutdown")

"""Tests for restore and undo snapshots."""

from __future__ import annotations

import errno
import shutil
from pathlib import Path

import pytest
from helpers import SAVE_FILES, FakeClock, read_tree, write_tree

from savekeeper.core import restore as restore_module
from savekeeper.core.backup import BackupManager
from savekeeper.core.restore import STRATEGY_REPLACE, RestoreManager
from savekeeper.core.undo import UndoSnapshotManager
from savekeeper.errors import (
    DiskFull,
    NotFound,
    PermissionDenied,
    ResourceBusy,
    RestoreFailed,
    UndoSnapshotFailed,
)
from savekeeper.models.save_entry import SaveEntry

MODIFIED_FILES = {
    "map_p.bin": b"player died here",
    "new_file.txt": b"created after the backup",
}


@pytest.fixture
def save_dir(save: SaveEntry, saves_root: Path) -> Path:
    return save.full_path(saves_root)


@pytest.fixture
def backup_name(backup_manager: BackupManager, save: SaveEntry, save_dir: Path, clock: FakeClock) -> str:
    """Back up the pristine save, then modify the live copy."""
    name = backup_manager.create_backup(save).backup_name
    write_tree(save_dir, MODIFIED_FILES)
    clock.advance(120)
    return name


class TestRestoreBackup:
    def test_round_trip(
        self, restore_manager: RestoreManager, save: SaveEntry, save_dir: Path, backup_name: str
    ) -> None:
        restore_manager.restore_backup(save, backup_name)
        assert read_tree(save_dir) == SAVE_FILES

    def test_creates_one_undo_snapshot_of_previous_state(
        self,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
    ) -> None:
        before = read_tree(save_dir)
        result = restore_manager.restore_backup(save, backup_name)

        snapshots = undo_manager.list_snapshots(save)
        assert len(snapshots) == 1
        assert result.has_undo_snapshot
        assert result.undo_snapshot_path == snapshots[0].path
        assert read_tree(Path(snapshots[0].path)) == before

    def test_result(
        self, restore_manager: RestoreManager, save: SaveEntry, save_dir: Path, backup_name: str
    ) -> None:
        result = restore_manager.restore_backup(save, backup_name)
        assert result.backup_name == backup_name
        assert result.save_path == str(save_dir)
        assert result.strategy == "swap"
        assert result.to_dict()["has_undo_snapshot"] is True

    def test_no_temporary_directories_left(
        self, restore_manager: RestoreManager, save: SaveEntry, save_dir: Path, backup_name: str
    ) -> None:
        restore_manager.restore_backup(save, backup_name)
        assert [p.name for p in save_dir.parent.iterdir()] == ["MySave"]

    def test_backup_not_found(
        self, restore_manager: RestoreManager, undo_manager: UndoSnapshotManager, save: SaveEntry
    ) -> None:
        with pytest.raises(NotFound):
            restore_manager.restore_backup(save, "MySave_1999-01-01_00-00-00")
        assert undo_manager.list_snapshots(save) == []

    def test_restore_when_save_missing(
        self,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
    ) -> None:
        shutil.rmtree(save_dir)
        result = restore_manager.restore_backup(save, backup_name)
        assert read_tree(save_dir) == SAVE_FILES
        assert not result.has_undo_snapshot
        assert undo_manager.list_snapshots(save) == []

    def test_replace_strategy(
        self, tmp_config, restore_manager: RestoreManager, save: SaveEntry, save_dir: Path, backup_name: str
    ) -> None:
        tmp_config.restore_strategy = STRATEGY_REPLACE
        result = restore_manager.restore_backup(save, backup_name)
        assert result.strategy == STRATEGY_REPLACE
        assert read_tree(save_dir) == SAVE_FILES

    def test_falls_back_when_rename_unsupported(
        self,
        restore_manager: RestoreManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_rename = Path.rename

        def rename(self, target):
            if self == save_dir:
                raise OSError(errno.EXDEV, "Invalid cross-device link")
            return real_rename(self, target)

        monkeypatch.setattr(Path, "rename", rename)
        result = restore_manager.restore_backup(save, backup_name)

        assert result.strategy == STRATEGY_REPLACE
        assert read_tree(save_dir) == SAVE_FILES
        assert [p.name for p in save_dir.parent.iterdir()] == ["MySave"]


class TestRestoreFailures:
    def test_undo_snapshot_failure_aborts(
        self,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        before = read_tree(save_dir)

        def refuse(_save):
            raise PermissionDenied(save_dir)

        monkeypatch.setattr(undo_manager, "create_snapshot", refuse)

        with pytest.raises(UndoSnapshotFailed) as exc_info:
            restore_manager.restore_backup(save, backup_name)
        assert isinstance(exc_info.value.cause, PermissionDenied)
        assert read_tree(save_dir) == before

    def test_copy_failure_with_swap_leaves_save_untouched(
        self,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        before = read_tree(save_dir)

        def disk_full(src, dst):
            raise DiskFull(dst)

        monkeypatch.setattr(restore_module, "copy_tree", disk_full)

        with pytest.raises(RestoreFailed) as exc_info:
            restore_manager.restore_backup(save, backup_name)

        error = exc_info.value
        assert error.save_intact
        assert isinstance(error.cause, DiskFull)
        assert read_tree(save_dir) == before

        snapshots = undo_manager.list_snapshots(save)
        assert len(snapshots) == 1
        assert error.undo_snapshot_path == snapshots[0].path
        assert read_tree(Path(snapshots[0].path)) == before

    def test_copy_failure_with_replace_points_to_undo_snapshot(
        self,
        tmp_config,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        tmp_config.restore_strategy = STRATEGY_REPLACE
        before = read_tree(save_dir)

        def disk_full(src, dst):
            raise DiskFull(dst)

        monkeypatch.setattr(restore_module, "copy_tree", disk_full)

        with pytest.raises(RestoreFailed) as exc_info:
            restore_manager.restore_backup(save, backup_name)

        error = exc_info.value
        assert not error.save_intact
        assert error.undo_snapshot_path in str(error)
        assert read_tree(Path(error.undo_snapshot_path)) == before
        assert len(undo_manager.list_snapshots(save)) == 1

    def test_failed_cleanup_keeps_restore_error(
        self,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        before = read_tree(save_dir)
        real_rename = Path.rename
        real_delete_tree = restore_module.delete_tree

        def rename(self, target):
            if self.name.startswith(".MySave.restore-"):
                raise OSError(errno.EACCES, "Permission denied")
            return real_rename(self, target)

        def delete_tree(path):
            if Path(path).name.startswith(".MySave.restore-"):
                raise PermissionDenied(path)
            return real_delete_tree(path)

        monkeypatch.setattr(Path, "rename", rename)
        monkeypatch.setattr(restore_module, "delete_tree", delete_tree)

        with pytest.raises(RestoreFailed) as exc_info:
            restore_manager.restore_backup(save, backup_name)

        error = exc_info.value
        assert error.save_intact
        assert isinstance(error.cause, PermissionDenied)
        assert error.undo_snapshot_path == undo_manager.list_snapshots(save)[0].path
        assert read_tree(save_dir) == before

    def test_cannot_delete_backup_being_restored(
        self,
        restore_manager: RestoreManager,
        backup_manager: BackupManager,
        save: SaveEntry,
        backup_name: str,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_copy_tree = restore_module.copy_tree
        seen: list[Exception] = []

        def copy_and_try_delete(src, dst):
            try:
                backup_manager.delete_backup(save, backup_name)
            except ResourceBusy as e:
                seen.append(e)
            return real_copy_tree(src, dst)

        monkeypatch.setattr(restore_module, "copy_tree", copy_and_try_delete)
        restore_manager.restore_backup(save, backup_name)

        assert len(seen) == 1
        assert backup_manager.get_backup(save, backup_name)


class TestUndoSnapshots:
    def test_list_empty(self, undo_manager: UndoSnapshotManager, save: SaveEntry) -> None:
        assert undo_manager.list_snapshots(save) == []

    def test_stored_under_undo_namespace(
        self, undo_manager: UndoSnapshotManager, save: SaveEntry, tmp_path: Path
    ) -> None:
        snapshot = undo_manager.create_snapshot(save)
        assert Path(snapshot.path).parent == tmp_path / "backups" / ".undo" / "Sandbox__MySave"
        assert snapshot.to_dict()["save_name"] == "Sandbox/MySave"

    def test_not_listed_as_backups_or_rotated(
        self,
        backup_manager: BackupManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        clock: FakeClock,
    ) -> None:
        undo_manager.create_snapshot(save)
        for _ in range(3):
            clock.advance(60)
            backup_manager.create_backup(save, 1)
        assert backup_manager.count_backups(save) == 1
        assert len(undo_manager.list_snapshots(save)) == 1

    def test_restore_from_undo_snapshot(
        self,
        restore_manager: RestoreManager,
        undo_manager: UndoSnapshotManager,
        save: SaveEntry,
        save_dir: Path,
        backup_name: str,
        clock: FakeClock,
    ) -> None:
        modified = read_tree(save_dir)
        result = restore_manager.restore_backup(save, backup_name)
        assert read_tree(save_dir) == SAVE_FILES

        clock.advance(60)
        snapshot_name = Path(result.undo_snapshot_path).name
        restore_manager.restore_from_undo_snapshot(save, snapshot_name)

        assert read_tree(save_dir) == modified
        snapshots = undo_manager.list_snapshots(save)
        assert len(snapshots) == 2
        assert read_tree(Path(snapshots[0].path)) == SAVE_FILES

    def test_restore_from_missing_snapshot(self, restore_manager: RestoreManager, save: SaveEntry) -> None:
        with pytest.raises(NotFound):
            restore_manager.restore_from_undo_snapshot(save, "MySave_2024-01-01_00-00-00")

    def test_delete_snapshot(self, undo_manager: UndoSnapshotManager, save: SaveEntry) -> None:
        snapshot = undo_manager.create_snapshot(save)
        undo_manager.delete_snapshot(save, snapshot.name)
        assert undo_manager.list_snapshots(save) == []
        assert not Path(snapshot.path).exists()

    def test_delete_missing_snapshot(self, undo_manager: UndoSnapshotManager, save: SaveEntry) -> None:
        with pytest.raises(NotFound):
            undo_manager.delete_snapshot(save, "MySave_2024-01-01_00-00-00")

    def test_snapshots_newest_first(
        self, undo_manager: UndoSnapshotManager, save: SaveEntry, clock: FakeClock
    ) -> None:
        first = undo_manager.create_snapshot(save)
        clock.advance(5)
        second = undo_manager.create_snapshot(save)
        assert [s.name for s in undo_manager.list_snapshots(save)] == [second.name, first.name]

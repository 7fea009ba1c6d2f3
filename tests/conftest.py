"""Shared fixtures."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from helpers import SAVE_FILES, FakeClock, write_tree

from savekeeper.core.backup import BackupManager
from savekeeper.core.locks import SaveLockRegistry
from savekeeper.core.restore import RestoreManager
from savekeeper.core.undo import UndoSnapshotManager
from savekeeper.models.save_entry import SaveEntry


@pytest.fixture
def saves_root(tmp_path: Path) -> Path:
    root = tmp_path / "saves"
    root.mkdir()
    return root


@pytest.fixture
def tmp_config(tmp_path: Path, saves_root: Path):
    """Create a mock Config pointing to a temp directory."""
    config = MagicMock()
    config.save_path = saves_root
    config.backup_path = tmp_path / "backups"
    config.data_dir = tmp_path
    config.retention_count = 5
    config.auto_backup_interval = 300
    config.restore_strategy = "swap"
    return config


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 12, 28, 14, 30, 45, tzinfo=timezone.utc))


@pytest.fixture
def save(saves_root: Path) -> SaveEntry:
    """A save at Sandbox/MySave with a few nested files."""
    entry = SaveEntry.from_relative_path("Sandbox/MySave")
    write_tree(entry.full_path(saves_root), SAVE_FILES)
    return entry


@pytest.fixture
def locks() -> SaveLockRegistry:
    return SaveLockRegistry()


@pytest.fixture
def backup_manager(tmp_config, locks: SaveLockRegistry, clock: FakeClock) -> BackupManager:
    return BackupManager(tmp_config, locks, clock)


@pytest.fixture
def undo_manager(tmp_config, locks: SaveLockRegistry, clock: FakeClock) -> UndoSnapshotManager:
    return UndoSnapshotManager(tmp_config, locks, clock)


@pytest.fixture
def restore_manager(
    tmp_config, backup_manager: BackupManager, undo_manager: UndoSnapshotManager
) -> RestoreManager:
    return RestoreManager(tmp_config, backup_manager, undo_manager)

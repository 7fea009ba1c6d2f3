"""Undo snapshots — copies of a save taken right before a restore overwrites it."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from savekeeper.core.locks import OP_BACKUP
from savekeeper.core.store import SnapshotStore, resolve_save_dir
from savekeeper.errors import SaveNotFound
from savekeeper.models.backup_record import UndoSnapshot

if TYPE_CHECKING:
    from savekeeper.models.save_entry import SaveEntry

UNDO_DIR_NAME = ".undo"


class UndoSnapshotManager(SnapshotStore[UndoSnapshot]):
    """
    Undo snapshots live under ``{backup_root}/.undo/{save.storage_key}/``.

    The leading dot keeps them out of backup listings and rotation. They are
    never deleted automatically.
    """

    record_type = UndoSnapshot
    kind = "undo snapshot"

    @property
    def root(self) -> Path:
        return self.backup_root / UNDO_DIR_NAME

    def create_snapshot(self, save: SaveEntry) -> UndoSnapshot:
        """Snapshot the live save directory."""
        save_dir = resolve_save_dir(self._config, save)
        with self._locks.hold(save.relative_path, OP_BACKUP):
            if not save_dir.is_dir():
                raise SaveNotFound(save.relative_path)
            snapshot = self._snapshot(save, save_dir)
        logger.info(f"Created undo snapshot: {snapshot.name} for {save.relative_path}")
        return snapshot

    def list_snapshots(self, save: SaveEntry) -> list[UndoSnapshot]:
        """List undo snapshots for a save, newest first."""
        return self.list_records(save)

    def get_snapshot(self, save: SaveEntry, snapshot_name: str) -> UndoSnapshot:
        return self.get_record(save, snapshot_name)

    def delete_snapshot(self, save: SaveEntry, snapshot_name: str) -> None:
        self.delete_record(save, snapshot_name)

"""Backup manager — timestamped full-directory backups with retention rotation."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger

from savekeeper.core.file_ops import delete_tree
from savekeeper.core.locks import OP_BACKUP
from savekeeper.core.retention import select_for_deletion, validate_retention_count
from savekeeper.core.store import SnapshotStore, resolve_save_dir
from savekeeper.errors import FileOpsError, SaveNotFound
from savekeeper.models.backup_record import BackupRecord, BackupResult

if TYPE_CHECKING:
    from savekeeper.models.save_entry import SaveEntry


class BackupManager(SnapshotStore[BackupRecord]):
    """
    Full-copy backup engine.

    Backups live at ``{backup_root}/{save.storage_key}/{name}/``. Creating a
    backup holds the save's lock for the copy and the rotation that follows,
    so two backups of one save never copy at the same time.
    """

    def create_backup(
        self,
        save: SaveEntry,
        retention_count: int | None = None,
        blocking: bool = True,
    ) -> BackupResult:
        """
        Copy the save into a new backup, then rotate old ones.

        ``blocking=True`` waits for a running backup/restore of the same save
        to finish; ``blocking=False`` raises ``BackupInProgress`` or
        ``RestoreInProgress`` instead.
        """
        if retention_count is None:
            retention_count = self._config.retention_count
        keep = validate_retention_count(retention_count)
        save_dir = resolve_save_dir(self._config, save)

        with self._locks.hold(save.relative_path, OP_BACKUP, blocking=blocking):
            if not save_dir.is_dir():
                raise SaveNotFound(save.relative_path)
            record = self._snapshot(save, save_dir)
            retained, deleted = self._rotate_backups(save, keep)

        logger.info(
            f"Created backup: {record.name} for {save.relative_path} "
            f"({record.size_formatted}, {retained} kept, {deleted} rotated)"
        )
        return BackupResult(record=record, retained_count=retained, deleted_count=deleted)

    def _rotate_backups(self, save: SaveEntry, keep: int) -> tuple[int, int]:
        """Remove the oldest backups beyond ``keep``. Returns (retained, deleted)."""
        records = self.list_records(save, measure=False)
        deleted = 0
        for old in select_for_deletion(records, keep):
            try:
                delete_tree(Path(old.path))
                deleted += 1
                logger.debug(f"Rotated old backup: {old.name}")
            except FileOpsError as e:
                logger.warning(f"Failed to rotate backup {old.name}: {e}")
        return len(records) - deleted, deleted

    def list_backups(self, save: SaveEntry) -> list[BackupRecord]:
        """List all backups for a save, newest first."""
        return self.list_records(save)

    def get_backup(self, save: SaveEntry, backup_name: str) -> BackupRecord:
        return self.get_record(save, backup_name)

    def count_backups(self, save: SaveEntry) -> int:
        return len(self.list_records(save, measure=False))

    def delete_backup(self, save: SaveEntry, backup_name: str) -> None:
        """Delete one backup. ``ResourceBusy`` while a restore reads from it."""
        self.delete_record(save, backup_name)

    def list_saves_with_backups(self) -> list[str]:
        """Storage keys of every save that has a backup directory."""
        root = self.backup_root
        if not root.is_dir():
            return []
        return sorted(
            d.name for d in root.iterdir() if d.is_dir() and not d.name.startswith(".")
        )

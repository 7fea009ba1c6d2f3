"""Restore manager — replace a live save from a backup, behind an undo snapshot."""

from __future__ import annotations

import errno
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

from loguru import logger

from savekeeper.core.file_ops import copy_tree, delete_tree, translate_os_error
from savekeeper.core.locks import OP_RESTORE
from savekeeper.core.store import resolve_save_dir
from savekeeper.errors import (
    FileOpsError,
    NotFound,
    RestoreFailed,
    SaveKeeperError,
    UndoSnapshotFailed,
)
from savekeeper.models.backup_record import BackupRecord, RestoreResult, UndoSnapshot

if TYPE_CHECKING:
    from savekeeper.config import Config
    from savekeeper.core.backup import BackupManager
    from savekeeper.core.undo import UndoSnapshotManager
    from savekeeper.models.save_entry import SaveEntry

STRATEGY_SWAP = "swap"
STRATEGY_REPLACE = "replace"
STRATEGIES = (STRATEGY_SWAP, STRATEGY_REPLACE)

# rename() failures that mean the filesystem cannot swap directories at all
_SWAP_UNSUPPORTED_ERRNOS = {
    errno.EXDEV,
    errno.ENOSYS,
    getattr(errno, "ENOTSUP", errno.ENOSYS),
    getattr(errno, "EOPNOTSUPP", errno.ENOSYS),
}


class RestoreManager:
    """
    Restore a save from a backup or an undo snapshot.

    Every restore first snapshots the live save into the undo store; if that
    fails nothing is touched. Then, with the ``swap`` strategy, the source is
    copied to a hidden staging directory next to the save and renamed over
    it, so the live save is only replaced once a complete copy exists. The
    ``replace`` strategy deletes the live save before copying: a failure in
    that window leaves only the undo snapshot, and the raised
    ``RestoreFailed`` points at it.
    """

    def __init__(
        self,
        config: Config,
        backup_manager: BackupManager,
        undo_manager: UndoSnapshotManager,
        strategy: str | None = None,
    ) -> None:
        self._config = config
        self._backups = backup_manager
        self._undo = undo_manager
        self._strategy = strategy

    @property
    def strategy(self) -> str:
        strategy = self._strategy or self._config.restore_strategy
        if strategy not in STRATEGIES:
            logger.warning(f"Unknown restore strategy {strategy!r}, using {STRATEGY_SWAP}")
            return STRATEGY_SWAP
        return strategy

    def restore_backup(self, save: SaveEntry, backup_name: str) -> RestoreResult:
        """Restore ``save`` from one of its backups."""
        record = self._backups.get_backup(save, backup_name)
        return self._restore(save, record)

    def restore_from_undo_snapshot(self, save: SaveEntry, snapshot_name: str) -> RestoreResult:
        """Restore ``save`` from an undo snapshot. The current state is snapshotted too."""
        record = self._undo.get_snapshot(save, snapshot_name)
        return self._restore(save, record)

    def _restore(self, save: SaveEntry, source: BackupRecord) -> RestoreResult:
        save_dir = resolve_save_dir(self._config, save)
        source_dir = Path(source.path)
        locks = self._backups.locks

        with locks.hold(save.relative_path, OP_RESTORE), locks.reading(source_dir):
            if not source_dir.is_dir():
                raise NotFound(f"{save.relative_path}/{source.name}")

            undo = self._take_undo_snapshot(save, save_dir)
            strategy = self.strategy
            if strategy == STRATEGY_SWAP:
                strategy = self._swap_in(save, source_dir, save_dir, undo)
            if strategy == STRATEGY_REPLACE:
                self._replace(save, source_dir, save_dir, undo)

        logger.info(f"Restored {save.relative_path} from {source.name} ({strategy})")
        return RestoreResult(
            save_path=str(save_dir),
            save_name=save.relative_path,
            backup_path=str(source_dir),
            backup_name=source.name,
            undo_snapshot=undo,
            strategy=strategy,
        )

    def _take_undo_snapshot(self, save: SaveEntry, save_dir: Path) -> UndoSnapshot | None:
        if not save_dir.exists():
            logger.info(f"No live save at {save_dir}, restoring without undo snapshot")
            return None
        try:
            return self._undo.create_snapshot(save)
        except SaveKeeperError as e:
            logger.error(f"Undo snapshot failed for {save.relative_path}, restore aborted: {e}")
            raise UndoSnapshotFailed(save.relative_path, e) from e

    def _swap_in(
        self,
        save: SaveEntry,
        source_dir: Path,
        save_dir: Path,
        undo: UndoSnapshot | None,
    ) -> str:
        """Stage a full copy beside the save and rename it into place."""
        undo_path = undo.path if undo else None
        token = uuid4().hex[:8]
        staging = save_dir.parent / f".{save_dir.name}.restore-{token}"
        retired = save_dir.parent / f".{save_dir.name}.retired-{token}"

        try:
            copy_tree(source_dir, staging)
        except SaveKeeperError as e:
            raise RestoreFailed(save.relative_path, e, undo_path, save_intact=True) from e

        live_exists = save_dir.exists()
        if live_exists:
            try:
                save_dir.rename(retired)
            except OSError as e:
                self._discard(staging)
                if e.errno in _SWAP_UNSUPPORTED_ERRNOS:
                    logger.warning(
                        f"Directory rename unsupported at {save_dir} ({e.strerror}), "
                        f"falling back to delete-then-copy"
                    )
                    return STRATEGY_REPLACE
                error = translate_os_error(e, save_dir)
                raise RestoreFailed(save.relative_path, error, undo_path, save_intact=True) from e

        try:
            staging.rename(save_dir)
        except OSError as e:
            intact = self._roll_back(retired, save_dir) if live_exists else True
            self._discard(staging)
            error = translate_os_error(e, save_dir)
            if not intact:
                logger.error(f"Restore of {save.relative_path} lost the live save; undo snapshot: {undo_path}")
            raise RestoreFailed(save.relative_path, error, undo_path, save_intact=intact) from e

        if live_exists:
            self._discard(retired)
        return STRATEGY_SWAP

    @staticmethod
    def _discard(path: Path) -> None:
        """Best-effort removal of a staging or retired tree."""
        try:
            delete_tree(path)
        except FileOpsError as e:
            logger.warning(f"Could not remove leftover restore directory {path}: {e}")

    @staticmethod
    def _roll_back(retired: Path, save_dir: Path) -> bool:
        try:
            retired.rename(save_dir)
            return True
        except OSError as e:
            logger.error(f"Could not move {retired} back to {save_dir}: {e}")
            return False

    def _replace(
        self,
        save: SaveEntry,
        source_dir: Path,
        save_dir: Path,
        undo: UndoSnapshot | None,
    ) -> None:
        """Delete the live save, then copy. Not atomic: a crash in between loses the live save."""
        undo_path = undo.path if undo else None
        if save_dir.exists():
            try:
                delete_tree(save_dir)
            except SaveKeeperError as e:
                logger.error(f"Failed to clear {save_dir} for restore; undo snapshot: {undo_path}")
                raise RestoreFailed(save.relative_path, e, undo_path, save_intact=False) from e

        try:
            copy_tree(source_dir, save_dir)
        except SaveKeeperError as e:
            logger.error(
                f"Restore of {save.relative_path} failed after the save was removed: {e}. "
                f"Undo snapshot: {undo_path}"
            )
            raise RestoreFailed(save.relative_path, e, undo_path, save_intact=False) from e

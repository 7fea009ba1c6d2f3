"""Application context — service container for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from savekeeper.core.auto_backup import AutoBackupScheduler, ErrorCallback
from savekeeper.core.backup import BackupManager
from savekeeper.core.locks import SaveLockRegistry
from savekeeper.core.restore import RestoreManager
from savekeeper.core.undo import UndoSnapshotManager

if TYPE_CHECKING:
    from savekeeper.config import Config
    from savekeeper.core.store import Clock


@dataclass
class AppContext:
    """
    Central service container.

    Every manager shares one ``SaveLockRegistry`` so backup, restore and
    delete on the same save exclude each other.
    """

    config: Config
    locks: SaveLockRegistry
    backup_manager: BackupManager
    undo_manager: UndoSnapshotManager
    restore_manager: RestoreManager
    scheduler: AutoBackupScheduler


def create_context(
    config: Config,
    clock: Clock | None = None,
    tick_seconds: float | None = None,
    on_error: ErrorCallback | None = None,
) -> AppContext:
    """Wire all services and return an AppContext."""
    locks = SaveLockRegistry()
    backup_manager = BackupManager(config, locks, clock)
    undo_manager = UndoSnapshotManager(config, locks, clock)
    restore_manager = RestoreManager(config, backup_manager, undo_manager)

    scheduler_kwargs = {}
    if tick_seconds is not None:
        scheduler_kwargs["tick_seconds"] = tick_seconds
    scheduler = AutoBackupScheduler(
        backup_manager, config, clock=clock, on_error=on_error, **scheduler_kwargs
    )

    return AppContext(
        config=config,
        locks=locks,
        backup_manager=backup_manager,
        undo_manager=undo_manager,
        restore_manager=restore_manager,
        scheduler=scheduler,
    )

"""Operation surface for a UI or CLI — plain dict results and a worker pool."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from loguru import logger

from savekeeper.models.save_entry import SaveEntry

if TYPE_CHECKING:
    from savekeeper.context import AppContext

OPERATIONS = frozenset(
    {
        "create_backup",
        "list_backups",
        "delete_backup",
        "restore_backup",
        "list_undo_snapshots",
        "restore_from_undo_snapshot",
        "delete_undo_snapshot",
        "get_auto_backup_status",
        "start_auto_backup",
        "stop_auto_backup",
        "enable_auto_backup",
        "disable_auto_backup",
        "set_auto_backup_interval",
        "set_retention_count",
        "list_saves_with_backups",
    }
)


class SaveKeeperService:
    """
    Every engine operation, addressed by the save's relative path.

    Methods run on the calling thread. A UI thread should go through
    :meth:`submit`, which runs the operation on a worker pool and returns a
    ``Future``; copies and deletes can take a long time on large saves.
    Errors are the typed ``SaveKeeperError`` subclasses, raised directly or
    through ``Future.result()``.
    """

    def __init__(self, context: AppContext, max_workers: int = 4) -> None:
        self._ctx = context
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="savekeeper-worker"
        )

    @property
    def context(self) -> AppContext:
        return self._ctx

    @staticmethod
    def _entry(save_name: str) -> SaveEntry:
        return SaveEntry.from_relative_path(save_name)

    # ── Backups ──

    def create_backup(self, save_name: str) -> dict:
        return self._ctx.backup_manager.create_backup(self._entry(save_name)).to_dict()

    def list_backups(self, save_name: str) -> list[dict]:
        return [r.to_dict() for r in self._ctx.backup_manager.list_backups(self._entry(save_name))]

    def delete_backup(self, save_name: str, backup_name: str) -> None:
        self._ctx.backup_manager.delete_backup(self._entry(save_name), backup_name)

    def list_saves_with_backups(self) -> list[str]:
        return self._ctx.backup_manager.list_saves_with_backups()

    def set_retention_count(self, count: int) -> None:
        self._ctx.config.retention_count = count

    # ── Restore & undo ──

    def restore_backup(self, save_name: str, backup_name: str) -> dict:
        result = self._ctx.restore_manager.restore_backup(self._entry(save_name), backup_name)
        return result.to_dict()

    def list_undo_snapshots(self, save_name: str) -> list[dict]:
        snapshots = self._ctx.undo_manager.list_snapshots(self._entry(save_name))
        return [s.to_dict() for s in snapshots]

    def restore_from_undo_snapshot(self, save_name: str, snapshot_name: str) -> dict:
        result = self._ctx.restore_manager.restore_from_undo_snapshot(
            self._entry(save_name), snapshot_name
        )
        return result.to_dict()

    def delete_undo_snapshot(self, save_name: str, snapshot_name: str) -> None:
        self._ctx.undo_manager.delete_snapshot(self._entry(save_name), snapshot_name)

    # ── Auto backup ──

    def get_auto_backup_status(self) -> dict:
        return self._ctx.scheduler.get_status().to_dict()

    def start_auto_backup(self) -> None:
        self._ctx.scheduler.start()

    def stop_auto_backup(self) -> None:
        self._ctx.scheduler.stop()

    def enable_auto_backup(self, save_name: str) -> None:
        self._ctx.scheduler.enable_save(self._entry(save_name))

    def disable_auto_backup(self, save_name: str) -> None:
        self._ctx.scheduler.disable_save(self._entry(save_name).relative_path)

    def set_auto_backup_interval(self, seconds: int) -> None:
        self._ctx.scheduler.set_interval(seconds)
        self._ctx.config.auto_backup_interval = seconds

    # ── Async ──

    def submit(self, operation: str, *args: Any) -> Future:
        """Run ``operation`` on the worker pool."""
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
        return self._executor.submit(getattr(self, operation), *args)

    def shutdown(self) -> None:
        """Stop the scheduler (waiting for an in-flight backup) and drain the pool."""
        if self._ctx.scheduler.is_running:
            self._ctx.scheduler.stop()
        self._executor.shutdown(wait=True)
        logger.debug("Service shut down")

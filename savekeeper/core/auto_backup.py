"""Auto-backup scheduler — background thread that backs up enabled saves on an interval."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Callable

from loguru import logger

from savekeeper.core.store import Clock, resolve_save_dir, utc_now
from savekeeper.errors import (
    BackupInProgress,
    InvalidInterval,
    RestoreInProgress,
    SaveKeeperError,
    SaveNotFound,
    SchedulerAlreadyRunning,
    SchedulerNotRunning,
)
from savekeeper.models.auto_backup import AutoBackupStatus, SaveAutoBackupState

if TYPE_CHECKING:
    from savekeeper.config import Config
    from savekeeper.core.backup import BackupManager
    from savekeeper.models.backup_record import BackupResult
    from savekeeper.models.save_entry import SaveEntry

DEFAULT_AUTO_BACKUP_INTERVAL = 300
MIN_AUTO_BACKUP_INTERVAL = 60
MAX_AUTO_BACKUP_INTERVAL = 86400

DEFAULT_TICK_SECONDS = 10.0

ErrorCallback = Callable[[str, Exception], None]


def validate_interval(seconds: int) -> int:
    if not MIN_AUTO_BACKUP_INTERVAL <= seconds <= MAX_AUTO_BACKUP_INTERVAL:
        raise InvalidInterval(seconds, MIN_AUTO_BACKUP_INTERVAL, MAX_AUTO_BACKUP_INTERVAL)
    return seconds


class AutoBackupScheduler:
    """
    Periodic backups for saves that opted in.

    A daemon thread evaluates every enabled save once per tick and backs up
    the ones whose ``next_backup_time`` has passed (a save with no backup
    yet is due immediately). Backups are requested with ``blocking=False``,
    so a save that is busy with a manual backup or restore is skipped for
    this tick instead of queueing. Failures are logged and handed to
    ``on_error``; the save keeps its old ``last_backup_time`` and is retried
    on the next tick.

    All state lives in one ``AutoBackupStatus`` guarded by ``_lock``;
    callers only ever get copies of it.
    """

    def __init__(
        self,
        backup_manager: BackupManager,
        config: Config,
        interval_seconds: int | None = None,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        clock: Clock | None = None,
        on_error: ErrorCallback | None = None,
    ) -> None:
        self._backups = backup_manager
        self._config = config
        self._clock = clock or utc_now
        self._tick_seconds = tick_seconds
        self._on_error = on_error

        if interval_seconds is None:
            interval_seconds = config.auto_backup_interval
        self._status = AutoBackupStatus(
            is_running=False,
            interval_seconds=validate_interval(interval_seconds),
        )
        self._entries: dict[str, SaveEntry] = {}
        self._lock = threading.Lock()
        self._lifecycle = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # ── Lifecycle ──

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._status.is_running

    @property
    def interval_seconds(self) -> int:
        with self._lock:
            return self._status.interval_seconds

    def start(self) -> None:
        """Start the background thread. Raises if already running."""
        with self._lifecycle:
            with self._lock:
                if self._status.is_running:
                    raise SchedulerAlreadyRunning()
                self._status.is_running = True
                self._status.started_at = self._clock()

            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run, name="auto-backup", daemon=True)
            self._thread.start()
        logger.info(f"Auto backup started (interval {self.interval_seconds}s)")

    def stop(self) -> None:
        """
        Stop future ticks and wait for a backup that is already running.
        """
        with self._lifecycle:
            with self._lock:
                if not self._status.is_running:
                    raise SchedulerNotRunning()

            self._stop_event.set()
            thread = self._thread
            if thread is not None and thread is not threading.current_thread():
                thread.join()
            self._thread = None

            with self._lock:
                self._status.is_running = False
                self._status.started_at = None
        logger.info("Auto backup stopped")

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self.run_pending()
            wait = min(self._tick_seconds, self.interval_seconds)
            if self._stop_event.wait(wait):
                break

    # ── Configuration ──

    def set_interval(self, seconds: int) -> None:
        """Change the interval and recompute ``next_backup_time`` for enabled saves."""
        validate_interval(seconds)
        with self._lock:
            self._status.interval_seconds = seconds
            delta = timedelta(seconds=seconds)
            for state in self._status.saves.values():
                if state.enabled and state.last_backup_time is not None:
                    state.next_backup_time = state.last_backup_time + delta
        logger.info(f"Auto backup interval set to {seconds}s")

    def enable_save(self, save: SaveEntry) -> None:
        save_dir = resolve_save_dir(self._config, save)
        if not save_dir.is_dir():
            raise SaveNotFound(save.relative_path)

        key = save.relative_path
        with self._lock:
            state = self._status.saves.get(key)
            if state is None:
                state = self._status.saves[key] = SaveAutoBackupState(save_name=key)
            self._entries[key] = save
            state.enabled = True
            if state.last_backup_time is None:
                state.next_backup_time = self._clock()
            else:
                state.next_backup_time = state.last_backup_time + timedelta(
                    seconds=self._status.interval_seconds
                )
        logger.info(f"Auto backup enabled for {key}")

    def disable_save(self, save_name: str) -> None:
        with self._lock:
            state = self._status.saves.get(save_name)
            if state is None:
                return
            state.enabled = False
            state.next_backup_time = None
        logger.info(f"Auto backup disabled for {save_name}")

    def is_save_enabled(self, save_name: str) -> bool:
        with self._lock:
            state = self._status.saves.get(save_name)
            return bool(state and state.enabled)

    def get_status(self) -> AutoBackupStatus:
        with self._lock:
            return self._status.copy()

    # ── Ticks ──

    @staticmethod
    def _is_due(state: SaveAutoBackupState, now: datetime) -> bool:
        if state.last_backup_time is None or state.next_backup_time is None:
            return True
        return now >= state.next_backup_time

    def run_pending(self) -> list[BackupResult]:
        """Back up every enabled save that is due. Returns the backups made."""
        now = self._clock()
        with self._lock:
            due = [
                self._entries[name]
                for name, state in self._status.saves.items()
                if state.enabled and name in self._entries and self._is_due(state, now)
            ]

        results: list[BackupResult] = []
        in_worker = threading.current_thread() is self._thread
        for save in due:
            if in_worker and self._stop_event.is_set():
                break
            result = self._backup_one(save, now)
            if result is not None:
                results.append(result)
        return results

    def _backup_one(self, save: SaveEntry, now: datetime) -> BackupResult | None:
        key = save.relative_path
        try:
            result = self._backups.create_backup(
                save, self._config.retention_count, blocking=False
            )
        except (BackupInProgress, RestoreInProgress) as e:
            logger.debug(f"Auto backup skipped for {key}: {e}")
            return None
        except SaveKeeperError as e:
            logger.error(f"Auto backup failed for {key}: {e}")
            self._report(key, e)
            return None
        except Exception as e:
            logger.exception(f"Unexpected error during auto backup of {key}")
            self._report(key, e)
            return None

        with self._lock:
            state = self._status.saves.get(key)
            if state is not None:
                state.last_backup_time = now
                if state.enabled:
                    state.next_backup_time = now + timedelta(seconds=self._status.interval_seconds)
        return result

    def _report(self, save_name: str, error: Exception) -> None:
        if self._on_error is None:
            return
        try:
            self._on_error(save_name, error)
        except Exception:
            logger.exception(f"Auto backup error callback failed for {save_name}")

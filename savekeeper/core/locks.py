"""Per-save lock set shared by backup, restore and delete."""

from __future__ import annotations

import threading
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from savekeeper.errors import BackupInProgress, RestoreInProgress

OP_BACKUP = "backup"
OP_RESTORE = "restore"
OP_DELETE = "delete"


class SaveLockRegistry:
    """
    Keyed re-entrant locks, one per save.

    Also records which operation currently holds each save and which
    backup/snapshot directories a restore is reading from.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._holders: dict[str, str] = {}
        self._reading: Counter[Path] = Counter()

    def _lock_for(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def holder(self, key: str) -> str | None:
        with self._guard:
            return self._holders.get(key)

    @contextmanager
    def hold(self, key: str, operation: str, blocking: bool = True) -> Iterator[None]:
        """
        Hold the lock for ``key`` for the duration of the block.

        With ``blocking=False`` a busy save raises ``RestoreInProgress`` when a
        restore holds it and ``BackupInProgress`` otherwise.
        """
        lock = self._lock_for(key)
        if not lock.acquire(blocking=blocking):
            if self.holder(key) == OP_RESTORE:
                raise RestoreInProgress(key)
            raise BackupInProgress(key)

        with self._guard:
            outermost = key not in self._holders
            if outermost:
                self._holders[key] = operation
        try:
            yield
        finally:
            if outermost:
                with self._guard:
                    self._holders.pop(key, None)
            lock.release()

    @contextmanager
    def reading(self, path: Path) -> Iterator[None]:
        """Mark ``path`` as a restore source for the duration of the block."""
        resolved = Path(path).resolve()
        with self._guard:
            self._reading[resolved] += 1
        logger.trace(f"Reading from {resolved}")
        try:
            yield
        finally:
            with self._guard:
                self._reading[resolved] -= 1
                if self._reading[resolved] <= 0:
                    del self._reading[resolved]

    def is_reading(self, path: Path) -> bool:
        with self._guard:
            return self._reading.get(Path(path).resolve(), 0) > 0

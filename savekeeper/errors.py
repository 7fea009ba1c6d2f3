"""Typed errors for backup, restore and scheduler operations."""

from __future__ import annotations

from pathlib import Path


class SaveKeeperError(Exception):
    """Base class for every error raised by the engine."""


# ── File operations ──


class FileOpsError(SaveKeeperError):
    """A filesystem operation failed."""

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class SourceNotFound(FileOpsError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Source path does not exist: {path}", path)


class DestinationExists(FileOpsError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Destination already exists: {path}", path)


class NotADirectory(FileOpsError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Path is not a directory: {path}", path)


class FileLocked(FileOpsError):
    """A file is held open by another process, usually the game itself."""

    hint = "The game may still be running. Close it and try again."

    def __init__(self, path: Path | str, detail: str = "") -> None:
        message = f"File is locked by another process: {path}"
        if detail:
            message += f" ({detail})"
        super().__init__(f"{message}. {self.hint}", path)


class PermissionDenied(FileOpsError):
    def __init__(self, path: Path | str, detail: str = "") -> None:
        message = f"Permission denied: {path}"
        if detail:
            message += f" ({detail})"
        super().__init__(message, path)


class DiskFull(FileOpsError):
    def __init__(self, path: Path | str, detail: str = "") -> None:
        message = f"Not enough disk space while writing: {path}"
        if detail:
            message += f" ({detail})"
        super().__init__(message, path)


# ── Coordination ──


class BackupInProgress(SaveKeeperError):
    def __init__(self, save_name: str) -> None:
        super().__init__(f"A backup is already in progress for save: {save_name}")
        self.save_name = save_name


class RestoreInProgress(SaveKeeperError):
    def __init__(self, save_name: str) -> None:
        super().__init__(f"A restore is in progress for save: {save_name}")
        self.save_name = save_name


class ResourceBusy(SaveKeeperError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Cannot delete {path}: a restore is reading from it")
        self.path = Path(path)


# ── Lookup ──


class NotFound(SaveKeeperError):
    def __init__(self, what: str) -> None:
        super().__init__(f"Not found: {what}")
        self.what = what


class InvalidSavePath(SaveKeeperError, ValueError):
    """A save path that is empty or points outside the saves root."""

    def __init__(self, relative_path: str, reason: str) -> None:
        super().__init__(f"Invalid save path {relative_path!r}: {reason}")
        self.relative_path = relative_path


class SaveNotFound(NotFound):
    def __init__(self, save_name: str) -> None:
        SaveKeeperError.__init__(self, f"Save directory not found: {save_name}")
        self.what = save_name


# ── Restore ──


class UndoSnapshotFailed(SaveKeeperError):
    """The safety snapshot could not be taken; the restore was not attempted."""

    def __init__(self, save_name: str, cause: Exception) -> None:
        super().__init__(
            f"Failed to create undo snapshot for {save_name}, restore aborted: {cause}"
        )
        self.save_name = save_name
        self.cause = cause


class RestoreFailed(SaveKeeperError):
    """The restore copy failed. ``undo_snapshot_path`` points at the pre-restore state."""

    def __init__(
        self,
        save_name: str,
        cause: Exception,
        undo_snapshot_path: str | None,
        save_intact: bool,
    ) -> None:
        if save_intact:
            message = f"Restore of {save_name} failed, the current save was left untouched: {cause}"
        elif undo_snapshot_path:
            message = (
                f"Restore of {save_name} failed after the current save was removed: {cause}. "
                f"Recover it from the undo snapshot at {undo_snapshot_path}"
            )
        else:
            message = f"Restore of {save_name} failed after the current save was removed: {cause}"
        super().__init__(message)
        self.save_name = save_name
        self.cause = cause
        self.undo_snapshot_path = undo_snapshot_path
        self.save_intact = save_intact


# ── Validation ──


class InvalidInterval(SaveKeeperError):
    def __init__(self, seconds: int, minimum: int, maximum: int) -> None:
        super().__init__(
            f"Interval must be between {minimum} and {maximum} seconds, got {seconds}"
        )
        self.seconds = seconds


class InvalidRetentionCount(SaveKeeperError):
    def __init__(self, count: int, minimum: int, maximum: int) -> None:
        super().__init__(
            f"Retention count must be between {minimum} and {maximum}, got {count}"
        )
        self.count = count


# ── Scheduler ──


class SchedulerAlreadyRunning(SaveKeeperError):
    def __init__(self) -> None:
        super().__init__("Auto backup service is already running")


class SchedulerNotRunning(SaveKeeperError):
    def __init__(self) -> None:
        super().__init__("Auto backup service is not running")

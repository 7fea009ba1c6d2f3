"""Backup record models."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from savekeeper.utils import format_size

TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_NAME_RE = re.compile(
    r"^(?P<prefix>.+)_(?P<stamp>\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})(?:_(?P<seq>\d+))?$"
)


def make_snapshot_name(prefix: str, created_at: datetime, sequence: int = 0) -> str:
    """``{prefix}_{YYYY-MM-DD}_{HH-mm-ss}``, with ``_{sequence}`` when non-zero."""
    name = f"{prefix}_{created_at.strftime(TIMESTAMP_FORMAT)}"
    if sequence:
        name += f"_{sequence}"
    return name


def parse_snapshot_name(name: str, prefix: str | None = None) -> tuple[datetime, int] | None:
    """
    Return ``(created_at, sequence)`` encoded in a backup name, or None.

    With ``prefix`` given, names made for a different prefix also give None.
    """
    match = _NAME_RE.match(name)
    if not match or (prefix is not None and match["prefix"] != prefix):
        return None
    try:
        created_at = datetime.strptime(match["stamp"], TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return created_at.replace(tzinfo=timezone.utc), int(match["seq"] or 0)


@dataclass
class BackupRecord:
    """A sealed copy of a save directory."""

    name: str
    path: str
    save_name: str
    size_bytes: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    sequence: int = 0

    @property
    def size_formatted(self) -> str:
        return format_size(self.size_bytes)

    @property
    def sort_key(self) -> tuple[datetime, int, str]:
        return (self.created_at, self.sequence, self.name)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "path": self.path,
            "size_bytes": self.size_bytes,
            "size_formatted": self.size_formatted,
            "created_at": self.created_at.isoformat(),
            "save_name": self.save_name,
        }


@dataclass
class UndoSnapshot(BackupRecord):
    """Copy of a save taken right before a restore overwrote it."""


@dataclass
class BackupResult:
    """Result of a backup creation."""

    record: BackupRecord
    retained_count: int
    deleted_count: int

    @property
    def backup_path(self) -> str:
        return self.record.path

    @property
    def backup_name(self) -> str:
        return self.record.name

    def to_dict(self) -> dict:
        return {
            "backup_path": self.backup_path,
            "backup_name": self.backup_name,
            "retained_count": self.retained_count,
            "deleted_count": self.deleted_count,
        }


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    save_path: str
    save_name: str
    backup_path: str
    backup_name: str
    undo_snapshot: UndoSnapshot | None = None
    strategy: str = "swap"

    @property
    def has_undo_snapshot(self) -> bool:
        return self.undo_snapshot is not None

    @property
    def undo_snapshot_path(self) -> str | None:
        return self.undo_snapshot.path if self.undo_snapshot else None

    def to_dict(self) -> dict:
        return {
            "save_path": self.save_path,
            "save_name": self.save_name,
            "backup_path": self.backup_path,
            "backup_name": self.backup_name,
            "undo_snapshot_path": self.undo_snapshot_path,
            "has_undo_snapshot": self.has_undo_snapshot,
            "strategy": self.strategy,
        }

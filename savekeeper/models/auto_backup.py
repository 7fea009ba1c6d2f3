"""Auto-backup state models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class SaveAutoBackupState:
    """Scheduler state for one save."""

    save_name: str
    enabled: bool = False
    last_backup_time: datetime | None = None
    next_backup_time: datetime | None = None

    def to_dict(self) -> dict:
        return {
            "save_name": self.save_name,
            "enabled": self.enabled,
            "last_backup_time": _iso(self.last_backup_time),
            "next_backup_time": _iso(self.next_backup_time),
        }


@dataclass
class AutoBackupStatus:
    """Snapshot of the whole auto-backup service."""

    is_running: bool
    interval_seconds: int
    started_at: datetime | None = None
    saves: dict[str, SaveAutoBackupState] = field(default_factory=dict)

    def copy(self) -> AutoBackupStatus:
        return replace(self, saves={k: replace(v) for k, v in self.saves.items()})

    def to_dict(self) -> dict:
        return {
            "is_running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "started_at": _iso(self.started_at),
            "saves": {name: state.to_dict() for name, state in self.saves.items()},
        }

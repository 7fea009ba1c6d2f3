"""Snapshot store — timestamped full copies of a save under one root directory."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Callable, ClassVar, Generic, TypeVar

from loguru import logger

from savekeeper.core.file_ops import copy_tree, delete_tree, dir_size, translated_errors
from savekeeper.core.locks import OP_DELETE, SaveLockRegistry
from savekeeper.errors import (
    FileOpsError,
    NotFound,
    ResourceBusy,
    SaveNotFound,
    SourceNotFound,
)
from savekeeper.models.backup_record import (
    BackupRecord,
    make_snapshot_name,
    parse_snapshot_name,
)
from savekeeper.utils import sanitize_filename, split_relative_path

if TYPE_CHECKING:
    from savekeeper.config import Config
    from savekeeper.models.save_entry import SaveEntry

R = TypeVar("R", bound=BackupRecord)

Clock = Callable[[], datetime]

STAGING_SUFFIX = ".partial"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def resolve_save_dir(config: Config, save: SaveEntry) -> Path:
    """Absolute path of the live save directory."""
    parts = split_relative_path(save.relative_path)
    saves_root = config.save_path
    if saves_root is None:
        raise SaveNotFound(f"{save.relative_path} (save path is not configured)")
    return saves_root.joinpath(*parts)


class SnapshotStore(Generic[R]):
    """
    Shared create/list/get/delete logic for backups and undo snapshots.

    Layout: ``{root}/{save.storage_key}/{SaveName}_{YYYY-MM-DD}_{HH-mm-ss}/``.
    Copies are written to a hidden ``.{name}.partial`` directory and renamed
    into place once complete, so listings never see a half-written copy.
    """

    record_type: ClassVar[type[BackupRecord]] = BackupRecord
    kind: ClassVar[str] = "backup"

    def __init__(
        self,
        config: Config,
        locks: SaveLockRegistry | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._config = config
        self._locks = locks or SaveLockRegistry()
        self._clock = clock or utc_now

    @property
    def locks(self) -> SaveLockRegistry:
        return self._locks

    @property
    def backup_root(self) -> Path:
        root = self._config.backup_path
        if not root:
            root = self._config.data_dir / "backups"
        return root

    @property
    def root(self) -> Path:
        """Directory holding one subdirectory per save."""
        return self.backup_root

    def save_dir(self, save: SaveEntry) -> Path:
        return self.root / save.storage_key

    # ── Creation ──

    @staticmethod
    def _name_prefix(save: SaveEntry) -> str:
        """Leading part of every record name for ``save``."""
        return sanitize_filename(save.save_name) or save.storage_key

    def _next_name(self, save: SaveEntry, directory: Path) -> tuple[str, datetime, int]:
        created_at = self._clock().replace(microsecond=0)
        prefix = self._name_prefix(save)
        sequence = 0
        name = make_snapshot_name(prefix, created_at, sequence)
        while (directory / name).exists() or (directory / f".{name}{STAGING_SUFFIX}").exists():
            sequence += 1
            name = make_snapshot_name(prefix, created_at, sequence)
        return name, created_at, sequence

    def _snapshot(self, save: SaveEntry, source: Path) -> R:
        """Copy ``source`` into a new sealed record. Caller holds the save lock."""
        directory = self.save_dir(save)
        with translated_errors(directory):
            directory.mkdir(parents=True, exist_ok=True)

        name, created_at, sequence = self._next_name(save, directory)
        final = directory / name
        staging = directory / f".{name}{STAGING_SUFFIX}"

        size = copy_tree(source, staging)
        try:
            with translated_errors(final):
                staging.rename(final)
        except BaseException:
            try:
                delete_tree(staging)
            except FileOpsError as e:
                logger.warning(f"Could not remove staging copy {staging}: {e}")
            raise

        return self.record_type(
            name=name,
            path=str(final),
            save_name=save.relative_path,
            size_bytes=size,
            created_at=created_at,
            sequence=sequence,
        )

    # ── Queries ──

    def _read_record(self, save: SaveEntry, path: Path, measure: bool = True) -> R | None:
        """
        Build a record from a directory name, or None if the name is not one
        of this save's records. ``measure=False`` skips walking the tree.
        """
        parsed = parse_snapshot_name(path.name, prefix=self._name_prefix(save))
        if parsed is None:
            return None
        created_at, sequence = parsed
        return self.record_type(
            name=path.name,
            path=str(path),
            save_name=save.relative_path,
            size_bytes=dir_size(path) if measure else 0,
            created_at=created_at,
            sequence=sequence,
        )

    def list_records(self, save: SaveEntry, measure: bool = True) -> list[R]:
        """
        All records for a save, newest first.

        With ``measure=False`` sizes are left at 0 and no backup tree is walked.
        """
        directory = self.save_dir(save)
        if not directory.is_dir():
            return []

        with translated_errors(directory):
            entries = list(directory.iterdir())

        records: list[R] = []
        for entry in entries:
            if entry.name.startswith(".") or not entry.is_dir():
                continue
            try:
                record = self._read_record(save, entry, measure)
            except SourceNotFound:
                # Deleted by a concurrent delete or rotation
                logger.debug(f"{self.kind.capitalize()} vanished while listing: {entry}")
                continue
            if record is None:
                logger.debug(f"Ignoring unrecognised {self.kind} directory: {entry}")
                continue
            records.append(record)

        records.sort(key=lambda r: r.sort_key, reverse=True)
        return records

    def get_record(self, save: SaveEntry, name: str, measure: bool = True) -> R:
        """Look up one record by name, ``NotFound`` if it does not exist."""
        what = f"{self.kind} {save.relative_path}/{name}"
        if not name or name.startswith(".") or "/" in name or "\\" in name:
            raise NotFound(what)
        path = self.save_dir(save) / name
        if not path.is_dir():
            raise NotFound(what)
        try:
            record = self._read_record(save, path, measure)
        except SourceNotFound:
            raise NotFound(what) from None
        if record is None:
            raise NotFound(what)
        return record

    # ── Deletion ──

    def delete_record(self, save: SaveEntry, name: str) -> None:
        """Remove one record. Refuses while a restore is reading from it."""
        path = Path(self.get_record(save, name, measure=False).path)
        if self._locks.is_reading(path):
            raise ResourceBusy(path)

        with self._locks.hold(save.relative_path, OP_DELETE):
            if not path.is_dir():
                raise NotFound(f"{self.kind} {save.relative_path}/{name}")
            delete_tree(path)

        logger.info(f"Deleted {self.kind}: {name} for {save.relative_path}")

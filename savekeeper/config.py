"""Application configuration stored as ``config.json`` in the data directory."""

from __future__ import annotations

import copy
import json
import os
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator

from loguru import logger

from savekeeper.core.auto_backup import DEFAULT_AUTO_BACKUP_INTERVAL, validate_interval
from savekeeper.core.retention import validate_retention_count
from savekeeper.errors import SaveKeeperError

_instance: "Config | None" = None

# Default data directory
_DEFAULT_DATA_DIR = Path.home() / "Documents" / "SaveKeeper"

CONFIG_FILENAME = "config.json"
DEFAULT_RETENTION_COUNT = 10


def get_config(config_dir: Path | None = None) -> Config:
    """Return the process-wide Config, creating it on first use."""
    global _instance
    if _instance is None:
        _instance = Config(config_dir)
    return _instance


def reset_config() -> None:
    """Forget the process-wide Config (for testing)."""
    global _instance
    _instance = None


def _merge_into(target: dict, incoming: dict) -> None:
    for key, value in incoming.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            _merge_into(current, value)
        else:
            target[key] = value


def _optional_path(raw: str) -> Path | None:
    return Path(raw).expanduser() if raw else None


class Config:
    """
    JSON settings with defaults.

    Reads and writes are serialised on one re-entrant lock, since the
    scheduler thread and the service's worker pool read settings while a
    caller may be changing them. Writes go to a temp file that replaces
    ``config.json``, so a crash never leaves a truncated file.
    """

    _DEFAULTS: dict[str, Any] = {
        "save_path": "",
        "backup_path": "",
        "retention_count": DEFAULT_RETENTION_COUNT,
        "auto_backup_interval": DEFAULT_AUTO_BACKUP_INTERVAL,
        "restore_strategy": "swap",
        "log_level": "INFO",
        "last_selected_save": "",
    }

    # Settings checked on load; a bad hand-edited value falls back to its default
    _VALIDATORS: dict[str, Callable[[int], int]] = {
        "retention_count": validate_retention_count,
        "auto_backup_interval": validate_interval,
    }

    def __init__(self, config_dir: Path | None = None) -> None:
        self._dir = config_dir or _DEFAULT_DATA_DIR
        self._path = self._dir / CONFIG_FILENAME
        self._lock = threading.RLock()
        self._batch_depth = 0
        self._data: dict[str, Any] = copy.deepcopy(self._DEFAULTS)
        self._load()

    def _load(self) -> None:
        if not self._path.exists():
            return
        try:
            stored = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read {self._path}, using defaults: {e}")
            return
        if not isinstance(stored, dict):
            logger.warning(f"Ignoring {self._path}: expected a JSON object")
            return

        _merge_into(self._data, stored)
        for key, validate in self._VALIDATORS.items():
            try:
                validate(int(self._data[key]))
            except (SaveKeeperError, TypeError, ValueError):
                logger.warning(
                    f"Invalid {key} {self._data[key]!r} in config, using {self._DEFAULTS[key]}"
                )
                self._data[key] = self._DEFAULTS[key]

    def _write(self) -> None:
        with self._lock:
            if self._batch_depth:
                return
            self._dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".config-", suffix=".tmp", dir=self._dir)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_name, self._path)
            except OSError as e:
                logger.error(f"Failed to write {self._path}: {e}")
                Path(tmp_name).unlink(missing_ok=True)

    @contextmanager
    def batch_update(self) -> Iterator[None]:
        """Group several ``set`` calls into one write. Nests."""
        with self._lock:
            self._batch_depth += 1
        try:
            yield
        finally:
            with self._lock:
                self._batch_depth -= 1
            self._write()

    # ── Generic access ──

    def get(self, key: str, default: Any = None) -> Any:
        """Look up ``"a.b.c"`` style keys."""
        with self._lock:
            node: Any = self._data
            for part in key.split("."):
                if not isinstance(node, dict) or part not in node:
                    return default
                node = node[part]
            return copy.deepcopy(node)

    def set(self, key: str, value: Any) -> None:
        """Store a value under ``"a.b.c"``, creating intermediate sections."""
        *sections, leaf = key.split(".")
        with self._lock:
            node = self._data
            for part in sections:
                child = node.get(part)
                if not isinstance(child, dict):
                    child = node[part] = {}
                node = child
            node[leaf] = value
            self._write()

    # ── Typed properties ──

    @property
    def data_dir(self) -> Path:
        return self._dir

    @property
    def save_path(self) -> Path | None:
        """Root directory that holds the live saves."""
        return _optional_path(self.get("save_path", ""))

    @save_path.setter
    def save_path(self, value: Path | None) -> None:
        self.set("save_path", str(value) if value else "")

    @property
    def backup_path(self) -> Path | None:
        """Backup root; None means ``{data_dir}/backups``."""
        return _optional_path(self.get("backup_path", ""))

    @backup_path.setter
    def backup_path(self, value: Path | None) -> None:
        self.set("backup_path", str(value) if value else "")

    @property
    def retention_count(self) -> int:
        return int(self.get("retention_count", DEFAULT_RETENTION_COUNT))

    @retention_count.setter
    def retention_count(self, value: int) -> None:
        self.set("retention_count", validate_retention_count(value))

    @property
    def auto_backup_interval(self) -> int:
        return int(self.get("auto_backup_interval", DEFAULT_AUTO_BACKUP_INTERVAL))

    @auto_backup_interval.setter
    def auto_backup_interval(self, value: int) -> None:
        self.set("auto_backup_interval", validate_interval(value))

    @property
    def restore_strategy(self) -> str:
        return self.get("restore_strategy", "swap")

    @property
    def log_level(self) -> str:
        return self.get("log_level", "INFO")

    @property
    def last_selected_save(self) -> str:
        return self.get("last_selected_save", "")

    @last_selected_save.setter
    def last_selected_save(self, value: str) -> None:
        self.set("last_selected_save", value)

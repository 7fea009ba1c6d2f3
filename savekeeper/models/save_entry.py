"""Save entry model."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from savekeeper.utils import encode_relative_path, split_relative_path


@dataclass(frozen=True)
class SaveEntry:
    """One save directory, identified by its path relative to the saves root."""

    game_mode: str
    save_name: str
    relative_path: str

    @classmethod
    def from_relative_path(cls, relative_path: str) -> SaveEntry:
        """
        ``"Sandbox/MySave"`` -> game_mode ``Sandbox``, save_name ``MySave``.

        Raises ``InvalidSavePath`` for empty paths and paths leaving the saves root.
        """
        parts = split_relative_path(relative_path)
        return cls(
            game_mode="/".join(parts[:-1]),
            save_name=parts[-1],
            relative_path="/".join(parts),
        )

    @property
    def storage_key(self) -> str:
        """Directory name used for this save under the backup root."""
        return encode_relative_path(self.relative_path)

    def full_path(self, saves_root: Path) -> Path:
        return saves_root / self.relative_path

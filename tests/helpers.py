"""Test helpers shared across modules."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

SAVE_FILES = {
    "map_p.bin": b"player position",
    "players.db": b"\x00\x01\x02 player table",
    "map/0_0.bin": b"chunk 0 0",
    "map/0_1.bin": b"chunk 0 1",
    "map/deep/nested/1_1.bin": b"nested chunk",
}


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def write_tree(root: Path, files: dict[str, bytes]) -> None:
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)


def read_tree(root: Path) -> dict[str, bytes]:
    """Map of relative posix path -> content for every file under root."""
    return {
        p.relative_to(root).as_posix(): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }

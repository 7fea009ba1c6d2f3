"""Shared utility functions."""

from __future__ import annotations

from pathlib import PureWindowsPath

from savekeeper.errors import InvalidSavePath

ILLEGAL_FILENAME_CHARS = '<>:"|?*'

_SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_size(size_bytes: int) -> str:
    """Format byte count to human-readable string."""
    size = float(size_bytes)
    unit = 0
    while size >= 1024 and unit < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit += 1
    if unit == 0:
        return f"{size_bytes} B"
    return f"{size:.2f} {_SIZE_UNITS[unit]}"


def sanitize_filename(name: str) -> str:
    """Remove or replace illegal filename characters."""
    for ch in ILLEGAL_FILENAME_CHARS:
        name = name.replace(ch, "_")
    name = name.replace("/", "_").replace("\\", "_")
    name = name.replace("\n", " ").replace("\r", "").strip()
    # Collapse multiple spaces
    while "  " in name:
        name = name.replace("  ", " ")
    return name.strip(". ")


# Percent-escaped in storage keys. "%" itself is included so keys decode unambiguously
_KEY_ESCAPE_CHARS = frozenset('%_<>:"|?*/\\')


def split_relative_path(relative_path: str) -> list[str]:
    """
    Split a save path into its components, rejecting anything that would
    resolve outside the saves root.
    """
    normalized = relative_path.replace("\\", "/")
    if PureWindowsPath(normalized).drive:
        raise InvalidSavePath(relative_path, "must be relative to the saves root")
    parts = [p for p in normalized.split("/") if p and p != "."]
    if ".." in parts:
        raise InvalidSavePath(relative_path, "must not leave the saves root")
    if not parts:
        raise InvalidSavePath(relative_path, "path is empty")
    return parts


def _escape_key_part(part: str) -> str:
    escaped = "".join(
        f"%{ord(ch):02X}" if ch in _KEY_ESCAPE_CHARS or ord(ch) < 32 else ch for ch in part
    )
    # Hidden names are reserved for staging and the undo store
    if escaped.startswith("."):
        escaped = "%2E" + escaped[1:]
    if escaped.endswith((".", " ")):
        escaped = escaped[:-1] + f"%{ord(escaped[-1]):02X}"
    return escaped


def encode_relative_path(relative_path: str) -> str:
    """
    Turn a save's relative path into a single path-safe directory name.

    Components are joined with ``__``. ``_``, ``%`` and characters Windows
    forbids are percent-escaped, so two different paths never share a key:
    ``"Sandbox/My Save"`` becomes ``"Sandbox__My Save"`` while
    ``"Sandbox__My Save"`` becomes ``"Sandbox%5F%5FMy Save"``.
    """
    return "__".join(_escape_key_part(p) for p in split_relative_path(relative_path))

"""Directory copier — recursive copy, delete and size with typed errors."""

from __future__ import annotations

import errno
import os
import shutil
import stat
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from loguru import logger

from savekeeper.errors import (
    DestinationExists,
    DiskFull,
    FileLocked,
    FileOpsError,
    NotADirectory,
    PermissionDenied,
    SourceNotFound,
)

# Windows ERROR_SHARING_VIOLATION / ERROR_LOCK_VIOLATION
_LOCKED_WINERRORS = {32, 33}
_LOCKED_ERRNOS = {errno.EBUSY, getattr(errno, "ETXTBSY", errno.EBUSY)}
_PERMISSION_ERRNOS = {errno.EACCES, errno.EPERM}
_DISK_FULL_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


def translate_os_error(exc: OSError, path: Path | str) -> FileOpsError:
    """Map an ``OSError`` to the matching typed error.

    A locked file has to stay distinguishable from a permission problem,
    since the fix for the first one is closing the game.
    """
    detail = exc.strerror or str(exc)
    if exc.errno == errno.ENOENT:
        return SourceNotFound(path)
    if getattr(exc, "winerror", None) in _LOCKED_WINERRORS or exc.errno in _LOCKED_ERRNOS:
        return FileLocked(path, detail)
    if exc.errno in _PERMISSION_ERRNOS:
        return PermissionDenied(path, detail)
    if exc.errno in _DISK_FULL_ERRNOS:
        return DiskFull(path, detail)
    return FileOpsError(f"I/O error on {path}: {detail}", path)


@contextmanager
def translated_errors(path: Path | str) -> Iterator[None]:
    """Re-raise any ``OSError`` in the block as a typed ``FileOpsError``."""
    try:
        yield
    except OSError as e:
        raise translate_os_error(e, path) from e


def copy_tree(source: Path | str, destination: Path | str) -> int:
    """
    Recursively copy ``source`` into a new directory ``destination``.

    Symlinks are resolved and their targets copied. Parent directories of
    ``destination`` are created as needed. If anything fails mid-copy the
    partial destination is removed before the error propagates.

    Returns the number of bytes copied.
    """
    src = Path(source)
    dst = Path(destination)

    if not src.exists():
        raise SourceNotFound(src)
    if not src.is_dir():
        raise NotADirectory(src)
    if dst.exists() or dst.is_symlink():
        raise DestinationExists(dst)

    with translated_errors(dst.parent):
        dst.parent.mkdir(parents=True, exist_ok=True)

    try:
        copied = _copy_dir(src, dst, frozenset())
    except BaseException:
        _remove_partial(dst)
        raise

    logger.debug(f"Copied {copied} bytes: {src} -> {dst}")
    return copied


def _copy_dir(src: Path, dst: Path, ancestors: frozenset[Path]) -> int:
    with translated_errors(src):
        real = src.resolve()
    if real in ancestors:
        logger.warning(f"Skipping symlink cycle at {src}")
        return 0
    ancestors = ancestors | {real}

    with translated_errors(dst):
        dst.mkdir()
    with translated_errors(src):
        entries = sorted(src.iterdir())

    total = 0
    for entry in entries:
        target = dst / entry.name
        with translated_errors(entry):
            is_dir = entry.is_dir()
            is_file = not is_dir and entry.is_file()
        if is_dir:
            total += _copy_dir(entry, target, ancestors)
        elif is_file:
            with translated_errors(entry):
                shutil.copy2(entry, target)
                total += target.stat().st_size
        elif entry.is_symlink():
            logger.warning(f"Skipping dangling symlink: {entry}")
        else:
            logger.warning(f"Skipping special file: {entry}")
    return total


def _make_writable_and_retry(func, path, _exc) -> None:  # noqa: ANN001
    os.chmod(path, stat.S_IWRITE | stat.S_IREAD)
    func(path)


def _remove_partial(dst: Path) -> None:
    if not (dst.exists() or dst.is_symlink()):
        return
    try:
        shutil.rmtree(dst, onexc=_make_writable_and_retry)
    except OSError as e:
        logger.warning(f"Could not remove partial copy {dst}: {e}")


def delete_tree(path: Path | str) -> None:
    """Delete a directory tree. Read-only files are made writable first."""
    target = Path(path)
    if not target.exists():
        raise SourceNotFound(target)
    if not target.is_dir() or target.is_symlink():
        raise NotADirectory(target)

    with translated_errors(target):
        try:
            shutil.rmtree(target)
        except PermissionError:
            # Read-only save files are common on Windows
            shutil.rmtree(target, onexc=_make_writable_and_retry)


def dir_size(path: Path | str) -> int:
    """Total size in bytes of all files under ``path``."""
    root = Path(path)
    if not root.exists():
        raise SourceNotFound(root)
    if not root.is_dir():
        raise NotADirectory(root)

    total = 0
    pending = [root]
    while pending:
        current = pending.pop()
        with translated_errors(current):
            with os.scandir(current) as it:
                for entry in it:
                    if entry.is_dir(follow_symlinks=False):
                        pending.append(Path(entry.path))
                    elif entry.is_file(follow_symlinks=False):
                        total += entry.stat(follow_symlinks=False).st_size
    return total

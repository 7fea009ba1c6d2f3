"""Retention policy — pick which backups fall outside the keep window."""

from __future__ import annotations

from typing import Sequence, TypeVar

from savekeeper.errors import InvalidRetentionCount
from savekeeper.models.backup_record import BackupRecord

MIN_RETENTION_COUNT = 1
MAX_RETENTION_COUNT = 100

R = TypeVar("R", bound=BackupRecord)


def validate_retention_count(keep: int) -> int:
    if not MIN_RETENTION_COUNT <= keep <= MAX_RETENTION_COUNT:
        raise InvalidRetentionCount(keep, MIN_RETENTION_COUNT, MAX_RETENTION_COUNT)
    return keep


def select_for_deletion(backups: Sequence[R], keep: int) -> list[R]:
    """
    Return the oldest records beyond the ``keep`` newest, oldest first.

    Records are ordered by creation time, then by the same-second sequence
    suffix, then by name, so the result does not depend on input order.
    """
    if keep < MIN_RETENTION_COUNT:
        raise InvalidRetentionCount(keep, MIN_RETENTION_COUNT, MAX_RETENTION_COUNT)
    if len(backups) <= keep:
        return []
    ordered = sorted(backups, key=lambda r: r.sort_key)
    return ordered[: len(ordered) - keep]

"""Classify source files against previously recorded metadata."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping

from dossier.workspace.models import FileRecord

from .models import Candidate, ChangeSet, ChangeStatus, FileStat, FileStatus


def stat_file(path: Path | str) -> FileStat:
    """Return the current size and modification time of `path`.

    Raises:
        OSError: If the file cannot be stat'ed.
    """
    result = Path(path).stat()
    return FileStat(
        size=result.st_size,
        mtime=datetime.fromtimestamp(result.st_mtime, tz=timezone.utc),
    )


def compare(record: FileRecord, current: FileStat) -> ChangeStatus:
    """Return ``modified`` or ``unchanged`` for a record that still has a source.

    A record without a trustworthy modification time is always ``modified``.
    """
    recorded = record.recorded_mtime
    if recorded is None or record.size is None:
        return "modified"
    if current.size != record.size or current.mtime > recorded:
        return "modified"
    return "unchanged"


def classify(
    existing: Mapping[str, FileRecord],
    candidates: Mapping[str, Candidate],
) -> ChangeSet:
    """Partition the union of `existing` and `candidates` keys.

    Args:
        existing: Recorded files keyed by identity key.
        candidates: Files observed in this pass keyed by absolute path.

    Returns:
        ChangeSet: ``new`` (only in candidates), ``modified``/``unchanged`` (in
        both), and ``missing`` (only in existing). Each list follows the
        iteration order of its input mapping.
    """
    changes = ChangeSet()

    for key, candidate in candidates.items():
        record = existing.get(key)
        if record is None:
            changes.new.append(FileStatus(key=key, status="new", candidate=candidate))
            continue
        status = compare(record, candidate.stat)
        target = changes.modified if status == "modified" else changes.unchanged
        target.append(FileStatus(key=key, status=status, record=record, candidate=candidate))

    for key, record in existing.items():
        if key not in candidates:
            changes.missing.append(FileStatus(key=key, status="missing", record=record))

    return changes


__all__ = ["classify", "compare", "stat_file"]

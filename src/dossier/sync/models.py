"""Data models describing synchronization passes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from dossier.ingestion.models import ScannedFile
from dossier.workspace.models import FileRecord

ChangeStatus = Literal["new", "modified", "unchanged", "missing"]


class SyncPolicy(str, Enum):
    """Update strategies offered for an existing project."""

    COLLECT = "collect"
    FULL = "full"
    EXISTING = "existing"
    SELECT = "select"


class SyncPhase(str, Enum):
    """Phases of a single synchronization pass."""

    IDLE = "idle"
    SCANNING = "scanning"
    CLASSIFIED = "classified"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COPYING = "copying"
    PERSISTED = "persisted"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class FileStat:
    """Current size and modification time of a source file."""

    size: int
    mtime: datetime

    @property
    def mtime_iso(self) -> str:
        return self.mtime.isoformat()


@dataclass(slots=True)
class Candidate:
    """A source file observed during a pass, with its current metadata.

    Attributes:
        key: Absolute source path.
        stat: Size and modification time read from the filesystem.
        scanned: Scan result when the file came from a tree walk; None when the
            candidate was produced by re-statting an existing record.
    """

    key: str
    stat: FileStat
    scanned: Optional[ScannedFile] = None


@dataclass(slots=True)
class FileStatus:
    """Classification outcome for one key.

    Attributes:
        key: Identity key (absolute source path when known).
        status: One of ``new``, ``modified``, ``unchanged``, ``missing``.
        record: Existing record, absent for new files.
        candidate: Current observation, absent for missing files.
    """

    key: str
    status: ChangeStatus
    record: Optional[FileRecord] = None
    candidate: Optional[Candidate] = None

    @property
    def size(self) -> int | None:
        if self.candidate is not None:
            return self.candidate.stat.size
        return self.record.size if self.record is not None else None


@dataclass(slots=True)
class ChangeSet:
    """Four disjoint groups covering every classified key."""

    new: list[FileStatus] = field(default_factory=list)
    modified: list[FileStatus] = field(default_factory=list)
    unchanged: list[FileStatus] = field(default_factory=list)
    missing: list[FileStatus] = field(default_factory=list)

    @property
    def actionable(self) -> list[FileStatus]:
        """Entries that would be copied by a full sync."""
        return [*self.new, *self.modified]

    @property
    def pick_list(self) -> list[FileStatus]:
        """Entries offered during a selective update."""
        return [*self.modified, *self.missing]

    def counts(self) -> dict[str, int]:
        return {
            "new": len(self.new),
            "modified": len(self.modified),
            "unchanged": len(self.unchanged),
            "missing": len(self.missing),
        }

    def all(self) -> list[FileStatus]:
        return [*self.new, *self.modified, *self.unchanged, *self.missing]


@dataclass(slots=True)
class SyncReport:
    """Outcome of a synchronization pass.

    Attributes:
        project: Name of the project that was synchronized.
        policy: Update strategy used.
        phase: Final phase, either ``persisted`` or ``aborted``.
        changes: Classification computed for the pass.
        copied: Records created for newly collected files.
        updated: Existing records refreshed from modified sources.
        skipped: Keys chosen for action but not copied (e.g. missing sources).
        errors: Per-file or per-directory problems, formatted as ``path: reason``.
        abort_reason: Why the pass stopped before copying, if it did.
    """

    project: str
    policy: SyncPolicy
    phase: SyncPhase = SyncPhase.IDLE
    changes: ChangeSet = field(default_factory=ChangeSet)
    copied: list[FileRecord] = field(default_factory=list)
    updated: list[FileRecord] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    abort_reason: Optional[str] = None

    @property
    def persisted(self) -> bool:
        return self.phase is SyncPhase.PERSISTED

    def counts(self) -> dict[str, int]:
        return {
            **self.changes.counts(),
            "copied": len(self.copied),
            "updated": len(self.updated),
            "skipped": len(self.skipped),
            "errors": len(self.errors),
        }

    def to_payload(self) -> dict[str, Any]:
        """Return a JSON-ready summary of the pass."""
        return {
            "project": self.project,
            "policy": self.policy.value,
            "phase": self.phase.value,
            "abort_reason": self.abort_reason,
            "counts": self.counts(),
            "changes": {
                status: [entry.key for entry in getattr(self.changes, status)]
                for status in ("new", "modified", "unchanged", "missing")
            },
            "copied": [record.model_dump(mode="json", by_alias=True) for record in self.copied],
            "updated": [record.model_dump(mode="json", by_alias=True) for record in self.updated],
            "skipped": list(self.skipped),
            "errors": list(self.errors),
        }


__all__ = [
    "Candidate",
    "ChangeSet",
    "ChangeStatus",
    "FileStat",
    "FileStatus",
    "SyncPhase",
    "SyncPolicy",
    "SyncReport",
]

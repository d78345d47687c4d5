"""Change detection and synchronization passes."""

from .detector import classify, compare, stat_file
from .engine import SyncEngine
from .models import (
    Candidate,
    ChangeSet,
    FileStat,
    FileStatus,
    SyncPhase,
    SyncPolicy,
    SyncReport,
)

__all__ = [
    "Candidate",
    "ChangeSet",
    "FileStat",
    "FileStatus",
    "SyncEngine",
    "SyncPhase",
    "SyncPolicy",
    "SyncReport",
    "classify",
    "compare",
    "stat_file",
]

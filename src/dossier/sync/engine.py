"""Synchronization passes that copy source files into a project workspace."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Callable, Iterable, Sequence

from dossier.ingestion.discovery import TreeScanner
from dossier.ingestion.filters import PathFilter, file_extension
from dossier.ingestion.models import SourceRoot
from dossier.ingestion.naming import CollisionStrategy, NameAllocator
from dossier.workspace import WorkspaceStore
from dossier.workspace.errors import PersistenceError, SourcePathError
from dossier.workspace.models import FileRecord, Project

from .detector import classify, stat_file
from .models import Candidate, FileStatus, SyncPhase, SyncPolicy, SyncReport

LOGGER = logging.getLogger(__name__)

Confirm = Callable[[SyncReport], bool]
Chooser = Callable[[list[FileStatus]], Iterable[FileStatus]]
OfferFullSync = Callable[[SyncReport], bool]


class SyncEngine:
    """Run collection and update passes for one loaded project.

    Every pass scans or re-stats sources, classifies them against the recorded
    files, optionally asks for confirmation, copies the chosen files, and ends
    with a single `WorkspaceStore.save`. A pass that is declined or finds
    nothing to copy ends in `SyncPhase.ABORTED` without touching the disk.
    Individual copy failures are logged and reported but never stop a batch.
    """

    def __init__(
        self,
        store: WorkspaceStore,
        project: Project,
        *,
        default_filter: PathFilter | None = None,
        collisions: CollisionStrategy = "suffix",
    ) -> None:
        """Initialize the engine.

        Args:
            store: Store that owns the project's workspace.
            project: Loaded project to synchronize.
            default_filter: Configured filter; its exclusions apply to full syncs.
            collisions: Strategy for flattened names that clash.
        """
        self.store = store
        self.project = project
        self.default_filter = default_filter or PathFilter()
        self.collisions = collisions
        self.phase = SyncPhase.IDLE

    @property
    def workspace(self) -> Path:
        return self.store.project_path(self.project.name)

    # Policies ---------------------------------------------------------

    def collect(
        self,
        roots: Sequence[SourceRoot],
        path_filter: PathFilter,
        *,
        confirm: Confirm | None = None,
    ) -> SyncReport:
        """Collect files from explicit roots into the project.

        Directory roots are registered as source directories once the pass is
        applied. Files already collected and unchanged are not copied again.

        Args:
            roots: File and directory roots selected by the caller.
            path_filter: Include/exclude rules for this collection.
            confirm: Called before copying; returning False aborts the pass.

        Returns:
            SyncReport: Outcome of the pass.
        """
        report = self._begin(SyncPolicy.COLLECT)
        candidates = self._scan(roots, path_filter, report)
        existing = {
            key: record for key, record in self.project.records_by_key().items() if key in candidates
        }
        report.changes = classify(existing, candidates)
        self._set_phase(report, SyncPhase.CLASSIFIED)

        directories = [str(root.path) for root in roots if root.kind == "directory"]
        return self._finish(report, report.changes.actionable, confirm, directories)

    def plan_full_sync(self, path_filter: PathFilter | None = None) -> SyncReport:
        """Rescan every registered source directory and classify the results."""
        report = self._begin(SyncPolicy.FULL)
        roots: list[SourceRoot] = []
        for directory in self.project.source_directories:
            try:
                roots.append(SourceRoot.from_path(directory))
            except SourcePathError as exc:
                LOGGER.warning("%s", exc)
                report.errors.append(f"{directory}: source directory not accessible")
        candidates = self._scan(roots, path_filter or self.full_sync_filter(), report)
        report.changes = classify(self.project.records_by_key(), candidates)
        self._set_phase(report, SyncPhase.CLASSIFIED)
        return report

    def full_sync(
        self,
        path_filter: PathFilter | None = None,
        *,
        confirm: Confirm | None = None,
    ) -> SyncReport:
        """Copy new and modified files found under the registered source directories."""
        report = self.plan_full_sync(path_filter)
        return self._finish(report, report.changes.actionable, confirm)

    def plan_refresh(self, policy: SyncPolicy = SyncPolicy.EXISTING) -> SyncReport:
        """Re-stat each recorded source path without looking for new files."""
        report = self._begin(policy)
        candidates: dict[str, Candidate] = {}
        for record in self.project.files:
            if not record.full_original_path:
                continue
            try:
                candidates[record.key] = Candidate(
                    key=record.key, stat=stat_file(record.full_original_path)
                )
            except OSError:
                LOGGER.debug("Source missing for %s", record.key)
        report.changes = classify(self.project.records_by_key(), candidates)
        self._set_phase(report, SyncPhase.CLASSIFIED)
        return report

    def refresh_existing(
        self,
        *,
        confirm: Confirm | None = None,
        offer_full_sync: OfferFullSync | None = None,
    ) -> SyncReport:
        """Copy modified sources of recorded files; report missing ones.

        Args:
            confirm: Called before copying; returning False aborts the pass.
            offer_full_sync: Called when nothing is modified; returning True
                continues with `full_sync`.
        """
        report = self.plan_refresh()
        if not report.changes.modified and offer_full_sync is not None:
            if offer_full_sync(report):
                return self.full_sync(confirm=confirm)
        return self._finish(report, report.changes.modified, confirm)

    def selective_sync(
        self,
        choose: Chooser,
        *,
        offer_full_sync: OfferFullSync | None = None,
    ) -> SyncReport:
        """Let the caller pick which modified or missing files to act on.

        Chosen entries whose source is missing are skipped; chosen modified
        entries are copied and their records refreshed.

        Args:
            choose: Receives the ``modified + missing`` pick-list and returns the
                subset to act on.
            offer_full_sync: Called when nothing is modified; returning True
                continues with `full_sync`.
        """
        report = self.plan_refresh(SyncPolicy.SELECT)
        if not report.changes.modified and offer_full_sync is not None:
            if offer_full_sync(report):
                return self.full_sync()

        pick_list = report.changes.pick_list
        if not pick_list:
            return self._abort(report, "No modified or missing files to select.")

        self._set_phase(report, SyncPhase.AWAITING_CONFIRMATION)
        offered = {entry.key for entry in pick_list}
        chosen = [entry for entry in choose(pick_list) if entry.key in offered]
        selected: list[FileStatus] = []
        for entry in chosen:
            if entry.status == "missing":
                LOGGER.info("Skipping %s: source file is missing", entry.key)
                report.skipped.append(entry.key)
            else:
                selected.append(entry)
        if not selected:
            return self._abort(report, "No files selected for update.")
        return self._finish(report, selected, confirm=None)

    def full_sync_filter(self) -> PathFilter:
        """Return the filter used when a full sync is run without one.

        Only extensions already present in the project are collected, combined
        with the configured exclusions. A project without any extensions accepts
        every file.
        """
        extensions = {file_extension(record.original_path) for record in self.project.files}
        extensions.discard("")
        return PathFilter(
            include_extensions=frozenset(extensions) or None,
            exclude_extensions=self.default_filter.exclude_extensions,
            exclude_dirs=self.default_filter.exclude_dirs,
        )

    # Internal helpers -------------------------------------------------

    def _begin(self, policy: SyncPolicy) -> SyncReport:
        report = SyncReport(project=self.project.name, policy=policy)
        self._set_phase(report, SyncPhase.SCANNING)
        return report

    def _set_phase(self, report: SyncReport, phase: SyncPhase) -> None:
        self.phase = phase
        report.phase = phase

    def _abort(self, report: SyncReport, reason: str) -> SyncReport:
        LOGGER.info("Sync of %s aborted: %s", self.project.name, reason)
        report.abort_reason = reason
        self._set_phase(report, SyncPhase.ABORTED)
        return report

    def _scan(
        self,
        roots: Iterable[SourceRoot],
        path_filter: PathFilter,
        report: SyncReport,
    ) -> dict[str, Candidate]:
        scanner = TreeScanner(path_filter)
        candidates: dict[str, Candidate] = {}
        for scanned in scanner.scan(roots):
            if scanned.key in candidates:
                continue
            try:
                stat = stat_file(scanned.path)
            except OSError as exc:
                LOGGER.warning("Unable to stat %s: %s", scanned.path, exc)
                report.errors.append(f"{scanned.path}: {exc}")
                continue
            candidates[scanned.key] = Candidate(key=scanned.key, stat=stat, scanned=scanned)
        report.errors.extend(scanner.errors)
        return candidates

    def _finish(
        self,
        report: SyncReport,
        entries: list[FileStatus],
        confirm: Confirm | None,
        directories: Sequence[str] = (),
    ) -> SyncReport:
        if not entries:
            return self._abort(report, "No new or modified files to copy.")

        if report.phase is not SyncPhase.AWAITING_CONFIRMATION:
            self._set_phase(report, SyncPhase.AWAITING_CONFIRMATION)
            if confirm is not None and not confirm(report):
                return self._abort(report, "Declined by user.")

        # Copied workspace files stay on disk if saving fails; the project does not.
        snapshot = self.project.model_copy(deep=True)
        self._set_phase(report, SyncPhase.COPYING)
        self._copy(report, entries)

        for directory in directories:
            self.project.add_source_directory(directory)
        self.project.add_files(report.copied)
        try:
            self.store.save(self.project)
        except PersistenceError:
            LOGGER.error("Saving %s failed; restoring in-memory project", self.project.name)
            self._restore(snapshot)
            raise
        self._set_phase(report, SyncPhase.PERSISTED)

        counts = report.counts()
        summary = f"{report.policy.value} " + " ".join(
            f"{key}={value}" for key, value in counts.items()
        )
        self.store.append_log(
            self.project.name, [summary, *(f"error: {error}" for error in report.errors)]
        )
        return report

    def _restore(self, snapshot: Project) -> None:
        for field in Project.model_fields:
            setattr(self.project, field, getattr(snapshot, field))

    def _copy(self, report: SyncReport, entries: Iterable[FileStatus]) -> None:
        workspace = self.workspace
        workspace.mkdir(parents=True, exist_ok=True)
        allocator = NameAllocator(
            ((record.new_path, record.key) for record in self.project.files),
            strategy=self.collisions,
        )
        for entry in entries:
            try:
                if entry.record is None:
                    report.copied.append(self._copy_new(entry, allocator, workspace))
                else:
                    report.updated.append(self._copy_modified(entry.record, workspace))
            except OSError as exc:
                LOGGER.error("Error copying %s: %s", entry.key, exc)
                report.errors.append(f"{entry.key}: {exc}")

    def _copy_new(
        self, entry: FileStatus, allocator: NameAllocator, workspace: Path
    ) -> FileRecord:
        candidate = entry.candidate
        if candidate is None or candidate.scanned is None:
            raise FileNotFoundError(f"No scanned source for {entry.key}")
        scanned = candidate.scanned
        stat = stat_file(scanned.path)
        new_path = allocator.allocate(scanned.relative_path, entry.key)
        shutil.copy2(scanned.path, workspace / new_path)
        return FileRecord(
            original_path=scanned.relative_path,
            full_original_path=entry.key,
            new_path=new_path,
            original_directory=str(scanned.path.parent),
            size=stat.size,
            mtime=stat.mtime_iso,
        )

    def _copy_modified(self, record: FileRecord, workspace: Path) -> FileRecord:
        source = Path(record.full_original_path or record.original_path)
        stat = stat_file(source)
        shutil.copy2(source, workspace / record.new_path)
        record.size = stat.size
        record.mtime = stat.mtime_iso
        return record


__all__ = ["Chooser", "Confirm", "OfferFullSync", "SyncEngine"]

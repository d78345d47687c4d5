"""Project workspace persistence for the Dossier CLI."""

from __future__ import annotations

import json
import logging
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable

from pydantic import ValidationError

from .errors import (
    InvalidProjectNameError,
    PersistenceError,
    ProjectExistsError,
    ProjectNotFoundError,
    SourcePathError,
    WorkspaceError,
)
from .models import FileRecord, Project
from .rendering import render_directory_structure
from .structure_file import parse_structure, render_structure_file

LOGGER = logging.getLogger(__name__)

DEFAULT_STATE_DIRNAME = ".dossier"
PROJECTS_DIRNAME = "projects"
CACHE_FILENAME = "project.json"
STRUCTURE_FILENAME = "structure.txt"
INSTRUCTIONS_FILENAME = "analysis.txt"
LOG_FILENAME = "sync.log"
LEGACY_FILENAME = "metadata.json"

PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")

Loader = Callable[[str], "Project | None"]


def validate_project_name(name: str) -> str:
    """Return `name` if it is a safe workspace directory name.

    Raises:
        InvalidProjectNameError: If the name contains anything besides letters,
            digits, hyphens, and underscores.
    """
    if not PROJECT_NAME_PATTERN.match(name or ""):
        raise InvalidProjectNameError(
            f"Invalid project name {name!r}: use only letters, numbers, hyphens and underscores."
        )
    return name


class WorkspaceStore:
    """Create, load, and persist project workspaces under a data directory.

    Each project lives in ``<data_dir>/projects/<name>/``. Collected files sit at
    the top level under their flattened names; bookkeeping files live in a
    ``.dossier`` subdirectory:

    * ``project.json``: cache tier, the complete record list as JSON.
    * ``structure.txt``: durable tier, readable and hand-parseable.
    * ``analysis.txt``: free-form instructions, written only when present.
    * ``sync.log``: one summary line per synchronization pass.

    Projects created by older releases may only have ``structure.txt`` and
    ``analysis.txt`` or ``metadata.json`` at the workspace root; those are read
    once and migrated into ``.dossier``.
    """

    def __init__(self, data_dir: Path, state_dirname: str = DEFAULT_STATE_DIRNAME) -> None:
        """Initialize the store.

        Args:
            data_dir: Base data directory; projects live under ``projects/``.
            state_dirname: Name of the per-project bookkeeping directory.
        """
        self._data_dir = Path(data_dir).expanduser()
        self._state_dirname = state_dirname

    @property
    def projects_root(self) -> Path:
        """Return the directory holding every project workspace."""
        return self._data_dir / PROJECTS_DIRNAME

    @property
    def state_dirname(self) -> str:
        return self._state_dirname

    @property
    def loaders(self) -> list[tuple[str, Loader]]:
        """Return the persisted tiers in load priority order."""
        return [
            ("cache", self._load_cache),
            ("structure", self._load_structure),
            ("root", self._load_root_structure),
            ("legacy", self._load_legacy),
        ]

    def project_path(self, name: str) -> Path:
        """Return the workspace directory for project `name`."""
        return self.projects_root / validate_project_name(name)

    def state_dir(self, name: str) -> Path:
        return self.project_path(name) / self._state_dirname

    def exists(self, name: str) -> bool:
        return self.project_path(name).is_dir()

    def list_projects(self) -> list[str]:
        """Return the names of every project workspace, sorted."""
        if not self.projects_root.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.projects_root.iterdir()
            if entry.is_dir() and PROJECT_NAME_PATTERN.match(entry.name)
        )

    def create(self, name: str, *, overwrite: bool = False) -> Project:
        """Provision a workspace and persist an empty project.

        Args:
            name: Project name.
            overwrite: Replace an existing workspace of the same name.

        Returns:
            Project: The new, empty project.

        Raises:
            InvalidProjectNameError: If `name` is not a safe directory name.
            ProjectExistsError: If the workspace exists and `overwrite` is False.
            PersistenceError: If the workspace cannot be written.
        """
        directory = self.project_path(name)
        if directory.exists():
            if not overwrite:
                raise ProjectExistsError(f"Project {name!r} already exists at {directory}")
            LOGGER.info("Replacing existing workspace %s", directory)
            shutil.rmtree(directory)

        project = Project(name=name)
        self.save(project)
        return project

    def initialize(self, name: str) -> Path:
        """Create the workspace and bookkeeping directories; return the latter."""
        directory = self.state_dir(name)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Unable to create workspace {directory}: {exc}") from exc
        return directory

    def load(self, name: str) -> Project:
        """Load project `name` from the highest-priority readable tier.

        Raises:
            ProjectNotFoundError: If the workspace directory does not exist.
        """
        project, _ = self.load_with_source(name)
        return project

    def load_with_source(self, name: str) -> tuple[Project, str]:
        """Load project `name` and report which tier supplied it.

        Tiers are tried in `loaders` order. A project recovered from a lower tier
        is saved straight away so later loads hit the cache. When no tier holds
        data the result is an empty project and the source is ``"empty"``.

        Returns:
            tuple[Project, str]: The project and the name of the tier used.

        Raises:
            ProjectNotFoundError: If the workspace directory does not exist.
        """
        if not self.exists(name):
            raise ProjectNotFoundError(f"Project {name!r} not found in {self.projects_root}")

        project: Project | None = None
        source = "empty"
        for tier, loader in self.loaders:
            project = loader(name)
            if project is not None:
                source = tier
                break

        if project is None:
            project = Project(name=name)

        instructions_path = self.state_dir(name) / INSTRUCTIONS_FILENAME
        if not instructions_path.is_file() and source in ("root", "legacy"):
            instructions_path = self.project_path(name) / INSTRUCTIONS_FILENAME
        if instructions_path.is_file():
            try:
                project.set_instructions(instructions_path.read_text(encoding="utf-8"))
            except OSError as exc:
                LOGGER.warning("Unable to read instructions for %s: %s", name, exc)

        if source not in ("cache", "empty"):
            try:
                self.save(project)
            except PersistenceError as exc:
                LOGGER.warning("Could not migrate project %s from %s tier: %s", name, source, exc)
            else:
                LOGGER.info("Migrated project %s from %s tier", name, source)

        return project, source

    def save(self, project: Project) -> None:
        """Persist both tiers for `project`.

        The directory structure is regenerated from `project.files`. The old
        cache is removed before the durable document is written and rewritten
        last, so a failure part-way never leaves a stale cache shadowing newer
        data. Blank instructions remove ``analysis.txt``.

        On failure `last_updated` and `directory_structure` are restored.

        Raises:
            PersistenceError: If either tier cannot be written.
        """
        directory = self.initialize(project.name)
        previous = (project.last_updated, project.directory_structure)
        project.last_updated = datetime.now(timezone.utc)
        if project.created_at.tzinfo is None:
            project.created_at = project.created_at.replace(tzinfo=timezone.utc)
        project.set_directory_structure(render_directory_structure(project.files))

        payload = project.model_dump(
            mode="json",
            by_alias=True,
            exclude={"directory_structure", "instructions"},
        )
        try:
            (directory / CACHE_FILENAME).unlink(missing_ok=True)
            (directory / STRUCTURE_FILENAME).write_text(
                render_structure_file(project), encoding="utf-8"
            )
            (directory / CACHE_FILENAME).write_text(
                json.dumps(payload, indent=2, sort_keys=False), encoding="utf-8"
            )
            instructions_path = directory / INSTRUCTIONS_FILENAME
            if project.instructions.strip():
                instructions_path.write_text(project.instructions, encoding="utf-8")
            else:
                instructions_path.unlink(missing_ok=True)
        except OSError as exc:
            project.last_updated, structure = previous
            project.set_directory_structure(structure)
            raise PersistenceError(f"Failed to save project {project.name!r}: {exc}") from exc
        LOGGER.debug("Saved project %s to %s", project.name, directory)

    def append_log(self, name: str, lines: Iterable[str]) -> Path:
        """Append timestamped lines to the project's sync log and return its path."""
        log_path = self.initialize(name) / LOG_FILENAME
        timestamp = datetime.now(timezone.utc).isoformat()
        with log_path.open("a", encoding="utf-8") as log_file:
            for index, line in enumerate(lines):
                prefix = f"[{timestamp}] " if index == 0 else "  "
                log_file.write(f"{prefix}{line}\n")
        return log_path

    # Tier loaders -----------------------------------------------------

    def _load_cache(self, name: str) -> Project | None:
        path = self.state_dir(name) / CACHE_FILENAME
        if not path.is_file():
            return None
        try:
            project = Project.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            LOGGER.warning("Ignoring unreadable cache %s: %s", path, exc)
            return None
        if project.name != name:
            LOGGER.warning("Cache %s names project %r; using %r", path, project.name, name)
            project = project.model_copy(update={"name": name})
        project.set_directory_structure(render_directory_structure(project.files))
        return project

    def _load_structure(self, name: str) -> Project | None:
        return self._project_from_structure(name, self.state_dir(name) / STRUCTURE_FILENAME)

    def _load_root_structure(self, name: str) -> Project | None:
        # A collected file may also be called structure.txt; only accept project documents.
        return self._project_from_structure(
            name, self.project_path(name) / STRUCTURE_FILENAME, require_content=True
        )

    def _project_from_structure(
        self, name: str, path: Path, *, require_content: bool = False
    ) -> Project | None:
        if not path.is_file():
            return None
        try:
            parsed = parse_structure(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable structure file %s: %s", path, exc)
            return None
        if require_content and parsed.name is None and not parsed.files:
            return None
        project = Project(
            name=name,
            source_directories=parsed.source_directories,
            files=parsed.files,
            directory_structure=parsed.directory_structure,
        )
        if parsed.last_updated is not None:
            project.created_at = parsed.last_updated
            project.last_updated = parsed.last_updated
        return project

    def _load_legacy(self, name: str) -> Project | None:
        path = self.project_path(name) / LEGACY_FILENAME
        if not path.is_file():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("legacy metadata must be a JSON object")
            data["name"] = name
            return Project.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            LOGGER.warning("Ignoring unreadable legacy metadata %s: %s", path, exc)
            return None


__all__ = [
    "CACHE_FILENAME",
    "DEFAULT_STATE_DIRNAME",
    "FileRecord",
    "INSTRUCTIONS_FILENAME",
    "InvalidProjectNameError",
    "LEGACY_FILENAME",
    "LOG_FILENAME",
    "PersistenceError",
    "Project",
    "ProjectExistsError",
    "ProjectNotFoundError",
    "STRUCTURE_FILENAME",
    "SourcePathError",
    "WorkspaceError",
    "WorkspaceStore",
    "validate_project_name",
]

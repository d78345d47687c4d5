"""Workspace data models."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None for missing or malformed input."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class WorkspaceModel(BaseModel):
    """Shared configuration: camelCase on disk, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileRecord(WorkspaceModel):
    """Mapping between one collected file and its flattened copy.

    Attributes:
        original_path: Path relative to the scan root at collection time.
        full_original_path: Absolute source path; identity key across re-syncs.
        new_path: Flattened file name inside the workspace directory.
        original_directory: Absolute parent directory of the source file.
        size: Byte length of the last copied version.
        mtime: ISO-8601 modification time of the last copied version.
    """

    original_path: str
    full_original_path: Optional[str] = None
    new_path: str
    original_directory: Optional[str] = None
    size: Optional[int] = None
    mtime: Optional[str] = None

    @property
    def key(self) -> str:
        """Return the identity key for this record."""
        return self.full_original_path or self.original_path

    @property
    def recorded_mtime(self) -> datetime | None:
        """Return `mtime` as a datetime, or None when absent or malformed."""
        return parse_timestamp(self.mtime)

    @property
    def basename(self) -> str:
        return os.path.basename(self.original_path.replace("\\", "/"))


class Project(WorkspaceModel):
    """Aggregate state for one named workspace."""

    name: str
    created_at: datetime = Field(default_factory=_utcnow)
    last_updated: datetime = Field(default_factory=_utcnow)
    source_directories: List[str] = Field(default_factory=list)
    files: List[FileRecord] = Field(default_factory=list)
    directory_structure: str = ""
    instructions: str = ""

    def add_files(self, records: Iterable[FileRecord]) -> None:
        """Add records, replacing any existing record with the same key."""
        positions = {record.key: index for index, record in enumerate(self.files)}
        for record in records:
            index = positions.get(record.key)
            if index is None:
                positions[record.key] = len(self.files)
                self.files.append(record)
            else:
                self.files[index] = record

    def add_source_directory(self, directory: str) -> None:
        """Register `directory` as a scan root unless already present."""
        if directory not in self.source_directories:
            self.source_directories.append(directory)

    def remove_source_directories(self, directories: Iterable[str]) -> None:
        """Forget the given scan roots; collected records are kept."""
        dropped = set(directories)
        self.source_directories = [d for d in self.source_directories if d not in dropped]

    def set_directory_structure(self, structure: str) -> None:
        self.directory_structure = structure

    def set_instructions(self, instructions: str) -> None:
        self.instructions = instructions

    def record_for(self, key: str) -> FileRecord | None:
        """Return the record whose identity key is `key`."""
        for record in self.files:
            if record.key == key:
                return record
        return None

    def find_by_new_path(self, new_path: str) -> FileRecord | None:
        """Return the record stored under the flattened name `new_path`.

        With the `overwrite` collision policy several records can share a name;
        the most recently added one owns the file on disk and is returned.
        """
        for record in reversed(self.files):
            if record.new_path == new_path:
                return record
        return None

    def records_by_key(self) -> dict[str, FileRecord]:
        return {record.key: record for record in self.files}


__all__ = ["FileRecord", "Project", "WorkspaceModel", "parse_timestamp"]

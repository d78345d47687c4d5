"""Durable, human-readable project file (`structure.txt`).

The document has three parts: a header with the project name, last update
time, and registered source directories; a file mapping section with one
``<original path> -> <flattened name>`` line per record; and a verbatim copy of
the rendered directory structure::

    # Project: demo
    # Last Updated: 2024-05-01T10:00:00+00:00
    # Source Directories: /src, /lib

    # File Mapping (Original Path -> Project Path)

    /src/a.js -> a.js
    /src/sub/b.js -> sub_b.js

    # Directory Structure

    <rendered text>

Files written by older releases use ``→`` as the mapping arrow; the parser
accepts both.
"""

from __future__ import annotations

import ntpath
import posixpath
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable

from .models import FileRecord, Project, parse_timestamp
from .rendering import sorted_by_original_path

PROJECT_MARKER = "# Project:"
LAST_UPDATED_MARKER = "# Last Updated:"
SOURCE_DIRECTORIES_MARKER = "# Source Directories:"
FILE_MAPPING_MARKER = "# File Mapping"
DIRECTORY_STRUCTURE_MARKER = "# Directory Structure"

MAPPING_ARROW = " -> "
LEGACY_MAPPING_ARROW = " → "
LIST_DELIMITER = ", "


class ParserState(Enum):
    """Sections of the durable document."""

    HEADER = "header"
    MAPPING = "mapping"
    STRUCTURE = "structure"


@dataclass
class ParsedStructure:
    """Fields recovered from a durable project document."""

    name: str | None = None
    last_updated: datetime | None = None
    source_directories: list[str] = field(default_factory=list)
    files: list[FileRecord] = field(default_factory=list)
    directory_structure: str = ""


def _path_module(path: str):
    if "\\" in path and "/" not in path:
        return ntpath
    return posixpath


def record_from_mapping(original: str, new_path: str) -> FileRecord:
    """Build a partial record from one mapping line; size and mtime are unknown."""
    module = _path_module(original)
    return FileRecord(
        original_path=module.basename(original),
        full_original_path=original,
        new_path=new_path,
        original_directory=module.dirname(original) or None,
    )


def split_mapping_line(line: str) -> tuple[str, str] | None:
    """Split ``<original> -> <new>`` into its parts, or return None."""
    for arrow in (MAPPING_ARROW, LEGACY_MAPPING_ARROW):
        if arrow in line:
            original, _, new_path = line.partition(arrow)
            original, new_path = original.strip(), new_path.strip()
            if original and new_path:
                return original, new_path
            return None
    return None


def parse_source_directories(line: str) -> list[str]:
    value = line[len(SOURCE_DIRECTORIES_MARKER) :].strip()
    return [entry.strip() for entry in value.split(LIST_DELIMITER) if entry.strip()]


class StructureParser:
    """Line-oriented state machine over a durable project document."""

    def __init__(self) -> None:
        self.state = ParserState.HEADER
        self.result = ParsedStructure()
        self._structure_lines: list[str] = []

    def feed(self, line: str) -> None:
        """Consume one line (without its trailing newline)."""
        if self.state is ParserState.STRUCTURE:
            self._structure_lines.append(line)
            return

        if line.startswith(DIRECTORY_STRUCTURE_MARKER):
            self.state = ParserState.STRUCTURE
        elif line.startswith(FILE_MAPPING_MARKER):
            self.state = ParserState.MAPPING
        elif line.startswith(SOURCE_DIRECTORIES_MARKER):
            self.result.source_directories = parse_source_directories(line)
        elif self.state is ParserState.HEADER:
            if line.startswith(PROJECT_MARKER):
                self.result.name = line[len(PROJECT_MARKER) :].strip() or None
            elif line.startswith(LAST_UPDATED_MARKER):
                self.result.last_updated = parse_timestamp(line[len(LAST_UPDATED_MARKER) :])
        elif self.state is ParserState.MAPPING:
            parts = split_mapping_line(line)
            if parts is not None:
                self.result.files.append(record_from_mapping(*parts))

    def finish(self) -> ParsedStructure:
        """Return the parsed result once every line has been fed."""
        text = "\n".join(self._structure_lines).strip("\n")
        self.result.directory_structure = f"{text}\n" if text else ""
        return self.result


def parse_structure(text: str) -> ParsedStructure:
    """Parse a durable project document. Never raises on empty or partial input."""
    parser = StructureParser()
    for line in text.splitlines():
        parser.feed(line)
    return parser.finish()


def render_structure_file(project: Project) -> str:
    """Serialize `project` into the durable document format."""
    lines = [
        f"{PROJECT_MARKER} {project.name}",
        f"{LAST_UPDATED_MARKER} {project.last_updated.isoformat()}",
        f"{SOURCE_DIRECTORIES_MARKER} {LIST_DELIMITER.join(project.source_directories)}",
        "",
        f"{FILE_MAPPING_MARKER} (Original Path{MAPPING_ARROW}Project Path)",
        "",
    ]
    lines += _mapping_lines(project.files)
    text = "\n".join(lines) + "\n"
    if project.directory_structure:
        structure = project.directory_structure.rstrip("\n")
        text += f"\n{DIRECTORY_STRUCTURE_MARKER}\n\n{structure}\n"
    return text


def _mapping_lines(files: Iterable[FileRecord]) -> list[str]:
    return [f"{record.key}{MAPPING_ARROW}{record.new_path}" for record in sorted_by_original_path(files)]


__all__ = [
    "ParsedStructure",
    "ParserState",
    "StructureParser",
    "parse_structure",
    "record_from_mapping",
    "render_structure_file",
    "split_mapping_line",
]

"""Human-readable directory structure view of a project's files."""

from __future__ import annotations

import os
from collections import Counter, defaultdict
from typing import Iterable, Sequence

from .models import FileRecord

PATH_REFERENCE_NOTE = (
    "IMPORTANT: When referring to files in your responses, ALWAYS use the original file "
    "paths (left side) instead of flattened names (right side).\n"
    "When discussing code or files, reference them by their original location in the "
    "project structure.\n"
    'For example, refer to a component as "src/containers/UserProfile.tsx" not as '
    '"src_containers_UserProfile.tsx".\n'
)


def _extension(record: FileRecord) -> str:
    return os.path.splitext(record.basename)[1]


def sorted_by_original_path(files: Iterable[FileRecord]) -> list[FileRecord]:
    """Return records ordered by their identity key, then flattened name."""
    return sorted(files, key=lambda record: (record.key, record.new_path))


def extension_counts(files: Iterable[FileRecord]) -> list[tuple[str, int]]:
    """Return `(extension, count)` pairs by descending count, ties by extension."""
    counts = Counter(_extension(record) for record in files)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def render_directory_structure(files: Sequence[FileRecord]) -> str:
    """Render the structure, mapping, and statistics sections for `files`.

    The output only depends on the record contents, never on their order, so
    saving an unchanged project reproduces it byte for byte.
    """
    lines: list[str] = ["# Project Structure and File Mapping", ""]

    lines += ["## Original Directory Structure", ""]
    grouped: dict[str, list[FileRecord]] = defaultdict(list)
    for record in files:
        if record.original_directory:
            grouped[record.original_directory].append(record)
    for directory in sorted(grouped):
        lines += [f"### {directory}", ""]
        for record in sorted(grouped[directory], key=lambda r: (r.basename, r.new_path)):
            lines.append(f"- {record.basename}")
        lines.append("")

    lines += [
        "## Project Files (Flattened Structure)",
        "",
        "All files are stored with flattened names in the project directory.",
        "",
    ]

    ordered = sorted_by_original_path(files)
    lines += ["## File Mapping", "", "Original Path -> Project Path", ""]
    lines += [f"- `{record.key}` -> `{record.new_path}`" for record in ordered]

    lines += ["", "## Path Reference", ""]
    lines += PATH_REFERENCE_NOTE.splitlines()
    lines += ["", "Path reference:"]
    lines += [f"{record.original_path} -> {record.new_path}" for record in ordered]

    lines += ["", "## File Statistics", "", f"Total files: {len(files)}", "", "Files by extension:"]
    for extension, count in extension_counts(files):
        lines.append(f"- {extension or '(no extension)'}: {count}")

    return "\n".join(lines) + "\n"


__all__ = [
    "PATH_REFERENCE_NOTE",
    "extension_counts",
    "render_directory_structure",
    "sorted_by_original_path",
]

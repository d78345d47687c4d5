"""Include/exclude rules applied while scanning source trees."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Iterable

from dossier.config.models import FilterOptions, normalize_extension

_SEPARATORS = ("/", "\\")


def file_extension(name: str) -> str:
    """Return the lower-cased extension of `name` including the dot, or ``""``."""
    return os.path.splitext(PurePath(name).name)[1].lower()


@dataclass(frozen=True)
class PathFilter:
    """Decide whether scanned files and directories are collected.

    Attributes:
        include_extensions: Extensions to collect, or `None` for every extension.
        exclude_extensions: Extensions never collected. Entries that look like file
            names (for example `package-lock.json`) match a file's full base name.
        exclude_dirs: Directory names pruned during recursive walks.
    """

    include_extensions: frozenset[str] | None = None
    exclude_extensions: frozenset[str] = field(default_factory=frozenset)
    exclude_dirs: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def create(
        cls,
        *,
        include_extensions: Iterable[str] | None = None,
        exclude_extensions: Iterable[str] = (),
        exclude_dirs: Iterable[str] = (),
    ) -> "PathFilter":
        """Build a filter, normalizing extension spellings."""
        include = None
        if include_extensions is not None:
            include = frozenset(normalize_extension(ext) for ext in include_extensions)
        return cls(
            include_extensions=include,
            exclude_extensions=frozenset(
                normalize_extension(ext) for ext in exclude_extensions if ext.strip()
            ),
            exclude_dirs=frozenset(name.strip() for name in exclude_dirs if name.strip()),
        )

    @classmethod
    def from_options(cls, options: FilterOptions) -> "PathFilter":
        """Build a filter from the configured defaults."""
        return cls.create(
            include_extensions=options.include_extensions,
            exclude_extensions=options.exclude_extensions,
            exclude_dirs=options.exclude_dirs,
        )

    def allows_directory(self, name: str) -> bool:
        """Return False when a directory named `name` must not be descended into."""
        for excluded in self.exclude_dirs:
            if name == excluded:
                return False
            if any(name.startswith(excluded + sep) for sep in _SEPARATORS):
                return False
        return True

    def allows_file(self, name: str) -> bool:
        """Return True when a file named `name` passes the extension rules."""
        extension = file_extension(name)
        if extension in self.exclude_extensions:
            return False
        if PurePath(name).name.lower() in self.exclude_extensions:
            return False
        return self.include_extensions is None or extension in self.include_extensions


__all__ = ["PathFilter", "file_extension", "normalize_extension"]

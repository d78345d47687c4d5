"""File discovery utilities."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Iterator

from .filters import PathFilter
from .models import ScannedFile, SourceRoot

LOGGER = logging.getLogger(__name__)


class TreeScanner:
    """Discover files under file and directory roots subject to a `PathFilter`."""

    def __init__(self, path_filter: PathFilter) -> None:
        self.path_filter = path_filter
        self.errors: list[str] = []

    def scan(self, roots: Iterable[SourceRoot]) -> Iterator[ScannedFile]:
        """Yield files discovered under each root in order.

        Directory listings are sorted lexically so repeated scans are reproducible.
        Unreadable directories are logged, recorded in `errors`, and skipped.

        Args:
            roots: Roots to scan; each must already exist.

        Yields:
            ScannedFile: Matching files with paths relative to their root.
        """
        for root in roots:
            if root.kind == "file":
                if self.path_filter.allows_file(root.path.name):
                    yield ScannedFile(path=root.path, relative_path=root.path.name, root=root)
                else:
                    LOGGER.info("Skipping excluded file: %s", root.path)
                continue
            yield from self._walk(root, root.path, "", set())

    def scan_all(self, roots: Iterable[SourceRoot]) -> list[ScannedFile]:
        """Return the complete scan result as a list."""
        return list(self.scan(roots))

    def _walk(
        self,
        root: SourceRoot,
        directory: Path,
        relative: str,
        visited: set[str],
    ) -> Iterator[ScannedFile]:
        real = os.path.realpath(directory)
        if real in visited:
            return
        visited.add(real)

        try:
            with os.scandir(directory) as iterator:
                entries = sorted(iterator, key=lambda entry: entry.name)
        except OSError as exc:
            message = f"{directory}: {exc.strerror or exc}"
            LOGGER.warning("Unable to read directory %s", message)
            self.errors.append(message)
            return

        for entry in entries:
            entry_relative = f"{relative}/{entry.name}" if relative else entry.name
            try:
                if entry.is_dir(follow_symlinks=False):
                    if not self.path_filter.allows_directory(entry.name):
                        LOGGER.debug("Pruning excluded directory %s", entry.path)
                        continue
                    yield from self._walk(root, Path(entry.path), entry_relative, visited)
                elif entry.is_file():
                    if self.path_filter.allows_file(entry.name):
                        yield ScannedFile(
                            path=Path(entry.path), relative_path=entry_relative, root=root
                        )
            except OSError as exc:
                message = f"{entry.path}: {exc.strerror or exc}"
                LOGGER.warning("Unable to inspect %s", message)
                self.errors.append(message)


__all__ = ["TreeScanner"]

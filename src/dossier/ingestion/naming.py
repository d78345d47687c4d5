"""Flattened storage names for collected files."""

from __future__ import annotations

import hashlib
import logging
import os
import re
from typing import Iterable, Literal

LOGGER = logging.getLogger(__name__)

_SEPARATOR_PATTERN = re.compile(r"[/\\]")

CollisionStrategy = Literal["suffix", "overwrite"]


def flatten_path(relative_path: str) -> str:
    """Replace every path separator in `relative_path` with an underscore.

    >>> flatten_path("src/components/App.tsx")
    'src_components_App.tsx'
    """
    return _SEPARATOR_PATTERN.sub("_", relative_path)


def disambiguate(name: str, full_original_path: str) -> str:
    """Append a short hash of `full_original_path` before the extension of `name`."""
    digest = hashlib.sha1(full_original_path.encode("utf-8")).hexdigest()[:8]
    stem, extension = os.path.splitext(name)
    return f"{stem}-{digest}{extension}"


class NameAllocator:
    """Hand out flattened names that are unique within one project.

    The allocator is seeded with the names already owned by existing records so
    previously collected files keep their layout; only newly added files that
    would clash receive a disambiguated name.
    """

    def __init__(
        self,
        owners: Iterable[tuple[str, str]] = (),
        *,
        strategy: CollisionStrategy = "suffix",
    ) -> None:
        self.strategy = strategy
        self._owners: dict[str, str] = {}
        for new_path, original in owners:
            self._owners.setdefault(new_path, original)

    def allocate(self, relative_path: str, full_original_path: str) -> str:
        """Return the storage name for a file and reserve it.

        Args:
            relative_path: Path relative to the scan root.
            full_original_path: Absolute path identifying the file.

        Returns:
            str: Flattened name, disambiguated when another file already owns it.
        """
        name = flatten_path(relative_path)
        owner = self._owners.get(name)
        if owner is not None and owner != full_original_path:
            if self.strategy == "overwrite":
                LOGGER.warning(
                    "Flattened name %s for %s overwrites the copy of %s",
                    name,
                    full_original_path,
                    owner,
                )
            else:
                candidate = disambiguate(name, full_original_path)
                LOGGER.info("Flattened name %s already taken; using %s", name, candidate)
                name = candidate
        self._owners[name] = full_original_path
        return name


__all__ = ["CollisionStrategy", "NameAllocator", "disambiguate", "flatten_path"]

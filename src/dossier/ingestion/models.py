"""Data models shared by the scanning helpers."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from dossier.workspace.errors import SourcePathError

RootKind = Literal["file", "directory"]


@dataclass(frozen=True, slots=True)
class SourceRoot:
    """A path selected for collection, tagged with its kind.

    Attributes:
        path: Absolute path to the file or directory.
        kind: Whether the root is a single file or a directory tree.
    """

    path: Path
    kind: RootKind

    @classmethod
    def from_path(cls, value: Path | str) -> "SourceRoot":
        """Stat `value` once and return a tagged root.

        Args:
            value: User-supplied path.

        Returns:
            SourceRoot: Root with an absolute path and its detected kind.

        Raises:
            SourcePathError: If the path does not exist or is not accessible.
        """
        path = Path(value).expanduser()
        try:
            resolved = path.resolve(strict=True)
        except (OSError, RuntimeError) as exc:
            raise SourcePathError(f"Source path does not exist or is not accessible: {path}") from exc
        kind: RootKind = "directory" if resolved.is_dir() else "file"
        return cls(path=resolved, kind=kind)


@dataclass(frozen=True, slots=True)
class ScannedFile:
    """A file discovered under a source root.

    Attributes:
        path: Absolute path of the file.
        relative_path: Path relative to the root it was found under (POSIX form).
        root: Root that produced the file.
    """

    path: Path
    relative_path: str
    root: SourceRoot

    @property
    def key(self) -> str:
        """Identity key matching `FileRecord.key` for collected files."""
        return str(self.path)


__all__ = ["RootKind", "SourceRoot", "ScannedFile"]

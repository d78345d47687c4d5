"""Source scanning: filters, tree walking, and flattened naming."""

from .discovery import TreeScanner
from .filters import PathFilter, file_extension, normalize_extension
from .models import ScannedFile, SourceRoot
from .naming import NameAllocator, disambiguate, flatten_path

__all__ = [
    "NameAllocator",
    "PathFilter",
    "ScannedFile",
    "SourceRoot",
    "TreeScanner",
    "disambiguate",
    "file_extension",
    "flatten_path",
    "normalize_extension",
]

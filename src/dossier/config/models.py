"""Configuration models describing Dossier settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_EXTENSION_GROUPS: dict[str, list[str]] = {
    "JavaScript": [".js", ".jsx", ".ts", ".tsx"],
    "PHP": [".php"],
    "Python": [".py", ".pyw"],
    "CSS/HTML": [".css", ".scss", ".html", ".htm"],
    "Configuration": [".json", ".yaml", ".yml", ".xml", ".config"],
    "Documentation": [".md", ".txt"],
    "SQL": [".sql"],
    "Shell": [".sh", ".bash"],
}

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


def normalize_extension(value: str) -> str:
    """Return `value` lower-cased with a leading dot (empty stays empty).

    Entries that already contain a dot, such as ``package-lock.json``, are file
    names and only get lower-cased.
    """
    value = value.strip().lower()
    if value and not value.startswith(".") and "." not in value:
        value = f".{value}"
    return value


def _split_entries(value: Any) -> Any:
    """Accept ``"a, b"`` as well as ``[a, b]`` for list-valued settings."""
    if isinstance(value, str):
        return value.split(",")
    return value


def _default_include_extensions() -> list[str]:
    return [ext for group in DEFAULT_EXTENSION_GROUPS.values() for ext in group]


class DossierBaseModel(BaseModel):
    """Shared configuration for Dossier Pydantic models."""

    model_config = ConfigDict(extra="forbid")


class StorageSettings(DossierBaseModel):
    """Where project workspaces live on disk.

    Attributes:
        data_dir: Base directory holding the `projects/` tree.
    """

    data_dir: str = "~/.dossier/data"

    @field_validator("data_dir")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("storage.data_dir must not be empty")
        return value.strip()

    @property
    def path(self) -> Path:
        """Return `data_dir` with ``~`` expanded."""
        return Path(self.data_dir).expanduser()


class FilterOptions(DossierBaseModel):
    """Default include/exclude rules applied when scanning sources.

    Extension lists are normalized on load: ``JS``, ``js`` and ``.js`` are the
    same entry, and duplicates are dropped. Lists may also be given as a
    comma-separated string, which keeps environment overrides short.

    Attributes:
        include_extensions: Extensions to collect; `None` collects every file.
        exclude_extensions: Extensions (or exact file names) that are never collected.
        exclude_dirs: Directory names pruned from recursive scans.
    """

    include_extensions: Optional[List[str]] = Field(default_factory=_default_include_extensions)
    exclude_extensions: List[str] = Field(
        default_factory=lambda: [".lock", "package-lock.json", ".pyc"]
    )
    exclude_dirs: List[str] = Field(
        default_factory=lambda: [
            "node_modules",
            "vendor",
            "dist",
            "build",
            "public",
            ".git",
            "__pycache__",
            "coverage",
        ]
    )

    @field_validator("include_extensions", "exclude_extensions", "exclude_dirs", mode="before")
    @classmethod
    def _accept_comma_lists(cls, value: Any) -> Any:
        return _split_entries(value)

    @field_validator("include_extensions", "exclude_extensions")
    @classmethod
    def _normalize_extensions(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        normalized = (normalize_extension(entry) for entry in value)
        return list(dict.fromkeys(entry for entry in normalized if entry))

    @field_validator("exclude_dirs")
    @classmethod
    def _strip_dirs(cls, value: List[str]) -> List[str]:
        stripped = (entry.strip().rstrip("/\\") for entry in value)
        return list(dict.fromkeys(entry for entry in stripped if entry))


class NamingOptions(DossierBaseModel):
    """Settings for flattened storage names.

    Attributes:
        collisions: `suffix` disambiguates clashing names with a short hash of the
            original path; `overwrite` lets the later file replace the earlier one.
    """

    collisions: Literal["suffix", "overwrite"] = "suffix"


class LoggingSettings(DossierBaseModel):
    """Runtime logging configuration.

    Attributes:
        level: Logging level name, case-insensitive.
    """

    level: str = "WARNING"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"logging.level must be one of {', '.join(LOG_LEVELS)}")
        return level


class CLIOptions(DossierBaseModel):
    """CLI behavior defaults and presentation preferences.

    Attributes:
        quiet_default: Whether commands suppress non-error output by default.
        summary_default: Whether commands only print summary lines by default.
    """

    quiet_default: bool = False
    summary_default: bool = False


class DossierConfig(DossierBaseModel):
    """Top-level configuration struct for Dossier.

    Attributes:
        storage: Workspace storage settings.
        filters: Default scan filters.
        naming: Flattened-name collision policy.
        logging: Logging configuration.
        cli: CLI presentation defaults.
    """

    storage: StorageSettings = Field(default_factory=StorageSettings)
    filters: FilterOptions = Field(default_factory=FilterOptions)
    naming: NamingOptions = Field(default_factory=NamingOptions)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLIOptions = Field(default_factory=CLIOptions)


__all__ = [
    "DEFAULT_EXTENSION_GROUPS",
    "LOG_LEVELS",
    "DossierBaseModel",
    "StorageSettings",
    "FilterOptions",
    "NamingOptions",
    "LoggingSettings",
    "CLIOptions",
    "DossierConfig",
    "normalize_extension",
]

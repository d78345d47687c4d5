"""Configuration management for Dossier."""

from __future__ import annotations

import os
import textwrap
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping

import yaml

from .exceptions import ConfigError
from .models import DossierConfig, FilterOptions
from .resolver import (
    ENV_PREFIX,
    assign_path,
    parse_env_overrides,
    resolve_with_precedence,
)

DEFAULT_CONFIG_PATH = Path("~/.dossier/config.yaml")
_CONFIG_HEADER = textwrap.dedent(
    """\
    # Dossier configuration file
    # Edit with `dossier config edit` or `dossier config set KEY --value VALUE`.
    # Environment variables such as DOSSIER__STORAGE__DATA_DIR override these values.
    """
)


class ConfigManager:
    """Read, validate, and write the Dossier YAML configuration file.

    The file stores only the values a user changed; `load` layers them over
    the model defaults and any ``DOSSIER__*`` environment variables.
    """

    def __init__(
        self,
        config_path: Path | None = None,
        *,
        env: Mapping[str, str] | None = None,
    ) -> None:
        self._config_path = (config_path or DEFAULT_CONFIG_PATH).expanduser()
        self._env = env if env is not None else os.environ

    @property
    def config_path(self) -> Path:
        """Return the resolved configuration path."""
        return self._config_path

    def load(
        self,
        *,
        cli_overrides: Mapping[str, Any] | None = None,
        include_env: bool = True,
        ensure_file: bool = True,
        env_overrides: Mapping[str, str] | None = None,
    ) -> DossierConfig:
        """Return the effective configuration.

        Args:
            cli_overrides: Highest-priority values, dotted keys allowed.
            include_env: Whether ``DOSSIER__*`` variables are applied.
            ensure_file: Create the file with defaults when it is missing.
            env_overrides: Environment mapping to use instead of `os.environ`.

        Raises:
            ConfigError: If the file is unreadable or a value is invalid.
        """
        if ensure_file:
            self.ensure_exists()

        env_layer = None
        if include_env:
            env_layer = parse_env_overrides(
                env_overrides if env_overrides is not None else self._env
            )

        return resolve_with_precedence(
            defaults=DossierConfig(),
            file_overrides=self._read_file(),
            env_overrides=env_layer,
            cli_overrides=cli_overrides,
        )

    def load_file_overrides(self) -> dict[str, Any]:
        """Return the raw mapping stored in the configuration file."""
        return self._read_file()

    def save(self, config: DossierConfig | Mapping[str, Any]) -> None:
        """Validate and write configuration data.

        Raises:
            ConfigError: If `config` is a mapping that does not validate.
        """
        if isinstance(config, DossierConfig):
            data = config.model_dump(mode="python")
        else:
            data = dict(config)
            resolve_with_precedence(defaults=DossierConfig(), file_overrides=data)
        self._write_file(data)

    def set_value(self, key: str, value: Any) -> DossierConfig:
        """Store `value` under the dotted `key` and return the new effective config.

        Raises:
            ConfigError: If the key is malformed or the value fails validation;
                the file is left untouched in that case.
        """
        data = self._read_file()
        assign_path(data, key.split("."), value, label="file")
        config = resolve_with_precedence(defaults=DossierConfig(), file_overrides=data)
        self._write_file(data)
        return config

    def ensure_exists(self) -> Path:
        """Create a configuration file with defaults if one does not exist."""
        if not self._config_path.exists():
            self._write_file(DossierConfig().model_dump(mode="python"))
        return self._config_path

    def read_text(self) -> str:
        """Return the current configuration file contents."""
        if not self._config_path.exists():
            return ""
        return self._config_path.read_text(encoding="utf-8")

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            return {}

        try:
            raw = yaml.safe_load(self._config_path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Failed to read {self._config_path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("Configuration file must contain a mapping at the top level.")
        return raw

    def _write_file(self, data: Mapping[str, Any]) -> None:
        stamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        body = yaml.safe_dump(dict(data), sort_keys=False)
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            self._config_path.write_text(
                f"{_CONFIG_HEADER}# Last updated: {stamp}\n{body}", encoding="utf-8"
            )
        except OSError as exc:
            raise ConfigError(f"Failed to write {self._config_path}: {exc}") from exc


__all__ = [
    "ConfigManager",
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DossierConfig",
    "ENV_PREFIX",
    "FilterOptions",
    "parse_env_overrides",
    "resolve_with_precedence",
]

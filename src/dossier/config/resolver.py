"""Layered configuration resolution.

Sources are applied in increasing priority: built-in defaults, the YAML file,
``DOSSIER__SECTION__KEY`` environment variables, then command line overrides.
Each layer is a nested mapping; dotted keys (``naming.collisions``) are
expanded before merging so every layer can use either spelling.
"""

from __future__ import annotations

from collections.abc import Mapping as MappingABC
from copy import deepcopy
from typing import Any, Iterable, Mapping

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import DossierConfig

ENV_PREFIX = "DOSSIER__"


def resolve_with_precedence(
    *,
    defaults: DossierConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> DossierConfig:
    """Merge configuration layers and validate the result.

    Args:
        defaults: Baseline configuration.
        file_overrides: Values read from the YAML configuration file.
        env_overrides: Nested values, usually from `parse_env_overrides`.
        cli_overrides: Values supplied on the command line (dotted keys allowed).

    Returns:
        DossierConfig: Validated configuration.

    Raises:
        ConfigError: If a layer is malformed or the merged values fail validation.
    """
    merged: dict[str, Any] = defaults.model_dump(mode="python")
    layers = (("file", file_overrides), ("environment", env_overrides), ("cli", cli_overrides))
    for label, layer in layers:
        if layer:
            merged = _deep_merge(merged, expand_dotted(layer, label=label))

    try:
        return DossierConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration values: {exc}") from exc


def parse_env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Collect ``DOSSIER__*`` variables into a nested override mapping.

    ``DOSSIER__FILTERS__EXCLUDE_DIRS=tmp,out`` becomes
    ``{"filters": {"exclude_dirs": "tmp,out"}}``. Values are parsed as YAML
    scalars so booleans and bracketed lists work; unparseable values are kept
    as plain strings.
    """
    overrides: dict[str, Any] = {}
    for name, raw in env.items():
        if not name.startswith(ENV_PREFIX):
            continue
        path = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not path:
            continue
        try:
            value: Any = yaml.safe_load(raw)
        except yaml.YAMLError:
            value = raw
        assign_path(overrides, path, value, label="environment")
    return overrides


def expand_dotted(source: Mapping[str, Any], *, label: str) -> dict[str, Any]:
    """Return `source` with dotted keys expanded into nested mappings.

    Raises:
        ConfigError: If `source` is not a mapping or keys collide.
    """
    if not isinstance(source, MappingABC):
        raise ConfigError(f"{label.capitalize()} overrides must be a mapping.")

    result: dict[str, Any] = {}
    for key, value in source.items():
        if not isinstance(key, str):
            raise ConfigError(f"{label.capitalize()} override keys must be strings.")
        if isinstance(value, MappingABC):
            value = expand_dotted(value, label=label)
        assign_path(result, key.split("."), value, label=label)
    return result


def assign_path(target: dict[str, Any], path: Iterable[str], value: Any, *, label: str) -> None:
    """Set `value` at the nested `path` inside `target`, creating mappings as needed.

    Raises:
        ConfigError: If an intermediate segment already holds a non-mapping value.
    """
    segments = [segment.strip() for segment in path if segment.strip()]
    if not segments:
        raise ConfigError(f"{label.capitalize()} override has an empty key.")

    node = target
    for segment in segments[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"{label.capitalize()} override for {'.'.join(segments)} "
                f"conflicts with the value of '{segment}'."
            )
        node = child

    leaf = segments[-1]
    if isinstance(value, dict) and isinstance(node.get(leaf), dict):
        node[leaf] = _deep_merge(node[leaf], value)
    else:
        node[leaf] = value


def _deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    merged = deepcopy(dict(base))
    for key, value in overrides.items():
        current = merged.get(key)
        if isinstance(value, MappingABC) and isinstance(current, MappingABC):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = deepcopy(value)
    return merged


__all__ = [
    "ENV_PREFIX",
    "assign_path",
    "expand_dotted",
    "parse_env_overrides",
    "resolve_with_precedence",
]

"""Unit tests for configuration management."""

from pathlib import Path

import pytest

from dossier.config import (
    ConfigError,
    ConfigManager,
    DossierConfig,
    resolve_with_precedence,
)


def _fresh_manager(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> ConfigManager:
    monkeypatch.setenv("HOME", str(tmp_path))
    return ConfigManager()


def test_ensure_exists_creates_default_file(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    path = manager.ensure_exists()

    assert path == tmp_path / ".dossier" / "config.yaml"
    text = path.read_text(encoding="utf-8")
    assert "Dossier configuration file" in text
    assert "Last updated:" in text

    config = manager.load(include_env=False)
    assert isinstance(config, DossierConfig)
    assert config.naming.collisions == "suffix"


def test_resolve_with_precedence_respects_order(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.save({"storage": {"data_dir": "/from/file"}, "logging": {"level": "INFO"}})

    env = {"DOSSIER__LOGGING__LEVEL": "DEBUG", "DOSSIER__NAMING__COLLISIONS": "overwrite"}
    cli = {"logging.level": "ERROR"}

    config = manager.load(cli_overrides=cli, env_overrides=env)

    assert config.storage.data_dir == "/from/file"
    assert config.naming.collisions == "overwrite"
    # CLI overrides take precedence over environment
    assert config.logging.level == "ERROR"


def test_env_overrides_parse_lists(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load(env_overrides={"DOSSIER__FILTERS__EXCLUDE_DIRS": "[tmp, out]"})

    assert config.filters.exclude_dirs == ["tmp", "out"]


def test_invalid_yaml_raises_config_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    manager.config_path.write_text("- not-a-mapping", encoding="utf-8")

    with pytest.raises(ConfigError):
        manager.load()


def test_resolve_with_precedence_invalid_value_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=DossierConfig(),
            file_overrides={"naming": {"collisions": "rename-everything"}},
        )


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=DossierConfig(),
            file_overrides={"storage": {"unknown": True}},
        )


def test_env_overrides_accept_comma_separated_lists(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load(env_overrides={"DOSSIER__FILTERS__EXCLUDE_DIRS": "tmp, out/"})

    assert config.filters.exclude_dirs == ["tmp", "out"]


def test_extension_lists_are_normalized_and_deduplicated() -> None:
    config = resolve_with_precedence(
        defaults=DossierConfig(),
        file_overrides={
            "filters": {"include_extensions": ["JS", ".js", "py", " ", "Package-Lock.json"]}
        },
    )

    assert config.filters.include_extensions == [".js", ".py", "package-lock.json"]


def test_invalid_log_level_raises() -> None:
    with pytest.raises(ConfigError):
        resolve_with_precedence(
            defaults=DossierConfig(),
            file_overrides={"logging": {"level": "chatty"}},
        )


def test_log_level_is_case_insensitive() -> None:
    config = resolve_with_precedence(
        defaults=DossierConfig(),
        cli_overrides={"logging.level": "debug"},
    )

    assert config.logging.level == "DEBUG"


def test_set_value_persists_dotted_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()

    config = manager.set_value("naming.collisions", "overwrite")

    assert config.naming.collisions == "overwrite"
    assert manager.load(include_env=False).naming.collisions == "overwrite"


def test_set_value_rejects_invalid_value_without_writing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)
    manager.ensure_exists()
    before = manager.read_text()

    with pytest.raises(ConfigError):
        manager.set_value("naming.collisions", "rename-everything")
    with pytest.raises(ConfigError):
        manager.set_value("storage.data_dir.nested", "x")

    assert manager.read_text() == before


def test_storage_path_expands_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    manager = _fresh_manager(tmp_path, monkeypatch)

    config = manager.load(include_env=False)

    assert config.storage.path == tmp_path / ".dossier" / "data"

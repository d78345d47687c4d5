"""CLI integration tests."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest
from click.testing import CliRunner

from dossier.cli import cli


@pytest.fixture()
def home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME (and therefore config and data directories) at a temp dir.

    Args:
        tmp_path: Temporary directory provided by pytest.
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        Path: The temporary home directory.
    """
    home_dir = tmp_path / "home"
    home_dir.mkdir()
    monkeypatch.setenv("HOME", str(home_dir))
    for key in [key for key in os.environ if key.startswith("DOSSIER__")]:
        monkeypatch.delenv(key)
    return home_dir


def _sources(tmp_path: Path) -> Path:
    root = tmp_path / "src"
    (root / "sub").mkdir(parents=True)
    (root / "a.js").write_text("alpha", encoding="utf-8")
    (root / "sub" / "b.js").write_text("beta", encoding="utf-8")
    (root / "node_modules" / "dep").mkdir(parents=True)
    (root / "node_modules" / "dep" / "index.js").write_text("dep", encoding="utf-8")
    return root.resolve()


def _project_dir(home: Path, name: str = "demo") -> Path:
    return home / ".dossier" / "data" / "projects" / name


def test_cli_help_displays_commands() -> None:
    runner = CliRunner()
    result = runner.invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "Dossier collects source files" in result.output
    for command in ("collect", "update", "status", "structure", "instructions", "sources"):
        assert command in result.output


def test_create_and_list_projects(home: Path) -> None:
    runner = CliRunner()

    created = runner.invoke(cli, ["create", "demo"])
    listed = runner.invoke(cli, ["list", "--json"])

    assert created.exit_code == 0, created.output
    assert listed.exit_code == 0, listed.output
    assert json.loads(listed.output)["projects"] == ["demo"]
    assert (_project_dir(home) / ".dossier" / "project.json").is_file()


def test_create_existing_project_fails(home: Path) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["create", "demo"])

    result = runner.invoke(cli, ["create", "demo", "--json"])

    assert result.exit_code == 1
    payload = json.loads(result.output)
    assert payload["error"]["code"] == "workspace_error"


def test_create_rejects_invalid_name(home: Path) -> None:
    result = CliRunner().invoke(cli, ["create", "bad name"])

    assert result.exit_code != 0
    assert "Invalid project name" in result.output


def test_collect_copies_files_and_excludes_dependencies(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()

    result = runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["phase"] == "persisted"
    assert sorted(record["newPath"] for record in payload["copied"]) == ["a.js", "sub_b.js"]
    workspace = _project_dir(home)
    assert (workspace / "sub_b.js").read_text(encoding="utf-8") == "beta"
    assert not any("node_modules" in path.name for path in workspace.iterdir())


def test_update_existing_mode_reports_modified(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--yes"])
    (root / "a.js").write_text("alpha, revised", encoding="utf-8")

    result = runner.invoke(cli, ["update", "demo", "--mode", "existing", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["counts"]["modified"] == 1
    assert payload["counts"]["updated"] == 1
    assert (_project_dir(home) / "a.js").read_text(encoding="utf-8") == "alpha, revised"


def test_update_full_mode_without_changes_aborts(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--yes"])

    result = runner.invoke(cli, ["update", "demo", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["phase"] == "aborted"
    assert payload["counts"]["unchanged"] == 2


def test_update_missing_project_fails(home: Path) -> None:
    result = CliRunner().invoke(cli, ["update", "ghost"])

    assert result.exit_code != 0
    assert "not found" in result.output


def test_status_check_reports_missing_sources(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--yes"])
    (root / "sub" / "b.js").unlink()

    result = runner.invoke(cli, ["status", "demo", "--check", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["files"] == 2
    assert payload["loaded_from"] == "cache"
    assert payload["source_directories"] == [str(root)]
    assert payload["changes"]["missing"] == 1


def test_structure_prints_mapping(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--yes"])

    result = runner.invoke(cli, ["structure", "demo"])

    assert result.exit_code == 0, result.output
    assert "## File Mapping" in result.output
    assert "sub/b.js -> sub_b.js" in result.output


def test_instructions_from_file(home: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["create", "demo"])
    notes = tmp_path / "notes.md"
    notes.write_text("Focus on the sync engine.", encoding="utf-8")

    saved = runner.invoke(cli, ["instructions", "demo", "--file", str(notes)])
    shown = runner.invoke(cli, ["instructions", "demo"])

    assert saved.exit_code == 0, saved.output
    assert "Focus on the sync engine." in shown.output
    assert (_project_dir(home) / ".dossier" / "analysis.txt").is_file()


def test_sources_add_and_prune(home: Path, tmp_path: Path) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["create", "demo"])
    kept = (tmp_path / "kept").resolve()
    doomed = (tmp_path / "doomed").resolve()
    kept.mkdir()
    doomed.mkdir()

    added = runner.invoke(cli, ["sources", "demo", "--add", str(kept), "--add", str(doomed)])
    doomed.rmdir()
    pruned = runner.invoke(cli, ["sources", "demo", "--prune"])

    assert added.exit_code == 0, added.output
    assert pruned.exit_code == 0, pruned.output
    assert "Removed missing source directory" in pruned.output
    status = json.loads(runner.invoke(cli, ["status", "demo", "--json"]).output)
    assert status["source_directories"] == [str(kept)]


def test_config_set_updates_value(home: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["config", "set", "naming.collisions", "--value", "overwrite"])
    view = runner.invoke(cli, ["config", "view", "--no-env"])

    assert result.exit_code == 0, result.output
    assert "Updated naming.collisions" in result.output
    assert "overwrite" in view.output


def test_config_set_rejects_invalid_value(home: Path) -> None:
    result = CliRunner().invoke(cli, ["config", "set", "naming.collisions", "--value", "bogus"])

    assert result.exit_code != 0
    assert "Invalid configuration values" in result.output


def test_json_and_quiet_are_incompatible(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)

    result = CliRunner().invoke(cli, ["collect", "demo", str(root), "--json", "--quiet"])

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "cli_error"


def test_collect_missing_source_does_not_create_project(home: Path, tmp_path: Path) -> None:
    result = CliRunner().invoke(cli, ["collect", "demo", str(tmp_path / "nowhere"), "--json"])

    assert result.exit_code == 1
    assert json.loads(result.output)["error"]["code"] == "workspace_error"
    assert not _project_dir(home).exists()


def test_locate_maps_flattened_names_to_originals(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--yes"])

    result = runner.invoke(cli, ["locate", "demo", "sub_b.js", "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["files"] == {"sub_b.js": str(root / "sub" / "b.js")}
    assert payload["missing"] == []


def test_locate_unknown_name_fails(home: Path, tmp_path: Path) -> None:
    root = _sources(tmp_path)
    runner = CliRunner()
    runner.invoke(cli, ["collect", "demo", str(root), "--ext", "js", "--yes"])

    result = runner.invoke(cli, ["locate", "demo", "a.js", "ghost.js"])

    assert result.exit_code == 1
    assert f"a.js\t{root / 'a.js'}" in result.output
    assert "Not tracked in project demo: ghost.js" in result.output

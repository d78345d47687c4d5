"""Command line interface for the Dossier project."""

from __future__ import annotations

import difflib
import logging
from pathlib import Path
from typing import Any, Iterable

import click
import yaml
from click.core import ParameterSource
from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

from dossier.config import ConfigError, ConfigManager, DossierConfig, resolve_with_precedence
from dossier.ingestion import PathFilter, SourceRoot
from dossier.sync import FileStatus, SyncEngine, SyncPhase, SyncPolicy, SyncReport
from dossier.workspace import WorkspaceError, WorkspaceStore
from dossier.workspace.models import Project

console = Console()
error_console = Console(stderr=True)

LOGGER = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    """Route package log records through a Rich handler on stderr.

    Args:
        level: Logging level name from configuration.
    """

    package_logger = logging.getLogger("dossier")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = RichHandler(console=error_console, show_path=False, rich_tracebacks=False)
    package_logger.addHandler(handler)
    package_logger.setLevel(level.upper())


def _load_config() -> DossierConfig:
    manager = ConfigManager()
    manager.ensure_exists()
    config = manager.load()
    _configure_logging(config.logging.level)
    return config


def _store_for(config: DossierConfig) -> WorkspaceStore:
    return WorkspaceStore(config.storage.path)


def _handle_cli_error(
    message: str,
    *,
    code: str,
    json_output: bool,
    details: Any | None = None,
    original: Exception | None = None,
) -> None:
    """Emit a standardized error and terminate the command appropriately.

    Args:
        message: Human-readable error message.
        code: Machine-readable error identifier.
        json_output: Indicates whether JSON mode is active.
        details: Optional structured details to include in the payload.
        original: Original exception for chaining when not using JSON.

    Raises:
        SystemExit: When emitting JSON output to terminate the command.
        click.ClickException: For non-JSON flows to surface the error.
    """

    if json_output:
        payload: dict[str, Any] = {"error": {"code": code, "message": message}}
        if details is not None:
            payload["error"]["details"] = details
        console.print_json(data=payload)
        raise SystemExit(1)

    if isinstance(original, click.ClickException):
        raise original

    raise click.ClickException(message) from original


def _emit_message(message: Any, *, mode: str, quiet: bool, summary_only: bool) -> None:
    """Conditionally print CLI output according to quiet/summary settings.

    Args:
        message: Renderable or string to emit.
        mode: Output mode identifier (`detail`, `summary`, `warning`, or `error`).
        quiet: Whether quiet mode is active.
        summary_only: Whether only summary lines should be emitted.
    """

    if quiet and mode != "error":
        return

    if summary_only and mode not in {"summary", "warning", "error"}:
        return

    console.print(message)


def _format_summary_line(command: str, project: str, metrics: dict[str, Any]) -> str:
    """Return a consistent summary line for CLI commands."""

    parts = ", ".join(f"{key}={value}" for key, value in metrics.items())
    return f"[green]{command} summary for {project}: {parts}.[/green]"


def _resolve_output_modes(
    ctx: click.Context,
    config: DossierConfig,
    *,
    quiet: bool,
    summary_mode: bool,
    json_output: bool,
) -> tuple[bool, bool]:
    """Combine CLI flags with configured defaults into (quiet, summary_only).

    Raises:
        click.ClickException: If incompatible modes are requested.
    """

    explicit_quiet = ctx.get_parameter_source("quiet") == ParameterSource.COMMANDLINE
    explicit_summary = ctx.get_parameter_source("summary_mode") == ParameterSource.COMMANDLINE

    quiet_enabled = quiet if explicit_quiet else config.cli.quiet_default
    summary_only = summary_mode if explicit_summary else config.cli.summary_default

    if json_output:
        if explicit_quiet and quiet_enabled:
            raise click.ClickException("--json cannot be combined with --quiet.")
        if explicit_summary and summary_only:
            raise click.ClickException("--json cannot be combined with --summary.")
        return False, False

    if quiet_enabled and summary_only:
        raise click.ClickException(
            "Quiet and summary modes cannot both be enabled. Adjust CLI defaults or flags."
        )
    return quiet_enabled, summary_only


def _format_size(size: int | None) -> str:
    if size is None:
        return "?"
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def _changes_table(title: str, entries: Iterable[FileStatus]) -> Table:
    table = Table(title=title)
    table.add_column("Status")
    table.add_column("Original path", overflow="fold")
    table.add_column("Project path", overflow="fold")
    table.add_column("Size", justify="right")
    styles = {"new": "green", "modified": "yellow", "missing": "red", "unchanged": "blue"}
    for entry in entries:
        new_path = entry.record.new_path if entry.record is not None else "-"
        style = styles.get(entry.status, "white")
        table.add_row(
            f"[{style}]{entry.status.upper()}[/{style}]",
            entry.key,
            new_path,
            _format_size(entry.size),
        )
    return table


def _emit_report(
    report: SyncReport,
    *,
    json_output: bool,
    quiet: bool,
    summary_only: bool,
    workspace: Path,
) -> None:
    """Render the outcome of a synchronization pass."""

    if json_output:
        payload = report.to_payload()
        payload["workspace"] = str(workspace)
        console.print_json(data=payload)
        return

    if report.errors:
        _emit_message("[red]Errors encountered:[/red]", mode="error", quiet=quiet, summary_only=summary_only)
        for entry in report.errors:
            _emit_message(f"  - {entry}", mode="error", quiet=quiet, summary_only=summary_only)

    if report.changes.missing:
        _emit_message(
            f"[yellow]{len(report.changes.missing)} source file(s) are missing; "
            "their records were kept.[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    if report.phase is SyncPhase.ABORTED:
        _emit_message(
            f"[yellow]{report.abort_reason}[/yellow]",
            mode="warning",
            quiet=quiet,
            summary_only=summary_only,
        )

    metrics = {"phase": report.phase.value, **report.counts()}
    _emit_message(
        _format_summary_line(report.policy.value.capitalize(), report.project, metrics),
        mode="summary",
        quiet=quiet,
        summary_only=summary_only,
    )
    if report.persisted:
        _emit_message(
            f"[cyan]Project directory: {workspace}[/cyan]",
            mode="detail",
            quiet=quiet,
            summary_only=summary_only,
        )


def _confirm_callback(
    *,
    assume_yes: bool,
    json_output: bool,
    quiet: bool,
    summary_only: bool,
):
    """Build the confirmation hook shown before files are copied."""

    def _confirm(report: SyncReport) -> bool:
        if report.policy is SyncPolicy.EXISTING:
            entries = list(report.changes.modified)
        else:
            entries = report.changes.actionable
        if not json_output:
            _emit_message(
                _changes_table(f"Pending changes for {report.project}", entries),
                mode="detail",
                quiet=quiet,
                summary_only=summary_only,
            )
        if assume_yes:
            return True
        return click.confirm(f"Copy {len(entries)} file(s) to project {report.project!r}?", default=True)

    return _confirm


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="dossier")
def cli() -> None:
    """Dossier collects source files into flattened project workspaces and keeps them in sync."""


@cli.command()
@click.argument("name")
@click.option("--overwrite", is_flag=True, help="Replace an existing project of the same name.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the new project.")
def create(name: str, overwrite: bool, json_output: bool) -> None:
    """Create an empty project workspace called NAME."""

    try:
        config = _load_config()
        store = _store_for(config)
        project = store.create(name, overwrite=overwrite)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except WorkspaceError as exc:
        _handle_cli_error(str(exc), code="workspace_error", json_output=json_output, original=exc)
        return

    workspace = store.project_path(project.name)
    if json_output:
        console.print_json(data={"project": project.name, "workspace": str(workspace)})
        return
    console.print(f"[green]Project {project.name!r} created at {workspace}.[/green]")


@cli.command("list")
@click.option("--json", "json_output", is_flag=True, help="Emit project names as JSON.")
def list_projects(json_output: bool) -> None:
    """List every project workspace."""

    try:
        store = _store_for(_load_config())
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return

    names = store.list_projects()
    if json_output:
        console.print_json(data={"projects": names, "root": str(store.projects_root)})
        return
    if not names:
        console.print("[yellow]No projects found. Create one with `dossier create NAME`.[/yellow]")
        return
    for name in names:
        console.print(name)


@cli.command()
@click.argument("name")
@click.argument("paths", nargs=-1, required=True, type=click.Path(path_type=str))
@click.option("--ext", "extensions", multiple=True, help="Extension to include (repeatable).")
@click.option("--all-extensions", is_flag=True, help="Collect files of every extension.")
@click.option("--exclude-dir", "exclude_dirs", multiple=True, help="Directory name to skip.")
@click.option("--exclude-ext", "exclude_exts", multiple=True, help="Extension or file name to skip.")
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Copy without asking for confirmation.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the collection.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def collect(
    ctx: click.Context,
    name: str,
    paths: tuple[str, ...],
    extensions: tuple[str, ...],
    all_extensions: bool,
    exclude_dirs: tuple[str, ...],
    exclude_exts: tuple[str, ...],
    assume_yes: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Collect files from PATHS into project NAME, creating it when needed.

    Explicit --ext/--exclude-* options replace the configured defaults for
    their category.
    """

    try:
        config = _load_config()
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        store = _store_for(config)
        roots = [SourceRoot.from_path(path) for path in paths]
        if store.exists(name):
            project = store.load(name)
        else:
            project = store.create(name)
            if not json_output:
                _emit_message(
                    f"[cyan]Created project {name!r}.[/cyan]",
                    mode="detail",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )

        options = config.filters
        include: Iterable[str] | None = list(extensions) or options.include_extensions
        if all_extensions:
            include = None
        path_filter = PathFilter.create(
            include_extensions=include,
            exclude_extensions=list(exclude_exts) or options.exclude_extensions,
            exclude_dirs=list(exclude_dirs) or options.exclude_dirs,
        )

        engine = SyncEngine(
            store,
            project,
            default_filter=PathFilter.from_options(options),
            collisions=config.naming.collisions,
        )
        report = engine.collect(
            roots,
            path_filter,
            confirm=_confirm_callback(
                assume_yes=assume_yes or json_output,
                json_output=json_output,
                quiet=quiet_enabled,
                summary_only=summary_only,
            ),
        )
        _emit_report(
            report,
            json_output=json_output,
            quiet=quiet_enabled,
            summary_only=summary_only,
            workspace=store.project_path(name),
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except WorkspaceError as exc:
        _handle_cli_error(str(exc), code="workspace_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)


@cli.command()
@click.argument("name")
@click.option(
    "--mode",
    type=click.Choice(["full", "existing", "select"]),
    default="full",
    show_default=True,
    help="full: new and modified files; existing: modified only; select: pick files.",
)
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Answer yes to every prompt.")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON describing the update.")
@click.option("--summary", "summary_mode", is_flag=True, help="Only emit summary lines.")
@click.option("--quiet", is_flag=True, help="Suppress non-error output.")
@click.pass_context
def update(
    ctx: click.Context,
    name: str,
    mode: str,
    assume_yes: bool,
    json_output: bool,
    summary_mode: bool,
    quiet: bool,
) -> None:
    """Re-synchronize project NAME with its sources."""

    try:
        config = _load_config()
        quiet_enabled, summary_only = _resolve_output_modes(
            ctx, config, quiet=quiet, summary_mode=summary_mode, json_output=json_output
        )
        store = _store_for(config)
        project = store.load(name)
        if not project.files and mode != "full":
            raise click.ClickException(
                f"Project {name!r} has no collected files. Run `dossier collect` first."
            )

        engine = SyncEngine(
            store,
            project,
            default_filter=PathFilter.from_options(config.filters),
            collisions=config.naming.collisions,
        )
        auto = assume_yes or json_output
        confirm = _confirm_callback(
            assume_yes=auto,
            json_output=json_output,
            quiet=quiet_enabled,
            summary_only=summary_only,
        )

        def _offer_full_sync(report: SyncReport) -> bool:
            _emit_message(
                "[cyan]No modified files found.[/cyan]",
                mode="detail",
                quiet=quiet_enabled,
                summary_only=summary_only,
            )
            if auto:
                return assume_yes
            return click.confirm("Check source directories for new files?", default=True)

        def _choose(pick_list: list[FileStatus]) -> list[FileStatus]:
            if not json_output:
                _emit_message(
                    _changes_table(f"Selectable files for {name}", pick_list),
                    mode="detail",
                    quiet=quiet_enabled,
                    summary_only=summary_only,
                )
            if auto:
                return [entry for entry in pick_list if entry.status == "modified"]
            return [
                entry
                for entry in pick_list
                if click.confirm(
                    f"[{entry.status.upper()}] {entry.key}",
                    default=entry.status == "modified",
                )
            ]

        if mode == "full":
            report = engine.full_sync(confirm=confirm)
        elif mode == "existing":
            report = engine.refresh_existing(confirm=confirm, offer_full_sync=_offer_full_sync)
        else:
            report = engine.selective_sync(_choose, offer_full_sync=_offer_full_sync)

        _emit_report(
            report,
            json_output=json_output,
            quiet=quiet_enabled,
            summary_only=summary_only,
            workspace=store.project_path(name),
        )
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
    except WorkspaceError as exc:
        _handle_cli_error(str(exc), code="workspace_error", json_output=json_output, original=exc)
    except click.ClickException as exc:
        _handle_cli_error(str(exc), code="cli_error", json_output=json_output, original=exc)


def _status_payload(project: Project, workspace: Path, source: str) -> dict[str, Any]:
    return {
        "project": project.name,
        "workspace": str(workspace),
        "loaded_from": source,
        "created_at": project.created_at.isoformat(),
        "last_updated": project.last_updated.isoformat(),
        "source_directories": list(project.source_directories),
        "files": len(project.files),
        "has_instructions": bool(project.instructions.strip()),
    }


@cli.command()
@click.argument("name")
@click.option("--check", is_flag=True, help="Re-stat sources and report modified/missing files.")
@click.option("--json", "json_output", is_flag=True, help="Emit status information as JSON.")
def status(name: str, check: bool, json_output: bool) -> None:
    """Display a summary of project NAME."""

    try:
        config = _load_config()
        store = _store_for(config)
        project, source = store.load_with_source(name)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except WorkspaceError as exc:
        _handle_cli_error(str(exc), code="workspace_error", json_output=json_output, original=exc)
        return

    workspace = store.project_path(name)
    payload = _status_payload(project, workspace, source)
    report: SyncReport | None = None
    if check:
        report = SyncEngine(store, project).plan_refresh()
        payload["changes"] = report.changes.counts()

    if json_output:
        console.print_json(data=payload)
        return

    table = Table(title=f"Project {project.name}", show_header=False)
    table.add_column("Field")
    table.add_column("Value", overflow="fold")
    table.add_row("Workspace", str(workspace))
    table.add_row("Last updated", project.last_updated.isoformat())
    table.add_row("Files", str(len(project.files)))
    table.add_row("Source directories", ", ".join(project.source_directories) or "None")
    table.add_row("Instructions", "yes" if payload["has_instructions"] else "no")
    console.print(table)
    if report is not None:
        counts = report.changes.counts()
        console.print(
            f"[cyan]Modified: {counts['modified']}, missing: {counts['missing']}, "
            f"unchanged: {counts['unchanged']}.[/cyan]"
        )


@cli.command()
@click.argument("name")
def structure(name: str) -> None:
    """Print the directory structure and file mapping of project NAME."""

    try:
        project = _store_for(_load_config()).load(name)
    except (ConfigError, WorkspaceError) as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(project.directory_structure, nl=False)


@cli.command()
@click.argument("name")
@click.argument("flat_names", nargs=-1, required=True)
@click.option("--json", "json_output", is_flag=True, help="Emit the mapping as JSON.")
def locate(name: str, flat_names: tuple[str, ...], json_output: bool) -> None:
    """Show the original path of each flattened FLAT_NAMES file in project NAME."""

    try:
        project = _store_for(_load_config()).load(name)
    except ConfigError as exc:
        _handle_cli_error(str(exc), code="config_error", json_output=json_output, original=exc)
        return
    except WorkspaceError as exc:
        _handle_cli_error(str(exc), code="workspace_error", json_output=json_output, original=exc)
        return

    found: dict[str, str] = {}
    missing: list[str] = []
    for flat_name in flat_names:
        record = project.find_by_new_path(flat_name)
        if record is None:
            missing.append(flat_name)
        else:
            found[flat_name] = record.key

    if json_output:
        console.print_json(data={"project": project.name, "files": found, "missing": missing})
        if missing:
            raise SystemExit(1)
        return

    for flat_name, original in found.items():
        click.echo(f"{flat_name}\t{original}")
    if missing:
        raise click.ClickException(f"Not tracked in project {name}: {', '.join(missing)}")


@cli.command()
@click.argument("name")
@click.option(
    "--file",
    "source_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read instructions from a text file.",
)
@click.option("--edit", is_flag=True, help="Edit instructions in $EDITOR.")
def instructions(name: str, source_file: Path | None, edit: bool) -> None:
    """Show or replace the stored instructions for project NAME."""

    try:
        store = _store_for(_load_config())
        project = store.load(name)
    except (ConfigError, WorkspaceError) as exc:
        raise click.ClickException(str(exc)) from exc

    if source_file is None and not edit:
        if project.instructions:
            click.echo(project.instructions)
        else:
            console.print("[yellow]No instructions stored for this project.[/yellow]")
        return

    if source_file is not None:
        text = source_file.read_text(encoding="utf-8")
    else:
        edited = click.edit(project.instructions or project.directory_structure, extension=".md")
        if edited is None:
            console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
            return
        text = edited

    project.set_instructions(text)
    try:
        store.save(project)
    except WorkspaceError as exc:
        raise click.ClickException(str(exc)) from exc
    console.print(f"[green]Instructions saved for {name}.[/green]")


@cli.command()
@click.argument("name")
@click.option("--add", "added", multiple=True, type=click.Path(path_type=str), help="Register a directory.")
@click.option("--prune", is_flag=True, help="Forget source directories that no longer exist.")
def sources(name: str, added: tuple[str, ...], prune: bool) -> None:
    """List or edit the registered source directories of project NAME."""

    try:
        store = _store_for(_load_config())
        project = store.load(name)
        for value in added:
            root = SourceRoot.from_path(value)
            if root.kind != "directory":
                raise click.ClickException(f"{root.path} is not a directory.")
            project.add_source_directory(str(root.path))
        if prune:
            invalid = [d for d in project.source_directories if not Path(d).is_dir()]
            project.remove_source_directories(invalid)
            for directory in invalid:
                console.print(f"[yellow]Removed missing source directory {directory}.[/yellow]")
        if added or prune:
            store.save(project)
    except (ConfigError, WorkspaceError) as exc:
        raise click.ClickException(str(exc)) from exc

    if not project.source_directories:
        console.print("[yellow]No source directories registered.[/yellow]")
    for directory in project.source_directories:
        marker = "" if Path(directory).is_dir() else " [red](missing)[/red]"
        console.print(f"{directory}{marker}")


@cli.group()
def config() -> None:
    """Manage Dossier configuration files and overrides."""


@config.command("view")
@click.option("--no-env", is_flag=True, help="Ignore environment overrides when displaying output.")
def config_view(no_env: bool) -> None:
    """Display the effective configuration after applying precedence rules."""
    manager = ConfigManager()
    try:
        manager.ensure_exists()
        loaded = manager.load(include_env=not no_env)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    yaml_text = yaml.safe_dump(loaded.model_dump(mode="python"), sort_keys=False)
    console.print(Syntax(yaml_text, "yaml", word_wrap=True))


@config.command("set")
@click.argument("key")
@click.option("--value", required=True, help="Value to assign to KEY.")
def config_set(key: str, value: str) -> None:
    """Persist a configuration value expressed as a dotted KEY."""
    manager = ConfigManager()
    manager.ensure_exists()

    before = manager.read_text().splitlines()
    segments = [segment.strip() for segment in key.split(".") if segment.strip()]
    if not segments:
        raise click.ClickException("KEY must specify a dotted path such as 'naming.collisions'.")

    try:
        parsed_value = yaml.safe_load(value)
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Unable to parse value: {exc}") from exc

    try:
        manager.set_value(".".join(segments), parsed_value)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    after = manager.read_text().splitlines()

    diff = [
        line
        for line in difflib.unified_diff(
            before,
            after,
            fromfile="config.yaml (before)",
            tofile="config.yaml (after)",
            lineterm="",
        )
        if not line.startswith(("-# Last updated", "+# Last updated"))
    ]
    if not any(line.startswith(("+", "-")) and not line.startswith(("+++", "---")) for line in diff):
        console.print("[yellow]No changes applied; value already up to date.[/yellow]")
        return

    console.print(Syntax("\n".join(diff), "diff", word_wrap=False))
    console.print(f"[green]Updated {'.'.join(segments)}.[/green]")


@config.command("edit")
def config_edit() -> None:
    """Open the configuration file in an interactive editor session."""
    manager = ConfigManager()
    manager.ensure_exists()

    original = manager.read_text()
    edited = click.edit(original, extension=".yaml")

    if edited is None:
        console.print("[yellow]Edit cancelled; no changes applied.[/yellow]")
        return

    if edited == original:
        console.print("[yellow]No changes detected.[/yellow]")
        return

    try:
        parsed = yaml.safe_load(edited) or {}
    except yaml.YAMLError as exc:
        raise click.ClickException(f"Invalid YAML: {exc}") from exc

    if not isinstance(parsed, dict):
        raise click.ClickException("Configuration file must contain a top-level mapping.")

    try:
        resolve_with_precedence(defaults=DossierConfig(), file_overrides=parsed)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc

    manager.save(parsed)
    console.print("[green]Configuration updated successfully.[/green]")


def main() -> None:
    """Invoke the Click CLI as the console script entry point."""
    cli()


if __name__ == "__main__":
    main()

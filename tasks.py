"""Invoke tasks for the Dossier development workflow.

Each task shells out to `uv` so the virtual environment, test runs, and lint
checks all go through the same toolchain.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"
SOURCE_PATHS = ("src", "tests")


def _run_uv(ctx: Context, args: Sequence[str], *, echo: bool = True) -> None:
    """Run `uv` with the given arguments inside a PTY.

    Args:
        ctx: Invoke execution context.
        args: Arguments appended after the `uv` executable.
        echo: Whether to echo the command before running it.
    """
    ctx.run(shlex.join(("uv", *args)), echo=echo, pty=True)


@task
def sync(ctx: Context, dev: bool = True) -> None:
    """Install Dossier and, by default, its development extras."""
    args = ["sync"]
    if dev:
        args.extend(["--extra", "dev"])
    _run_uv(ctx, args)


@task(help={"clean": "Remove existing artifacts from dist/ before building."})
def build(ctx: Context, clean: bool = False) -> None:
    """Build the sdist and wheel into `dist/`."""
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _run_uv(ctx, ["build"])


@task(
    help={
        "k": "pytest -k expression for test selection.",
        "path": "Path or module to test (defaults to tests/).",
        "options": "Additional CLI flags forwarded verbatim to pytest.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite.

    Args:
        ctx: Invoke execution context.
        k: `pytest -k` expression to select tests.
        path: Target path for pytest discovery.
        options: Extra CLI arguments appended to the pytest call.
    """
    args: list[str] = ["run", "pytest"]
    if k:
        args.extend(["-k", k])
    if options:
        args.extend(shlex.split(options))
    if path:
        args.append(path)
    _run_uv(ctx, args)


@task(help={"fix": "Apply auto-fixes where possible (ruff --fix)."})
def lint(ctx: Context, fix: bool = False) -> None:
    """Check formatting and lint rules with Ruff."""
    _run_uv(ctx, ["run", "ruff", "format", "--check", *SOURCE_PATHS])
    args = ["run", "ruff", "check", *SOURCE_PATHS]
    if fix:
        args.append("--fix")
    _run_uv(ctx, args)


@task
def mypy(ctx: Context) -> None:
    """Type-check the package sources."""
    _run_uv(ctx, ["run", "mypy", "src"])


@task
def ci(ctx: Context) -> None:
    """Run lint, type checks, and tests in CI order."""
    ctx.invoke(lint)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, build, tests, lint, mypy, ci)

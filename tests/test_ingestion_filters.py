"""Tests for path filters and flattened naming."""

from __future__ import annotations

from dossier.config.models import FilterOptions
from dossier.ingestion import NameAllocator, PathFilter, disambiguate, flatten_path, normalize_extension


def test_normalize_extension_adds_dot_and_lowercases() -> None:
    assert normalize_extension("JS") == ".js"
    assert normalize_extension(".Py") == ".py"
    assert normalize_extension("package-lock.json") == "package-lock.json"
    assert normalize_extension("  ") == ""


def test_allows_file_respects_include_and_exclude() -> None:
    path_filter = PathFilter.create(
        include_extensions=["js", ".json"],
        exclude_extensions=[".lock", "package-lock.json"],
    )

    assert path_filter.allows_file("app.js")
    assert path_filter.allows_file("APP.JS")
    assert path_filter.allows_file("settings.json")
    assert not path_filter.allows_file("package-lock.json")
    assert not path_filter.allows_file("yarn.lock")
    assert not path_filter.allows_file("README.md")


def test_allows_file_without_include_list_accepts_everything_not_excluded() -> None:
    path_filter = PathFilter.create(include_extensions=None, exclude_extensions=[".pyc"])

    assert path_filter.allows_file("Makefile")
    assert path_filter.allows_file("notes.md")
    assert not path_filter.allows_file("module.pyc")


def test_allows_directory_matches_exact_names_and_prefixes() -> None:
    path_filter = PathFilter.create(exclude_dirs=["node_modules", "build"])

    assert not path_filter.allows_directory("node_modules")
    assert not path_filter.allows_directory("build/output")
    assert not path_filter.allows_directory("build\\output")
    assert path_filter.allows_directory("builder")
    assert path_filter.allows_directory("src")


def test_from_options_uses_configured_defaults() -> None:
    path_filter = PathFilter.from_options(FilterOptions())

    assert path_filter.include_extensions is not None
    assert ".py" in path_filter.include_extensions
    assert "node_modules" in path_filter.exclude_dirs
    assert not path_filter.allows_file("package-lock.json")


def test_flatten_path_replaces_both_separators() -> None:
    assert flatten_path("src/components/App.tsx") == "src_components_App.tsx"
    assert flatten_path("lib\\util.js") == "lib_util.js"
    assert flatten_path("top.js") == "top.js"


def test_name_allocator_suffixes_clashing_names() -> None:
    allocator = NameAllocator()

    first = allocator.allocate("x.js", "/one/x.js")
    second = allocator.allocate("x.js", "/two/x.js")

    assert first == "x.js"
    assert second == disambiguate("x.js", "/two/x.js")
    assert second.startswith("x-") and second.endswith(".js")
    assert second != first


def test_name_allocator_keeps_existing_owner_name() -> None:
    allocator = NameAllocator([("x.js", "/one/x.js")])

    assert allocator.allocate("x.js", "/one/x.js") == "x.js"
    assert allocator.allocate("x.js", "/two/x.js") != "x.js"


def test_name_allocator_overwrite_strategy_reuses_name() -> None:
    allocator = NameAllocator([("x.js", "/one/x.js")], strategy="overwrite")

    assert allocator.allocate("x.js", "/two/x.js") == "x.js"

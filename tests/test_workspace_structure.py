"""Tests for the durable structure document and rendered structure view."""

from __future__ import annotations

from datetime import datetime, timezone

from dossier.workspace.models import FileRecord, Project
from dossier.workspace.rendering import extension_counts, render_directory_structure
from dossier.workspace.structure_file import (
    ParserState,
    StructureParser,
    parse_structure,
    render_structure_file,
    split_mapping_line,
)


def _records() -> list[FileRecord]:
    return [
        FileRecord(
            original_path="sub/b.js",
            full_original_path="/src/sub/b.js",
            new_path="sub_b.js",
            original_directory="/src/sub",
            size=3,
        ),
        FileRecord(
            original_path="a.js",
            full_original_path="/src/a.js",
            new_path="a.js",
            original_directory="/src",
            size=5,
        ),
        FileRecord(
            original_path="README",
            full_original_path="/src/README",
            new_path="README",
            original_directory="/src",
        ),
    ]


def _project() -> Project:
    project = Project(
        name="demo",
        source_directories=["/src", "/lib"],
        files=_records(),
        last_updated=datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc),
    )
    project.set_directory_structure(render_directory_structure(project.files))
    return project


def test_render_directory_structure_sections() -> None:
    text = render_directory_structure(_records())

    assert text.startswith("# Project Structure and File Mapping\n")
    assert "### /src/sub\n\n- b.js" in text
    assert "- `/src/a.js` -> `a.js`" in text
    assert "sub/b.js -> sub_b.js" in text
    assert "Total files: 3" in text
    assert "- (no extension): 1" in text
    assert text.endswith("\n")


def test_render_directory_structure_ignores_record_order() -> None:
    records = _records()

    assert render_directory_structure(records) == render_directory_structure(records[::-1])


def test_extension_counts_orders_by_count_then_name() -> None:
    records = _records() + [
        FileRecord(original_path="c.js", full_original_path="/src/c.js", new_path="c.js")
    ]

    assert extension_counts(records) == [(".js", 3), ("", 1)]


def test_structure_file_round_trip() -> None:
    project = _project()

    parsed = parse_structure(render_structure_file(project))

    assert parsed.name == "demo"
    assert parsed.last_updated == project.last_updated
    assert parsed.source_directories == ["/src", "/lib"]
    assert {(r.key, r.new_path) for r in parsed.files} == {
        (r.key, r.new_path) for r in project.files
    }
    assert parsed.directory_structure == project.directory_structure


def test_parsed_records_have_partial_metadata() -> None:
    parsed = parse_structure(render_structure_file(_project()))
    record = next(r for r in parsed.files if r.key == "/src/sub/b.js")

    assert record.original_path == "b.js"
    assert record.original_directory == "/src/sub"
    assert record.size is None
    assert record.mtime is None


def test_parser_accepts_legacy_arrow_and_skips_malformed_lines() -> None:
    text = "\n".join(
        [
            "# Project: old",
            "# Last Updated: not-a-date",
            "# Source Directories: /a, /b",
            "",
            "# File Mapping (Original Path → Project Path)",
            "",
            "/a/x.js → x.js",
            "garbage line without arrow",
            " -> orphan.js",
            "/a/y.js -> y.js",
        ]
    )

    parsed = parse_structure(text)

    assert parsed.name == "old"
    assert parsed.last_updated is None
    assert parsed.source_directories == ["/a", "/b"]
    assert [(r.key, r.new_path) for r in parsed.files] == [("/a/x.js", "x.js"), ("/a/y.js", "y.js")]
    assert parsed.directory_structure == ""


def test_parser_ignores_header_markers_inside_structure() -> None:
    parser = StructureParser()
    for line in [
        "# Project: demo",
        "# Directory Structure",
        "",
        "# Source Directories: /ignored",
        "/x.js -> x.js",
    ]:
        parser.feed(line)

    assert parser.state is ParserState.STRUCTURE
    parsed = parser.finish()
    assert parsed.source_directories == []
    assert parsed.files == []
    assert parsed.directory_structure == "# Source Directories: /ignored\n/x.js -> x.js\n"


def test_split_mapping_line_uses_first_arrow() -> None:
    assert split_mapping_line("/a -> b -> c") == ("/a", "b -> c")
    assert split_mapping_line("no arrow") is None


def test_parse_empty_document() -> None:
    parsed = parse_structure("")

    assert parsed.name is None
    assert parsed.files == []
    assert parsed.source_directories == []


def test_find_by_new_path_returns_owning_record() -> None:
    project = _project()
    project.add_files(
        [
            FileRecord(
                original_path="a.js",
                full_original_path="/lib/a.js",
                new_path="a.js",
                original_directory="/lib",
            )
        ]
    )

    assert project.find_by_new_path("sub_b.js").key == "/src/sub/b.js"
    assert project.find_by_new_path("a.js").key == "/lib/a.js"
    assert project.find_by_new_path("missing.js") is None

"""Unit tests for validation.coverage."""

from __future__ import annotations

from pathlib import Path

import pytest

from specgraph.validation.coverage import (
    AnnotationScanner,
    StaticCoverage,
    covered_by,
    criterion_keys,
    extract_annotation_keys,
)

IDENTITY = "01HZX4Q7AAAAAAAAAAAAAAAAAA"


@pytest.mark.unit
def test_extract_annotation_keys_expands_criterion_lists() -> None:
    content = """
    # AC: @login ac-1, ac-2
    def test_login(): ...

    // AC: @01HZX4Q7
    """

    assert extract_annotation_keys(content) == {"@login ac-1", "@login ac-2", "@01HZX4Q7"}


@pytest.mark.unit
def test_extract_annotation_keys_ignores_text_without_marker() -> None:
    assert extract_annotation_keys("covers @login ac-1 informally") == set()


@pytest.mark.unit
def test_criterion_keys_prefer_alias_then_short_then_full_identity() -> None:
    keys = criterion_keys(IDENTITY, ("login", "sign-in"), "ac-1")

    assert keys == (
        "@login ac-1",
        "@sign-in ac-1",
        "@login",
        "@sign-in",
        "@01HZX4Q7 ac-1",
        "@01HZX4Q7",
        f"@{IDENTITY} ac-1",
        f"@{IDENTITY}",
    )


@pytest.mark.unit
def test_covered_by_returns_first_recognized_key() -> None:
    coverage = StaticCoverage({"@01HZX4Q7", "@login ac-1"})

    assert covered_by(coverage, criterion_keys(IDENTITY, ("login",), "ac-1")) == "@login ac-1"
    assert covered_by(coverage, criterion_keys(IDENTITY, ("login",), "ac-9")) == "@01HZX4Q7"
    assert covered_by(StaticCoverage(), ["@login"]) is None
    assert len(coverage) == 2


@pytest.mark.unit
def test_scanner_reads_configured_dirs_and_patterns(tmp_path: Path) -> None:
    tests_dir = tmp_path / "tests"
    (tests_dir / "unit").mkdir(parents=True)
    (tests_dir / "unit" / "test_login.py").write_text(
        "# AC: @login ac-1\n", encoding="utf-8"
    )
    (tests_dir / "login.spec.ts").write_text("// AC: @login ac-2\n", encoding="utf-8")
    (tests_dir / "notes.md").write_text("AC: @login ac-3\n", encoding="utf-8")
    skipped = tests_dir / "node_modules" / "pkg"
    skipped.mkdir(parents=True)
    (skipped / "index.js").write_text("// AC: @login ac-4\n", encoding="utf-8")

    coverage = AnnotationScanner(tmp_path, test_dirs=("tests", "absent")).scan()

    assert coverage.keys == frozenset({"@login ac-1", "@login ac-2"})


@pytest.mark.unit
def test_scanner_with_restricted_patterns(tmp_path: Path) -> None:
    tests_dir = tmp_path / "spec_tests"
    tests_dir.mkdir()
    (tests_dir / "a.py").write_text("# AC: @cache ac-1\n", encoding="utf-8")
    (tests_dir / "b.js").write_text("// AC: @cache ac-2\n", encoding="utf-8")

    coverage = AnnotationScanner(tmp_path, test_dirs=("spec_tests",), patterns=("*.js",)).scan()

    assert coverage.covered("@cache ac-2")
    assert not coverage.covered("@cache ac-1")

"""Unit tests for ui.cli command routing, output and exit codes."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path

import pytest
import yaml

from specgraph.main import ExitCode
from specgraph.ui.cli import build_parser, run_cli

MODULE_ID = "01HZX4Q7MMMMMMMMMMMMMMMMMM"
LOGIN_ID = "01HZX4Q8FFFFFFFFFFFFFFFFFF"
AUDIT_ID = "01HZX4Q9AAAAAAAAAAAAAAAAAA"
TASK_ID = "01HZX4QBTTTTTTTTTTTTTTTTTT"
SPIKE_ID = "01HZX4QCSSSSSSSSSSSSSSSSSS"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("SPECGRAPH_PROFILE", "NO_COLOR"):
        monkeypatch.delenv(name, raising=False)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")


def _project(root: Path, *, extra_tasks: str = "") -> Path:
    _write(
        root / "kynetic.yaml",
        f"""
        project:
          name: demo
        modules:
          - _ulid: {MODULE_ID}
            slugs: [auth]
            title: Auth
            type: module
            description: Authentication
            acceptance_criteria:
              - {{id: ac-1, given: a user, when: they sign in, then: a session starts}}
            features:
              - _ulid: {LOGIN_ID}
                slugs: [login]
                title: Login
                type: feature
                description: Password login
                traits: ["@audited"]
                acceptance_criteria:
                  - {{id: ac-1, given: valid credentials, when: submitted, then: signed in}}
        items:
          - _ulid: {AUDIT_ID}
            slugs: [audited]
            title: Audited
            type: trait
            description: Emits audit events
            acceptance_criteria:
              - {{id: ac-1, given: an action, when: it completes, then: an event is logged}}
        """,
    )
    _write(
        root / "tasks" / "auth.tasks.yaml",
        f"""
        tasks:
          - _ulid: {TASK_ID}
            slugs: [build-login]
            title: Build login
            spec_ref: "@login"
          - _ulid: {SPIKE_ID}
            title: Research SSO
            type: spike
        {extra_tasks}
        """,
    )
    return root


def _run(capsys: pytest.CaptureFixture[str], *argv: str) -> tuple[int, str, str]:
    code = run_cli(list(argv))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_parser_exposes_every_command() -> None:
    parser = build_parser()

    for argv in (
        ["validate", "--json", "--no-orphans"],
        ["resolve", "@login"],
        ["traits", "@login", "--stats"],
        ["assess", "--all", "--auto"],
        ["merge-driver", "base", "ours", "theirs", "7", "x.tasks.yaml"],
        ["config", "--profile", "strict"],
    ):
        namespace = parser.parse_args(argv)
        assert callable(namespace.handler)


def test_validate_text_output_passes_for_consistent_project(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, out, _err = _run(capsys, "validate", "--repo-root", str(root), "--no-completeness")

    assert code == ExitCode.SUCCESS
    assert "Files checked: 2" in out
    assert "Items checked: 3" in out
    assert "Validation passed" in out
    assert "Reference errors" not in out


def test_validate_reports_sections_and_fails_on_reference_errors(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(
        tmp_path,
        extra_tasks=textwrap.indent(
            '- _ulid: 01HZX4QDNNNNNNNNNNNNNNNNNN\n  title: Ghost\n  spec_ref: "@ghost"\n',
            "  ",
        ),
    )

    code, out, _err = _run(capsys, "validate", "--repo-root", str(root), "--no-completeness")

    assert code == ExitCode.VALIDATION_FAILED
    assert "Reference errors (1):" in out
    assert 'Reference "@ghost" not found' in out
    assert "Validation failed" in out


def test_validate_json_matches_result_contract(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, out, _err = _run(capsys, "validate", "--repo-root", str(root), "--json")
    payload = json.loads(out)

    assert code == ExitCode.SUCCESS
    assert payload["valid"] is True
    assert payload["stats"] == {"filesChecked": 2, "itemsChecked": 3, "tasksChecked": 2}
    # No tests directory: every criterion is reported as uncovered.
    assert {entry["type"] for entry in payload["completenessWarnings"]} == {
        "missing_test_coverage"
    }


def test_validate_uses_annotations_from_configured_test_dirs(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)
    _write(
        root / "checks" / "test_auth.py",
        """
        # AC: @auth ac-1
        # AC: @login ac-1
        # AC: @audited ac-1
        """,
    )
    _write(root / "specgraph.toml", '[coverage]\ntest_dirs = ["checks"]\n')

    code, out, _err = _run(capsys, "validate", "--repo-root", str(root), "--json")

    assert code == ExitCode.SUCCESS
    assert json.loads(out)["completenessWarnings"] == []


def test_resolve_text_and_json(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path)

    code, out, _err = _run(capsys, "resolve", "@login", "--repo-root", str(root))
    assert code == ExitCode.SUCCESS
    assert f"Identity: {LOGIN_ID}" in out
    assert "Match: alias" in out

    code, out, _err = _run(capsys, "resolve", "01HZX4Q9", "--repo-root", str(root), "--json")
    payload = json.loads(out)
    assert code == ExitCode.SUCCESS
    assert payload["identity"] == AUDIT_ID
    assert payload["kind"] == "trait"
    assert payload["match"] == "prefix"


def test_resolve_unknown_and_ambiguous_references_exit_one(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, out, _err = _run(capsys, "resolve", "@nope", "--repo-root", str(root), "--json")
    assert code == ExitCode.VALIDATION_FAILED
    assert json.loads(out) == {
        "command": "resolve",
        "ref": "@nope",
        "ok": False,
        "error": "not_found",
    }

    code, out, _err = _run(capsys, "resolve", "@01HZX4Q", "--repo-root", str(root))
    assert code == ExitCode.VALIDATION_FAILED
    assert "ambiguous" in out
    assert "Candidates (5):" in out


def test_strict_profile_rejects_short_prefixes(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, _out, _err = _run(
        capsys, "resolve", "01H", "--repo-root", str(root), "--profile", "strict", "--json"
    )

    assert code == ExitCode.VALIDATION_FAILED


def test_traits_listing_and_item_detail(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, out, _err = _run(capsys, "traits", "--stats", "--json", "--repo-root", str(root))
    payload = json.loads(out)
    assert code == ExitCode.SUCCESS
    assert payload["traits"][0]["ref"] == "@audited"
    assert payload["traits"][0]["implementers"] == 1
    assert payload["stats"] == {"totalTraits": 1, "itemsWithTraits": 1, "avgTraitsPerItem": 1.0}

    code, out, _err = _run(capsys, "traits", "@login", "--repo-root", str(root))
    assert code == ExitCode.SUCCESS
    assert "Inherited acceptance criteria (1):" in out
    assert "@audited ac-1: given an action" in out


def test_traits_rejects_non_item_reference(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, _out, err = _run(capsys, "traits", "@build-login", "--repo-root", str(root))

    assert code == ExitCode.VALIDATION_FAILED
    assert "error: spec item not found: @build-login" in err


def test_assess_auto_proposes_changes(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _project(tmp_path)

    code, out, _err = _run(capsys, "assess", "--auto", "--json", "--repo-root", str(root))
    payload = json.loads(out)

    assert code == ExitCode.SUCCESS
    assert payload["summary"] == {
        "reviewForEligible": 1,
        "needsReview": 0,
        "manualOnly": 1,
        "total": 2,
    }
    assert [change["action"] for change in payload["changes"]] == [
        "no_change",
        "set_manual_only",
    ]


def test_assess_unknown_task_is_an_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _project(tmp_path)

    code, _out, err = _run(capsys, "assess", "@login", "--repo-root", str(root))

    assert code == ExitCode.VALIDATION_FAILED
    assert "task not found: @login" in err


def test_config_json_applies_profile(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code, out, _err = _run(
        capsys, "config", "--json", "--profile", "strict", "--repo-root", str(tmp_path)
    )
    payload = json.loads(out)

    assert code == ExitCode.SUCCESS
    assert payload["active_profile"] == "strict"
    assert payload["config"]["resolver"]["min_prefix_length"] == 4


def test_invalid_config_file_exits_with_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _write(tmp_path / "specgraph.toml", "[resolver]\nfuzzy = true\n")

    code, _out, err = _run(capsys, "config", "--repo-root", str(tmp_path))

    assert code == ExitCode.CONFIG_ERROR
    assert "resolver.fuzzy" in err


def test_missing_manifest_exits_with_config_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    code, _out, err = _run(capsys, "validate", "--repo-root", str(tmp_path))

    assert code == ExitCode.CONFIG_ERROR
    assert "error: no manifest" in err


def test_merge_driver_writes_merged_tasks(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    base = tmp_path / "base"
    ours = tmp_path / "ours"
    theirs = tmp_path / "theirs"
    base.write_text(yaml.safe_dump({"tasks": []}), encoding="utf-8")
    ours.write_text(
        yaml.safe_dump({"tasks": [{"_ulid": TASK_ID, "title": "Ours"}]}), encoding="utf-8"
    )
    theirs.write_text(
        yaml.safe_dump({"tasks": [{"_ulid": SPIKE_ID, "title": "Theirs"}]}), encoding="utf-8"
    )

    code, out, _err = _run(
        capsys, "merge-driver", str(base), str(ours), str(theirs), "7", "auth.tasks.yaml"
    )

    merged = yaml.safe_load(ours.read_text(encoding="utf-8"))
    assert code == ExitCode.SUCCESS
    assert "Merged successfully" in out
    assert [task["_ulid"] for task in merged["tasks"]] == [TASK_ID, SPIKE_ID]


def test_merge_driver_rejects_unknown_file_type(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    for name in ("base", "ours", "theirs"):
        (tmp_path / name).write_text("a: 1\n", encoding="utf-8")

    code, _out, err = _run(
        capsys,
        "merge-driver",
        str(tmp_path / "base"),
        str(tmp_path / "ours"),
        str(tmp_path / "theirs"),
        "7",
        "README.yaml",
    )

    assert code == ExitCode.MERGE_FAILED
    assert "Merge failed" in err
    assert (tmp_path / "ours").read_text(encoding="utf-8") == "a: 1\n"

"""Unit tests for validation.schema."""

from __future__ import annotations

import datetime

import pytest

from specgraph.persistence.loader import DocumentRole
from specgraph.validation.schema import (
    INVALID_INBOX_ROOT_MESSAGE,
    INVALID_REF_MESSAGE,
    INVALID_SLUG_MESSAGE,
    INVALID_TASKS_ROOT_MESSAGE,
    INVALID_ULID_MESSAGE,
    check_document,
    missing_file_issue,
    parse_error_issue,
)

ULID_A = "01HZX4Q7AAAAAAAAAAAAAAAAAA"
ULID_B = "01HZX4Q8BBBBBBBBBBBBBBBBBB"


def _paths(role: DocumentRole | str, raw: object) -> list[tuple[str, str]]:
    return [(issue.path, issue.message) for issue in check_document(role, raw)]


@pytest.mark.unit
def test_well_formed_tasks_file_has_no_issues() -> None:
    raw = {
        "tasks": [
            {
                "_ulid": ULID_A,
                "title": "Fix login",
                "slugs": ["fix-login"],
                "type": "bug",
                "status": "pending",
                "spec_ref": "@login",
                "priority": 2,
                "notes": [{"_ulid": ULID_B, "content": "started", "author": "@claude"}],
                "todos": [{"id": 1, "text": "docs", "done": False}],
            }
        ]
    }

    assert check_document(DocumentRole.TASKS, raw) == ()


@pytest.mark.unit
def test_task_violations_are_reported_in_field_order_with_indexed_paths() -> None:
    raw = {
        "tasks": [
            {"_ulid": ULID_A, "title": "ok"},
            {
                "_ulid": "short",
                "title": "",
                "slugs": ["Bad_Slug"],
                "priority": 9,
                "spec_ref": "login",
                "depends_on": ["@ok", 3],
            },
        ]
    }

    assert _paths(DocumentRole.TASKS, raw) == [
        ("tasks[1]._ulid", INVALID_ULID_MESSAGE),
        ("tasks[1].title", "must not be empty"),
        ("tasks[1].slugs[0]", INVALID_SLUG_MESSAGE),
        ("tasks[1].priority", "must be <= 5"),
        ("tasks[1].spec_ref", INVALID_REF_MESSAGE),
        ("tasks[1].depends_on[1]", INVALID_REF_MESSAGE),
    ]


@pytest.mark.unit
def test_tasks_file_accepts_bare_list_root() -> None:
    issues = _paths("tasks", [{"title": "no identity"}])

    assert issues == [("[0]._ulid", "missing required field")]


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "text", {"items": []}, {"tasks": "nope"}])
def test_unexpected_tasks_root_yields_single_issue(raw: object) -> None:
    assert _paths(DocumentRole.TASKS, raw) == [("", INVALID_TASKS_ROOT_MESSAGE)]


@pytest.mark.unit
def test_task_enum_fields_list_allowed_values() -> None:
    raw = [{"_ulid": ULID_A, "title": "t", "status": "done", "automation": "yes"}]

    issues = dict(_paths(DocumentRole.TASKS, raw))

    assert issues["[0].status"].startswith("invalid value 'done'; expected one of:")
    assert "in_progress" in issues["[0].status"]
    assert issues["[0].automation"] == (
        "invalid value 'yes'; expected one of: eligible, manual_only, needs_review"
    )


@pytest.mark.unit
def test_spec_module_walks_nested_children_recursively() -> None:
    raw = {
        "features": [
            {
                "_ulid": ULID_A,
                "title": "Login",
                "type": "feature",
                "traits": ["@audited"],
                "acceptance_criteria": [{"id": "ac-1", "given": "g", "when": "w"}],
                "requirements": [
                    {"_ulid": ULID_B, "title": "Lockout", "status": {"maturity": "final"}},
                ],
            }
        ]
    }

    issues = _paths(DocumentRole.SPEC, raw)

    assert issues[0] == ("features[0].acceptance_criteria[0].then", "missing required field")
    assert issues[1][0] == "features[0].requirements[0].status.maturity"
    assert len(issues) == 2


@pytest.mark.unit
def test_spec_module_single_item_root_is_checked_as_item() -> None:
    raw = {"_ulid": ULID_A, "title": "Solo", "priority": "urgent"}

    issues = _paths(DocumentRole.SPEC, raw)

    assert issues == [
        ("priority", "invalid value 'urgent'; expected one of: high, low, medium"),
    ]


@pytest.mark.unit
def test_nested_field_that_is_not_an_array_is_reported() -> None:
    raw = {"modules": {"_ulid": ULID_A}}

    assert _paths(DocumentRole.SPEC, raw) == [("modules", "expected array, got dict")]


@pytest.mark.unit
def test_manifest_requires_project_name() -> None:
    assert _paths(DocumentRole.MANIFEST, {"kynetic": "1.0"}) == [
        ("project", "missing required field"),
    ]
    assert _paths(DocumentRole.MANIFEST, {"project": {}}) == [
        ("project.name", "missing required field"),
    ]
    assert _paths(DocumentRole.MANIFEST, {"project": {"name": "demo"}, "includes": [1]}) == [
        ("includes[0]", "expected string, got int"),
    ]


@pytest.mark.unit
def test_meta_manifest_paths_carry_meta_prefix() -> None:
    raw = {
        "agents": [{"_ulid": ULID_A, "id": "", "name": "Claude"}],
        "observations": [
            {
                "_ulid": ULID_B,
                "type": "rant",
                "content": "slow build",
                "workflow_ref": "release",
                "created_at": datetime.datetime(2025, 1, 1, 12, 0),
            }
        ],
    }

    issues = _paths(DocumentRole.META, raw)

    assert issues[0] == ("meta:agents[0].id", "Agent ID is required")
    assert issues[1][0] == "meta:observations[0].type"
    assert issues[2] == ("meta:observations[0].workflow_ref", INVALID_REF_MESSAGE)
    assert len(issues) == 3


@pytest.mark.unit
def test_inbox_file_root_and_records() -> None:
    assert _paths(DocumentRole.INBOX, [{"text": "idea"}]) == [("", INVALID_INBOX_ROOT_MESSAGE)]
    assert _paths(DocumentRole.INBOX, {"inbox": [{"_ulid": ULID_A, "tags": "x"}]}) == [
        ("inbox[0].text", "missing required field"),
        ("inbox[0].tags", "expected array, got str"),
    ]


@pytest.mark.unit
def test_parse_error_issue_message() -> None:
    issue = parse_error_issue("mapping values are not allowed here")

    assert issue.path == ""
    assert issue.message == "Failed to parse YAML: mapping values are not allowed here"


@pytest.mark.unit
def test_missing_file_issue_message() -> None:
    issue = missing_file_issue("modules/gone.yaml")

    assert issue.path == ""
    assert issue.message == "File not found: modules/gone.yaml"

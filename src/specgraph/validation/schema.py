"""
specgraph: record-format schema checks.

File: src/specgraph/validation/schema.py

Purpose
- Check the raw YAML structure of every project file against the record formats.

What should be included in this file
- One visitor per document role (manifest, spec module, tasks file, meta manifest, inbox file).
- A fixed table of nested child-collection field names walked recursively for spec items.

Functional requirements
- Accumulate one issue per violation with a dotted/indexed path (``tasks[3].priority``).
- An unexpected root shape produces a single issue instead of aborting the pass.

Non-functional requirements
- Deterministic issue order: document order, then field order within a record.
- Unknown keys are tolerated; records stay forward compatible.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Final

from specgraph.constants import NESTED_ITEM_FIELDS
from specgraph.domain.ids import is_ulid
from specgraph.domain.models import (
    AutomationStatus,
    ImplementationStatus,
    ItemType,
    Maturity,
    ObservationType,
    TaskStatus,
    TaskType,
)
from specgraph.domain.refs import is_valid_alias, is_well_formed_ref
from specgraph.persistence.loader import DocumentRole

META_PATH_PREFIX: Final[str] = "meta:"

INVALID_ULID_MESSAGE: Final[str] = "Invalid ULID format (expected 26 characters)"
INVALID_REF_MESSAGE: Final[str] = "Invalid reference format (expected @identity or @alias)"
INVALID_SLUG_MESSAGE: Final[str] = "Invalid slug format (expected ^[a-z][a-z0-9-]*$)"
INVALID_TASKS_ROOT_MESSAGE: Final[str] = (
    "Invalid tasks file format: expected array or { tasks: [...] }"
)
INVALID_INBOX_ROOT_MESSAGE: Final[str] = "Invalid inbox file format: expected { inbox: [...] }"

_PRIORITY_WORDS: Final[tuple[str, ...]] = ("high", "medium", "low")
_VCS_REF_TYPES: Final[tuple[str, ...]] = ("branch", "tag", "commit")
_DERIVATIONS: Final[tuple[str, ...]] = ("auto", "manual")
_ORIGINS: Final[tuple[str, ...]] = ("manual", "derived", "observation_promotion")
_STEP_TYPES: Final[tuple[str, ...]] = ("check", "action", "decision")
_CONVENTION_VALIDATION_TYPES: Final[tuple[str, ...]] = ("regex", "enum", "range", "prose")

_SPEC_REF_LIST_FIELDS: Final[tuple[str, ...]] = (
    "depends_on",
    "implements",
    "relates_to",
    "tests",
    "traits",
)
_TASK_REF_LIST_FIELDS: Final[tuple[str, ...]] = ("depends_on", "blocked_by", "context")


@dataclass(frozen=True, slots=True)
class SchemaIssue:
    """Single structural violation inside one document."""

    path: str
    message: str


class _IssueCollector:
    __slots__ = ("_items", "_prefix")

    def __init__(self, prefix: str = "") -> None:
        self._items: list[SchemaIssue] = []
        self._prefix = prefix

    def add(self, path: str, message: str) -> None:
        self._items.append(SchemaIssue(path=f"{self._prefix}{path}", message=message))

    def items(self) -> tuple[SchemaIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def check_document(role: DocumentRole | str, raw: object) -> tuple[SchemaIssue, ...]:
    """Check one parsed document and return its issues in document order."""
    selected = DocumentRole(role)
    if selected is DocumentRole.META:
        issues = _IssueCollector(prefix=META_PATH_PREFIX)
        _visit_meta_manifest(raw, issues)
    elif selected is DocumentRole.MANIFEST:
        issues = _IssueCollector()
        _visit_manifest(raw, issues)
    elif selected is DocumentRole.SPEC:
        issues = _IssueCollector()
        _visit_spec_module(raw, issues)
    elif selected is DocumentRole.TASKS:
        issues = _IssueCollector()
        _visit_tasks_file(raw, issues)
    else:
        issues = _IssueCollector()
        _visit_inbox_file(raw, issues)
    return issues.items()


def parse_error_issue(reason: str) -> SchemaIssue:
    """Issue reported for a document that could not be parsed at all."""
    return SchemaIssue(path="", message=f"Failed to parse YAML: {reason}")


def missing_file_issue(path: str) -> SchemaIssue:
    """Issue reported for an included document that does not exist."""
    return SchemaIssue(path="", message=f"File not found: {path}")


# ---------------------------------------------------------------------------
# Document visitors
# ---------------------------------------------------------------------------


def _visit_manifest(raw: object, issues: _IssueCollector) -> None:
    root = _as_object(raw, "<root>", issues)
    if root is None:
        return

    if "kynetic" in root:
        _as_str(root["kynetic"], "kynetic", issues)

    project = root.get("project")
    if project is None:
        issues.add("project", "missing required field")
    else:
        project_obj = _as_object(project, "project", issues)
        if project_obj is not None:
            if "name" not in project_obj:
                issues.add("project.name", "missing required field")
            else:
                _as_str(project_obj["name"], "project.name", issues)
            if "version" in project_obj:
                _as_str(project_obj["version"], "project.version", issues)
            if "status" in project_obj:
                _as_enum(
                    project_obj["status"],
                    "project.status",
                    issues,
                    allowed_values=tuple(Maturity),
                )

    _visit_children(root, "", issues)
    _check_str_list(root, "includes", "", issues)

    hooks = root.get("hooks")
    if hooks is not None:
        hooks_obj = _as_object(hooks, "hooks", issues)
        if hooks_obj is not None:
            for name in hooks_obj:
                _as_str(hooks_obj[name], _join("hooks", name), issues)


def _visit_spec_module(raw: object, issues: _IssueCollector) -> None:
    if isinstance(raw, list):
        for position, entry in enumerate(raw):
            _visit_spec_item(entry, _index("", position), issues)
        return

    root = _as_object(raw, "<root>", issues)
    if root is None:
        return
    if "_ulid" in root:
        _visit_spec_item(root, "", issues)
        return
    _visit_children(root, "", issues)


def _visit_tasks_file(raw: object, issues: _IssueCollector) -> None:
    if isinstance(raw, list):
        entries: Sequence[object] = raw
        path = ""
    elif isinstance(raw, Mapping) and isinstance(raw.get("tasks"), list):
        entries = raw["tasks"]
        path = "tasks"
    else:
        issues.add("", INVALID_TASKS_ROOT_MESSAGE)
        return

    for position, entry in enumerate(entries):
        _visit_task(entry, _index(path, position), issues)


def _visit_inbox_file(raw: object, issues: _IssueCollector) -> None:
    if not isinstance(raw, Mapping) or not isinstance(raw.get("inbox"), list):
        issues.add("", INVALID_INBOX_ROOT_MESSAGE)
        return

    for position, entry in enumerate(raw["inbox"]):
        path = _index("inbox", position)
        record = _as_object(entry, path, issues)
        if record is None:
            continue
        _check_ulid_field(record, path, issues)
        _check_required_str(record, "text", path, issues)
        _check_optional_timestamp(record, "created_at", path, issues)
        _check_str_list(record, "tags", path, issues)
        _check_optional_str(record, "added_by", path, issues)


def _visit_meta_manifest(raw: object, issues: _IssueCollector) -> None:
    root = _as_object(raw, "<root>", issues)
    if root is None:
        return

    if "kynetic_meta" in root:
        _as_str(root["kynetic_meta"], "kynetic_meta", issues)
    _check_str_list(root, "includes", "", issues)

    for _position, entry, path in _records(root, "agents", "", issues):
        _check_ulid_field(entry, path, issues)
        _check_required_str(entry, "id", path, issues, message="Agent ID is required")
        _check_required_str(entry, "name", path, issues)
        _check_optional_str(entry, "description", path, issues)
        for field_name in ("capabilities", "tools", "conventions"):
            _check_str_list(entry, field_name, path, issues)

    for _position, entry, path in _records(root, "workflows", "", issues):
        _check_ulid_field(entry, path, issues)
        _check_required_str(entry, "id", path, issues)
        _check_required_str(entry, "trigger", path, issues)
        _check_optional_str(entry, "description", path, issues)
        for _step_position, step, step_path in _records(entry, "steps", path, issues):
            if "type" not in step:
                issues.add(_join(step_path, "type"), "missing required field")
            else:
                _as_enum(
                    step["type"], _join(step_path, "type"), issues, allowed_values=_STEP_TYPES
                )
            _check_required_str(step, "content", step_path, issues)
            _check_optional_str(step, "on_fail", step_path, issues)
            _check_str_list(step, "options", step_path, issues)

    for _position, entry, path in _records(root, "conventions", "", issues):
        _check_ulid_field(entry, path, issues)
        _check_required_str(entry, "domain", path, issues)
        _check_str_list(entry, "rules", path, issues)
        for _example_position, example, example_path in _records(
            entry, "examples", path, issues
        ):
            _check_required_str(example, "good", example_path, issues)
            _check_required_str(example, "bad", example_path, issues)
        validation = entry.get("validation")
        if validation is not None:
            validation_path = _join(path, "validation")
            validation_obj = _as_object(validation, validation_path, issues)
            if validation_obj is not None and "type" in validation_obj:
                _as_enum(
                    validation_obj["type"],
                    _join(validation_path, "type"),
                    issues,
                    allowed_values=_CONVENTION_VALIDATION_TYPES,
                )

    for _position, entry, path in _records(root, "observations", "", issues):
        _check_ulid_field(entry, path, issues)
        if "type" not in entry:
            issues.add(_join(path, "type"), "missing required field")
        else:
            _as_enum(
                entry["type"], _join(path, "type"), issues, allowed_values=tuple(ObservationType)
            )
        _check_required_str(entry, "content", path, issues)
        for field_name in ("author", "resolution", "resolved_by"):
            _check_optional_str(entry, field_name, path, issues)
        _check_optional_timestamp(entry, "created_at", path, issues)
        _check_optional_timestamp(entry, "resolved_at", path, issues)
        _check_optional_ref(entry, "workflow_ref", path, issues)
        _check_optional_ref(entry, "promoted_to", path, issues)
        if "resolved" in entry:
            _as_bool(entry["resolved"], _join(path, "resolved"), issues)


# ---------------------------------------------------------------------------
# Record visitors
# ---------------------------------------------------------------------------


def _visit_spec_item(raw: object, path: str, issues: _IssueCollector) -> None:
    item = _as_object(raw, path or "<root>", issues)
    if item is None:
        return

    _check_ulid_field(item, path, issues)
    _check_required_str(item, "title", path, issues)
    _check_slugs(item, path, issues)
    _check_optional_str(item, "description", path, issues)
    if "type" in item:
        _as_enum(item["type"], _join(path, "type"), issues, allowed_values=tuple(ItemType))

    status = item.get("status")
    if status is not None:
        status_path = _join(path, "status")
        status_obj = _as_object(status, status_path, issues)
        if status_obj is not None:
            if "maturity" in status_obj:
                _as_enum(
                    status_obj["maturity"],
                    _join(status_path, "maturity"),
                    issues,
                    allowed_values=tuple(Maturity),
                )
            if "implementation" in status_obj:
                _as_enum(
                    status_obj["implementation"],
                    _join(status_path, "implementation"),
                    issues,
                    allowed_values=tuple(ImplementationStatus),
                )

    for _position, criterion, criterion_path in _records(
        item, "acceptance_criteria", path, issues
    ):
        for field_name in ("id", "given", "when", "then"):
            _check_required_str(criterion, field_name, criterion_path, issues)

    for field_name in _SPEC_REF_LIST_FIELDS:
        _check_ref_list(item, field_name, path, issues)
    _check_optional_ref(item, "supersedes", path, issues)
    _check_optional_ref(item, "superseded_by", path, issues)
    _check_str_list(item, "tags", path, issues)

    if "priority" in item:
        priority = item["priority"]
        if isinstance(priority, str):
            _as_enum(priority, _join(path, "priority"), issues, allowed_values=_PRIORITY_WORDS)
        else:
            _as_int(priority, _join(path, "priority"), issues, minimum=1, maximum=5)

    traceability = item.get("traceability")
    if traceability is not None:
        _visit_traceability(traceability, _join(path, "traceability"), issues)

    _visit_children(item, path, issues)


def _visit_children(record: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    for field_name in NESTED_ITEM_FIELDS:
        children = record.get(field_name)
        if children is None:
            continue
        children_path = _join(path, field_name)
        if not isinstance(children, list):
            issues.add(children_path, f"expected array, got {type(children).__name__}")
            continue
        for position, child in enumerate(children):
            _visit_spec_item(child, _index(children_path, position), issues)


def _visit_traceability(raw: object, path: str, issues: _IssueCollector) -> None:
    record = _as_object(raw, path, issues)
    if record is None:
        return
    for _position, entry, entry_path in _records(record, "implementation", path, issues):
        _check_required_str(entry, "path", entry_path, issues)
        _check_optional_str(entry, "function", entry_path, issues)
        _check_optional_str(entry, "lines", entry_path, issues)
    for _position, entry, entry_path in _records(record, "tests", path, issues):
        _check_required_str(entry, "path", entry_path, issues)
    _check_str_list(record, "commits", path, issues)
    _check_str_list(record, "issues", path, issues)


def _visit_task(raw: object, path: str, issues: _IssueCollector) -> None:
    task = _as_object(raw, path, issues)
    if task is None:
        return

    _check_ulid_field(task, path, issues)
    _check_required_str(task, "title", path, issues)
    _check_slugs(task, path, issues)
    _check_optional_str(task, "description", path, issues)

    if "type" in task:
        _as_enum(task["type"], _join(path, "type"), issues, allowed_values=tuple(TaskType))
    if "status" in task:
        _as_enum(task["status"], _join(path, "status"), issues, allowed_values=tuple(TaskStatus))
    if "automation" in task:
        _as_enum(
            task["automation"],
            _join(path, "automation"),
            issues,
            allowed_values=tuple(AutomationStatus),
        )
    if "derivation" in task:
        _as_enum(task["derivation"], _join(path, "derivation"), issues, allowed_values=_DERIVATIONS)
    if "origin" in task:
        _as_enum(task["origin"], _join(path, "origin"), issues, allowed_values=_ORIGINS)
    if "priority" in task:
        _as_int(task["priority"], _join(path, "priority"), issues, minimum=1, maximum=5)

    _check_optional_ref(task, "spec_ref", path, issues)
    _check_optional_ref(task, "meta_ref", path, issues)
    for field_name in _TASK_REF_LIST_FIELDS:
        _check_ref_list(task, field_name, path, issues)
    _check_str_list(task, "tags", path, issues)

    for _position, note, note_path in _records(task, "notes", path, issues):
        _check_ulid_field(note, note_path, issues)
        _check_required_str(note, "content", note_path, issues)
        _check_optional_timestamp(note, "created_at", note_path, issues)
        _check_optional_str(note, "author", note_path, issues)
        _check_optional_ref(note, "supersedes", note_path, issues)

    for _position, todo, todo_path in _records(task, "todos", path, issues):
        if "id" not in todo:
            issues.add(_join(todo_path, "id"), "missing required field")
        else:
            _as_int(todo["id"], _join(todo_path, "id"), issues, minimum=1)
        _check_required_str(todo, "text", todo_path, issues)
        if "done" in todo:
            _as_bool(todo["done"], _join(todo_path, "done"), issues)
        _check_optional_str(todo, "added_by", todo_path, issues)

    for _position, vcs_ref, vcs_path in _records(task, "vcs_refs", path, issues):
        _check_required_str(vcs_ref, "ref", vcs_path, issues)
        if "type" in vcs_ref:
            _as_enum(
                vcs_ref["type"], _join(vcs_path, "type"), issues, allowed_values=_VCS_REF_TYPES
            )


# ---------------------------------------------------------------------------
# Field checks
# ---------------------------------------------------------------------------


def _records(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> list[tuple[int, dict[str, object], str]]:
    raw = record.get(key)
    if raw is None:
        return []
    list_path = _join(path, key)
    if not isinstance(raw, list):
        issues.add(list_path, f"expected array, got {type(raw).__name__}")
        return []
    out: list[tuple[int, dict[str, object], str]] = []
    for position, entry in enumerate(raw):
        entry_path = _index(list_path, position)
        entry_obj = _as_object(entry, entry_path, issues)
        if entry_obj is not None:
            out.append((position, entry_obj, entry_path))
    return out


def _check_ulid_field(record: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    field_path = _join(path, "_ulid")
    if "_ulid" not in record:
        issues.add(field_path, "missing required field")
        return
    if not is_ulid(record["_ulid"]):
        issues.add(field_path, INVALID_ULID_MESSAGE)


def _check_slugs(record: Mapping[str, object], path: str, issues: _IssueCollector) -> None:
    raw = record.get("slugs")
    if raw is None:
        return
    slugs_path = _join(path, "slugs")
    if not isinstance(raw, list):
        issues.add(slugs_path, f"expected array, got {type(raw).__name__}")
        return
    for position, slug in enumerate(raw):
        if not is_valid_alias(slug):
            issues.add(_index(slugs_path, position), INVALID_SLUG_MESSAGE)


def _check_required_str(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
    *,
    message: str | None = None,
) -> None:
    field_path = _join(path, key)
    if key not in record:
        issues.add(field_path, message or "missing required field")
        return
    value = record[key]
    if isinstance(value, str) and not value.strip() and message is not None:
        issues.add(field_path, message)
        return
    _as_str(value, field_path, issues)


def _check_optional_str(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> None:
    value = record.get(key)
    if value is None:
        return
    if not isinstance(value, str):
        issues.add(_join(path, key), f"expected string, got {type(value).__name__}")


def _check_optional_timestamp(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> None:
    # YAML loads unquoted ISO timestamps as datetime objects.
    value = record.get(key)
    if value is None or isinstance(value, (str, date)):
        return
    issues.add(_join(path, key), f"expected timestamp, got {type(value).__name__}")


def _check_optional_ref(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> None:
    value = record.get(key)
    if value is None:
        return
    if not is_well_formed_ref(value):
        issues.add(_join(path, key), INVALID_REF_MESSAGE)


def _check_ref_list(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> None:
    raw = record.get(key)
    if raw is None:
        return
    list_path = _join(path, key)
    if not isinstance(raw, list):
        issues.add(list_path, f"expected array, got {type(raw).__name__}")
        return
    for position, value in enumerate(raw):
        if not is_well_formed_ref(value):
            issues.add(_index(list_path, position), INVALID_REF_MESSAGE)


def _check_str_list(
    record: Mapping[str, object],
    key: str,
    path: str,
    issues: _IssueCollector,
) -> None:
    raw = record.get(key)
    if raw is None:
        return
    list_path = _join(path, key)
    if not isinstance(raw, list):
        issues.add(list_path, f"expected array, got {type(raw).__name__}")
        return
    for position, value in enumerate(raw):
        if not isinstance(value, str):
            issues.add(_index(list_path, position), f"expected string, got {type(value).__name__}")


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    if maximum is not None and value > maximum:
        issues.add(path, f"must be <= {maximum}")
        return None
    return value


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _index(path: str, position: int) -> str:
    return f"{path}[{position}]"


__all__ = [
    "INVALID_INBOX_ROOT_MESSAGE",
    "INVALID_REF_MESSAGE",
    "INVALID_SLUG_MESSAGE",
    "INVALID_TASKS_ROOT_MESSAGE",
    "INVALID_ULID_MESSAGE",
    "META_PATH_PREFIX",
    "DocumentRole",
    "SchemaIssue",
    "check_document",
    "missing_file_issue",
    "parse_error_issue",
]

"""Unit tests for persistence.loader."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from specgraph.persistence.loader import (
    DocumentRole,
    ProjectLoadError,
    find_manifest,
    load_project,
    project_root_for,
)

INLINE_ID = "01HZX4Q6KKKKKKKKKKKKKKKKKK"
MODULE_ID = "01HZX4Q7MMMMMMMMMMMMMMMMMM"
LOGIN_ID = "01HZX4Q8FFFFFFFFFFFFFFFFFF"
LOCKOUT_ID = "01HZX4Q9RRRRRRRRRRRRRRRRRR"
TASK_ONE = "01HZX4QATTTTTTTTTTTTTTTTTT"
TASK_TWO = "01HZX4QBTTTTTTTTTTTTTTTTTT"
AGENT_ID = "01HZX4QCGGGGGGGGGGGGGGGGGG"
INBOX_ID = "01HZX4QDNNNNNNNNNNNNNNNNNN"


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text).lstrip(), encoding="utf-8")


def _build_project(root: Path) -> None:
    _write(
        root / "kynetic.yaml",
        f"""
        project:
          name: demo
        includes:
          - modules/*.yaml
          - missing.yaml
        features:
          - _ulid: {INLINE_ID}
            title: Inline feature
        """,
    )
    _write(
        root / "modules" / "auth.yaml",
        f"""
        _ulid: {MODULE_ID}
        title: Auth
        type: module
        features:
          - _ulid: {LOGIN_ID}
            slugs: [login]
            title: Login
            type: feature
            requirements:
              - _ulid: {LOCKOUT_ID}
                title: Lockout
          - title: no identity
        """,
    )
    _write(root / "modules" / "broken.yaml", "key: [unclosed\n")
    _write(
        root / "project.tasks.yaml",
        f"""
        tasks:
          - _ulid: {TASK_ONE}
            title: Build login
            spec_ref: "@login"
          - title: skipped without identity
        """,
    )
    _write(
        root / "tasks" / "extra.tasks.yaml",
        f"""
        - _ulid: {TASK_TWO}
          title: Follow-up
        """,
    )
    _write(
        root / "kynetic.meta.yaml",
        f"""
        agents:
          - _ulid: {AGENT_ID}
            id: claude
            name: Claude
        """,
    )
    _write(
        root / "ideas.inbox.yaml",
        f"""
        inbox:
          - _ulid: {INBOX_ID}
            text: cache tokens
            added_by: "@claude"
        """,
    )


@pytest.mark.unit
def test_load_project_collects_every_document_in_order(tmp_path: Path) -> None:
    _build_project(tmp_path)

    snapshot = load_project(tmp_path)

    assert snapshot.root_dir == tmp_path.resolve()
    assert [(source.path, source.role) for source in snapshot.files] == [
        ("kynetic.yaml", DocumentRole.MANIFEST),
        ("missing.yaml", DocumentRole.SPEC),
        ("modules/auth.yaml", DocumentRole.SPEC),
        ("modules/broken.yaml", DocumentRole.SPEC),
        ("project.tasks.yaml", DocumentRole.TASKS),
        ("tasks/extra.tasks.yaml", DocumentRole.TASKS),
        ("kynetic.meta.yaml", DocumentRole.META),
        ("ideas.inbox.yaml", DocumentRole.INBOX),
    ]
    assert snapshot.has_meta
    assert [task.id for task in snapshot.tasks] == [TASK_ONE, TASK_TWO]
    assert snapshot.tasks[0].source_file == "project.tasks.yaml"
    assert [meta.meta_id for meta in snapshot.meta_items] == ["claude"]
    assert [inbox.added_by for inbox in snapshot.inbox_items] == ["@claude"]


@pytest.mark.unit
def test_unreadable_documents_are_kept_with_their_error(tmp_path: Path) -> None:
    _build_project(tmp_path)

    snapshot = load_project(tmp_path)
    errors = {source.path: source.parse_error for source in snapshot.files}

    assert errors["missing.yaml"] == "file not found: missing.yaml"
    assert [source.path for source in snapshot.files if source.missing] == ["missing.yaml"]
    assert errors["modules/broken.yaml"] is not None
    assert errors["kynetic.yaml"] is None


@pytest.mark.unit
def test_nested_items_carry_nesting_path_and_parent(tmp_path: Path) -> None:
    _build_project(tmp_path)

    snapshot = load_project(tmp_path)
    by_id = {item.id: item for item in snapshot.items}

    assert list(by_id) == [INLINE_ID, MODULE_ID, LOGIN_ID, LOCKOUT_ID]
    assert by_id[INLINE_ID].nesting_path is None
    assert by_id[MODULE_ID].nesting_path is None
    assert by_id[LOGIN_ID].nesting_path == "features[0]"
    assert by_id[LOGIN_ID].parent_id == MODULE_ID
    assert by_id[LOCKOUT_ID].nesting_path == "features[0].requirements[0]"
    assert by_id[LOCKOUT_ID].parent_id == LOGIN_ID
    assert by_id[LOGIN_ID].source_file == "modules/auth.yaml"


@pytest.mark.unit
def test_find_manifest_walks_up_and_checks_spec_subdir(tmp_path: Path) -> None:
    _write(tmp_path / "spec" / "kynetic.spec.yaml", "project:\n  name: demo\n")
    nested = tmp_path / "src" / "pkg"
    nested.mkdir(parents=True)

    manifest = find_manifest(nested)

    assert manifest == (tmp_path / "spec" / "kynetic.spec.yaml").resolve()
    assert project_root_for(manifest) == tmp_path.resolve()


@pytest.mark.unit
def test_tasks_in_spec_dir_are_found_relative_to_project_root(tmp_path: Path) -> None:
    _write(tmp_path / "spec" / "kynetic.yaml", "project:\n  name: demo\n")
    _write(
        tmp_path / "spec" / "core.tasks.yaml",
        f"- _ulid: {TASK_ONE}\n  title: Core task\n",
    )

    snapshot = load_project(tmp_path)

    assert [source.path for source in snapshot.files] == [
        "spec/kynetic.yaml",
        "spec/core.tasks.yaml",
    ]
    assert [task.title for task in snapshot.tasks] == ["Core task"]
    assert not snapshot.has_meta


@pytest.mark.unit
def test_missing_manifest_raises(tmp_path: Path) -> None:
    with pytest.raises(ProjectLoadError, match="no manifest"):
        load_project(tmp_path)

"""Unit tests for validation.validator."""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from specgraph.domain.models import AcceptanceCriterion, EntityKind, MetaItem, Note, SpecItem, Task
from specgraph.persistence.loader import DocumentRole, ProjectSnapshot, SourceFile
from specgraph.validation.coverage import StaticCoverage
from specgraph.validation.result import CompletenessType
from specgraph.validation.validator import ValidateOptions, validate, validate_entities

MODULE_ID = "01HZX4Q7MMMMMMMMMMMMMMMMMM"
LOGIN_ID = "01HZX4Q8FFFFFFFFFFFFFFFFFF"
AUDIT_ID = "01HZX4Q9AAAAAAAAAAAAAAAAAA"
CACHE_ID = "01HZX4QACCCCCCCCCCCCCCCCCC"
TASK_ID = "01HZX4QBTTTTTTTTTTTTTTTTTT"
AGENT_ID = "01HZX4QCGGGGGGGGGGGGGGGGGG"


def _ac(ac_id: str = "ac-1") -> AcceptanceCriterion:
    return AcceptanceCriterion(id=ac_id, given="a user", when="they act", then="it works")


def _module() -> SpecItem:
    return SpecItem(
        id=MODULE_ID,
        title="Auth",
        aliases=("auth",),
        type="module",
        description="Authentication",
        acceptance_criteria=(_ac(),),
    )


def _login(**overrides: object) -> SpecItem:
    fields: dict[str, object] = {
        "id": LOGIN_ID,
        "title": "Login",
        "aliases": ("login",),
        "type": "feature",
        "description": "Sign in",
        "acceptance_criteria": (_ac(),),
        "traits": ("@audited",),
    }
    fields.update(overrides)
    return SpecItem(**fields)  # type: ignore[arg-type]


def _trait(identity: str = AUDIT_ID, alias: str = "audited", **overrides: object) -> SpecItem:
    fields: dict[str, object] = {
        "id": identity,
        "title": alias.title(),
        "aliases": (alias,),
        "type": "trait",
        "description": f"{alias} behaviour",
        "acceptance_criteria": (_ac(),),
    }
    fields.update(overrides)
    return SpecItem(**fields)  # type: ignore[arg-type]


def _task(**overrides: object) -> Task:
    fields: dict[str, object] = {
        "id": TASK_ID,
        "title": "Implement login",
        "aliases": ("implement-login",),
        "spec_ref": "@login",
    }
    fields.update(overrides)
    return Task(**fields)  # type: ignore[arg-type]


@pytest.mark.unit
def test_consistent_graph_is_valid_without_findings() -> None:
    result = validate_entities([_task()], [_module(), _login(), _trait()])

    assert result.valid
    assert result.error_count == 0
    assert result.warning_count == 0
    assert result.stats.items_checked == 3
    assert result.stats.tasks_checked == 1
    assert result.stats.files_checked == 0
    assert result.meta_stats is None


@pytest.mark.unit
def test_unresolved_reference_is_an_error_and_wrong_kind_dependency_a_warning() -> None:
    task = _task(spec_ref="@missing", depends_on=("@login",))

    result = validate_entities([task], [_module(), _login(), _trait()])

    assert not result.valid
    assert [(f.field, f.message) for f in result.ref_errors] == [
        ("spec_ref", 'Reference "@missing" not found'),
    ]
    assert result.ref_errors[0].source_id == TASK_ID
    assert [f.message for f in result.ref_warnings] == [
        'Reference "@login" in depends_on points to a spec item, not a task',
    ]
    assert result.orphans == ()


@pytest.mark.unit
def test_ambiguous_prefix_and_duplicate_alias_are_errors() -> None:
    twin = _trait(CACHE_ID, "audited")
    task = _task(spec_ref="@01HZX4Q", depends_on=("@audited",))

    result = validate_entities([task], [_login(traits=()), _trait(), twin])

    messages = [finding.message for finding in result.ref_errors]
    assert messages[0] == 'Slug "@audited" maps to multiple items: @audited, @audited'
    assert messages[1].startswith('Reference "@01HZX4Q" is ambiguous, matches: ')
    assert not result.valid


@pytest.mark.unit
def test_traits_field_must_point_at_traits() -> None:
    other = SpecItem(id=CACHE_ID, title="Logout", aliases=("logout",), type="feature")
    login = _login(traits=("@logout",))

    result = validate_entities([], [login, other])

    assert [(f.field, f.message) for f in result.ref_errors] == [
        ("traits", 'Reference "@logout" in traits is a spec item, not a trait'),
    ]


@pytest.mark.unit
def test_spec_ref_to_trait_and_task_targets() -> None:
    to_trait = _task(spec_ref="@audited")
    to_task = Task(id=CACHE_ID, title="Follow-up", spec_ref="@implement-login")

    result = validate_entities([to_trait, to_task], [_login(), _trait()])

    assert [f.message for f in result.ref_warnings] == [
        'spec_ref "@audited" points to a trait; tasks usually implement concrete items',
    ]
    assert [f.message for f in result.ref_errors] == [
        'Reference "@implement-login" is a task, not a spec item',
    ]


@pytest.mark.unit
def test_agent_fields_warn_when_target_is_not_an_agent() -> None:
    agent = MetaItem(id=AGENT_ID, kind=EntityKind.AGENT, title="Claude", meta_id="claude")
    task = _task(
        notes=(
            Note(id="N1", content="started", author="@claude"),
            Note(id="N2", content="review", author="@login"),
        )
    )

    result = validate_entities([task], [_module(), _login(), _trait()], [agent])

    assert [f.message for f in result.ref_warnings] == [
        'Reference "@login" in notes[].author points to a spec item, not an agent',
    ]
    assert result.meta_stats is not None
    assert result.meta_stats.agents == 1


@pytest.mark.unit
def test_orphans_exclude_entry_points_nested_items_and_referenced_items() -> None:
    lonely = SpecItem(id=CACHE_ID, title="Cache", aliases=("cache",), type="feature")
    nested = SpecItem(
        id="01HZX4QDNNNNNNNNNNNNNNNNNN",
        title="Nested",
        type="requirement",
        nesting_path="requirements[0]",
        parent_id=CACHE_ID,
    )

    result = validate_entities([_task()], [_module(), _login(), _trait(), lonely, nested])

    assert [(orphan.identity, orphan.kind) for orphan in result.orphans] == [
        (CACHE_ID, "feature"),
    ]
    assert result.valid


@pytest.mark.unit
def test_trait_cycle_is_an_error_and_suppresses_completeness_for_members() -> None:
    first = _trait(AUDIT_ID, "audited", traits=("@cached",), acceptance_criteria=())
    second = _trait(CACHE_ID, "cached", traits=("@audited",), acceptance_criteria=())

    result = validate_entities([], [first, second])

    assert not result.valid
    assert len(result.trait_cycle_errors) == 1
    assert result.trait_cycle_errors[0].message == (
        "Circular trait reference: @audited -> @cached -> @audited"
    )
    assert result.completeness_warnings == ()


@pytest.mark.unit
def test_completeness_reports_missing_criteria_description_and_status() -> None:
    bare = SpecItem(id=CACHE_ID, title="Bare", aliases=("bare",), type="module")
    parent = _login(traits=(), implementation="implemented")
    child = SpecItem(
        id="01HZX4QDNNNNNNNNNNNNNNNNNN",
        title="Lockout",
        aliases=("lockout",),
        type="requirement",
        description="Lock after failures",
        acceptance_criteria=(_ac(),),
        implementation="not_started",
        nesting_path="requirements[0]",
        parent_id=LOGIN_ID,
    )

    result = validate_entities([_task()], [parent, child, bare])

    assert [(w.type, w.item_ref) for w in result.completeness_warnings] == [
        (CompletenessType.STATUS_INCONSISTENCY, "@login"),
        (CompletenessType.MISSING_ACCEPTANCE_CRITERIA, "@bare"),
        (CompletenessType.MISSING_DESCRIPTION, "@bare"),
    ]
    assert result.completeness_warnings[0].details == "@lockout"
    assert result.valid


@pytest.mark.unit
def test_completeness_messages_name_traits_as_traits() -> None:
    bare_trait = _trait(description=None, acceptance_criteria=())
    bare_module = SpecItem(id=CACHE_ID, title="Bare", aliases=("bare",), type="module")

    result = validate_entities([], [bare_trait, bare_module])

    assert [(w.item_ref, w.message) for w in result.completeness_warnings] == [
        ("@audited", "Trait @audited has no acceptance criteria"),
        ("@audited", "Trait @audited has no description"),
        ("@bare", "@bare has no acceptance criteria"),
        ("@bare", "@bare has no description"),
    ]


@pytest.mark.unit
def test_schema_pass_reports_missing_include_apart_from_parse_failures() -> None:
    snapshot = ProjectSnapshot(
        root_dir=Path("."),
        manifest_path=None,
        files=(
            SourceFile(
                path="missing.yaml",
                role=DocumentRole.SPEC,
                parse_error="file not found: missing.yaml",
                missing=True,
            ),
            SourceFile(path="broken.yaml", role=DocumentRole.SPEC, parse_error="bad indent"),
        ),
    )

    result = validate(snapshot)

    assert [(entry.file, entry.message) for entry in result.schema_errors] == [
        ("missing.yaml", "File not found: missing.yaml"),
        ("broken.yaml", "Failed to parse YAML: bad indent"),
    ]
    assert not result.valid


@pytest.mark.unit
def test_inherited_criteria_satisfy_presence_but_need_their_own_coverage() -> None:
    login = _login(acceptance_criteria=())
    coverage = StaticCoverage({"@audited", "@auth"})

    covered = validate_entities([_task()], [_module(), login, _trait()], coverage=coverage)
    uncovered = validate_entities(
        [_task()], [_module(), login, _trait()], coverage=StaticCoverage({"@auth ac-1"})
    )

    assert covered.completeness_warnings == ()
    assert [(w.item_ref, w.message, w.details) for w in uncovered.completeness_warnings] == [
        ("@login", "@login has 1 inherited trait AC without test coverage", "@audited ac-1"),
    ]


@pytest.mark.unit
def test_own_criteria_coverage_is_checked_for_non_traits_only() -> None:
    result = validate_entities(
        [_task()],
        [_module(), _login(traits=()), _trait()],
        coverage=StaticCoverage({"@auth ac-1"}),
    )

    assert [(w.type, w.item_ref) for w in result.completeness_warnings] == [
        (CompletenessType.MISSING_TEST_COVERAGE, "@login"),
    ]


@pytest.mark.unit
def test_automation_eligibility_checks() -> None:
    no_spec = _task(automation="eligible", spec_ref=None)
    unresolved = Task(id=CACHE_ID, title="Ghost", spec_ref="@ghost", automation="eligible")

    result = validate_entities([no_spec, unresolved], [_module(), _login(), _trait()])

    types = [w.type for w in result.completeness_warnings]
    assert types == [
        CompletenessType.AUTOMATION_MISSING_SPEC_REF,
        CompletenessType.AUTOMATION_UNRESOLVED_SPEC_REF,
    ]


@pytest.mark.unit
def test_options_disable_individual_passes() -> None:
    task = _task(spec_ref="@missing")
    lonely = SpecItem(id=CACHE_ID, title="Cache", aliases=("cache",), type="feature")
    options = ValidateOptions(refs=False, orphans=False, completeness=False)

    result = validate_entities([task], [_login(), _trait(), lonely], options=options)

    assert result.valid
    assert result.ref_errors == ()
    assert result.orphans == ()
    assert result.completeness_warnings == ()


@pytest.mark.unit
def test_options_from_config_reads_validation_and_resolver_sections() -> None:
    options = ValidateOptions.from_config(
        {
            "validation": {"orphans": False, "schema": "yes"},
            "resolver": {"case_sensitive": False, "min_prefix_length": 4},
        }
    )

    assert options.orphans is False
    assert options.schema is True
    assert options.case_sensitive is False
    assert options.min_prefix_length == 4


@pytest.mark.unit
def test_min_prefix_length_turns_short_prefix_into_not_found() -> None:
    task = _task(spec_ref="@01HZX4Q8")

    lenient = validate_entities([task], [_module(), _login(), _trait()])
    strict = validate_entities(
        [task],
        [_module(), _login(), _trait()],
        options=ValidateOptions(min_prefix_length=10),
    )

    assert lenient.ref_errors == ()
    assert [f.message for f in strict.ref_errors] == ['Reference "@01HZX4Q8" not found']


@pytest.mark.unit
def test_repeated_validation_is_byte_identical() -> None:
    entities = ([_task(depends_on=("@nowhere",))], [_module(), _login(), _trait()])

    first = validate_entities(*entities, coverage=StaticCoverage())
    second = validate_entities(*entities, coverage=StaticCoverage())

    assert first.to_json() == second.to_json()


@settings(max_examples=50, deadline=None)
@given(
    st.integers(min_value=1, max_value=6).flatmap(
        lambda size: st.tuples(
            st.just(size),
            st.lists(
                st.lists(st.integers(min_value=0, max_value=size + 2), max_size=4),
                min_size=size,
                max_size=size,
            ),
        )
    )
)
def test_each_dangling_reference_yields_exactly_one_error(
    case: tuple[int, list[list[int]]],
) -> None:
    size, targets = case
    items = [
        SpecItem(
            id=f"01HZX4Q7{position:018d}",
            title=f"Item {position}",
            aliases=(f"item-{position}",),
            type="module",
            relates_to=tuple(f"@item-{target}" for target in refs),
        )
        for position, refs in enumerate(targets)
    ]

    result = validate_entities([], items)

    dangling = sum(1 for refs in targets for target in refs if target >= size)
    assert len(result.ref_errors) == dangling
    assert result.valid is (dangling == 0)
    assert result.orphans == ()

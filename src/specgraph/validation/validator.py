"""
specgraph: multi-pass validator.

File: src/specgraph/validation/validator.py

Purpose
- Combine schema, reference, orphan, trait-cycle, completeness and automation checks
  into one ``ValidationResult``.

What should be included in this file
- ``ValidateOptions`` toggles plus resolver configuration points.
- One private pass per check category, each appending findings to a shared collector.

Functional requirements
- Checks are independent and additive; a finding never aborts another pass.
- ``valid`` depends only on schema errors, reference errors and trait cycles.

Non-functional requirements
- Pure with respect to the filesystem: coverage arrives as a precomputed collaborator.
- Deterministic finding order for a deterministic snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field

from specgraph.constants import ENTRY_POINT_TYPES
from specgraph.domain.models import (
    META_KINDS,
    AutomationStatus,
    EntityKind,
    ImplementationStatus,
    InboxItem,
    MetaItem,
    SpecItem,
    Task,
)
from specgraph.domain.refs import display_ref
from specgraph.graph.reference_index import ReferenceIndex, ResolveError, ResolveResult
from specgraph.graph.trait_graph import InheritedCriterion, TraitGraph
from specgraph.persistence.loader import ProjectSnapshot
from specgraph.validation.coverage import CoverageIndex, covered_by, criterion_keys
from specgraph.validation.result import (
    CompletenessType,
    CompletenessWarning,
    MetaStats,
    Orphan,
    RefFinding,
    SchemaError,
    ValidationResult,
    ValidationStats,
)
from specgraph.validation.schema import check_document, missing_file_issue, parse_error_issue

logger = logging.getLogger(__name__)

_KIND_LABELS: dict[EntityKind, str] = {
    EntityKind.TASK: "task",
    EntityKind.SPEC_ITEM: "spec item",
    EntityKind.TRAIT: "trait",
    EntityKind.AGENT: "agent",
    EntityKind.WORKFLOW: "workflow",
    EntityKind.CONVENTION: "convention",
    EntityKind.OBSERVATION: "observation",
    EntityKind.INBOX_ITEM: "inbox item",
}
_SPEC_KINDS: frozenset[EntityKind] = frozenset({EntityKind.SPEC_ITEM, EntityKind.TRAIT})
_AGENT_FIELDS: frozenset[str] = frozenset(
    {"author", "added_by", "resolved_by", "notes[].author", "todos[].added_by"}
)
_TASK_DEPENDENCY_FIELDS: frozenset[str] = frozenset({"depends_on", "blocked_by"})


@dataclass(frozen=True, slots=True)
class ValidateOptions:
    schema: bool = True
    refs: bool = True
    orphans: bool = True
    completeness: bool = True
    trait_cycles: bool = True
    automation: bool = True
    case_sensitive: bool = True
    min_prefix_length: int = 1

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> ValidateOptions:
        """Build options from the ``[validation]`` and ``[resolver]`` config sections."""
        validation = config.get("validation")
        resolver = config.get("resolver")
        validation_cfg: Mapping[str, object] = validation if isinstance(validation, Mapping) else {}
        resolver_cfg: Mapping[str, object] = resolver if isinstance(resolver, Mapping) else {}

        def _flag(section: Mapping[str, object], key: str, default: bool) -> bool:
            value = section.get(key, default)
            return value if isinstance(value, bool) else default

        min_prefix = resolver_cfg.get("min_prefix_length", 1)
        return cls(
            schema=_flag(validation_cfg, "schema", True),
            refs=_flag(validation_cfg, "refs", True),
            orphans=_flag(validation_cfg, "orphans", True),
            completeness=_flag(validation_cfg, "completeness", True),
            trait_cycles=_flag(validation_cfg, "trait_cycles", True),
            automation=_flag(validation_cfg, "automation", True),
            case_sensitive=_flag(resolver_cfg, "case_sensitive", True),
            min_prefix_length=(
                min_prefix
                if isinstance(min_prefix, int) and not isinstance(min_prefix, bool)
                else 1
            ),
        )


@dataclass(frozen=True, slots=True)
class _Reference:
    """One reference occurrence and its resolution."""

    source: Task | SpecItem | MetaItem | InboxItem
    field: str
    ref: str
    result: ResolveResult


@dataclass(slots=True)
class _Findings:
    schema_errors: list[SchemaError] = field(default_factory=list)
    ref_errors: list[RefFinding] = field(default_factory=list)
    ref_warnings: list[RefFinding] = field(default_factory=list)
    orphans: list[Orphan] = field(default_factory=list)
    completeness: list[CompletenessWarning] = field(default_factory=list)


def validate(
    snapshot: ProjectSnapshot,
    *,
    options: ValidateOptions = ValidateOptions(),
    coverage: CoverageIndex | None = None,
) -> ValidationResult:
    """Validate a loaded project snapshot."""
    schema_errors: list[SchemaError] = []
    if options.schema:
        schema_errors.extend(_schema_pass(snapshot))

    return _run(
        tasks=snapshot.tasks,
        items=snapshot.items,
        meta_items=snapshot.meta_items,
        inbox_items=snapshot.inbox_items,
        options=options,
        coverage=coverage,
        schema_errors=schema_errors,
        files_checked=len(snapshot.files),
        include_meta_stats=snapshot.has_meta,
    )


def validate_entities(
    tasks: Sequence[Task],
    items: Sequence[SpecItem],
    meta_items: Sequence[MetaItem] = (),
    *,
    inbox_items: Sequence[InboxItem] = (),
    options: ValidateOptions = ValidateOptions(),
    coverage: CoverageIndex | None = None,
) -> ValidationResult:
    """Validate an in-memory entity set; there are no files, so no schema pass runs."""
    return _run(
        tasks=tuple(tasks),
        items=tuple(items),
        meta_items=tuple(meta_items),
        inbox_items=tuple(inbox_items),
        options=options,
        coverage=coverage,
        schema_errors=[],
        files_checked=0,
        include_meta_stats=bool(meta_items),
    )


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def _run(
    *,
    tasks: tuple[Task, ...],
    items: tuple[SpecItem, ...],
    meta_items: tuple[MetaItem, ...],
    inbox_items: tuple[InboxItem, ...],
    options: ValidateOptions,
    coverage: CoverageIndex | None,
    schema_errors: list[SchemaError],
    files_checked: int,
    include_meta_stats: bool,
) -> ValidationResult:
    index = ReferenceIndex(
        tasks,
        items,
        meta_items,
        case_sensitive=options.case_sensitive,
        min_prefix_length=options.min_prefix_length,
    )
    graph = TraitGraph(index, items)
    findings = _Findings(schema_errors=schema_errors)
    references = tuple(_collect_references(index, tasks, items, meta_items, inbox_items))

    if options.refs:
        _reference_pass(index, references, findings)
    if options.orphans:
        _orphan_pass(items, references, findings)

    cycle_errors = graph.detect_cycles() if options.trait_cycles else ()
    cyclic: set[str] = set()
    for error in cycle_errors:
        cyclic.update(error.cycle_ids)

    if options.completeness:
        _completeness_pass(items, graph, coverage, frozenset(cyclic), findings)
    if options.automation:
        _automation_pass(tasks, index, findings)

    result = ValidationResult(
        schema_errors=tuple(findings.schema_errors),
        ref_errors=tuple(findings.ref_errors),
        ref_warnings=tuple(findings.ref_warnings),
        orphans=tuple(findings.orphans),
        completeness_warnings=tuple(findings.completeness),
        trait_cycle_errors=cycle_errors,
        stats=ValidationStats(
            files_checked=files_checked,
            items_checked=len(items),
            tasks_checked=len(tasks),
        ),
        meta_stats=_meta_stats(meta_items) if include_meta_stats else None,
    )
    logger.info(
        "validation complete",
        extra={
            "valid": result.valid,
            "errors": result.error_count,
            "warnings": result.warning_count,
        },
    )
    return result


def _schema_pass(snapshot: ProjectSnapshot) -> Iterator[SchemaError]:
    for source in snapshot.files:
        if source.missing:
            issue = missing_file_issue(source.path)
            yield SchemaError(file=source.path, message=issue.message)
            continue
        if source.parse_error is not None:
            issue = parse_error_issue(source.parse_error)
            yield SchemaError(file=source.path, message=issue.message)
            continue
        for issue in check_document(source.role, source.raw):
            yield SchemaError(file=source.path, message=issue.message, path=issue.path or None)


def _collect_references(
    index: ReferenceIndex,
    tasks: Iterable[Task],
    items: Iterable[SpecItem],
    meta_items: Iterable[MetaItem],
    inbox_items: Iterable[InboxItem],
) -> Iterator[_Reference]:
    sources: list[Task | SpecItem | MetaItem] = [*tasks, *items, *meta_items]
    for source in sources:
        for field_name, ref in source.iter_references():
            yield _Reference(source=source, field=field_name, ref=ref, result=index.resolve(ref))
    for inbox_item in inbox_items:
        if inbox_item.added_by and inbox_item.added_by.startswith("@"):
            yield _Reference(
                source=inbox_item,
                field="added_by",
                ref=inbox_item.added_by,
                result=index.resolve(inbox_item.added_by),
            )


# ---------------------------------------------------------------------------
# Reference integrity
# ---------------------------------------------------------------------------


def _reference_pass(
    index: ReferenceIndex,
    references: Iterable[_Reference],
    findings: _Findings,
) -> None:
    for reference in references:
        result = reference.result
        if result.error is ResolveError.NOT_FOUND:
            _ref_error(findings, reference, f'Reference "{reference.ref}" not found')
            continue
        if result.error is ResolveError.AMBIGUOUS:
            matches = ", ".join(_candidate_refs(index, result.candidates))
            _ref_error(
                findings,
                reference,
                f'Reference "{reference.ref}" is ambiguous, matches: {matches}',
            )
            continue
        if result.error is ResolveError.DUPLICATE_SLUG:
            matches = ", ".join(_candidate_refs(index, result.candidates))
            _ref_error(
                findings,
                reference,
                f'Slug "{reference.ref}" maps to multiple items: {matches}',
            )
            continue

        target_kind = index.kind_of(result.identity or "")
        if target_kind is not None:
            _check_target_kind(reference, target_kind, findings)


def _check_target_kind(
    reference: _Reference, target_kind: EntityKind, findings: _Findings
) -> None:
    ref = reference.ref
    field_name = reference.field
    label = _KIND_LABELS[target_kind]
    source = reference.source

    if isinstance(source, Task):
        if field_name == "spec_ref":
            if target_kind is EntityKind.TASK:
                _ref_error(findings, reference, f'Reference "{ref}" is a task, not a spec item')
            elif target_kind in META_KINDS:
                _ref_error(findings, reference, f'Reference "{ref}" is a {label}, not a spec item')
            elif target_kind is EntityKind.TRAIT:
                _ref_warning(
                    findings,
                    reference,
                    f'spec_ref "{ref}" points to a trait; tasks usually implement concrete items',
                )
            return
        if field_name == "meta_ref":
            if target_kind not in META_KINDS:
                _ref_error(findings, reference, f"meta_ref '{ref}' points to a {label}")
            return
        if field_name in _TASK_DEPENDENCY_FIELDS and target_kind is not EntityKind.TASK:
            _ref_warning(
                findings,
                reference,
                f'Reference "{ref}" in {field_name} points to a {label}, not a task',
            )
            return

    if isinstance(source, SpecItem):
        if field_name == "traits" and target_kind is not EntityKind.TRAIT:
            _ref_error(
                findings, reference, f'Reference "{ref}" in traits is a {label}, not a trait'
            )
            return
        if field_name == "depends_on" and target_kind is EntityKind.TASK:
            _ref_warning(
                findings,
                reference,
                f'Reference "{ref}" in depends_on points to a task, not a spec item',
            )
            return

    if field_name in _AGENT_FIELDS and target_kind is not EntityKind.AGENT:
        _ref_warning(
            findings,
            reference,
            f'Reference "{ref}" in {field_name} points to a {label}, not an agent',
        )
        return
    if field_name == "workflow_ref" and target_kind is not EntityKind.WORKFLOW:
        _ref_warning(
            findings,
            reference,
            f'Reference "{ref}" in workflow_ref points to a {label}, not a workflow',
        )


def _ref_error(findings: _Findings, reference: _Reference, message: str) -> None:
    findings.ref_errors.append(_ref_finding(reference, message))


def _ref_warning(findings: _Findings, reference: _Reference, message: str) -> None:
    findings.ref_warnings.append(_ref_finding(reference, message))


def _ref_finding(reference: _Reference, message: str) -> RefFinding:
    return RefFinding(
        ref=reference.ref,
        field=reference.field,
        message=message,
        source_id=reference.source.id,
        file=reference.source.source_file,
    )


def _candidate_refs(index: ReferenceIndex, candidates: Sequence[str]) -> list[str]:
    rendered: list[str] = []
    for identity in candidates:
        entity = index.get(identity)
        aliases = entity.aliases if entity is not None else ()
        rendered.append(display_ref(identity, aliases))
    return rendered


# ---------------------------------------------------------------------------
# Orphans
# ---------------------------------------------------------------------------


def _orphan_pass(
    items: Iterable[SpecItem],
    references: Iterable[_Reference],
    findings: _Findings,
) -> None:
    referenced = {reference.result.identity for reference in references if reference.result.ok}
    for item in items:
        if item.id in referenced:
            continue
        if item.type in ENTRY_POINT_TYPES or item.is_nested:
            continue
        findings.orphans.append(
            Orphan(
                identity=item.id,
                title=item.title,
                kind=item.type or "unknown",
                file=item.source_file,
            )
        )


# ---------------------------------------------------------------------------
# Completeness
# ---------------------------------------------------------------------------


def _completeness_pass(
    items: Sequence[SpecItem],
    graph: TraitGraph,
    coverage: CoverageIndex | None,
    cyclic: frozenset[str],
    findings: _Findings,
) -> None:
    children_by_parent: dict[str, list[SpecItem]] = {}
    for item in items:
        if item.parent_id is not None:
            children_by_parent.setdefault(item.parent_id, []).append(item)

    for item in items:
        if item.id in cyclic:
            continue
        inherited = graph.inherited_criteria(item.id)
        ref = item.ref
        subject = f"Trait {ref}" if item.is_trait else ref

        if not item.acceptance_criteria and not inherited:
            _completeness(
                findings,
                CompletenessType.MISSING_ACCEPTANCE_CRITERIA,
                item,
                f"{subject} has no acceptance criteria",
            )
        if not item.description:
            _completeness(
                findings,
                CompletenessType.MISSING_DESCRIPTION,
                item,
                f"{subject} has no description",
            )
        if item.implementation == ImplementationStatus.IMPLEMENTED:
            not_started = [
                child
                for child in children_by_parent.get(item.id, ())
                if child.implementation == ImplementationStatus.NOT_STARTED
            ]
            if not_started:
                _completeness(
                    findings,
                    CompletenessType.STATUS_INCONSISTENCY,
                    item,
                    f"{ref} is implemented but has children not started",
                    details=", ".join(child.ref for child in not_started),
                )

        if coverage is not None:
            _coverage_checks(item, inherited, graph, coverage, findings)


def _coverage_checks(
    item: SpecItem,
    inherited: Sequence[InheritedCriterion],
    graph: TraitGraph,
    coverage: CoverageIndex,
    findings: _Findings,
) -> None:
    ref = item.ref
    own = item.acceptance_criteria
    # Traits accrue coverage through their implementers.
    if own and not item.is_trait:
        matched = any(
            covered_by(coverage, criterion_keys(item.id, item.aliases, criterion.id)) is not None
            for criterion in own
        )
        if not matched:
            _completeness(
                findings,
                CompletenessType.MISSING_TEST_COVERAGE,
                item,
                f"{ref} has acceptance criteria without test coverage",
                details=", ".join(f"{ref} {criterion.id}" for criterion in own),
            )

    uncovered: list[str] = []
    for entry in inherited:
        trait = graph.trait(entry.trait_id)
        aliases = trait.aliases if trait is not None else ()
        keys = criterion_keys(entry.trait_id, aliases, entry.criterion.id)
        if covered_by(coverage, keys) is None:
            uncovered.append(entry.key)
    if uncovered:
        noun = "AC" if len(uncovered) == 1 else "ACs"
        _completeness(
            findings,
            CompletenessType.MISSING_TEST_COVERAGE,
            item,
            f"{ref} has {len(uncovered)} inherited trait {noun} without test coverage",
            details=", ".join(uncovered),
        )


def _completeness(
    findings: _Findings,
    warning_type: CompletenessType,
    item: Task | SpecItem,
    message: str,
    *,
    details: str | None = None,
) -> None:
    findings.completeness.append(
        CompletenessWarning(
            type=warning_type,
            item_ref=item.ref,
            item_title=item.title,
            message=message,
            details=details,
        )
    )


# ---------------------------------------------------------------------------
# Automation eligibility
# ---------------------------------------------------------------------------


def _automation_pass(
    tasks: Iterable[Task], index: ReferenceIndex, findings: _Findings
) -> None:
    for task in tasks:
        if task.automation != AutomationStatus.ELIGIBLE:
            continue
        if not task.spec_ref:
            _completeness(
                findings,
                CompletenessType.AUTOMATION_MISSING_SPEC_REF,
                task,
                f"{task.ref} is marked eligible but has no spec_ref",
            )
            continue
        result = index.resolve(task.spec_ref)
        target_kind = index.kind_of(result.identity) if result.identity else None
        if target_kind not in _SPEC_KINDS:
            _completeness(
                findings,
                CompletenessType.AUTOMATION_UNRESOLVED_SPEC_REF,
                task,
                f'{task.ref} is marked eligible but spec_ref "{task.spec_ref}" cannot be resolved',
            )


def _meta_stats(meta_items: Iterable[MetaItem]) -> MetaStats:
    counts = dict.fromkeys(META_KINDS, 0)
    for meta_item in meta_items:
        counts[meta_item.kind] = counts.get(meta_item.kind, 0) + 1
    return MetaStats(
        agents=counts[EntityKind.AGENT],
        workflows=counts[EntityKind.WORKFLOW],
        conventions=counts[EntityKind.CONVENTION],
        observations=counts[EntityKind.OBSERVATION],
    )


__all__ = ["ValidateOptions", "validate", "validate_entities"]

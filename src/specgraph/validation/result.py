"""Finding records and the aggregate validation result.

Every record serializes to the camelCase shape shared by the JSON CLI output and any
HTTP consumer; ``to_dict`` is the single place that shape is defined.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import StrEnum

from specgraph.graph.trait_graph import TraitCycleError


class CompletenessType(StrEnum):
    MISSING_ACCEPTANCE_CRITERIA = "missing_acceptance_criteria"
    MISSING_DESCRIPTION = "missing_description"
    STATUS_INCONSISTENCY = "status_inconsistency"
    MISSING_TEST_COVERAGE = "missing_test_coverage"
    AUTOMATION_MISSING_SPEC_REF = "automation_missing_spec_ref"
    AUTOMATION_UNRESOLVED_SPEC_REF = "automation_unresolved_spec_ref"


@dataclass(frozen=True, slots=True)
class SchemaError:
    file: str
    message: str
    path: str | None = None
    details: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"file": self.file, "message": self.message}
        if self.path:
            payload["path"] = self.path
        if self.details:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True, slots=True)
class RefFinding:
    """Reference error or warning attached to one field of one entity."""

    ref: str
    field: str
    message: str
    source_id: str | None = None
    file: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "ref": self.ref,
            "field": self.field,
            "message": self.message,
        }
        if self.source_id:
            payload["sourceIdentity"] = self.source_id
        if self.file:
            payload["file"] = self.file
        return payload


@dataclass(frozen=True, slots=True)
class Orphan:
    identity: str
    title: str
    kind: str
    file: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "identity": self.identity,
            "title": self.title,
            "kind": self.kind,
        }
        if self.file:
            payload["file"] = self.file
        return payload


@dataclass(frozen=True, slots=True)
class CompletenessWarning:
    type: CompletenessType
    item_ref: str
    item_title: str
    message: str
    details: str | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "type": str(self.type),
            "itemRef": self.item_ref,
            "itemTitle": self.item_title,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


@dataclass(frozen=True, slots=True)
class ValidationStats:
    files_checked: int = 0
    items_checked: int = 0
    tasks_checked: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "filesChecked": self.files_checked,
            "itemsChecked": self.items_checked,
            "tasksChecked": self.tasks_checked,
        }


@dataclass(frozen=True, slots=True)
class MetaStats:
    agents: int = 0
    workflows: int = 0
    conventions: int = 0
    observations: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "agents": self.agents,
            "workflows": self.workflows,
            "conventions": self.conventions,
            "observations": self.observations,
        }


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Aggregate findings of one validation run; recomputed in full on every call."""

    schema_errors: tuple[SchemaError, ...] = ()
    ref_errors: tuple[RefFinding, ...] = ()
    ref_warnings: tuple[RefFinding, ...] = ()
    orphans: tuple[Orphan, ...] = ()
    completeness_warnings: tuple[CompletenessWarning, ...] = ()
    trait_cycle_errors: tuple[TraitCycleError, ...] = ()
    stats: ValidationStats = ValidationStats()
    meta_stats: MetaStats | None = None

    @property
    def valid(self) -> bool:
        return not (self.schema_errors or self.ref_errors or self.trait_cycle_errors)

    @property
    def error_count(self) -> int:
        return len(self.schema_errors) + len(self.ref_errors) + len(self.trait_cycle_errors)

    @property
    def warning_count(self) -> int:
        return len(self.ref_warnings) + len(self.orphans) + len(self.completeness_warnings)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "valid": self.valid,
            "schemaErrors": [entry.to_dict() for entry in self.schema_errors],
            "refErrors": [entry.to_dict() for entry in self.ref_errors],
            "refWarnings": [entry.to_dict() for entry in self.ref_warnings],
            "orphans": [entry.to_dict() for entry in self.orphans],
            "completenessWarnings": [entry.to_dict() for entry in self.completeness_warnings],
            "traitCycleErrors": [entry.to_dict() for entry in self.trait_cycle_errors],
            "stats": self.stats.to_dict(),
        }
        if self.meta_stats is not None:
            payload["metaStats"] = self.meta_stats.to_dict()
        return payload

    def to_json(self) -> str:
        """Canonical JSON: sorted keys, compact separators, byte-stable across runs."""
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


__all__ = [
    "CompletenessType",
    "CompletenessWarning",
    "MetaStats",
    "Orphan",
    "RefFinding",
    "SchemaError",
    "ValidationResult",
    "ValidationStats",
]

"""
specgraph: validation package

File: src/specgraph/validation/__init__.py

Purpose
- Schema conformance, reference integrity, orphan, completeness and automation checks.

What should be included in this file
- Re-exports of the validator entry points, result types and assessment helpers.

Functional requirements
- Findings are accumulated and returned; they are never raised.

Non-functional requirements
- Byte-identical results for repeated validation of an unchanged snapshot.
"""

from specgraph.validation.assessment import (
    AssessmentSummary,
    AutomationChange,
    CriterionResult,
    Recommendation,
    TaskAssessment,
    assess_task,
    filter_tasks_for_assessment,
    plan_automation_changes,
    summarize_assessments,
)
from specgraph.validation.coverage import AnnotationScanner, CoverageIndex, StaticCoverage
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
from specgraph.validation.schema import SchemaIssue, check_document
from specgraph.validation.validator import ValidateOptions, validate, validate_entities

__all__ = [
    "AnnotationScanner",
    "AssessmentSummary",
    "AutomationChange",
    "CompletenessType",
    "CompletenessWarning",
    "CoverageIndex",
    "CriterionResult",
    "MetaStats",
    "Orphan",
    "Recommendation",
    "RefFinding",
    "SchemaError",
    "SchemaIssue",
    "StaticCoverage",
    "TaskAssessment",
    "ValidateOptions",
    "ValidationResult",
    "ValidationStats",
    "assess_task",
    "check_document",
    "filter_tasks_for_assessment",
    "plan_automation_changes",
    "summarize_assessments",
    "validate",
    "validate_entities",
]

"""Automation-eligibility assessment for pending tasks.

The assessment proposes an automation marking; it never applies one. The recommendation is a
pure function of three criteria with fixed precedence: a spike is always ``manual_only``; any
failing required criterion yields ``needs_review``; otherwise ``review_for_eligible``.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum

from specgraph.domain.models import EntityKind, SpecItem, Task, TaskStatus, TaskType
from specgraph.graph.reference_index import ReferenceIndex

MANUAL_ONLY_REASON = "Spikes output knowledge, not automatable code"
ELIGIBLE_REASON = "Criteria pass - verify spec is appropriate and ACs are adequate"


class Recommendation(StrEnum):
    REVIEW_FOR_ELIGIBLE = "review_for_eligible"
    NEEDS_REVIEW = "needs_review"
    MANUAL_ONLY = "manual_only"


class ChangeAction(StrEnum):
    SET_MANUAL_ONLY = "set_manual_only"
    SET_NEEDS_REVIEW = "set_needs_review"
    NO_CHANGE = "no_change"


@dataclass(frozen=True, slots=True)
class CriterionResult:
    """One assessment criterion; ``passed`` is ``None`` when the criterion was skipped."""

    name: str
    passed: bool | None
    detail: str | None = None
    ac_count: int | None = None

    @property
    def skipped(self) -> bool:
        return self.passed is None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"name": self.name, "passed": self.passed}
        if self.passed is None:
            payload["skipped"] = True
        if self.detail is not None:
            payload["detail"] = self.detail
        if self.ac_count is not None:
            payload["acCount"] = self.ac_count
        return payload


@dataclass(frozen=True, slots=True)
class TaskAssessment:
    task_id: str
    task_ref: str
    title: str
    spec_ref: str | None
    criteria: tuple[CriterionResult, ...]
    recommendation: Recommendation
    reason: str

    def criterion(self, name: str) -> CriterionResult | None:
        for result in self.criteria:
            if result.name == name:
                return result
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "taskRef": self.task_ref,
            "taskIdentity": self.task_id,
            "title": self.title,
            "specRef": self.spec_ref,
            "criteria": [result.to_dict() for result in self.criteria],
            "recommendation": str(self.recommendation),
            "reason": self.reason,
        }


@dataclass(frozen=True, slots=True)
class AssessmentSummary:
    review_for_eligible: int = 0
    needs_review: int = 0
    manual_only: int = 0
    total: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "reviewForEligible": self.review_for_eligible,
            "needsReview": self.needs_review,
            "manualOnly": self.manual_only,
            "total": self.total,
        }


@dataclass(frozen=True, slots=True)
class AutomationChange:
    task_id: str
    task_ref: str
    action: ChangeAction
    automation: str | None
    reason: str

    def to_dict(self) -> dict[str, object]:
        return {
            "taskRef": self.task_ref,
            "taskIdentity": self.task_id,
            "action": str(self.action),
            "automation": self.automation,
            "reason": self.reason,
        }


def assess_task(task: Task, index: ReferenceIndex) -> TaskAssessment:
    """Evaluate ``has_spec_ref``, ``spec_has_acs`` and ``not_spike`` for one task."""
    spec = _resolve_spec(task, index)

    if not task.spec_ref:
        has_spec_ref = CriterionResult("has_spec_ref", False, "missing")
    elif spec is None:
        has_spec_ref = CriterionResult("has_spec_ref", False, "unresolvable")
    else:
        has_spec_ref = CriterionResult("has_spec_ref", True)

    if spec is None:
        spec_has_acs = CriterionResult("spec_has_acs", None, "skipped: no resolvable spec")
    else:
        count = len(spec.acceptance_criteria)
        spec_has_acs = CriterionResult(
            "spec_has_acs",
            count > 0,
            None if count else "spec has no acceptance criteria",
            ac_count=count,
        )

    not_spike = CriterionResult("not_spike", task.type != TaskType.SPIKE, f"type: {task.type}")

    recommendation, reason = decide(has_spec_ref, spec_has_acs, not_spike)
    return TaskAssessment(
        task_id=task.id,
        task_ref=task.ref,
        title=task.title,
        spec_ref=task.spec_ref,
        criteria=(has_spec_ref, spec_has_acs, not_spike),
        recommendation=recommendation,
        reason=reason,
    )


def decide(
    has_spec_ref: CriterionResult,
    spec_has_acs: CriterionResult,
    not_spike: CriterionResult,
) -> tuple[Recommendation, str]:
    """Combine the three criteria into a recommendation and its reason."""
    if not_spike.passed is False:
        return Recommendation.MANUAL_ONLY, MANUAL_ONLY_REASON

    failures: list[str] = []
    if has_spec_ref.passed is False:
        failures.append(f"{has_spec_ref.detail} spec_ref")
    if spec_has_acs.passed is False:
        failures.append("spec has no acceptance criteria")
    if failures:
        return Recommendation.NEEDS_REVIEW, ", ".join(failures)
    return Recommendation.REVIEW_FOR_ELIGIBLE, ELIGIBLE_REASON


def filter_tasks_for_assessment(
    tasks: Sequence[Task],
    index: ReferenceIndex,
    *,
    task_ref: str | None = None,
    include_assessed: bool = False,
) -> tuple[Task, ...]:
    """Select tasks to assess: one named task, or pending tasks not yet assessed."""
    if task_ref is not None:
        result = index.resolve(task_ref)
        target = index.get(result.identity) if result.identity else None
        if not isinstance(target, Task):
            raise ValueError(f"task not found: {task_ref}")
        return (target,)

    return tuple(
        task
        for task in tasks
        if task.status == TaskStatus.PENDING and (include_assessed or task.automation is None)
    )


def summarize_assessments(assessments: Iterable[TaskAssessment]) -> AssessmentSummary:
    counts = dict.fromkeys(Recommendation, 0)
    total = 0
    for assessment in assessments:
        counts[assessment.recommendation] += 1
        total += 1
    return AssessmentSummary(
        review_for_eligible=counts[Recommendation.REVIEW_FOR_ELIGIBLE],
        needs_review=counts[Recommendation.NEEDS_REVIEW],
        manual_only=counts[Recommendation.MANUAL_ONLY],
        total=total,
    )


def plan_automation_changes(
    assessments: Iterable[TaskAssessment],
) -> tuple[AutomationChange, ...]:
    """Propose automation markings; ``review_for_eligible`` is never applied automatically."""
    changes: list[AutomationChange] = []
    for assessment in assessments:
        if assessment.recommendation is Recommendation.MANUAL_ONLY:
            action, automation = ChangeAction.SET_MANUAL_ONLY, "manual_only"
        elif assessment.recommendation is Recommendation.NEEDS_REVIEW:
            action, automation = ChangeAction.SET_NEEDS_REVIEW, "needs_review"
        else:
            action, automation = ChangeAction.NO_CHANGE, None
        changes.append(
            AutomationChange(
                task_id=assessment.task_id,
                task_ref=assessment.task_ref,
                action=action,
                automation=automation,
                reason=assessment.reason,
            )
        )
    return tuple(changes)


def _resolve_spec(task: Task, index: ReferenceIndex) -> SpecItem | None:
    if not task.spec_ref:
        return None
    result = index.resolve(task.spec_ref)
    if result.identity is None:
        return None
    target = index.get(result.identity)
    if isinstance(target, SpecItem) and target.kind in (EntityKind.SPEC_ITEM, EntityKind.TRAIT):
        return target
    return None


__all__ = [
    "ELIGIBLE_REASON",
    "MANUAL_ONLY_REASON",
    "AssessmentSummary",
    "AutomationChange",
    "ChangeAction",
    "CriterionResult",
    "Recommendation",
    "TaskAssessment",
    "assess_task",
    "decide",
    "filter_tasks_for_assessment",
    "plan_automation_changes",
    "summarize_assessments",
]

"""
specgraph: domain package

File: src/specgraph/domain/__init__.py

Purpose
- Shared vocabulary: identities, reference syntax, entity kinds and record models.

What should be included in this file
- Re-export of core domain entities for convenience.
- Keep the domain layer free of IO side effects.

Functional requirements
- Entities are immutable once constructed; edits replace whole records.

Non-functional requirements
- Domain layer should have minimal dependencies.
"""

from specgraph.domain.ids import generate_ulid, is_ulid, short_id, validate_ulid
from specgraph.domain.models import (
    AcceptanceCriterion,
    AutomationStatus,
    Entity,
    EntityKind,
    ImplementationStatus,
    InboxItem,
    ItemType,
    Maturity,
    MetaItem,
    SpecItem,
    Task,
    TaskStatus,
    TaskType,
    new_inbox_item,
    new_meta_item,
    new_spec_item,
    new_task,
    new_trait,
)
from specgraph.domain.refs import display_ref, is_ref, normalize_ref

__all__ = [
    "AcceptanceCriterion",
    "AutomationStatus",
    "Entity",
    "EntityKind",
    "ImplementationStatus",
    "InboxItem",
    "ItemType",
    "Maturity",
    "MetaItem",
    "SpecItem",
    "Task",
    "TaskStatus",
    "TaskType",
    "display_ref",
    "generate_ulid",
    "is_ref",
    "is_ulid",
    "new_inbox_item",
    "new_meta_item",
    "new_spec_item",
    "new_task",
    "new_trait",
    "normalize_ref",
    "short_id",
    "validate_ulid",
]

"""Frozen entity models for tasks, spec items, traits, meta items and inbox items.

Records are parsed tolerantly: an authoring mistake in a non-identity field degrades to a
default so the record stays addressable, and the schema pass reports the mistake. Only a
missing or blank identity is fatal, because an entity without identity cannot be indexed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import NoReturn, TypeVar

from specgraph.domain import ids as domain_ids
from specgraph.domain.refs import display_ref, is_ref

TRecord = TypeVar("TRecord")


class EntityKind(StrEnum):
    TASK = "task"
    SPEC_ITEM = "spec_item"
    TRAIT = "trait"
    AGENT = "agent"
    WORKFLOW = "workflow"
    CONVENTION = "convention"
    OBSERVATION = "observation"
    INBOX_ITEM = "inbox_item"


META_KINDS: frozenset[EntityKind] = frozenset(
    {EntityKind.AGENT, EntityKind.WORKFLOW, EntityKind.CONVENTION, EntityKind.OBSERVATION}
)


class ItemType(StrEnum):
    MODULE = "module"
    FEATURE = "feature"
    REQUIREMENT = "requirement"
    CONSTRAINT = "constraint"
    DECISION = "decision"
    TASK = "task"
    TRAIT = "trait"


class TaskType(StrEnum):
    EPIC = "epic"
    TASK = "task"
    BUG = "bug"
    SPIKE = "spike"
    INFRA = "infra"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    PENDING_REVIEW = "pending_review"
    BLOCKED = "blocked"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Maturity(StrEnum):
    DRAFT = "draft"
    PROPOSED = "proposed"
    STABLE = "stable"
    DEFERRED = "deferred"
    DEPRECATED = "deprecated"


class ImplementationStatus(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    IMPLEMENTED = "implemented"
    VERIFIED = "verified"


class AutomationStatus(StrEnum):
    ELIGIBLE = "eligible"
    NEEDS_REVIEW = "needs_review"
    MANUAL_ONLY = "manual_only"


class ObservationType(StrEnum):
    FRICTION = "friction"
    SUCCESS = "success"
    QUESTION = "question"
    IDEA = "idea"


# Reference-bearing fields, in the order references are reported.
TASK_REF_FIELDS: tuple[str, ...] = ("depends_on", "blocked_by", "spec_ref", "meta_ref", "context")
SPEC_REF_FIELDS: tuple[str, ...] = (
    "depends_on",
    "implements",
    "relates_to",
    "tests",
    "supersedes",
    "superseded_by",
    "traits",
)


@dataclass(frozen=True, slots=True)
class AcceptanceCriterion:
    id: str
    given: str = ""
    when: str = ""
    then: str = ""

    @classmethod
    def from_dict(cls, data: object) -> AcceptanceCriterion | None:
        if not isinstance(data, Mapping):
            return None
        criterion_id = _text(data.get("id"))
        if criterion_id is None:
            return None
        return cls(
            id=criterion_id,
            given=_text(data.get("given")) or "",
            when=_text(data.get("when")) or "",
            then=_text(data.get("then")) or "",
        )

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "given": self.given, "when": self.when, "then": self.then}


@dataclass(frozen=True, slots=True)
class Note:
    id: str
    content: str
    created_at: str | None = None
    author: str | None = None
    supersedes: str | None = None

    @classmethod
    def from_dict(cls, data: object) -> Note | None:
        if not isinstance(data, Mapping):
            return None
        note_id = _text(data.get("_ulid"))
        if note_id is None:
            return None
        return cls(
            id=note_id,
            content=_text(data.get("content")) or "",
            created_at=_text(data.get("created_at")),
            author=_text(data.get("author")),
            supersedes=_text(data.get("supersedes")),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"_ulid": self.id, "content": self.content}
        _put_optional(payload, "created_at", self.created_at)
        _put_optional(payload, "author", self.author)
        _put_optional(payload, "supersedes", self.supersedes)
        return payload


@dataclass(frozen=True, slots=True)
class Todo:
    id: int
    text: str
    done: bool = False
    added_by: str | None = None
    promoted_to: str | None = None

    @classmethod
    def from_dict(cls, data: object) -> Todo | None:
        if not isinstance(data, Mapping):
            return None
        raw_id = data.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            return None
        return cls(
            id=raw_id,
            text=_text(data.get("text")) or "",
            done=data.get("done") is True,
            added_by=_text(data.get("added_by")),
            promoted_to=_text(data.get("promoted_to")),
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"id": self.id, "text": self.text, "done": self.done}
        _put_optional(payload, "added_by", self.added_by)
        _put_optional(payload, "promoted_to", self.promoted_to)
        return payload


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    aliases: tuple[str, ...] = ()
    type: str = TaskType.TASK
    status: str = TaskStatus.PENDING
    description: str | None = None
    spec_ref: str | None = None
    meta_ref: str | None = None
    depends_on: tuple[str, ...] = ()
    blocked_by: tuple[str, ...] = ()
    context: tuple[str, ...] = ()
    priority: int | None = None
    tags: tuple[str, ...] = ()
    automation: str | None = None
    notes: tuple[Note, ...] = ()
    todos: tuple[Todo, ...] = ()
    source_file: str | None = None

    def __post_init__(self) -> None:
        _require_identity(self.id, "Task.id")

    @property
    def kind(self) -> EntityKind:
        return EntityKind.TASK

    @property
    def ref(self) -> str:
        return display_ref(self.id, self.aliases)

    def iter_references(self) -> Iterator[tuple[str, str]]:
        """Yield ``(field, reference)`` pairs in a fixed field order."""
        yield from _refs_of(self, TASK_REF_FIELDS)
        for note in self.notes:
            if is_ref(note.author):
                yield "notes[].author", str(note.author)
        for todo in self.todos:
            if is_ref(todo.added_by):
                yield "todos[].added_by", str(todo.added_by)

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, source_file: str | None = None) -> Task:
        raw_priority = data.get("priority")
        priority = (
            raw_priority
            if isinstance(raw_priority, int) and not isinstance(raw_priority, bool)
            else None
        )
        return cls(
            id=_identity(data, "Task"),
            title=_text(data.get("title")) or "",
            aliases=_text_tuple(data.get("slugs")),
            type=_text(data.get("type")) or TaskType.TASK,
            status=_text(data.get("status")) or TaskStatus.PENDING,
            description=_text(data.get("description")),
            spec_ref=_text(data.get("spec_ref")),
            meta_ref=_text(data.get("meta_ref")),
            depends_on=_text_tuple(data.get("depends_on")),
            blocked_by=_text_tuple(data.get("blocked_by")),
            context=_text_tuple(data.get("context")),
            priority=priority,
            tags=_text_tuple(data.get("tags")),
            automation=_text(data.get("automation")),
            notes=_record_tuple(data.get("notes"), Note.from_dict),
            todos=_record_tuple(data.get("todos"), Todo.from_dict),
            source_file=source_file,
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "_ulid": self.id,
            "slugs": list(self.aliases),
            "title": self.title,
            "type": str(self.type),
            "status": str(self.status),
            "depends_on": list(self.depends_on),
            "blocked_by": list(self.blocked_by),
            "context": list(self.context),
            "tags": list(self.tags),
            "notes": [note.to_dict() for note in self.notes],
            "todos": [todo.to_dict() for todo in self.todos],
        }
        _put_optional(payload, "description", self.description)
        _put_optional(payload, "spec_ref", self.spec_ref)
        _put_optional(payload, "meta_ref", self.meta_ref)
        _put_optional(payload, "priority", self.priority)
        _put_optional(payload, "automation", self.automation)
        return payload


@dataclass(frozen=True, slots=True)
class SpecItem:
    id: str
    title: str
    aliases: tuple[str, ...] = ()
    type: str | None = None
    description: str | None = None
    maturity: str | None = None
    implementation: str | None = None
    acceptance_criteria: tuple[AcceptanceCriterion, ...] = ()
    depends_on: tuple[str, ...] = ()
    implements: tuple[str, ...] = ()
    relates_to: tuple[str, ...] = ()
    tests: tuple[str, ...] = ()
    supersedes: str | None = None
    superseded_by: str | None = None
    traits: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    priority: str | int | None = None
    nesting_path: str | None = None
    parent_id: str | None = None
    source_file: str | None = None

    def __post_init__(self) -> None:
        _require_identity(self.id, "SpecItem.id")

    @property
    def kind(self) -> EntityKind:
        if self.type == ItemType.TRAIT:
            return EntityKind.TRAIT
        return EntityKind.SPEC_ITEM

    @property
    def is_trait(self) -> bool:
        return self.type == ItemType.TRAIT

    @property
    def is_nested(self) -> bool:
        """Structural-nesting marker: owned positionally by a parent record."""
        return self.nesting_path is not None

    @property
    def ref(self) -> str:
        return display_ref(self.id, self.aliases)

    def iter_references(self) -> Iterator[tuple[str, str]]:
        yield from _refs_of(self, SPEC_REF_FIELDS)

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, object],
        *,
        source_file: str | None = None,
        nesting_path: str | None = None,
        parent_id: str | None = None,
    ) -> SpecItem:
        status = data.get("status")
        status_map: Mapping[str, object] = status if isinstance(status, Mapping) else {}
        raw_priority = data.get("priority")
        priority: str | int | None = None
        if isinstance(raw_priority, str) or (
            isinstance(raw_priority, int) and not isinstance(raw_priority, bool)
        ):
            priority = raw_priority
        return cls(
            id=_identity(data, "SpecItem"),
            title=_text(data.get("title")) or "",
            aliases=_text_tuple(data.get("slugs")),
            type=_text(data.get("type")),
            description=_text(data.get("description")),
            maturity=_text(status_map.get("maturity")),
            implementation=_text(status_map.get("implementation")),
            acceptance_criteria=_record_tuple(
                data.get("acceptance_criteria"), AcceptanceCriterion.from_dict
            ),
            depends_on=_text_tuple(data.get("depends_on")),
            implements=_text_tuple(data.get("implements")),
            relates_to=_text_tuple(data.get("relates_to")),
            tests=_text_tuple(data.get("tests")),
            supersedes=_text(data.get("supersedes")),
            superseded_by=_text(data.get("superseded_by")),
            traits=_text_tuple(data.get("traits")),
            tags=_text_tuple(data.get("tags")),
            priority=priority,
            nesting_path=nesting_path,
            parent_id=parent_id,
            source_file=source_file,
        )

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "_ulid": self.id,
            "slugs": list(self.aliases),
            "title": self.title,
            "acceptance_criteria": [item.to_dict() for item in self.acceptance_criteria],
            "traits": list(self.traits),
            "depends_on": list(self.depends_on),
            "implements": list(self.implements),
            "relates_to": list(self.relates_to),
            "tests": list(self.tests),
            "tags": list(self.tags),
        }
        _put_optional(payload, "type", self.type)
        _put_optional(payload, "description", self.description)
        _put_optional(payload, "supersedes", self.supersedes)
        _put_optional(payload, "superseded_by", self.superseded_by)
        _put_optional(payload, "priority", self.priority)
        status: dict[str, object] = {}
        _put_optional(status, "maturity", self.maturity)
        _put_optional(status, "implementation", self.implementation)
        if status:
            payload["status"] = status
        return payload


@dataclass(frozen=True, slots=True)
class MetaItem:
    """Agent, workflow, convention or observation record from the meta manifest."""

    id: str
    kind: EntityKind
    title: str
    meta_id: str | None = None
    author: str | None = None
    workflow_ref: str | None = None
    resolved_by: str | None = None
    observation_type: str | None = None
    source_file: str | None = None

    def __post_init__(self) -> None:
        _require_identity(self.id, "MetaItem.id")
        if self.kind not in META_KINDS:
            _fail("MetaItem.kind", f"not a meta kind: {self.kind!s}")

    @property
    def aliases(self) -> tuple[str, ...]:
        return (self.meta_id,) if self.meta_id else ()

    @property
    def ref(self) -> str:
        return display_ref(self.id, self.aliases)

    def iter_references(self) -> Iterator[tuple[str, str]]:
        yield from _refs_of(self, ("author", "workflow_ref", "resolved_by"))

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, object],
        kind: EntityKind,
        *,
        source_file: str | None = None,
    ) -> MetaItem:
        meta_id = _text(data.get("id"))
        if kind is EntityKind.AGENT:
            title = _text(data.get("name")) or meta_id or ""
        elif kind is EntityKind.CONVENTION:
            title = _text(data.get("domain")) or ""
        elif kind is EntityKind.OBSERVATION:
            title = _excerpt(_text(data.get("content")) or "")
        else:
            title = meta_id or _text(data.get("trigger")) or ""
        return cls(
            id=_identity(data, "MetaItem"),
            kind=kind,
            title=title,
            meta_id=meta_id,
            author=_text(data.get("author")),
            workflow_ref=_text(data.get("workflow_ref")),
            resolved_by=_text(data.get("resolved_by")),
            observation_type=_text(data.get("type")) if kind is EntityKind.OBSERVATION else None,
            source_file=source_file,
        )


@dataclass(frozen=True, slots=True)
class InboxItem:
    id: str
    text: str
    created_at: str | None = None
    tags: tuple[str, ...] = ()
    added_by: str | None = None
    source_file: str | None = None

    def __post_init__(self) -> None:
        _require_identity(self.id, "InboxItem.id")

    @property
    def kind(self) -> EntityKind:
        return EntityKind.INBOX_ITEM

    @classmethod
    def from_dict(cls, data: Mapping[str, object], *, source_file: str | None = None) -> InboxItem:
        return cls(
            id=_identity(data, "InboxItem"),
            text=_text(data.get("text")) or "",
            created_at=_text(data.get("created_at")),
            tags=_text_tuple(data.get("tags")),
            added_by=_text(data.get("added_by")),
            source_file=source_file,
        )


Entity = Task | SpecItem | MetaItem


# ---------------------------------------------------------------------------
# Constructors: one per kind, each assigns a fresh identity.
# ---------------------------------------------------------------------------


def new_task(
    title: str,
    *,
    aliases: Sequence[str] = (),
    task_type: str = TaskType.TASK,
    spec_ref: str | None = None,
    depends_on: Sequence[str] = (),
    priority: int | None = None,
    timestamp_ms: int | None = None,
) -> Task:
    return Task(
        id=domain_ids.generate_ulid(timestamp_ms=timestamp_ms),
        title=_require_title(title),
        aliases=tuple(aliases),
        type=task_type,
        spec_ref=spec_ref,
        depends_on=tuple(depends_on),
        priority=priority,
    )


def new_spec_item(
    title: str,
    *,
    item_type: str = ItemType.REQUIREMENT,
    aliases: Sequence[str] = (),
    description: str | None = None,
    acceptance_criteria: Sequence[AcceptanceCriterion] = (),
    traits: Sequence[str] = (),
    timestamp_ms: int | None = None,
) -> SpecItem:
    return SpecItem(
        id=domain_ids.generate_ulid(timestamp_ms=timestamp_ms),
        title=_require_title(title),
        aliases=tuple(aliases),
        type=item_type,
        description=description,
        maturity=Maturity.DRAFT,
        implementation=ImplementationStatus.NOT_STARTED,
        acceptance_criteria=tuple(acceptance_criteria),
        traits=tuple(traits),
    )


def new_trait(
    title: str,
    *,
    aliases: Sequence[str] = (),
    description: str | None = None,
    acceptance_criteria: Sequence[AcceptanceCriterion] = (),
    timestamp_ms: int | None = None,
) -> SpecItem:
    return new_spec_item(
        title,
        item_type=ItemType.TRAIT,
        aliases=aliases,
        description=description,
        acceptance_criteria=acceptance_criteria,
        timestamp_ms=timestamp_ms,
    )


def new_meta_item(
    kind: EntityKind,
    title: str,
    *,
    meta_id: str | None = None,
    timestamp_ms: int | None = None,
) -> MetaItem:
    return MetaItem(
        id=domain_ids.generate_ulid(timestamp_ms=timestamp_ms),
        kind=kind,
        title=_require_title(title),
        meta_id=meta_id,
    )


def new_inbox_item(
    text: str,
    *,
    tags: Sequence[str] = (),
    added_by: str | None = None,
    timestamp_ms: int | None = None,
) -> InboxItem:
    return InboxItem(
        id=domain_ids.generate_ulid(timestamp_ms=timestamp_ms),
        text=_require_title(text),
        tags=tuple(tags),
        added_by=added_by,
    )


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def _fail(path: str, message: str) -> NoReturn:
    raise ValueError(f"{path}: {message}")


def _require_identity(value: object, path: str) -> None:
    if not isinstance(value, str) or not value.strip():
        _fail(path, "entity identity must be a non-empty string")


def _require_title(value: str) -> str:
    if not isinstance(value, str) or not value.strip():
        _fail("title", "must be a non-empty string")
    return value.strip()


def _identity(data: Mapping[str, object], path: str) -> str:
    raw = data.get("_ulid")
    if not isinstance(raw, str) or not raw.strip():
        _fail(f"{path}._ulid", "missing identity")
    return raw.strip()


def _text(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _text_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    parsed: list[str] = []
    for item in value:
        text = _text(item)
        if text is not None:
            parsed.append(text)
    return tuple(parsed)


def _record_tuple(
    value: object, parse: Callable[[object], TRecord | None]
) -> tuple[TRecord, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    parsed: list[TRecord] = []
    for item in value:
        record = parse(item)
        if record is not None:
            parsed.append(record)
    return tuple(parsed)


def _refs_of(entity: object, field_names: Sequence[str]) -> Iterator[tuple[str, str]]:
    for field_name in field_names:
        value = getattr(entity, field_name, None)
        if isinstance(value, str):
            if is_ref(value):
                yield field_name, value
            continue
        if isinstance(value, tuple):
            for item in value:
                if is_ref(item):
                    yield field_name, item


def _put_optional(payload: dict[str, object], key: str, value: object) -> None:
    if value is not None:
        payload[key] = str(value) if isinstance(value, StrEnum) else value


def _excerpt(text: str, limit: int = 60) -> str:
    single_line = " ".join(text.split())
    if len(single_line) <= limit:
        return single_line
    return single_line[: limit - 3] + "..."


__all__ = [
    "META_KINDS",
    "SPEC_REF_FIELDS",
    "TASK_REF_FIELDS",
    "AcceptanceCriterion",
    "AutomationStatus",
    "Entity",
    "EntityKind",
    "ImplementationStatus",
    "InboxItem",
    "ItemType",
    "Maturity",
    "MetaItem",
    "Note",
    "ObservationType",
    "SpecItem",
    "Task",
    "TaskStatus",
    "TaskType",
    "Todo",
    "new_inbox_item",
    "new_meta_item",
    "new_spec_item",
    "new_task",
    "new_trait",
]

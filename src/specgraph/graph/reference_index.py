"""Reference index: resolves ``@`` references to entity identities.

Resolution order for a normalized token:

1. exact identity match (never ambiguous, wins over everything else);
2. identity-prefix match (``ambiguous`` when two or more identities share the prefix);
3. alias match (``duplicate_slug`` when two or more entities declare the alias);
4. otherwise ``not_found``.

Failures are returned as values; ``resolve`` never raises for unknown references.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum

from specgraph.constants import SHORT_ID_LENGTH
from specgraph.domain.models import Entity, EntityKind, MetaItem, SpecItem, Task
from specgraph.domain.refs import normalize_ref

logger = logging.getLogger(__name__)


class ResolveError(StrEnum):
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    DUPLICATE_SLUG = "duplicate_slug"


class MatchType(StrEnum):
    FULL = "full"
    PREFIX = "prefix"
    ALIAS = "alias"


@dataclass(frozen=True, slots=True)
class ResolveResult:
    """Typed outcome of resolving one reference string."""

    ref: str
    identity: str | None = None
    error: ResolveError | None = None
    candidates: tuple[str, ...] = ()
    match: MatchType | None = None

    @property
    def ok(self) -> bool:
        return self.identity is not None and self.error is None

    def to_dict(self) -> dict[str, object]:
        if self.ok:
            return {"ok": True, "identity": self.identity}
        payload: dict[str, object] = {"ok": False, "error": str(self.error)}
        if self.candidates:
            payload["candidates"] = list(self.candidates)
        return payload


@dataclass(frozen=True, slots=True)
class AliasCheck:
    """Outcome of a write-time alias uniqueness check."""

    ok: bool
    alias: str | None = None
    existing_identity: str | None = None


class ReferenceIndex:
    """Lookup structure over one loaded entity set.

    Tasks, spec items and (optionally) meta items are indexed in the order given; that
    insertion order is the order in which ambiguity candidates are reported. Meta items
    are addressable through their ``id`` field, which acts as their alias.
    """

    __slots__ = (
        "_aliases",
        "_case_sensitive",
        "_duplicate_identities",
        "_entities",
        "_folded_identities",
        "_min_prefix_length",
        "_order",
    )

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        items: Iterable[SpecItem] = (),
        meta_items: Iterable[MetaItem] = (),
        *,
        case_sensitive: bool = True,
        min_prefix_length: int = 1,
    ) -> None:
        if isinstance(min_prefix_length, bool) or not isinstance(min_prefix_length, int):
            raise ValueError("min_prefix_length must be an integer")
        if min_prefix_length < 1:
            raise ValueError("min_prefix_length must be >= 1")

        self._case_sensitive = case_sensitive
        self._min_prefix_length = min_prefix_length
        self._entities: dict[str, Entity] = {}
        self._folded_identities: dict[str, str] = {}
        self._order: list[str] = []
        self._aliases: dict[str, list[str]] = {}
        self._duplicate_identities: list[str] = []

        for task in tasks:
            self._add(task)
        for item in items:
            self._add(item)
        for meta_item in meta_items:
            self._add(meta_item)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(self, ref: str) -> ResolveResult:
        """Resolve ``ref`` (with or without leading ``@``) to one identity."""
        token = normalize_ref(ref)
        if not token:
            return ResolveResult(ref=ref, error=ResolveError.NOT_FOUND)

        folded = self._fold(token)
        exact = self._folded_identities.get(folded)
        if exact is not None:
            return ResolveResult(ref=ref, identity=exact, match=MatchType.FULL)

        if len(token) >= self._min_prefix_length:
            prefix_matches = tuple(
                identity for identity in self._order if self._fold(identity).startswith(folded)
            )
            if len(prefix_matches) == 1:
                return ResolveResult(ref=ref, identity=prefix_matches[0], match=MatchType.PREFIX)
            if len(prefix_matches) > 1:
                return ResolveResult(
                    ref=ref, error=ResolveError.AMBIGUOUS, candidates=prefix_matches
                )

        alias_matches = self._aliases.get(folded)
        if alias_matches:
            if len(alias_matches) > 1:
                return ResolveResult(
                    ref=ref,
                    error=ResolveError.DUPLICATE_SLUG,
                    candidates=tuple(alias_matches),
                )
            return ResolveResult(ref=ref, identity=alias_matches[0], match=MatchType.ALIAS)

        return ResolveResult(ref=ref, error=ResolveError.NOT_FOUND)

    def resolve_entity(self, ref: str) -> Entity | None:
        """Convenience lookup returning the entity for a resolvable reference."""
        result = self.resolve(ref)
        if result.identity is None:
            return None
        return self._entities.get(result.identity)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, identity: str) -> Entity | None:
        """Direct lookup by exact identity (no resolution)."""
        return self._entities.get(identity)

    def kind_of(self, identity: str) -> EntityKind | None:
        entity = self._entities.get(identity)
        if entity is None:
            return None
        return entity.kind

    def identities(self) -> tuple[str, ...]:
        return tuple(self._order)

    def aliases(self) -> dict[str, tuple[str, ...]]:
        """Alias -> identities declaring it, in insertion order."""
        return {alias: tuple(owners) for alias, owners in self._aliases.items()}

    def has_alias(self, alias: str) -> bool:
        return self._fold(alias) in self._aliases

    def alias_owners(self, alias: str) -> tuple[str, ...]:
        return tuple(self._aliases.get(self._fold(alias), ()))

    def duplicate_identities(self) -> tuple[str, ...]:
        """Identities that appeared more than once in the input (first occurrence kept)."""
        return tuple(self._duplicate_identities)

    def shortest_unique_prefix(self, identity: str, *, min_length: int = SHORT_ID_LENGTH) -> str:
        """Return the shortest prefix (at least ``min_length``) unique among indexed identities."""
        length = max(1, min_length)
        folded_identity = self._fold(identity)
        while length < len(identity):
            prefix = folded_identity[:length]
            matches = sum(1 for other in self._order if self._fold(other).startswith(prefix))
            if matches <= 1:
                return identity[:length]
            length += 1
        return identity

    @property
    def case_sensitive(self) -> bool:
        return self._case_sensitive

    @property
    def min_prefix_length(self) -> int:
        return self._min_prefix_length

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, identity: object) -> bool:
        return isinstance(identity, str) and identity in self._entities

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _add(self, entity: Entity) -> None:
        identity = entity.id
        if not identity:
            raise ValueError("cannot index an entity without identity")
        if identity in self._entities:
            logger.debug("duplicate identity ignored", extra={"identity": identity})
            self._duplicate_identities.append(identity)
            return

        self._entities[identity] = entity
        self._folded_identities.setdefault(self._fold(identity), identity)
        self._order.append(identity)

        for alias in entity.aliases:
            if not alias:
                continue
            owners = self._aliases.setdefault(self._fold(alias), [])
            if identity not in owners:
                owners.append(identity)

    def _fold(self, value: str) -> str:
        if self._case_sensitive:
            return value
        return value.casefold()


def alias_is_unique(
    index: ReferenceIndex,
    alias: str,
    exclude_identity: str | None = None,
) -> AliasCheck:
    """Write-time check: fail when another identity already declares ``alias``."""
    conflicting = [owner for owner in index.alias_owners(alias) if owner != exclude_identity]
    if conflicting:
        return AliasCheck(ok=False, alias=alias, existing_identity=conflicting[0])
    return AliasCheck(ok=True)


def check_aliases_unique(
    index: ReferenceIndex,
    aliases: Sequence[str],
    exclude_identity: str | None = None,
) -> AliasCheck:
    """Check several proposed aliases, reporting the first conflict."""
    for alias in aliases:
        check = alias_is_unique(index, alias, exclude_identity)
        if not check.ok:
            return check
    return AliasCheck(ok=True)


def find_duplicate_aliases(index: ReferenceIndex) -> dict[str, tuple[str, ...]]:
    """Return alias -> identities for every alias declared by more than one entity."""
    return {alias: owners for alias, owners in index.aliases().items() if len(owners) > 1}


def build_index(
    tasks: Iterable[Task],
    items: Iterable[SpecItem],
    meta_items: Iterable[MetaItem] = (),
    *,
    resolver_config: Mapping[str, object] | None = None,
) -> ReferenceIndex:
    """Build an index honoring the ``[resolver]`` config section."""
    cfg = dict(resolver_config or {})
    case_sensitive = cfg.get("case_sensitive", True)
    min_prefix_length = cfg.get("min_prefix_length", 1)
    return ReferenceIndex(
        tasks,
        items,
        meta_items,
        case_sensitive=case_sensitive if isinstance(case_sensitive, bool) else True,
        min_prefix_length=min_prefix_length if isinstance(min_prefix_length, int) else 1,
    )


__all__ = [
    "AliasCheck",
    "MatchType",
    "ReferenceIndex",
    "ResolveError",
    "ResolveResult",
    "alias_is_unique",
    "build_index",
    "check_aliases_unique",
    "find_duplicate_aliases",
]

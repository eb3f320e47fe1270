"""Trait inheritance graph with deterministic cycle detection."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from specgraph.domain.models import AcceptanceCriterion, SpecItem
from specgraph.graph.reference_index import ReferenceIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class InheritedCriterion:
    """One acceptance criterion appended to an item through a trait reference."""

    trait_id: str
    trait_ref: str
    trait_title: str
    criterion: AcceptanceCriterion

    @property
    def key(self) -> str:
        return f"{self.trait_ref} {self.criterion.id}"

    def to_dict(self) -> dict[str, object]:
        return {
            "trait": self.trait_ref,
            "traitTitle": self.trait_title,
            "criterion": self.criterion.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TraitCycleError:
    trait_id: str
    trait_ref: str
    trait_title: str
    cycle: tuple[str, ...]
    message: str
    cycle_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "traitRef": self.trait_ref,
            "traitTitle": self.trait_title,
            "cycle": list(self.cycle),
            "message": self.message,
        }


@dataclass(frozen=True, slots=True)
class TraitStats:
    total_traits: int
    items_with_traits: int
    avg_traits_per_item: float

    def to_dict(self) -> dict[str, object]:
        return {
            "totalTraits": self.total_traits,
            "itemsWithTraits": self.items_with_traits,
            "avgTraitsPerItem": self.avg_traits_per_item,
        }


class TraitGraph:
    """Directed graph among traits, plus the trait declarations of every other item.

    Nodes are trait identities in insertion order. An edge ``t -> u`` exists when trait ``t``
    declares a reference that resolves to trait ``u``. References that do not resolve, or that
    resolve to something other than a trait, contribute no edge.
    """

    def __init__(self, index: ReferenceIndex, items: Iterable[SpecItem]) -> None:
        self._index = index
        self._items: dict[str, SpecItem] = {}
        for item in items:
            self._items.setdefault(item.id, item)

        self._traits: dict[str, SpecItem] = {
            identity: item for identity, item in self._items.items() if item.is_trait
        }
        self._resolved: dict[str, tuple[str, ...]] = {
            identity: self._resolve_traits(item) for identity, item in self._items.items()
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def traits(self) -> tuple[SpecItem, ...]:
        return tuple(self._traits.values())

    def trait(self, identity: str) -> SpecItem | None:
        return self._traits.get(identity)

    def traits_of(self, identity: str) -> tuple[str, ...]:
        """Resolved trait identities declared by ``identity``, in declared order."""
        return self._resolved.get(identity, ())

    def implementers(self, trait_identity: str) -> tuple[SpecItem, ...]:
        return tuple(
            item
            for identity, item in self._items.items()
            if trait_identity in self._resolved.get(identity, ())
        )

    def inherited_criteria(self, identity: str) -> tuple[InheritedCriterion, ...]:
        """Acceptance criteria inherited by ``identity`` through its declared traits.

        Traits are followed in declared order and each trait's criteria keep their own
        order. Only directly declared traits contribute.
        """
        inherited: list[InheritedCriterion] = []
        for trait_id in self.traits_of(identity):
            trait = self._traits[trait_id]
            for criterion in trait.acceptance_criteria:
                inherited.append(
                    InheritedCriterion(
                        trait_id=trait_id,
                        trait_ref=trait.ref,
                        trait_title=trait.title,
                        criterion=criterion,
                    )
                )
        return tuple(inherited)

    def all_criteria(
        self, identity: str
    ) -> tuple[tuple[AcceptanceCriterion, ...], tuple[InheritedCriterion, ...]]:
        """Own criteria followed by inherited criteria for ``identity``."""
        item = self._items.get(identity)
        own = item.acceptance_criteria if item is not None else ()
        return own, self.inherited_criteria(identity)

    def stats(self) -> TraitStats:
        items_with_traits = 0
        total_refs = 0
        for item in self._items.values():
            if item.is_trait or not item.traits:
                continue
            items_with_traits += 1
            total_refs += len(item.traits)
        average = round(total_refs / items_with_traits, 2) if items_with_traits else 0.0
        return TraitStats(
            total_traits=len(self._traits),
            items_with_traits=items_with_traits,
            avg_traits_per_item=average,
        )

    # ------------------------------------------------------------------
    # Cycle detection
    # ------------------------------------------------------------------

    def detect_cycles(self) -> tuple[TraitCycleError, ...]:
        """Report each trait cycle once, as a closed path of trait references.

        Iterative depth-first traversal over ``in_progress``/``done`` sets owned by this call.
        Every node on a discovered cycle is marked done immediately, so a cycle reachable from
        several roots is reported only for the first root that reaches it.
        """
        in_progress: set[str] = set()
        done: set[str] = set()
        errors: list[TraitCycleError] = []

        for start in self._traits:
            if start in done or start in in_progress:
                continue
            self._walk_from(start, in_progress, done, errors)

        if errors:
            logger.debug("trait cycles detected", extra={"cycle_count": len(errors)})
        return tuple(errors)

    def cyclic_trait_ids(self) -> frozenset[str]:
        """Identities of every trait that sits on a reported cycle."""
        members: set[str] = set()
        for error in self.detect_cycles():
            members.update(error.cycle_ids)
        return frozenset(members)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _walk_from(
        self,
        start: str,
        in_progress: set[str],
        done: set[str],
        errors: list[TraitCycleError],
    ) -> None:
        path: list[str] = [start]
        path_index: dict[str, int] = {start: 0}
        in_progress.add(start)
        frames: list[tuple[str, Iterator[str]]] = [(start, iter(self._trait_edges(start)))]

        while frames:
            node, child_iter = frames[-1]

            try:
                child = next(child_iter)
            except StopIteration:
                frames.pop()
                in_progress.discard(node)
                done.add(node)
                path.pop()
                del path_index[node]
                continue

            if child in done:
                continue

            if child in in_progress:
                cycle = path[path_index[child] :] + [child]
                errors.append(self._cycle_error(cycle))
                done.update(cycle)
                continue

            in_progress.add(child)
            path_index[child] = len(path)
            path.append(child)
            frames.append((child, iter(self._trait_edges(child))))

    def _trait_edges(self, trait_id: str) -> tuple[str, ...]:
        targets = self._resolved.get(trait_id, ())
        return tuple(target for target in targets if target in self._traits)

    def _resolve_traits(self, item: SpecItem) -> tuple[str, ...]:
        resolved: list[str] = []
        for ref in item.traits:
            result = self._index.resolve(ref)
            if result.identity is None:
                continue
            target = self._index.get(result.identity)
            if not isinstance(target, SpecItem) or not target.is_trait:
                continue
            if result.identity not in resolved:
                resolved.append(result.identity)
        return tuple(resolved)

    def _cycle_error(self, cycle: list[str]) -> TraitCycleError:
        head = self._traits[cycle[0]]
        refs = tuple(self._traits[node].ref for node in cycle)
        return TraitCycleError(
            trait_id=head.id,
            trait_ref=head.ref,
            trait_title=head.title,
            cycle=refs,
            message=f"Circular trait reference: {' -> '.join(refs)}",
            cycle_ids=tuple(cycle),
        )


__all__ = ["InheritedCriterion", "TraitCycleError", "TraitGraph", "TraitStats"]

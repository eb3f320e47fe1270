"""
specgraph: graph package

File: src/specgraph/graph/__init__.py

Purpose
- Reference resolution over a loaded entity set and trait inheritance among spec items.

What should be included in this file
- Re-exports of the reference index and trait graph public API.

Functional requirements
- Resolution failures are values, never exceptions.
- Cycle reports are deterministic for a deterministic input order.

Non-functional requirements
- No IO; both structures are built per snapshot and hold no process-wide state.
"""

from specgraph.graph.reference_index import (
    AliasCheck,
    MatchType,
    ReferenceIndex,
    ResolveError,
    ResolveResult,
    alias_is_unique,
    build_index,
    check_aliases_unique,
    find_duplicate_aliases,
)
from specgraph.graph.trait_graph import (
    InheritedCriterion,
    TraitCycleError,
    TraitGraph,
    TraitStats,
)

__all__ = [
    "AliasCheck",
    "InheritedCriterion",
    "MatchType",
    "ReferenceIndex",
    "ResolveError",
    "ResolveResult",
    "TraitCycleError",
    "TraitGraph",
    "TraitStats",
    "alias_is_unique",
    "build_index",
    "check_aliases_unique",
    "find_duplicate_aliases",
]

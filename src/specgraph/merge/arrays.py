"""Identity-aware three-way merge for record collections.

Both merges are presence-only: ``ours`` is authoritative for every identity it holds, and
``base`` is accepted for signature symmetry but never consulted. Content divergence between
branches is not detected here.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

IDENTITY_FIELD: Final[str] = "_ulid"


@dataclass(frozen=True, slots=True)
class DeletionSignal:
    """Presence flags for one identity across the three versions.

    ``modified_in_ours`` / ``modified_in_theirs`` only record that the identity survives in
    both base and that branch; no content comparison is performed.
    """

    identity: str
    deleted_in_ours: bool
    deleted_in_theirs: bool
    modified_in_ours: bool
    modified_in_theirs: bool

    def to_dict(self) -> dict[str, object]:
        return {
            "identity": self.identity,
            "deletedInOurs": self.deleted_in_ours,
            "deletedInTheirs": self.deleted_in_theirs,
            "modifiedInOurs": self.modified_in_ours,
            "modifiedInTheirs": self.modified_in_theirs,
        }


def record_identity(record: object) -> str | None:
    if isinstance(record, Mapping):
        value = record.get(IDENTITY_FIELD)
        if isinstance(value, str):
            return value
    return None


def is_identity_list(values: object) -> bool:
    """True when ``values`` is a non-empty list whose first element carries an identity."""
    return isinstance(values, list) and bool(values) and record_identity(values[0]) is not None


def merge_ulid_arrays(
    base: Sequence[Mapping[str, object]] | None,
    ours: Sequence[Mapping[str, object]],
    theirs: Sequence[Mapping[str, object]],
) -> list[Mapping[str, object]]:
    """Return every record of ``ours`` in order, then records whose identity only ``theirs`` has.

    A record present in both branches is taken from ``ours`` unchanged.
    """
    del base
    merged = list(ours)
    seen = {record_identity(record) for record in ours}
    for record in theirs:
        identity = record_identity(record)
        if identity in seen:
            continue
        seen.add(identity)
        merged.append(record)
    return merged


def merge_set_array(
    base: Sequence[object] | None,
    ours: Sequence[object],
    theirs: Sequence[object],
) -> list[object]:
    """Union of ``ours`` and ``theirs`` without duplicates; ours order first."""
    del base
    merged: list[object] = []
    for value in (*ours, *theirs):
        if value not in merged:
            merged.append(value)
    return merged


def detect_deletion(
    identity: str,
    base_ids: Mapping[str, object] | set[str] | frozenset[str],
    ours_ids: Mapping[str, object] | set[str] | frozenset[str],
    theirs_ids: Mapping[str, object] | set[str] | frozenset[str],
) -> DeletionSignal:
    """Compute deletion and presence signals for ``identity``.

    The identity collections may be presence maps or plain sets; only membership is used.
    """
    in_base = identity in base_ids
    in_ours = identity in ours_ids
    in_theirs = identity in theirs_ids
    return DeletionSignal(
        identity=identity,
        deleted_in_ours=in_base and not in_ours and in_theirs,
        deleted_in_theirs=in_base and in_ours and not in_theirs,
        modified_in_ours=in_base and in_ours,
        modified_in_theirs=in_base and in_theirs,
    )


__all__ = [
    "IDENTITY_FIELD",
    "DeletionSignal",
    "detect_deletion",
    "is_identity_list",
    "merge_set_array",
    "merge_ulid_arrays",
    "record_identity",
]

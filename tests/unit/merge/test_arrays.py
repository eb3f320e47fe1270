"""Unit tests for merge.arrays."""

from __future__ import annotations

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from specgraph.merge.arrays import (
    detect_deletion,
    is_identity_list,
    merge_set_array,
    merge_ulid_arrays,
    record_identity,
)


def _record(identity: str, **fields: object) -> dict[str, object]:
    return {"_ulid": identity, **fields}


@pytest.mark.unit
def test_identity_union_keeps_ours_first_then_theirs_additions() -> None:
    x = _record("X", title="ours x")
    y = _record("Y", title="theirs y")

    assert merge_ulid_arrays([], [x], [y]) == [x, y]


@pytest.mark.unit
def test_identity_union_takes_ours_content_for_shared_identity() -> None:
    ours_z = _record("Z", title="v1")
    theirs_z = _record("Z", title="v2")

    merged = merge_ulid_arrays([_record("Z", title="v0")], [ours_z], [theirs_z])

    assert merged == [ours_z]
    assert merged[0]["title"] == "v1"


@pytest.mark.unit
def test_identity_union_drops_records_deleted_in_ours() -> None:
    a = _record("A")
    b = _record("B")

    assert merge_ulid_arrays([a, b], [a], [a, b, _record("C")]) == [a, _record("C")]


@pytest.mark.unit
def test_identity_union_preserves_theirs_relative_order() -> None:
    ours = [_record("B")]
    theirs = [_record("D"), _record("B"), _record("A"), _record("C")]

    merged = merge_ulid_arrays(None, ours, theirs)

    assert [record["_ulid"] for record in merged] == ["B", "D", "A", "C"]


@pytest.mark.unit
def test_set_union_removes_duplicates() -> None:
    merged = merge_set_array(None, ["a", "b"], ["b", "c"])

    assert merged == ["a", "b", "c"]
    assert len(merged) == len(set(merged))


@pytest.mark.unit
def test_detect_deletion_flags_are_presence_only() -> None:
    base = {"A": True, "B": True}
    ours = {"B": True}
    theirs = {"A": True}

    deleted_in_ours = detect_deletion("A", base, ours, theirs)
    assert deleted_in_ours.deleted_in_ours is True
    assert deleted_in_ours.deleted_in_theirs is False
    assert deleted_in_ours.modified_in_ours is False
    assert deleted_in_ours.modified_in_theirs is True

    deleted_in_theirs = detect_deletion("B", base, ours, theirs)
    assert deleted_in_theirs.deleted_in_theirs is True
    assert deleted_in_theirs.modified_in_ours is True

    added = detect_deletion("C", base, ours, {"C": True})
    assert added.to_dict() == {
        "identity": "C",
        "deletedInOurs": False,
        "deletedInTheirs": False,
        "modifiedInOurs": False,
        "modifiedInTheirs": False,
    }


@pytest.mark.unit
def test_detect_deletion_accepts_sets() -> None:
    signal = detect_deletion("A", {"A"}, {"A"}, {"A"})

    assert signal.modified_in_ours and signal.modified_in_theirs
    assert not (signal.deleted_in_ours or signal.deleted_in_theirs)


@pytest.mark.unit
def test_identity_helpers() -> None:
    assert record_identity({"_ulid": "A"}) == "A"
    assert record_identity({"_ulid": 3}) is None
    assert record_identity("A") is None
    assert is_identity_list([{"_ulid": "A"}]) is True
    assert is_identity_list([]) is False
    assert is_identity_list(["a"]) is False


_identities = st.lists(st.sampled_from("ABCDEFGH"), unique=True, max_size=8)


@settings(max_examples=100, deadline=None)
@given(ours_ids=_identities, theirs_ids=_identities)
def test_identity_union_contains_each_identity_once(
    ours_ids: list[str], theirs_ids: list[str]
) -> None:
    ours = [_record(identity, side="ours") for identity in ours_ids]
    theirs = [_record(identity, side="theirs") for identity in theirs_ids]

    merged = merge_ulid_arrays([], ours, theirs)
    merged_ids = [record["_ulid"] for record in merged]

    assert sorted(merged_ids) == sorted(set(ours_ids) | set(theirs_ids))
    assert merged_ids[: len(ours_ids)] == ours_ids
    for record in merged:
        if record["_ulid"] in ours_ids:
            assert record["side"] == "ours"


@settings(max_examples=100, deadline=None)
@given(
    ours=st.lists(st.integers(min_value=0, max_value=9), max_size=10),
    theirs=st.lists(st.integers(min_value=0, max_value=9), max_size=10),
)
def test_set_union_is_the_union_without_duplicates(ours: list[int], theirs: list[int]) -> None:
    merged = merge_set_array([], ours, theirs)

    assert set(merged) == set(ours) | set(theirs)
    assert len(merged) == len(set(merged))
    assert merge_set_array([], ours, theirs) == merged

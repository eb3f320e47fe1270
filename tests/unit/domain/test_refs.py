"""Unit tests for reference syntax helpers."""

from __future__ import annotations

import pytest

from specgraph.domain import refs
from specgraph.domain.models import new_task

IDENTITY = "01HZX4Q7RM5T2B8KJ3D6F9GNVW"


@pytest.mark.unit
def test_normalize_ref_strips_one_leading_sigil() -> None:
    assert refs.normalize_ref("@auth") == "auth"
    assert refs.normalize_ref("auth") == "auth"
    assert refs.normalize_ref("@@auth") == "@auth"
    assert refs.normalize_ref("@") == ""

    with pytest.raises(ValueError, match="must be a string"):
        refs.normalize_ref(None)  # type: ignore[arg-type]


@pytest.mark.unit
def test_reference_and_alias_patterns() -> None:
    assert refs.is_ref("@anything")
    assert not refs.is_ref("anything")
    assert not refs.is_ref(7)

    assert refs.is_well_formed_ref("@01HZX4Q7")
    assert refs.is_well_formed_ref("@auth-login")
    assert not refs.is_well_formed_ref("@auth login")

    assert refs.is_valid_alias("auth-login")
    assert not refs.is_valid_alias("Auth")
    assert not refs.is_valid_alias("1st")


@pytest.mark.unit
def test_display_ref_prefers_first_alias_then_short_identity() -> None:
    assert refs.display_ref(IDENTITY, ("login", "signin")) == "@login"
    assert refs.display_ref(IDENTITY) == "@01HZX4Q7"
    assert refs.display_ref("abc") == "@abc"

    task = new_task("Wire login", aliases=("wire-login",))
    assert refs.format_ref(task) == "@wire-login"
    with pytest.raises(ValueError, match="no identity"):
        refs.format_ref(object())

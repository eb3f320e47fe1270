"""Reference syntax helpers: ``@<identity>``, ``@<identity-prefix>`` or ``@<alias>``."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Final

from specgraph.domain.ids import short_id

REF_SIGIL: Final[str] = "@"
ALIAS_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9-]*$")
REF_PATTERN: Final[re.Pattern[str]] = re.compile(r"^@[a-zA-Z0-9-]+$")

__all__ = [
    "ALIAS_PATTERN",
    "REF_PATTERN",
    "REF_SIGIL",
    "display_ref",
    "format_ref",
    "is_ref",
    "is_valid_alias",
    "is_well_formed_ref",
    "normalize_ref",
]


def normalize_ref(ref: str) -> str:
    """Strip one optional leading ``@`` from a reference string."""
    if not isinstance(ref, str):
        raise ValueError(f"reference must be a string, got {type(ref).__name__}")
    if ref.startswith(REF_SIGIL):
        return ref[len(REF_SIGIL) :]
    return ref


def is_ref(value: object) -> bool:
    """Return ``True`` for strings written in reference form (leading ``@``)."""
    return isinstance(value, str) and value.startswith(REF_SIGIL)


def is_well_formed_ref(value: object) -> bool:
    return isinstance(value, str) and REF_PATTERN.fullmatch(value) is not None


def is_valid_alias(value: object) -> bool:
    return isinstance(value, str) and ALIAS_PATTERN.fullmatch(value) is not None


def display_ref(identity: str, aliases: Sequence[str] = ()) -> str:
    """Render the preferred reference for an entity: first alias, else short identity."""
    for alias in aliases:
        if alias:
            return f"{REF_SIGIL}{alias}"
    if len(identity) < 8:
        return f"{REF_SIGIL}{identity}"
    return f"{REF_SIGIL}{short_id(identity)}"


def format_ref(entity: object) -> str:
    """Render the preferred reference for any entity carrying ``id`` and ``aliases``."""
    identity = getattr(entity, "id", None)
    if not isinstance(identity, str) or not identity:
        raise ValueError("entity has no identity")
    aliases = getattr(entity, "aliases", ())
    return display_ref(identity, tuple(aliases or ()))

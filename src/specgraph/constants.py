"""Stable constants shared across the specgraph engine."""

from __future__ import annotations

from typing import Final

# Schema versions for persisted contracts.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Project file names.
MANIFEST_FILENAMES: Final[tuple[str, ...]] = ("kynetic.yaml", "kynetic.spec.yaml")
META_MANIFEST_FILENAME: Final[str] = "kynetic.meta.yaml"
SPEC_SUBDIR: Final[str] = "spec"
TASKS_SUBDIR: Final[str] = "tasks"
TASKS_FILE_SUFFIX: Final[str] = ".tasks.yaml"
INBOX_FILE_SUFFIX: Final[str] = ".inbox.yaml"
META_FILE_SUFFIX: Final[str] = ".meta.yaml"
RUNS_FILE_SUFFIX: Final[str] = ".runs.yaml"

# Child-collection fields that nest spec items positionally under a parent record.
NESTED_ITEM_FIELDS: Final[tuple[str, ...]] = (
    "modules",
    "features",
    "requirements",
    "constraints",
    "decisions",
    "items",
)

# Spec item / task kinds that justify their own existence without inbound references.
ENTRY_POINT_TYPES: Final[frozenset[str]] = frozenset(
    {"module", "task", "epic", "bug", "spike", "infra"}
)

# Display length of an identity prefix.
SHORT_ID_LENGTH: Final[int] = 8

__all__ = [
    "CONFIG_SCHEMA_VERSION",
    "ENTRY_POINT_TYPES",
    "INBOX_FILE_SUFFIX",
    "MANIFEST_FILENAMES",
    "META_FILE_SUFFIX",
    "META_MANIFEST_FILENAME",
    "NESTED_ITEM_FIELDS",
    "RUNS_FILE_SUFFIX",
    "SHORT_ID_LENGTH",
    "SPEC_SUBDIR",
    "TASKS_FILE_SUFFIX",
    "TASKS_SUBDIR",
]

"""Classify a project file path so the merge driver knows which record layout to expect."""

from __future__ import annotations

from enum import StrEnum
from pathlib import PurePosixPath

from specgraph.constants import (
    INBOX_FILE_SUFFIX,
    MANIFEST_FILENAMES,
    META_FILE_SUFFIX,
    RUNS_FILE_SUFFIX,
    TASKS_FILE_SUFFIX,
)


class FileType(StrEnum):
    TASKS = "tasks"
    INBOX = "inbox"
    SPEC_MODULES = "spec_modules"
    MANIFEST = "manifest"
    META = "meta"
    UNKNOWN = "unknown"


def detect_file_type(path: str) -> FileType:
    """Return the record layout for ``path``; separators may be ``/`` or ``\\``."""
    normalized = path.replace("\\", "/")
    if normalized.endswith(TASKS_FILE_SUFFIX):
        return FileType.TASKS
    if normalized.endswith(INBOX_FILE_SUFFIX):
        return FileType.INBOX
    if normalized.endswith(META_FILE_SUFFIX):
        return FileType.META
    if normalized.endswith(RUNS_FILE_SUFFIX):
        return FileType.UNKNOWN
    if (
        "/modules/" in normalized or normalized.startswith("modules/")
    ) and normalized.endswith(".yaml"):
        return FileType.SPEC_MODULES
    if PurePosixPath(normalized).name in MANIFEST_FILENAMES:
        return FileType.MANIFEST
    return FileType.UNKNOWN


__all__ = ["FileType", "detect_file_type"]

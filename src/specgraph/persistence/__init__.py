"""
specgraph: persistence package

File: src/specgraph/persistence/__init__.py

Purpose
- Read project files from disk into an immutable in-memory snapshot.

What should be included in this file
- Re-exports of the loader API and snapshot types.

Functional requirements
- Unparsable files are carried with their error instead of aborting the load.

Non-functional requirements
- Read-only; file discovery order is sorted and deterministic.
"""

from specgraph.persistence.loader import (
    DocumentRole,
    ProjectLoadError,
    ProjectSnapshot,
    SourceFile,
    find_manifest,
    load_project,
    project_root_for,
)

__all__ = [
    "DocumentRole",
    "ProjectLoadError",
    "ProjectSnapshot",
    "SourceFile",
    "find_manifest",
    "load_project",
    "project_root_for",
]

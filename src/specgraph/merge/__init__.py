"""
specgraph: merge package

File: src/specgraph/merge/__init__.py

Purpose
- Reconcile concurrent edits to the same record file without textual conflict markers.

What should be included in this file
- Re-exports of the array merge engine, file-type detection and the git merge driver.

Functional requirements
- Records are matched by identity; the ours branch is authoritative for shared identities.
- Unknown layouts and unparsable input are reported, never merged.

Non-functional requirements
- Output ordering is deterministic for identical inputs.
"""

from specgraph.merge.arrays import (
    IDENTITY_FIELD,
    DeletionSignal,
    detect_deletion,
    is_identity_list,
    merge_set_array,
    merge_ulid_arrays,
    record_identity,
)
from specgraph.merge.driver import (
    MergeOutcome,
    ParsedVersions,
    dump_document,
    merge_documents,
    parse_versions,
    read_versions,
    run_merge_driver,
)
from specgraph.merge.file_type import FileType, detect_file_type

__all__ = [
    "IDENTITY_FIELD",
    "DeletionSignal",
    "FileType",
    "MergeOutcome",
    "ParsedVersions",
    "detect_deletion",
    "detect_file_type",
    "dump_document",
    "is_identity_list",
    "merge_documents",
    "merge_set_array",
    "merge_ulid_arrays",
    "parse_versions",
    "read_versions",
    "record_identity",
    "run_merge_driver",
]

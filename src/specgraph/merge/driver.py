"""Git merge driver reconciling concurrent edits to one record file.

Git invokes the driver with the base (``%O``), ours (``%A``) and theirs (``%B``) versions and
optionally the repository path of the file (``%P``). The merged document replaces the ours
file. A non-zero exit tells git to fall back to its own textual merge; the ours file is then
left untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Final

import yaml

from specgraph.merge.arrays import (
    is_identity_list,
    merge_set_array,
    merge_ulid_arrays,
    record_identity,
)
from specgraph.merge.file_type import FileType, detect_file_type
from specgraph.utils.fs import PathLike, atomic_write_text

logger = logging.getLogger(__name__)

_VERSION_NAMES: Final[tuple[str, ...]] = ("base", "ours", "theirs")
_SCALAR_TYPES: Final[tuple[type, ...]] = (str, int, float, bool, type(None))
_ABSENT: Final[object] = object()


@dataclass(frozen=True, slots=True)
class ParsedVersions:
    """The three parsed documents, or the first parse failure."""

    base: object = None
    ours: object = None
    theirs: object = None
    error: str | None = None
    failed_file: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class MergeOutcome:
    ok: bool
    file_type: FileType
    message: str
    output_path: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "ok": self.ok,
            "fileType": str(self.file_type),
            "message": self.message,
            "outputPath": self.output_path,
        }


def parse_versions(base_text: str, ours_text: str, theirs_text: str) -> ParsedVersions:
    """Parse all three versions, reporting the first one that is not valid YAML."""
    parsed: dict[str, object] = {}
    for name, text in zip(_VERSION_NAMES, (base_text, ours_text, theirs_text), strict=True):
        try:
            parsed[name] = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            return ParsedVersions(error=f"Failed to parse {name}: {exc}", failed_file=name)
    return ParsedVersions(base=parsed["base"], ours=parsed["ours"], theirs=parsed["theirs"])


def read_versions(
    base_path: PathLike,
    ours_path: PathLike,
    theirs_path: PathLike,
) -> ParsedVersions:
    """Read and parse the three versions from disk."""
    try:
        texts = [
            Path(path).read_text(encoding="utf-8") for path in (base_path, ours_path, theirs_path)
        ]
    except OSError as exc:
        return ParsedVersions(error=f"Failed to read files: {exc}")
    return parse_versions(*texts)


def merge_documents(base: object, ours: object, theirs: object) -> object:
    """Merge three parsed documents.

    Root lists of identity records are merged by identity union. A key present in both
    branches takes the side that changed it relative to ``base``; when both changed it,
    identity lists are merged by identity union, scalar lists by set union and mappings
    recursively, and any other value keeps ``ours``. A key only ``theirs`` has is added unless
    ``base`` had it (then ``ours`` deleted it). Records present in both branches are merged
    field by field the same way.
    """
    if isinstance(ours, list) or isinstance(theirs, list):
        return _merge_root_lists(base, ours, theirs)
    if isinstance(ours, Mapping) and isinstance(theirs, Mapping):
        return _merge_mappings(base if isinstance(base, Mapping) else {}, ours, theirs)
    return ours if ours is not None else theirs


def run_merge_driver(
    base_path: PathLike,
    ours_path: PathLike,
    theirs_path: PathLike,
    *,
    file_path: str | None = None,
) -> MergeOutcome:
    """Merge the three versions and write the result into ``ours_path``.

    ``file_path`` is the repository path git passes as ``%P``; when omitted the layout is
    detected from ``ours_path``.
    """
    file_type = detect_file_type(file_path if file_path is not None else str(ours_path))
    if file_type is FileType.UNKNOWN:
        message = f"Merge failed: unsupported file {file_path or ours_path}"
        logger.warning("merge driver skipped unsupported file", extra={"path": str(ours_path)})
        return MergeOutcome(ok=False, file_type=file_type, message=message)

    versions = read_versions(base_path, ours_path, theirs_path)
    if not versions.ok:
        logger.warning(
            "merge driver could not parse input",
            extra={"failed_file": versions.failed_file, "error": versions.error},
        )
        return MergeOutcome(
            ok=False,
            file_type=file_type,
            message=f"Merge failed: Parse error\n  {versions.error}",
        )

    merged = merge_documents(versions.base, versions.ours, versions.theirs)
    atomic_write_text(ours_path, dump_document(merged))
    logger.info(
        "merge driver completed",
        extra={"file_type": str(file_type), "path": str(ours_path)},
    )
    return MergeOutcome(
        ok=True,
        file_type=file_type,
        message="Merged successfully (no conflicts)",
        output_path=str(ours_path),
    )


def dump_document(document: object) -> str:
    if document is None:
        return ""
    rendered = yaml.safe_dump(
        document,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=120,
    )
    if not rendered.endswith("\n"):
        rendered += "\n"
    return rendered


# ---------------------------------------------------------------------------
# Structural merge helpers
# ---------------------------------------------------------------------------


def _merge_root_lists(base: object, ours: object, theirs: object) -> object:
    base_list = base if isinstance(base, list) else []
    ours_list = ours if isinstance(ours, list) else []
    theirs_list = theirs if isinstance(theirs, list) else []
    if not (is_identity_list(ours_list) or is_identity_list(theirs_list)):
        return ours_list
    return _merge_record_lists(base_list, ours_list, theirs_list)


def _merge_record_lists(
    base: list[object],
    ours: list[object],
    theirs: list[object],
) -> list[object]:
    base_by_id = _records_by_identity(base)
    ours_by_id = _records_by_identity(ours)
    theirs_by_id = _records_by_identity(theirs)

    merged: list[object] = []
    for record in merge_ulid_arrays(base, ours, theirs):
        identity = record_identity(record)
        if identity is not None and identity in ours_by_id and identity in theirs_by_id:
            merged.append(
                _merge_mappings(
                    base_by_id.get(identity, {}),
                    ours_by_id[identity],
                    theirs_by_id[identity],
                )
            )
        else:
            merged.append(record)
    return merged


def _merge_mappings(
    base: Mapping[str, object],
    ours: Mapping[str, object],
    theirs: Mapping[str, object],
) -> dict[str, object]:
    merged: dict[str, object] = {}
    for key, ours_value in ours.items():
        if key not in theirs:
            merged[key] = ours_value
            continue
        merged[key] = _merge_values(base.get(key, _ABSENT), ours_value, theirs[key])
    for key, theirs_value in theirs.items():
        if key in ours or key in base:
            continue
        merged[key] = theirs_value
    return merged


def _merge_values(base: object, ours: object, theirs: object) -> object:
    if base is not _ABSENT:
        if ours == base:
            return theirs
        if theirs == base:
            return ours
    if ours == theirs:
        return ours
    if isinstance(ours, list) and isinstance(theirs, list):
        base_list = base if isinstance(base, list) else []
        if is_identity_list(ours) or is_identity_list(theirs):
            return _merge_record_lists(base_list, ours, theirs)
        if _is_scalar_list(ours) and _is_scalar_list(theirs):
            return merge_set_array(base_list, ours, theirs)
        return ours
    if isinstance(ours, Mapping) and isinstance(theirs, Mapping):
        return _merge_mappings(base if isinstance(base, Mapping) else {}, ours, theirs)
    return ours


def _records_by_identity(records: list[object]) -> dict[str, Mapping[str, object]]:
    indexed: dict[str, Mapping[str, object]] = {}
    for record in records:
        identity = record_identity(record)
        if identity is not None and isinstance(record, Mapping):
            indexed.setdefault(identity, record)
    return indexed


def _is_scalar_list(values: list[object]) -> bool:
    return all(isinstance(value, _SCALAR_TYPES) for value in values)


__all__ = [
    "MergeOutcome",
    "ParsedVersions",
    "dump_document",
    "merge_documents",
    "parse_versions",
    "read_versions",
    "run_merge_driver",
]

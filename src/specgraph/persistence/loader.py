"""Read-only project loader producing an in-memory snapshot.

The loader never writes. Files that cannot be read or parsed are kept in the snapshot with
their error so the schema pass can report them; records without a usable identity are
skipped here and reported by the schema pass.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

import yaml

from specgraph.constants import (
    INBOX_FILE_SUFFIX,
    MANIFEST_FILENAMES,
    META_MANIFEST_FILENAME,
    NESTED_ITEM_FIELDS,
    SPEC_SUBDIR,
    TASKS_FILE_SUFFIX,
    TASKS_SUBDIR,
)
from specgraph.domain.models import EntityKind, InboxItem, MetaItem, SpecItem, Task

logger = logging.getLogger(__name__)

_META_COLLECTIONS: tuple[tuple[str, EntityKind], ...] = (
    ("agents", EntityKind.AGENT),
    ("workflows", EntityKind.WORKFLOW),
    ("conventions", EntityKind.CONVENTION),
    ("observations", EntityKind.OBSERVATION),
)


class DocumentRole(StrEnum):
    """Which record format a project file holds."""

    MANIFEST = "manifest"
    SPEC = "spec"
    TASKS = "tasks"
    META = "meta"
    INBOX = "inbox"


class ProjectLoadError(RuntimeError):
    """Raised when no project manifest can be located."""


@dataclass(frozen=True, slots=True)
class SourceFile:
    path: str
    role: DocumentRole
    raw: object = None
    parse_error: str | None = None
    missing: bool = False


@dataclass(frozen=True, slots=True)
class ProjectSnapshot:
    root_dir: Path
    manifest_path: Path | None
    files: tuple[SourceFile, ...] = ()
    tasks: tuple[Task, ...] = ()
    items: tuple[SpecItem, ...] = ()
    meta_items: tuple[MetaItem, ...] = ()
    inbox_items: tuple[InboxItem, ...] = ()
    has_meta: bool = False


@dataclass(slots=True)
class _SnapshotBuilder:
    root_dir: Path
    files: list[SourceFile] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    items: list[SpecItem] = field(default_factory=list)
    meta_items: list[MetaItem] = field(default_factory=list)
    inbox_items: list[InboxItem] = field(default_factory=list)
    seen: set[Path] = field(default_factory=set)

    def read(self, path: Path, role: DocumentRole) -> SourceFile | None:
        resolved = path.resolve()
        if resolved in self.seen:
            return None
        self.seen.add(resolved)
        raw, error = _read_yaml(path)
        source = SourceFile(path=self.relative(path), role=role, raw=raw, parse_error=error)
        self.files.append(source)
        if error is not None:
            logger.warning("project file could not be parsed", extra={"path": source.path})
        return source

    def missing(self, label: str, role: DocumentRole) -> None:
        self.files.append(
            SourceFile(path=label, role=role, parse_error=f"file not found: {label}", missing=True)
        )

    def relative(self, path: Path) -> str:
        try:
            return path.resolve().relative_to(self.root_dir.resolve()).as_posix()
        except ValueError:
            return path.as_posix()


def find_manifest(start_dir: str | Path) -> Path | None:
    """Walk up from ``start_dir`` looking for a manifest, also under ``spec/``."""
    current = Path(start_dir).resolve()
    for directory in (current, *current.parents):
        for candidate_dir in (directory, directory / SPEC_SUBDIR):
            for name in MANIFEST_FILENAMES:
                candidate = candidate_dir / name
                if candidate.is_file():
                    return candidate
    return None


def project_root_for(manifest_path: Path) -> Path:
    manifest_dir = manifest_path.parent
    if manifest_dir.name == SPEC_SUBDIR:
        return manifest_dir.parent
    return manifest_dir


def load_project(start_dir: str | Path) -> ProjectSnapshot:
    """Load every project file reachable from the manifest nearest to ``start_dir``."""
    manifest_path = find_manifest(start_dir)
    if manifest_path is None:
        names = ", ".join(MANIFEST_FILENAMES)
        raise ProjectLoadError(f"no manifest ({names}) found from {start_dir}")

    root_dir = project_root_for(manifest_path)
    manifest_dir = manifest_path.parent
    builder = _SnapshotBuilder(root_dir=root_dir)

    manifest = builder.read(manifest_path, DocumentRole.MANIFEST)
    if manifest is not None and manifest.parse_error is None:
        _collect_items(manifest.raw, manifest.path, builder, top_level_only=True)
        raw_manifest = manifest.raw if isinstance(manifest.raw, Mapping) else {}
        for include in _expand_includes(
            manifest_dir, raw_manifest.get("includes"), builder, DocumentRole.SPEC
        ):
            source = builder.read(include, DocumentRole.SPEC)
            if source is not None and source.parse_error is None:
                _collect_items(source.raw, source.path, builder, top_level_only=False)

    for tasks_path in _task_files(root_dir, manifest_dir):
        source = builder.read(tasks_path, DocumentRole.TASKS)
        if source is not None and source.parse_error is None:
            _collect_tasks(source, builder)

    has_meta = _load_meta(manifest_dir, builder)

    for inbox_path in sorted(manifest_dir.glob(f"*{INBOX_FILE_SUFFIX}")):
        source = builder.read(inbox_path, DocumentRole.INBOX)
        if source is not None and source.parse_error is None:
            _collect_inbox(source, builder)

    snapshot = ProjectSnapshot(
        root_dir=root_dir,
        manifest_path=manifest_path,
        files=tuple(builder.files),
        tasks=tuple(builder.tasks),
        items=tuple(builder.items),
        meta_items=tuple(builder.meta_items),
        inbox_items=tuple(builder.inbox_items),
        has_meta=has_meta,
    )
    logger.info(
        "project loaded",
        extra={
            "files": len(snapshot.files),
            "tasks": len(snapshot.tasks),
            "items": len(snapshot.items),
            "meta_items": len(snapshot.meta_items),
        },
    )
    return snapshot


# ---------------------------------------------------------------------------
# Collection helpers
# ---------------------------------------------------------------------------


def _read_yaml(path: Path) -> tuple[object, str | None]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return yaml.safe_load(handle), None
    except OSError as exc:
        return None, str(exc)
    except yaml.YAMLError as exc:
        return None, str(exc)


def _expand_includes(
    manifest_dir: Path,
    includes: object,
    builder: _SnapshotBuilder,
    role: DocumentRole,
) -> list[Path]:
    if not isinstance(includes, list):
        return []
    expanded: list[Path] = []
    for pattern in includes:
        if not isinstance(pattern, str) or not pattern.strip():
            continue
        if any(char in pattern for char in "*?["):
            expanded.extend(sorted(path for path in manifest_dir.glob(pattern) if path.is_file()))
            continue
        candidate = manifest_dir / pattern
        if candidate.is_file():
            expanded.append(candidate)
        else:
            builder.missing(builder.relative(candidate), role)
    return expanded


def _task_files(root_dir: Path, manifest_dir: Path) -> list[Path]:
    candidates: dict[Path, Path] = {}
    for directory in (root_dir, root_dir / SPEC_SUBDIR, root_dir / TASKS_SUBDIR, manifest_dir):
        if not directory.is_dir():
            continue
        for path in sorted(directory.glob(f"*{TASKS_FILE_SUFFIX}")):
            candidates.setdefault(path.resolve(), path)
    return list(candidates.values())


def _collect_items(
    raw: object,
    source_file: str,
    builder: _SnapshotBuilder,
    *,
    top_level_only: bool,
) -> None:
    if isinstance(raw, list) and not top_level_only:
        for entry in raw:
            _collect_item(entry, source_file, builder, nesting_path=None, parent_id=None)
        return
    if not isinstance(raw, Mapping):
        return
    if "_ulid" in raw and not top_level_only:
        _collect_item(raw, source_file, builder, nesting_path=None, parent_id=None)
        return
    for field_name in NESTED_ITEM_FIELDS:
        children = raw.get(field_name)
        if not isinstance(children, list):
            continue
        for entry in children:
            _collect_item(entry, source_file, builder, nesting_path=None, parent_id=None)


def _collect_item(
    raw: object,
    source_file: str,
    builder: _SnapshotBuilder,
    *,
    nesting_path: str | None,
    parent_id: str | None,
) -> None:
    if not isinstance(raw, Mapping):
        return
    try:
        item = SpecItem.from_dict(
            raw,
            source_file=source_file,
            nesting_path=nesting_path,
            parent_id=parent_id,
        )
    except ValueError as exc:
        logger.debug("spec item skipped", extra={"file": source_file, "reason": str(exc)})
        return
    builder.items.append(item)

    for field_name in NESTED_ITEM_FIELDS:
        children = raw.get(field_name)
        if not isinstance(children, list):
            continue
        for position, child in enumerate(children):
            child_path = f"{field_name}[{position}]"
            if nesting_path is not None:
                child_path = f"{nesting_path}.{child_path}"
            _collect_item(
                child,
                source_file,
                builder,
                nesting_path=child_path,
                parent_id=item.id,
            )


def _collect_tasks(source: SourceFile, builder: _SnapshotBuilder) -> None:
    raw = source.raw
    records: Sequence[object]
    if isinstance(raw, list):
        records = raw
    elif isinstance(raw, Mapping) and isinstance(raw.get("tasks"), list):
        records = raw["tasks"]
    else:
        return
    for record in records:
        if not isinstance(record, Mapping):
            continue
        try:
            builder.tasks.append(Task.from_dict(record, source_file=source.path))
        except ValueError as exc:
            logger.debug("task skipped", extra={"file": source.path, "reason": str(exc)})


def _load_meta(manifest_dir: Path, builder: _SnapshotBuilder) -> bool:
    meta_path = manifest_dir / META_MANIFEST_FILENAME
    if not meta_path.is_file():
        return False
    source = builder.read(meta_path, DocumentRole.META)
    if source is None or source.parse_error is not None:
        return True
    _collect_meta(source, builder)

    raw = source.raw if isinstance(source.raw, Mapping) else {}
    for include in _expand_includes(manifest_dir, raw.get("includes"), builder, DocumentRole.META):
        included = builder.read(include, DocumentRole.META)
        if included is not None and included.parse_error is None:
            _collect_meta(included, builder)
    return True


def _collect_meta(source: SourceFile, builder: _SnapshotBuilder) -> None:
    if not isinstance(source.raw, Mapping):
        return
    for collection, kind in _META_COLLECTIONS:
        records = source.raw.get(collection)
        if not isinstance(records, list):
            continue
        for record in records:
            if not isinstance(record, Mapping):
                continue
            try:
                builder.meta_items.append(
                    MetaItem.from_dict(record, kind, source_file=source.path)
                )
            except ValueError as exc:
                logger.debug("meta item skipped", extra={"file": source.path, "reason": str(exc)})


def _collect_inbox(source: SourceFile, builder: _SnapshotBuilder) -> None:
    if not isinstance(source.raw, Mapping):
        return
    records = source.raw.get("inbox")
    if not isinstance(records, list):
        return
    for record in records:
        if not isinstance(record, Mapping):
            continue
        try:
            builder.inbox_items.append(InboxItem.from_dict(record, source_file=source.path))
        except ValueError as exc:
            logger.debug("inbox item skipped", extra={"file": source.path, "reason": str(exc)})


__all__ = [
    "DocumentRole",
    "ProjectLoadError",
    "ProjectSnapshot",
    "SourceFile",
    "find_manifest",
    "load_project",
    "project_root_for",
]

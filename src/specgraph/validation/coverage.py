"""Test-coverage collaborator for completeness checks.

Coverage is computed once per validation run and handed to the validator as an immutable
key set. Keys have the form ``@<ref> <criterion-id>`` or, for annotations that name an entity
without criteria, a bare ``@<ref>``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Final, Protocol, runtime_checkable

from specgraph.constants import SHORT_ID_LENGTH

logger = logging.getLogger(__name__)

DEFAULT_TEST_DIRS: Final[tuple[str, ...]] = ("tests",)
DEFAULT_PATTERNS: Final[tuple[str, ...]] = ("*.py", "*.ts", "*.js")

_ANNOTATION_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"AC:\s*@([A-Za-z0-9][A-Za-z0-9_-]*)((?:[\s,]+ac-[\w-]+)*)"
)
_CRITERION_ID_PATTERN: Final[re.Pattern[str]] = re.compile(r"ac-[\w-]+")
_SKIPPED_DIR_NAMES: Final[frozenset[str]] = frozenset(
    {"node_modules", ".git", "__pycache__", ".venv", "dist", "build"}
)


@runtime_checkable
class CoverageIndex(Protocol):
    def covered(self, key: str) -> bool: ...


class StaticCoverage:
    """Coverage backed by a precomputed key set."""

    __slots__ = ("_keys",)

    def __init__(self, keys: Iterable[str] = ()) -> None:
        self._keys = frozenset(keys)

    def covered(self, key: str) -> bool:
        return key in self._keys

    @property
    def keys(self) -> frozenset[str]:
        return self._keys

    def __len__(self) -> int:
        return len(self._keys)


class AnnotationScanner:
    """Scan test sources for ``AC: @ref ac-1, ac-2`` annotations."""

    def __init__(
        self,
        root_dir: str | Path,
        *,
        test_dirs: Sequence[str] = DEFAULT_TEST_DIRS,
        patterns: Sequence[str] = DEFAULT_PATTERNS,
    ) -> None:
        self._root_dir = Path(root_dir)
        self._test_dirs = tuple(test_dirs)
        self._patterns = tuple(patterns)

    def scan(self) -> StaticCoverage:
        keys: set[str] = set()
        for path in self._iter_files():
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.warning(
                    "coverage scan skipped unreadable file",
                    extra={"path": str(path), "error": str(exc)},
                )
                continue
            keys.update(extract_annotation_keys(content))
        logger.debug("coverage scan complete", extra={"key_count": len(keys)})
        return StaticCoverage(keys)

    def _iter_files(self) -> list[Path]:
        found: set[Path] = set()
        for test_dir in self._test_dirs:
            base = self._root_dir / test_dir
            if not base.is_dir():
                continue
            for pattern in self._patterns:
                for candidate in base.rglob(pattern):
                    if not candidate.is_file():
                        continue
                    if _SKIPPED_DIR_NAMES.intersection(candidate.relative_to(base).parts):
                        continue
                    found.add(candidate)
        return sorted(found)


def extract_annotation_keys(content: str) -> set[str]:
    """Return every coverage key announced by annotations in ``content``."""
    keys: set[str] = set()
    for match in _ANNOTATION_PATTERN.finditer(content):
        ref = f"@{match.group(1)}"
        criterion_ids = _CRITERION_ID_PATTERN.findall(match.group(2) or "")
        if not criterion_ids:
            keys.add(ref)
            continue
        for criterion_id in criterion_ids:
            keys.add(f"{ref} {criterion_id}")
    return keys


def criterion_keys(identity: str, aliases: Sequence[str], criterion_id: str) -> tuple[str, ...]:
    """Candidate keys for one criterion, in match order.

    Alias with criterion id, alias alone, short identity with criterion id, short identity
    alone. Full-identity keys are accepted last.
    """
    candidates: list[str] = []
    for alias in aliases:
        candidates.append(f"@{alias} {criterion_id}")
    for alias in aliases:
        candidates.append(f"@{alias}")
    short = identity[:SHORT_ID_LENGTH]
    candidates.append(f"@{short} {criterion_id}")
    candidates.append(f"@{short}")
    if identity != short:
        candidates.append(f"@{identity} {criterion_id}")
        candidates.append(f"@{identity}")
    return tuple(candidates)


def covered_by(coverage: CoverageIndex, keys: Iterable[str]) -> str | None:
    """Return the first key ``coverage`` recognizes, or ``None``."""
    for key in keys:
        if coverage.covered(key):
            return key
    return None


__all__ = [
    "DEFAULT_PATTERNS",
    "DEFAULT_TEST_DIRS",
    "AnnotationScanner",
    "CoverageIndex",
    "StaticCoverage",
    "covered_by",
    "criterion_keys",
    "extract_annotation_keys",
]

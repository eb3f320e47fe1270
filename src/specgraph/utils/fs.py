"""
specgraph: filesystem utilities

File: src/specgraph/utils/fs.py

Purpose
- Replace a record file in one step so git never observes a half-written merge result.

Functional requirements
- The temp file lives in the destination directory and is removed on failure.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]


def atomic_write_text(path: PathLike, text: str, *, encoding: str = "utf-8") -> None:
    """
    Atomically replace ``path`` with ``text``.

    The text is written and fsynced to a sibling temp file, which then replaces the target
    via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="\n") as file_handle:
            file_handle.write(text)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


__all__ = ["PathLike", "atomic_write_text"]

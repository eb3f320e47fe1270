"""Utility exports for filesystem helpers."""

from specgraph.utils.fs import PathLike, atomic_write_text

__all__ = ["PathLike", "atomic_write_text"]

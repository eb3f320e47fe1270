"""Output rendering abstraction for the specgraph CLI.

File: src/specgraph/ui/render.py

Purpose
- Provide a thin rendering layer for human-readable CLI output.
- Respect NO_COLOR environment variable and --no-color CLI flag.

What should be included in this file
- CLIRenderer class with methods for common output patterns (headings, sections, finding
  lists, tables, pass/fail markers).
- Factory function to create a renderer with appropriate settings.

Functional requirements
- Plain-text rendering must always work; color is only added on an interactive terminal.
- JSON output never goes through this module.

Non-functional requirements
- No dependencies beyond the standard library.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Sequence

_GREEN: Final[str] = "\033[32m"
_RED: Final[str] = "\033[31m"
_YELLOW: Final[str] = "\033[33m"
_RESET: Final[str] = "\033[0m"


def _color_allowed(no_color_flag: bool) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


class CLIRenderer:
    """Thin CLI output renderer.

    Produces clean, deterministic plain-text output.
    Respects ``NO_COLOR`` env var and ``--no-color`` flag.
    """

    def __init__(self, *, no_color: bool = False, verbose: bool = False) -> None:
        self.verbose = verbose
        self._color = _color_allowed(no_color)

    @property
    def color(self) -> bool:
        return self._color

    def heading(self, text: str) -> None:
        """Print a heading line."""

        print(text)

    def kv(self, key: str, value: object) -> None:
        """Print a key: value pair."""

        print(f"{key}: {value}")

    def text(self, line: str) -> None:
        """Print a plain text line."""

        print(line)

    def blank(self) -> None:
        """Print a blank line."""

        print()

    def section(self, title: str, count: int | None = None) -> None:
        """Print a section header with a preceding blank line."""

        suffix = f" ({count})" if count is not None else ""
        print(f"\n{title}{suffix}:")

    def warning(self, text: str) -> None:
        """Print a warning message."""

        print(f"  {self._paint('Warning:', _YELLOW)} {text}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        """Print a bulleted list."""

        for entry in entries:
            print(f"  {prefix}{entry}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        print(f"  {_pad(list(headers))}")
        print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            print(f"  {_pad(list(row))}")

    def ok(self, label: str) -> None:
        """Print a passing line."""

        print(f"{self._paint('OK', _GREEN)}  {label}")

    def fail(self, label: str) -> None:
        """Print a failing line."""

        print(f"{self._paint('FAIL', _RED)}  {label}")

    def _paint(self, text: str, code: str) -> str:
        if not self._color:
            return text
        return f"{code}{text}{_RESET}"


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]

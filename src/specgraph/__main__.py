"""Module entrypoint for ``python -m specgraph``."""

from __future__ import annotations

from specgraph.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())

"""
specgraph: package root

File: src/specgraph/__init__.py

Purpose
- Reference resolution, trait inheritance, validation and semantic merge for graphs of
  identity-tagged records (spec items, tasks, traits and meta items) stored as YAML.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).

Non-functional requirements
- Keep import time fast; heavy submodules are imported by their callers.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

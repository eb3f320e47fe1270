"""
specgraph: integration test package

File: tests/integration/__init__.py

Purpose
- Test package marker for subprocess-level CLI contracts.

Functional requirements
- Must not import specgraph at import time; tests run the CLI in a child interpreter.
"""

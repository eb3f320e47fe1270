"""
specgraph config package public API.

File: src/specgraph/config/__init__.py

Purpose
- Export config loading/validation entrypoints and public error types.

What should be included in this file
- Public schema constants and validation/report types.
- Loader APIs for effective runtime config and deterministic dumps.

Functional requirements
- Support loading from ``specgraph.toml`` + ``SPECGRAPH_`` env overrides.
- Fail fast with clear structured validation/load errors.

Non-functional requirements
- Keep import-time surface small and deterministic.
"""

from specgraph.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    load_config_file,
)
from specgraph.config.schema import (
    BUILTIN_PROFILE_NAMES,
    DEFAULT_CONFIG,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ProfileOverlay,
    SpecgraphConfig,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "BUILTIN_PROFILE_NAMES",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ProfileOverlay",
    "SpecgraphConfig",
    "apply_profile_overlay",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_config_file",
    "merge_config",
    "migration_guidance",
    "validate_config",
]

"""
specgraph: unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate strict config schema behavior, structured errors, and profile overlays.

What this test file should cover
- Built-in defaults validate successfully.
- Rejects unknown keys and invalid types with actionable paths.
- Profile overlays merge deterministically and are re-validated.

Functional requirements
- No network usage.

Non-functional requirements
- Deterministic and fast.
"""

from __future__ import annotations

import pytest

from specgraph.config.schema import (
    BUILTIN_PROFILE_NAMES,
    ConfigSchemaVersion,
    ConfigValidationError,
    apply_profile_overlay,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def test_default_config_validates_successfully() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config is not None
    assert result.config["meta"]["schema_version"] == ConfigSchemaVersion
    assert result.config["resolver"] == {"case_sensitive": True, "min_prefix_length": 1}
    assert sorted(result.config["profiles"]) == sorted(BUILTIN_PROFILE_NAMES)


def test_unknown_key_rejection_reports_dotted_path() -> None:
    config = merge_config(default_config(), {"resolver": {"fuzzy": True}, "extra": {}})

    result = validate_config(config)

    assert not result.is_valid
    paths = {issue.path for issue in result.issues}
    assert "resolver.fuzzy" in paths
    assert "extra" in paths
    assert all(
        issue.message == "unknown field"
        for issue in result.issues
        if issue.path in {"resolver.fuzzy", "extra"}
    )


def test_type_validation_reports_structured_paths() -> None:
    config = merge_config(
        default_config(),
        {
            "resolver": {"min_prefix_length": 0, "case_sensitive": "yes"},
            "validation": {"orphans": 1},
            "coverage": {"test_dirs": ["tests", ""]},
            "observability": {"log_level": "TRACE"},
        },
    )

    result = validate_config(config)

    issues = {issue.path: issue.message for issue in result.issues}
    assert issues["resolver.min_prefix_length"] == "must be >= 1"
    assert issues["resolver.case_sensitive"] == "expected boolean, got str"
    assert issues["validation.orphans"] == "expected boolean, got int"
    assert issues["coverage.test_dirs[1]"] == "must not be empty"
    assert issues["observability.log_level"].startswith("invalid value 'TRACE'")


def test_missing_sections_are_required() -> None:
    result = validate_config({"meta": {"schema_version": ConfigSchemaVersion}})

    paths = {issue.path for issue in result.issues}
    assert {"resolver", "validation", "coverage", "observability"} <= paths


def test_schema_version_mismatch_yields_migration_guidance() -> None:
    config = merge_config(default_config(), {"meta": {"schema_version": ConfigSchemaVersion + 1}})

    result = validate_config(config)

    assert not result.is_valid
    assert result.issues[0].message == migration_guidance(ConfigSchemaVersion + 1)
    assert "newer" in result.issues[0].message


def test_builtin_profiles_overlay_expected_fields() -> None:
    strict = apply_profile_overlay(default_config(), "strict")
    fast = apply_profile_overlay(default_config(), "fast")

    assert strict["resolver"]["min_prefix_length"] == 4
    assert strict["validation"]["completeness"] is True
    assert fast["validation"]["completeness"] is False
    assert fast["resolver"]["min_prefix_length"] == 1


def test_unknown_profile_raises() -> None:
    with pytest.raises(ConfigValidationError, match="profile 'nightly' is not defined"):
        apply_profile_overlay(default_config(), "nightly")


def test_profile_overlay_sections_are_validated() -> None:
    config = merge_config(
        default_config(),
        {"profiles": {"loose": {"resolver": {"min_prefix_length": "two"}, "meta": {}}}},
    )

    result = validate_config(config)

    paths = {issue.path for issue in result.issues}
    assert "profiles.loose.resolver.min_prefix_length" in paths
    assert "profiles.loose.meta" in paths


def test_merge_config_is_deep_and_non_destructive() -> None:
    base = default_config()
    merged = merge_config(base, {"coverage": {"patterns": ["*.py"]}})

    assert merged["coverage"] == {"patterns": ["*.py"], "test_dirs": ["tests"]}
    assert base["coverage"]["patterns"] == ["*.py", "*.ts", "*.js"]


def test_assert_valid_config_raises_with_rendered_issues() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(["not", "an", "object"])

    assert "<root>: expected object, got list" in str(excinfo.value)

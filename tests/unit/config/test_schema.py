"""
rib — unit tests for config schema validation

File: tests/unit/config/test_schema.py

Purpose
- Validate strict config schema behavior, structured errors and merging.

What this test file should cover
- The built-in defaults validate and are returned as independent copies.
- Unknown keys and invalid types are reported with dotted paths.
- Work-directory relative paths cannot escape the work directory.
"""

from __future__ import annotations

import pytest

from rib.config.schema import (
    ConfigSchemaVersion,
    ConfigValidationError,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)


def _with(overlay: dict[str, object]) -> dict[str, object]:
    return merge_config(default_config(), overlay)


def _issue_paths(config: dict[str, object]) -> set[str]:
    return {issue.path for issue in validate_config(config).issues}


def test_defaults_validate() -> None:
    result = validate_config(default_config())

    assert result.is_valid
    assert result.config == default_config()
    assert result.config["logging"]["level"] == "DEBUG"
    assert result.config["build"]["scripts_dir"] == "build.d"


def test_default_config_returns_independent_copies() -> None:
    first = default_config()
    first["wrappers"]["extra_search_paths"].append("/opt/bin")

    assert default_config()["wrappers"]["extra_search_paths"] == ["/sbin", "/usr/sbin"]


def test_merge_replaces_lists_and_keeps_siblings() -> None:
    merged = _with({"wrappers": {"extra_search_paths": ["/opt/bin"]}})

    assert merged["wrappers"]["extra_search_paths"] == ["/opt/bin"]
    assert merged["wrappers"]["chroot"] == "chroot"


def test_unknown_keys_are_reported_with_paths() -> None:
    paths = _issue_paths(_with({"build": {"parallel": True}, "extras": {}}))

    assert paths == {"build.parallel", "extras"}


@pytest.mark.parametrize(
    ("overlay", "path"),
    [
        ({"build": {"seqmin": -1}}, "build.seqmin"),
        ({"build": {"seqmin": "10"}}, "build.seqmin"),
        ({"build": {"scripts_dir": "/etc/build.d"}}, "build.scripts_dir"),
        ({"build": {"scripts_dir": "../build.d"}}, "build.scripts_dir"),
        ({"logging": {"level": "TRACE"}}, "logging.level"),
        ({"logging": {"format": "yaml"}}, "logging.format"),
        ({"logging": {"log_file": "logs/build.log"}}, "logging.log_file"),
        ({"logging": {"to_stderr": "yes"}}, "logging.to_stderr"),
        ({"wrappers": {"chroot": ""}}, "wrappers.chroot"),
        ({"wrappers": {"extra_search_paths": "/sbin"}}, "wrappers.extra_search_paths"),
        ({"wrappers": {"extra_search_paths": ["/sbin", 3]}}, "wrappers.extra_search_paths[1]"),
    ],
)
def test_invalid_values_are_rejected(overlay: dict[str, object], path: str) -> None:
    assert path in _issue_paths(_with(overlay))


def test_log_level_is_normalized_to_upper_case() -> None:
    config = assert_valid_config(_with({"logging": {"level": " info "}}))

    assert config["logging"]["level"] == "INFO"


def test_missing_section_is_reported() -> None:
    config = default_config()
    del config["wrappers"]

    assert "wrappers" in _issue_paths(config)


def test_schema_version_mismatch_carries_migration_guidance() -> None:
    newer = ConfigSchemaVersion + 1
    result = validate_config(_with({"meta": {"schema_version": newer}}))

    assert not result.is_valid
    assert [issue.message for issue in result.issues] == [migration_guidance(newer)]
    assert "upgrade the rib runtime" in migration_guidance(newer)


def test_assert_valid_config_raises_with_every_issue() -> None:
    with pytest.raises(ConfigValidationError) as excinfo:
        assert_valid_config(_with({"build": {"seqmin": -5}, "logging": {"format": "xml"}}))

    assert {issue.path for issue in excinfo.value.issues} == {"build.seqmin", "logging.format"}
    assert "- build.seqmin:" in str(excinfo.value)


def test_non_mapping_root_is_rejected() -> None:
    result = validate_config(["not", "a", "table"])

    assert not result.is_valid
    assert result.config is None

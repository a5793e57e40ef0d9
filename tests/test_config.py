from __future__ import annotations

from pathlib import Path
from typing import Any, Dict
from unittest.mock import patch

import pytest

from rangekeeper.config import (
    CONFIG_FILE_NAME,
    ResolveOptions,
    _parse_section,
    _pyproject_has_section,
    _read_toml,
    discover_config_file,
    load_config,
    validate_options,
)
from rangekeeper.exceptions import ConfigError, PolicyConflictError
from rangekeeper.models.dependency import DependencySection
from rangekeeper.models.policy import TargetPolicy


@pytest.mark.unit
class TestResolveOptions:
    """Tests for the ResolveOptions dataclass."""

    def test_defaults(self) -> None:
        options = ResolveOptions()

        assert options.target is None
        assert options.resolve_target() is TargetPolicy.LATEST
        assert options.concurrency == 8
        assert options.retries == 3
        assert options.retry_backoff == 0.5
        assert options.timeout_ms is None
        assert options.package_manager == "npm"
        assert options.sections == ["dependencies", "devDependencies", "optionalDependencies"]
        assert options.source_path is None

    def test_sections_not_shared(self) -> None:
        first = ResolveOptions()
        first.sections.append("peerDependencies")

        assert "peerDependencies" not in ResolveOptions().sections

    @pytest.mark.parametrize(
        "kwargs,expected",
        [
            ({"target": "minor"}, TargetPolicy.MINOR),
            ({"target": "semver"}, TargetPolicy.SEMVER),
            ({"greatest": True}, TargetPolicy.GREATEST),
            ({"newest": True}, TargetPolicy.NEWEST),
        ],
    )
    def test_resolve_target(self, kwargs: Dict[str, Any], expected: TargetPolicy) -> None:
        assert ResolveOptions(**kwargs).resolve_target() is expected

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"target": "minor", "greatest": True},
            {"target": "latest", "newest": True},
            {"greatest": True, "newest": True},
        ],
    )
    def test_conflicting_targets(self, kwargs: Dict[str, Any]) -> None:
        with pytest.raises(PolicyConflictError) as exc_info:
            ResolveOptions(**kwargs).resolve_target()

        assert exc_info.value.options is not None
        assert len(exc_info.value.options) == 2

    def test_unknown_target(self) -> None:
        with pytest.raises(ConfigError) as exc_info:
            ResolveOptions(target="bleeding").resolve_target()

        assert exc_info.value.option == "target"

    @pytest.mark.parametrize(
        "kwargs,expected",
        [
            ({}, False),
            ({"target": "minor"}, False),
            ({"greatest": True}, True),
            ({"target": "newest"}, True),
            ({"greatest": True, "pre": False}, False),
            ({"pre": True}, True),
        ],
    )
    def test_effective_pre(self, kwargs: Dict[str, Any], expected: bool) -> None:
        assert ResolveOptions(**kwargs).effective_pre is expected

    def test_section_names_expand_aliases(self) -> None:
        options = ResolveOptions(sections=["prod", "dev"])

        assert options.section_names == [
            DependencySection.DEPENDENCIES,
            DependencySection.DEV_DEPENDENCIES,
        ]

    def test_merged_skips_none(self) -> None:
        base = ResolveOptions(target="minor", concurrency=2)

        merged = base.merged(target=None, concurrency=16, peer=True)

        assert merged.target == "minor"
        assert merged.concurrency == 16
        assert merged.peer is True
        assert base.concurrency == 2

    def test_merged_records_explicit_names(self) -> None:
        merged = ResolveOptions().merged(target=None, concurrency=16)

        assert merged.explicit == frozenset({"concurrency"})
        assert ResolveOptions().explicit == frozenset()

    def test_parsed_section_records_explicit_names(self) -> None:
        options = _parse_section(
            {"package-manager": "npm", "peer": True}, config_path="rangekeeper.toml"
        )

        assert options.explicit == frozenset({"package_manager", "peer"})
        assert "explicit" not in options.to_log_dict()

    def test_to_log_dict_excludes_source_path(self) -> None:
        data = ResolveOptions(source_path=Path("/tmp/rangekeeper.toml")).to_log_dict()

        assert "source_path" not in data
        assert data["target"] is None


@pytest.mark.unit
class TestDiscoverConfigFile:
    """Tests for configuration discovery."""

    def test_explicit_path_priority(self, tmp_path: Path) -> None:
        explicit = tmp_path / "custom.toml"
        explicit.write_text("[rangekeeper]\n", encoding="utf-8")
        (tmp_path / CONFIG_FILE_NAME).write_text("[rangekeeper]\n", encoding="utf-8")

        assert discover_config_file(explicit, cwd=tmp_path) == explicit.resolve()

    def test_explicit_path_missing(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="not found"):
            discover_config_file(tmp_path / "missing.toml")

    def test_own_file_before_pyproject(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("[rangekeeper]\n", encoding="utf-8")
        (tmp_path / "pyproject.toml").write_text("[tool.rangekeeper]\n", encoding="utf-8")

        assert discover_config_file(cwd=tmp_path) == tmp_path / CONFIG_FILE_NAME

    def test_pyproject_with_section(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            "[tool.rangekeeper]\ntarget = 'minor'\n", encoding="utf-8"
        )

        assert discover_config_file(cwd=tmp_path) == tmp_path / "pyproject.toml"

    def test_pyproject_without_section_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text("[tool.black]\n", encoding="utf-8")

        assert discover_config_file(cwd=tmp_path) is None

    def test_uses_cwd_by_default(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text("[rangekeeper]\n", encoding="utf-8")

        with patch("rangekeeper.config.Path.cwd", return_value=tmp_path):
            assert discover_config_file() == tmp_path / CONFIG_FILE_NAME

    def test_broken_pyproject_does_not_count(self, tmp_path: Path) -> None:
        path = tmp_path / "pyproject.toml"
        path.write_text("[tool.rangekeeper\n", encoding="utf-8")

        assert _pyproject_has_section(path) is False


@pytest.mark.unit
class TestLoadConfig:
    """Tests for load_config."""

    def test_no_file_returns_defaults(self, tmp_path: Path) -> None:
        assert load_config(cwd=tmp_path) == ResolveOptions()

    def test_own_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text(
            "[rangekeeper]\n"
            "target = 'minor'\n"
            "peer = true\n"
            "concurrency = 4\n"
            "reject = ['@types/*']\n",
            encoding="utf-8",
        )

        options = load_config(cwd=tmp_path)

        assert options.resolve_target() is TargetPolicy.MINOR
        assert options.peer is True
        assert options.concurrency == 4
        assert options.reject == ["@types/*"]
        assert options.source_path == tmp_path / CONFIG_FILE_NAME

    def test_pyproject_section(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            "[tool.rangekeeper]\n"
            "greatest = true\n"
            "retry-backoff = 1\n",
            encoding="utf-8",
        )

        options = load_config(cwd=tmp_path)

        assert options.resolve_target() is TargetPolicy.GREATEST
        assert options.retry_backoff == 1

    def test_empty_section_returns_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.toml"
        path.write_text("[other]\nkey = 1\n", encoding="utf-8")

        options = load_config(path)

        assert options.concurrency == 8
        assert options.source_path == path.resolve()

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / CONFIG_FILE_NAME
        path.write_text("[rangekeeper\n", encoding="utf-8")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            _read_toml(path)

    def test_conflict_in_file(self, tmp_path: Path) -> None:
        (tmp_path / CONFIG_FILE_NAME).write_text(
            "[rangekeeper]\ntarget = 'minor'\nnewest = true\n",
            encoding="utf-8",
        )

        with pytest.raises(PolicyConflictError):
            load_config(cwd=tmp_path)


@pytest.mark.unit
class TestParseSection:
    """Tests for section validation."""

    def test_unknown_keys(self) -> None:
        with pytest.raises(ConfigError, match="Unknown configuration keys: colour"):
            _parse_section({"colour": True}, config_path="x.toml")

    @pytest.mark.parametrize(
        "section,option",
        [
            ({"peer": "yes"}, "peer"),
            ({"concurrency": "4"}, "concurrency"),
            ({"concurrency": True}, "concurrency"),
            ({"retry_backoff": "fast"}, "retry_backoff"),
            ({"reject": "lodash"}, "reject"),
            ({"filter": ["ok", 3]}, "filter"),
        ],
    )
    def test_wrong_types(self, section: Dict[str, Any], option: str) -> None:
        with pytest.raises(ConfigError) as exc_info:
            _parse_section(section, config_path="x.toml")

        assert exc_info.value.option == option
        assert exc_info.value.config_path == "x.toml"

    def test_dashed_keys(self) -> None:
        options = _parse_section(
            {"remove-range": True, "engines-node": ">=18"},
            config_path="x.toml",
        )

        assert options.remove_range is True
        assert options.engines_node == ">=18"


@pytest.mark.unit
class TestValidateOptions:
    """Tests for range checks on option values."""

    def test_defaults_valid(self) -> None:
        validate_options(ResolveOptions())

    @pytest.mark.parametrize(
        "kwargs,option",
        [
            ({"concurrency": 0}, "concurrency"),
            ({"retries": -1}, "retries"),
            ({"retry_backoff": -0.1}, "retry_backoff"),
            ({"timeout_ms": 0}, "timeout_ms"),
            ({"package_manager": "pnpm"}, "package_manager"),
            ({"sections": ["bundledDependencies"]}, "sections"),
            ({"target": "bleeding"}, "target"),
        ],
    )
    def test_invalid(self, kwargs: Dict[str, Any], option: str) -> None:
        with pytest.raises(ConfigError) as exc_info:
            validate_options(ResolveOptions(**kwargs), config_path="x.toml")

        assert exc_info.value.option == option
        assert exc_info.value.details["path"] == "x.toml"

from __future__ import annotations

import json
from pathlib import Path

import pytest

from rangekeeper.config import ResolveOptions
from rangekeeper.exceptions import ConfigError, PackageNotFoundError, PolicyConflictError
from rangekeeper.managers import (
    NpmRegistry,
    StaticRegistry,
    YarnRegistry,
    get_package_manager,
)
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.models.policy import TargetPolicy

TIMED_PACKUMENT = {
    "dist-tags": {"latest": "2.0.0"},
    "versions": {"1.0.0": {}, "1.5.0": {}, "2.0.0": {}, "3.0.0-rc.1": {}},
    "time": {
        "1.0.0": "2019-01-01T00:00:00.000Z",
        "2.0.0": "2020-01-01T00:00:00.000Z",
        "1.5.0": "2021-01-01T00:00:00.000Z",
        "3.0.0-rc.1": "2020-06-01T00:00:00.000Z",
    },
}


@pytest.fixture
def registry_file(tmp_path: Path) -> Path:
    path = tmp_path / "registry.json"
    path.write_text(json.dumps({"timed": TIMED_PACKUMENT, "left-pad": "1.3.0"}))
    return path


# ============================================================================
# StaticRegistry
# ============================================================================


@pytest.mark.unit
class TestStaticRegistry:
    """Tests for the in-memory registry adapter."""

    @pytest.mark.asyncio
    async def test_bare_version_entry(self) -> None:
        registry = StaticRegistry({"left-pad": "1.3.0"})

        meta = await registry.fetch_metadata("left-pad")

        assert meta.versions == ["1.3.0"]
        assert meta.latest_tag == "1.3.0"

    @pytest.mark.asyncio
    async def test_metadata_entry_passes_through(self) -> None:
        meta = RegistryMetadata(name="x", versions=["1.0.0"])

        assert await StaticRegistry({"x": meta}).fetch_metadata("x") is meta

    @pytest.mark.asyncio
    async def test_missing_package(self) -> None:
        with pytest.raises(PackageNotFoundError) as exc_info:
            await StaticRegistry({}).fetch_metadata("ghost")

        assert exc_info.value.package_name == "ghost"

    def test_container_protocol(self) -> None:
        registry = StaticRegistry({"a": "1.0.0", "b": "2.0.0"})

        assert "a" in registry
        assert "c" not in registry
        assert len(registry) == 2

    def test_newest_needs_publish_times(self) -> None:
        assert not StaticRegistry({"a": "1.0.0"}).supports(TargetPolicy.NEWEST)
        assert StaticRegistry({"a": TIMED_PACKUMENT}).supports(TargetPolicy.NEWEST)

    def test_from_file(self, registry_file: Path) -> None:
        registry = StaticRegistry.from_file(registry_file)

        assert set(registry._metadata) == {"timed", "left-pad"}

    def test_from_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError) as exc_info:
            StaticRegistry.from_file(tmp_path / "nope.json")

        assert exc_info.value.option == "registry"

    @pytest.mark.parametrize("content", ["{broken", "[1, 2]"])
    def test_from_invalid_file(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "registry.json"
        path.write_text(content)

        with pytest.raises(ConfigError):
            StaticRegistry.from_file(path)


# ============================================================================
# Registry shortcuts (PackageManager base)
# ============================================================================


@pytest.mark.unit
class TestRegistryShortcuts:
    """Tests for latest / greatest / newest on the adapter interface."""

    @pytest.fixture
    def registry(self) -> StaticRegistry:
        return StaticRegistry({"timed": TIMED_PACKUMENT})

    @pytest.mark.asyncio
    async def test_latest(self, registry: StaticRegistry) -> None:
        assert await registry.latest("timed") == "2.0.0"

    @pytest.mark.asyncio
    async def test_greatest(self, registry: StaticRegistry) -> None:
        assert await registry.greatest("timed") == "3.0.0-rc.1"
        assert await registry.greatest("timed", ResolveOptions(pre=False)) == "2.0.0"

    @pytest.mark.asyncio
    async def test_newest(self, registry: StaticRegistry) -> None:
        assert await registry.newest("timed") == "1.5.0"

    @pytest.mark.asyncio
    async def test_alias_flags_in_options_ignored(self, registry: StaticRegistry) -> None:
        """Test a shortcut's own policy wins over alias flags in the options."""
        assert await registry.latest("timed", ResolveOptions(greatest=True)) == "2.0.0"

    def test_repr(self, registry: StaticRegistry) -> None:
        assert repr(registry) == "StaticRegistry(name='static')"


# ============================================================================
# get_package_manager
# ============================================================================


@pytest.mark.unit
class TestGetPackageManager:
    """Tests for adapter selection."""

    def test_npm(self) -> None:
        manager = get_package_manager("npm")

        assert isinstance(manager, NpmRegistry)
        assert not isinstance(manager, YarnRegistry)

    def test_yarn_with_registry(self) -> None:
        manager = get_package_manager("yarn", registry="https://mirror.example.com")

        assert isinstance(manager, YarnRegistry)
        assert manager.registry == "https://mirror.example.com/"

    def test_static_from_file(self, registry_file: Path) -> None:
        manager = get_package_manager("static", registry=str(registry_file))

        assert isinstance(manager, StaticRegistry)
        assert "left-pad" in manager

    def test_static_requires_file(self) -> None:
        with pytest.raises(ConfigError):
            get_package_manager("static")

    def test_unknown(self) -> None:
        with pytest.raises(ConfigError, match="Unknown package manager"):
            get_package_manager("pnpm")

    def test_policy_support_checked(self, tmp_path: Path) -> None:
        path = tmp_path / "registry.json"
        path.write_text(json.dumps({"a": "1.0.0"}))

        with pytest.raises(PolicyConflictError):
            get_package_manager("static", policy=TargetPolicy.NEWEST, registry=str(path))

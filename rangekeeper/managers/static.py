"""In-memory registry adapter for rangekeeper.

:class:`StaticRegistry` serves metadata from packuments held in memory
(or loaded from a JSON file). It never touches the network, which makes
it the adapter of choice for offline runs, pinned CI snapshots and tests.

Two entry shapes are accepted per package:

- a full packument (``{"dist-tags": ..., "versions": ..., "time": ...}``);
- a bare version string, meaning "this is the only and latest version".

Without publish times there is no meaningful ``newest``, so a registry
built only from bare versions does not support that target.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Union

from rangekeeper.exceptions import ConfigError, PackageNotFoundError
from rangekeeper.managers.base import PackageManager
from rangekeeper.managers.npm import parse_packument
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.models.policy import TargetPolicy
from rangekeeper.utils.logger import get_logger

logger = get_logger("managers.static")

__all__ = ["StaticRegistry"]

Entry = Union[str, Mapping[str, Any], RegistryMetadata]


class StaticRegistry(PackageManager):
    """Registry adapter backed by an in-memory mapping.

    Args:
        packages: Name → packument, bare version string, or ready-made
            :class:`RegistryMetadata`.

    Example::

        >>> registry = StaticRegistry({"left-pad": "1.3.0"})
        >>> (await registry.fetch_metadata("left-pad")).latest_tag
        '1.3.0'
    """

    name = "static"

    def __init__(self, packages: Mapping[str, Entry]) -> None:
        self._metadata: Dict[str, RegistryMetadata] = {
            package: _to_metadata(package, entry) for package, entry in packages.items()
        }

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticRegistry":
        """Load packages from a JSON file mapping names to entries.

        Raises:
            ConfigError: The file cannot be read or is not a JSON object.
        """
        file_path = Path(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigError(
                f"Cannot read static registry {file_path}: {exc}",
                config_path=str(file_path),
                option="registry",
            ) from exc
        except json.JSONDecodeError as exc:
            raise ConfigError(
                f"Invalid JSON in static registry {file_path.name}: {exc}",
                config_path=str(file_path),
                option="registry",
            ) from exc

        if not isinstance(data, dict):
            raise ConfigError(
                "Static registry must be a JSON object of package entries",
                config_path=str(file_path),
                option="registry",
            )

        logger.debug("Loaded %d package(s) from %s", len(data), file_path)
        return cls(data)

    @property
    def supported_targets(self) -> FrozenSet[TargetPolicy]:  # type: ignore[override]
        if any(meta.published_at for meta in self._metadata.values()):
            return frozenset(TargetPolicy)
        return frozenset(TargetPolicy) - {TargetPolicy.NEWEST}

    async def fetch_metadata(self, name: str) -> RegistryMetadata:
        """Return the stored metadata for *name*.

        Raises:
            PackageNotFoundError: *name* is not in the registry.
        """
        try:
            return self._metadata[name]
        except KeyError:
            raise PackageNotFoundError(
                f"Package {name!r} not found in static registry",
                package_name=name,
            ) from None

    def __contains__(self, name: object) -> bool:
        return name in self._metadata

    def __len__(self) -> int:
        return len(self._metadata)


def _to_metadata(name: str, entry: Entry) -> RegistryMetadata:
    if isinstance(entry, RegistryMetadata):
        return entry
    if isinstance(entry, str):
        return RegistryMetadata(
            name=name,
            versions=[entry],
            dist_tags={"latest": entry},
        )
    return parse_packument(name, entry)

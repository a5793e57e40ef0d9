"""
Registry metadata model for rangekeeper.

Holds what a registry knows about one package: its versions, dist-tags,
owners, per-version engine constraints, deprecations, publish times and
peer dependencies. Instances are built by the package-manager adapters
(:mod:`rangekeeper.managers`) and shared read-only for the duration of a
single resolution run.
"""

from __future__ import annotations

from datetime import datetime
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

import semantic_version

from rangekeeper.utils.version_utils import parse_version


@dataclass
class RegistryMetadata:
    """Immutable-by-convention snapshot of one registry package.

    Attributes:
        name: Package name.
        versions: Every version string the registry lists, in registry order.
        dist_tags: Tag → version (``{"latest": "4.17.21", "next": ...}``).
        owners: Maintainer identifiers.
        engines: Version → engine constraints (``{"node": ">=10"}``).
        deprecated: Version → deprecation message.
        published_at: Version → publish time.
        peer_dependencies: Version → peer name → range.
    """

    name: str
    versions: List[str] = field(default_factory=list)
    dist_tags: Dict[str, str] = field(default_factory=dict)
    owners: FrozenSet[str] = field(default_factory=frozenset)
    engines: Dict[str, Dict[str, str]] = field(default_factory=dict)
    deprecated: Dict[str, str] = field(default_factory=dict)
    published_at: Dict[str, datetime] = field(default_factory=dict)
    peer_dependencies: Dict[str, Dict[str, str]] = field(default_factory=dict)

    _parsed: Optional[List[Tuple[str, semantic_version.Version]]] = field(
        default=None,
        init=False,
        repr=False,
        compare=False,
    )

    @property
    def parsed_versions(self) -> List[Tuple[str, semantic_version.Version]]:
        """Every parseable version as ``(raw, Version)``, registry order.

        Unparseable entries are skipped silently, as npm does.
        """
        if self._parsed is None:
            parsed: List[Tuple[str, semantic_version.Version]] = []
            for raw in self.versions:
                version = parse_version(raw)
                if version is not None:
                    parsed.append((raw, version))
            self._parsed = parsed
        return self._parsed

    @property
    def latest_tag(self) -> Optional[str]:
        """The ``latest`` dist-tag, if the registry sets one."""
        return self.dist_tags.get("latest")

    def is_deprecated(self, version: str) -> bool:
        """Return True if *version* carries a deprecation message."""
        return bool(self.deprecated.get(version))

    def node_engine(self, version: str) -> Optional[str]:
        """Return the ``engines.node`` range declared by *version*."""
        engines = self.engines.get(version) or {}
        value = engines.get("node")
        return value if isinstance(value, str) and value.strip() else None

    def peers_of(self, version: Optional[str]) -> Dict[str, str]:
        """Return the peer ranges declared by *version* (empty if none)."""
        if not version:
            return {}
        return dict(self.peer_dependencies.get(version) or {})

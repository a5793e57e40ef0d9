"""
Dependency declaration model for rangekeeper.

A declaration is one ``"name": "range"`` entry of a manifest section.
"""

from __future__ import annotations

from enum import Enum
from dataclasses import dataclass

from rangekeeper.constants import SECTION_ALIASES


class DependencySection(str, Enum):
    """Manifest section a dependency is declared in."""

    DEPENDENCIES = "dependencies"
    DEV_DEPENDENCIES = "devDependencies"
    OPTIONAL_DEPENDENCIES = "optionalDependencies"
    PEER_DEPENDENCIES = "peerDependencies"

    @classmethod
    def from_name(cls, name: str) -> "DependencySection":
        """Look up a section by manifest key or short alias (``"dev"``).

        Raises:
            ValueError: The name is not a known section.
        """
        return cls(SECTION_ALIASES.get(name, name))


@dataclass(frozen=True)
class DependencyDeclaration:
    """A single declared dependency.

    Attributes:
        name: Package name exactly as declared (npm names are case-sensitive).
        declared_range: Version range string; empty means ``*``.
        section: Section the declaration came from.
    """

    name: str
    declared_range: str = "*"
    section: DependencySection = DependencySection.DEPENDENCIES

    def __str__(self) -> str:
        return f"{self.name}@{self.declared_range or '*'}"

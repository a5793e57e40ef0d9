"""
Unified data model exports for rangekeeper.

Example:
    >>> from rangekeeper.models import RegistryMetadata, TargetPolicy
"""

from __future__ import annotations

from rangekeeper.models.policy import TargetPolicy
from rangekeeper.models.range import ParsedRange, RangeKind
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.models.candidate import UpgradeCandidate
from rangekeeper.models.peer import PeerConstraint, PeerConstraintSet
from rangekeeper.models.dependency import DependencyDeclaration, DependencySection

__all__ = [
    "DependencyDeclaration",
    "DependencySection",
    "ParsedRange",
    "PeerConstraint",
    "PeerConstraintSet",
    "RangeKind",
    "RegistryMetadata",
    "TargetPolicy",
    "UpgradeCandidate",
]

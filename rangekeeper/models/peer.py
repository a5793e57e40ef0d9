"""
Peer-dependency constraint models for rangekeeper.

A peer constraint is a range that one package (the *source*) declares
another package (the *target*) must satisfy. Constraints collected during
a run are grouped per target in a :class:`PeerConstraintSet`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

from rangekeeper.utils.version_utils import satisfies


@dataclass(frozen=True)
class PeerConstraint:
    """A peer range declared by one package on another.

    Args:
        source_package: Package declaring the peer dependency.
        target_package: Package being constrained.
        required_range: Range the target must satisfy.
        source_version: Version of the source package that declares it.
    """

    source_package: str
    target_package: str
    required_range: str
    source_version: Optional[str] = None

    def admits(self, version: Optional[str]) -> bool:
        """Return True if *version* of the target satisfies this constraint."""
        return satisfies(version, self.required_range)

    def to_display_string(self) -> str:
        """Return a human-readable description of the constraint."""
        source = (
            f"{self.source_package}@{self.source_version}"
            if self.source_version
            else self.source_package
        )
        return f"{source} requires {self.target_package}@{self.required_range}"

    def to_short_string(self) -> str:
        """Return a compact constraint summary."""
        return f"{self.source_package} needs {self.required_range}"

    def to_json(self) -> Dict[str, Optional[str]]:
        """Return a JSON-serializable representation."""
        return {
            "source_package": self.source_package,
            "source_version": self.source_version,
            "target_package": self.target_package,
            "required_range": self.required_range,
        }

    def __str__(self) -> str:
        return self.to_display_string()


@dataclass
class PeerConstraintSet:
    """Peer constraints grouped by the package they constrain.

    Purely additive: constraints are never removed during a run.
    """

    constraints: Dict[str, List[PeerConstraint]] = field(default_factory=dict)

    def add(self, constraint: PeerConstraint) -> bool:
        """Add a constraint; return False if an identical one is present."""
        bucket = self.constraints.setdefault(constraint.target_package, [])
        if constraint in bucket:
            return False
        bucket.append(constraint)
        return True

    def add_declared(
        self,
        source_package: str,
        source_version: Optional[str],
        peers: Dict[str, str],
    ) -> None:
        """Merge every peer range *source_package* declares."""
        for target, required_range in peers.items():
            # A package never constrains itself
            if target == source_package:
                continue
            self.add(
                PeerConstraint(
                    source_package=source_package,
                    target_package=target,
                    required_range=required_range,
                    source_version=source_version,
                )
            )

    def constraints_for(self, name: str) -> List[PeerConstraint]:
        """Return the constraints on *name* (empty list if none)."""
        return list(self.constraints.get(name, []))

    def violations(self, name: str, version: Optional[str]) -> List[PeerConstraint]:
        """Return the constraints on *name* that *version* breaks."""
        return [c for c in self.constraints.get(name, []) if not c.admits(version)]

    def admits(self, name: str, version: Optional[str]) -> bool:
        """Return True if *version* satisfies every constraint on *name*."""
        return not self.violations(name, version)

    def __contains__(self, name: object) -> bool:
        return name in self.constraints

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.constraints.values())

    def __iter__(self) -> Iterator[PeerConstraint]:
        for bucket in self.constraints.values():
            yield from bucket

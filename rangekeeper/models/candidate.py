"""
Upgrade candidate model for rangekeeper.

An :class:`UpgradeCandidate` records, for one declared dependency, the
version the selector picked, the rewritten range (if any), whether the
declared range already admits the pick, and any per-package failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rangekeeper.models.dependency import DependencySection
from rangekeeper.models.peer import PeerConstraint
from rangekeeper.utils.version_utils import get_update_type


@dataclass
class UpgradeCandidate:
    """
    Outcome of upgrade resolution for one dependency.

    Attributes:
        name: Package name.
        current_range: Range as declared in the manifest.
        candidate_version: Version chosen by the policy, or None when no
            version qualifies (up to date) or the lookup failed.
        satisfied: True when ``current_range`` already admits the candidate.
        new_range: Rewritten range, or None when no rewrite was produced.
        section: Manifest section of the declaration.
        base_version: Version the declared range is anchored on, if any.
        error: Per-package failure (fetch, invalid or unrewritable range).
        peer_conflicts: Peer constraints that forced a demotion.
        demoted_from: Original pick before peer demotion, if demoted.
    """

    name: str
    current_range: str
    candidate_version: Optional[str] = None
    satisfied: bool = False
    new_range: Optional[str] = None
    section: DependencySection = DependencySection.DEPENDENCIES
    base_version: Optional[str] = None
    error: Optional[Exception] = None
    peer_conflicts: List[PeerConstraint] = field(default_factory=list)
    demoted_from: Optional[str] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def failed(self) -> bool:
        """True if resolution for this package failed."""
        return self.error is not None

    @property
    def changed(self) -> bool:
        """True if the rewritten range differs from the declared one."""
        return self.new_range is not None and self.new_range != self.current_range

    @property
    def was_demoted(self) -> bool:
        """True if a peer constraint lowered the original pick."""
        return self.demoted_from is not None

    @property
    def update_type(self) -> str:
        """Classify the change from the declared base to the candidate."""
        return get_update_type(self.base_version, self.candidate_version)

    # ------------------------------------------------------------------
    # Reporting & serialization
    # ------------------------------------------------------------------

    @property
    def status(self) -> str:
        """One of ``error``, ``upgrade``, ``satisfied`` or ``latest``."""
        if self.failed:
            return "error"
        if self.changed:
            return "upgrade"
        if self.candidate_version is not None and self.satisfied:
            return "satisfied"
        return "latest"

    def to_json(self) -> Dict[str, Any]:
        """
        Serialize candidate state to a JSON-compatible dictionary.

        Returns:
            JSON-safe candidate representation.
        """
        entry: Dict[str, Any] = {
            "name": self.name,
            "section": self.section.value,
            "current": self.current_range,
            "status": self.status,
        }

        if self.candidate_version is not None:
            entry["candidate"] = self.candidate_version
            entry["satisfied"] = self.satisfied
        if self.new_range is not None:
            entry["new_range"] = self.new_range
        if self.changed:
            entry["update_type"] = self.update_type
        if self.was_demoted:
            entry["demoted_from"] = self.demoted_from
        if self.peer_conflicts:
            entry["peer_conflicts"] = [c.to_json() for c in self.peer_conflicts]
        if self.error is not None:
            entry["error"] = str(self.error)

        return entry

    def __str__(self) -> str:
        """Return a human-readable candidate summary."""
        if self.failed:
            return f"{self.name} {self.current_range} (error: {self.error})"
        if self.changed:
            return f"{self.name} {self.current_range} → {self.new_range}"
        return f"{self.name} {self.current_range} (up to date)"

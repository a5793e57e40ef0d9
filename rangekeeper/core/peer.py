"""Peer-dependency reconciliation for rangekeeper.

When peer mode is on, the versions picked by the selector may break the
``peerDependencies`` ranges that *other* picked versions declare. The
reconciler makes one pass over the picks:

1. Collect a :class:`~rangekeeper.models.peer.PeerConstraintSet` from
   the peer ranges declared by every initially selected version.
2. For each pick violating a constraint on it, ask the selector again with
   those ranges as an extra constraint (``reselect``). A pick that cannot
   be satisfied is dropped (``None``).

Demoted picks do not contribute new constraints; one pass is all there
is. Names in the ignore list keep their original pick.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from rangekeeper.models.peer import PeerConstraint, PeerConstraintSet
from rangekeeper.utils.logger import get_logger

logger = get_logger("peer")

__all__ = ["ReconcileOutcome", "Reselect", "reconcile"]

#: ``reselect(name, ranges)`` re-runs the selector for *name* with every
#: range in *ranges* as an extra constraint.
Reselect = Callable[[str, List[str]], Optional[str]]


@dataclass
class ReconcileOutcome:
    """Result of one reconciliation pass.

    Attributes:
        selected: Name → final pick (``None`` when vetoed or never picked).
        constraints: Every peer constraint collected from the initial picks.
        demoted: Name → original pick, for picks that were lowered or
            dropped.
        conflicts: Name → constraints the original pick violated.
        ignored: Name → ``{"from", "to", "reason"}`` for every upgrade the
            reconciler held back; ``reason`` maps each constraining
            package to the range it requires.
    """

    selected: Dict[str, Optional[str]]
    constraints: PeerConstraintSet = field(default_factory=PeerConstraintSet)
    demoted: Dict[str, Optional[str]] = field(default_factory=dict)
    conflicts: Dict[str, List[PeerConstraint]] = field(default_factory=dict)
    ignored: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def reconcile(
    candidates: Mapping[str, Optional[str]],
    declared_peer_ranges: Mapping[str, Mapping[str, str]],
    reselect: Reselect,
    ignore: Iterable[str] = (),
    *,
    current: Optional[Mapping[str, str]] = None,
) -> ReconcileOutcome:
    """Demote picks that break a peer range declared by another pick.

    Args:
        candidates: Name → version picked by the selector (``None`` if
            nothing was picked).
        declared_peer_ranges: Name → ``{peer: range}`` declared by the
            picked version of that name.
        reselect: Selector callback used to find a compatible version.
        ignore: Names whose picks are never demoted.
        current: Name → declared range, used to fill the ``from`` field of
            ignored upgrades.

    Returns:
        A :class:`ReconcileOutcome`. Every name in *candidates* appears in
        ``selected`` in the same order.

    Example::

        >>> outcome = reconcile(
        ...     {"react": "18.2.0", "react-dom": "18.2.0", "plugin": "2.0.0"},
        ...     {"plugin": {"react": "^17.0.0"}},
        ...     lambda name, ranges: "17.0.2",
        ... )
        >>> outcome.selected["react"]
        '17.0.2'
    """
    ignored_names = set(ignore)
    declared = current or {}

    constraints = PeerConstraintSet()
    for name, version in candidates.items():
        if version is None:
            continue
        constraints.add_declared(name, version, dict(declared_peer_ranges.get(name) or {}))

    outcome = ReconcileOutcome(selected=dict(candidates), constraints=constraints)

    for name, version in candidates.items():
        if version is None or name not in constraints:
            continue

        violations = constraints.violations(name, version)
        if not violations:
            continue

        if name in ignored_names:
            logger.debug(
                "Keeping %s@%s despite peer constraints (ignored)", name, version
            )
            continue

        ranges = sorted({c.required_range for c in constraints.constraints_for(name)})
        replacement = reselect(name, ranges)

        logger.info(
            "Peer constraints on %s (%s) demote %s to %s",
            name,
            "; ".join(c.to_short_string() for c in violations),
            version,
            replacement,
        )

        outcome.selected[name] = replacement
        outcome.demoted[name] = version
        outcome.conflicts[name] = violations
        outcome.ignored[name] = {
            "from": declared.get(name),
            "to": version,
            "reason": {c.source_package: c.required_range for c in violations},
        }

    return outcome

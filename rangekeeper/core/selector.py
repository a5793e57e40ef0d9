"""Target-version selection for rangekeeper.

Given a package's registry metadata and its declared range, pick the
version a policy would upgrade to. Every policy works on the same
candidate pool:

1. **Parseable** semver versions only (junk registry entries are skipped).
2. **Not deprecated**, unless ``options.deprecated`` is set.
3. **Not prerelease**, unless prereleases are enabled (explicitly, or
   implicitly for ``greatest``/``newest``).
4. **Engine compatible**, when ``options.engines_node`` is set.
5. **Constraint compatible**, when the peer reconciler passes ranges.

``None`` means "nothing to upgrade to" and is never an error.

Typical usage::

    from rangekeeper.core.selector import select_version
    from rangekeeper.models import TargetPolicy

    version = select_version(TargetPolicy.MINOR, metadata, "~16.0.0", options)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Iterable, List, Optional, Tuple, Union

import semantic_version

from rangekeeper.core.ranges import base_version, parse_range, satisfies
from rangekeeper.exceptions import InvalidRangeError
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.models.policy import TargetPolicy
from rangekeeper.models.range import RangeKind
from rangekeeper.utils.logger import get_logger
from rangekeeper.utils.version_utils import min_version, parse_version

if TYPE_CHECKING:
    from rangekeeper.config import ResolveOptions

logger = get_logger("selector")

__all__ = ["candidate_pool", "select_version"]

Candidate = Tuple[str, semantic_version.Version]

# Versions without a publish time sort before everything else
_NEVER = datetime.min.replace(tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Candidate pool
# ---------------------------------------------------------------------------


def candidate_pool(
    metadata: RegistryMetadata,
    options: "ResolveOptions",
    *,
    constraint: Union[str, Iterable[str], None] = None,
) -> List[Candidate]:
    """Return the ``(raw, Version)`` pairs every policy chooses from.

    Args:
        metadata: Registry metadata for the package.
        options: Run options (``deprecated``, prerelease and engine filters).
        constraint: Range, or ranges, every candidate must also satisfy.

    Returns:
        Surviving versions in registry order.
    """
    include_pre = options.effective_pre
    ranges = _as_ranges(constraint)
    node = _node_floor(options.engines_node)

    pool: List[Candidate] = []
    for raw, version in metadata.parsed_versions:
        if version.prerelease and not include_pre:
            continue
        if not options.deprecated and metadata.is_deprecated(raw):
            continue
        if node is not None and not _engine_allows(metadata, raw, node):
            continue
        if ranges and not all(satisfies(raw, r) for r in ranges):
            continue
        pool.append((raw, version))

    return pool


def _as_ranges(constraint: Union[str, Iterable[str], None]) -> List[str]:
    if constraint is None:
        return []
    if isinstance(constraint, str):
        return [constraint]
    return list(constraint)


def _node_floor(engines_node: Optional[str]) -> Optional[str]:
    """Lowest node version an ``engines_node`` value (``16``, ``>=14``) allows."""
    if not engines_node:
        return None
    floor = min_version(engines_node)
    if floor is None:
        logger.warning("Ignoring unparseable engines.node value %r", engines_node)
        return None
    return str(floor)


def _engine_allows(metadata: RegistryMetadata, version: str, node: str) -> bool:
    """True when *version* declares no node engine or one admitting *node*."""
    declared = metadata.node_engine(version)
    if declared is None:
        return True
    return satisfies(node, declared)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def select_version(
    policy: TargetPolicy,
    metadata: RegistryMetadata,
    current_range: Optional[str],
    options: "ResolveOptions",
    *,
    constraint: Union[str, Iterable[str], None] = None,
) -> Optional[str]:
    """Pick the version *policy* would upgrade *current_range* to.

    Args:
        policy: Upgrade policy for the run.
        metadata: Registry metadata for the package.
        current_range: Range as declared in the manifest.
        options: Run options.
        constraint: Extra range(s) the pick must satisfy (peer mode).

    Returns:
        The raw version string as listed by the registry, or ``None`` when
        no version qualifies.

    Example::

        >>> select_version(TargetPolicy.LATEST, lodash_meta, "^3.0.0", options)
        '4.17.21'
    """
    pool = candidate_pool(metadata, options, constraint=constraint)
    if not pool:
        logger.debug("No candidate versions for %s", metadata.name)
        return None

    if policy is TargetPolicy.LATEST:
        return _select_latest(metadata, pool)

    if policy is TargetPolicy.GREATEST:
        return _greatest(metadata, pool)

    if policy is TargetPolicy.NEWEST:
        return _newest(metadata, pool)

    if policy is TargetPolicy.SEMVER:
        return _greatest(
            metadata,
            [c for c in pool if satisfies(c[0], current_range)],
        )

    if policy in (TargetPolicy.MINOR, TargetPolicy.PATCH):
        return _select_within(policy, metadata, pool, current_range)

    raise ValueError(f"Unknown target policy: {policy!r}")


def _select_latest(metadata: RegistryMetadata, pool: List[Candidate]) -> Optional[str]:
    """The ``latest`` dist-tag, or the closest surviving version below it."""
    tag = metadata.latest_tag
    tagged = parse_version(tag)

    if tagged is None:
        return _greatest(metadata, pool)

    for raw, _ in pool:
        if raw == tag:
            return raw

    # Tag was filtered out (deprecated, prerelease, engine): fall back
    return _greatest(metadata, [c for c in pool if c[1] <= tagged])


def _select_within(
    policy: TargetPolicy,
    metadata: RegistryMetadata,
    pool: List[Candidate],
    current_range: Optional[str],
) -> Optional[str]:
    """Highest version sharing the declared major (and minor for patch)."""
    try:
        parsed = parse_range(current_range)
    except InvalidRangeError:
        return None

    if parsed.kind in (RangeKind.WILDCARD, RangeKind.OPAQUE):
        return None

    base = parse_version(base_version(parsed))
    if base is None:
        return None

    if policy is TargetPolicy.MINOR:
        same_line = [c for c in pool if c[1].major == base.major]
    else:
        same_line = [
            c for c in pool if (c[1].major, c[1].minor) == (base.major, base.minor)
        ]

    winner = _greatest(metadata, same_line)
    if winner is None:
        return None

    # Only a strictly newer version is an upgrade
    if parse_version(winner) <= base:
        return None

    return winner


# ---------------------------------------------------------------------------
# Orderings
# ---------------------------------------------------------------------------


def _published(metadata: RegistryMetadata, raw: str) -> datetime:
    return metadata.published_at.get(raw) or _NEVER


def _greatest(metadata: RegistryMetadata, pool: List[Candidate]) -> Optional[str]:
    """Maximum by semver precedence; build-only ties go to the later publish."""
    if not pool:
        return None
    raw, _ = max(
        pool,
        key=lambda c: (c[1].truncate("prerelease"), _published(metadata, c[0])),
    )
    return raw


def _newest(metadata: RegistryMetadata, pool: List[Candidate]) -> Optional[str]:
    """Most recently published; ties broken by precedence."""
    if not pool:
        return None
    raw, _ = max(
        pool,
        key=lambda c: (_published(metadata, c[0]), c[1].truncate("prerelease")),
    )
    return raw

"""Upgrade orchestration for rangekeeper.

:func:`resolve` drives one resolution run end to end:

1. Validate the target policy (conflicts abort before any fetch).
2. Parse every declared range; invalid ones become per-name errors and
   non-semver declarations (dist-tags, URLs, workspace ranges) are skipped.
3. Fetch registry metadata through the bounded fetcher pool.
4. Select a candidate version per name under the policy.
5. In peer mode, demote candidates that break peer ranges declared by
   other candidates.
6. Rewrite each accepted candidate's range in the declared style and work
   out whether the declared range already admits it.
7. Compare owners against a previously known owner set, when one is given.

Per-name failures are values in the :class:`ResolutionResult`; only a
policy conflict or the global timeout aborts the run.

Typical usage::

    from rangekeeper import ResolveOptions, resolve
    from rangekeeper.managers import get_package_manager

    async with get_package_manager("npm") as registry:
        result = await resolve({"lodash": "^3.0.0"}, ResolveOptions(), registry)

    result.upgraded  # {"lodash": "^4.17.21"}
    result.latest    # {"lodash": "4.17.21"}
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Union,
)

from rangekeeper.config import ResolveOptions
from rangekeeper.core.fetcher import MetadataCache, fetch_all
from rangekeeper.core.peer import reconcile
from rangekeeper.core.ranges import base_version, parse_range, rewrite_range, satisfies
from rangekeeper.core.selector import select_version
from rangekeeper.exceptions import (
    FetchError,
    InvalidRangeError,
    PolicyConflictError,
    RangekeeperError,
    ResolutionTimeoutError,
    UnrewritableRangeError,
)
from rangekeeper.models.candidate import UpgradeCandidate
from rangekeeper.models.dependency import DependencyDeclaration, DependencySection
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.models.policy import TargetPolicy
from rangekeeper.models.range import ParsedRange, RangeKind
from rangekeeper.utils.logger import get_logger
from rangekeeper.utils.version_utils import parse_version

if TYPE_CHECKING:
    from rangekeeper.managers.base import PackageManager

logger = get_logger("resolver")

__all__ = ["MetadataProvider", "ResolutionResult", "resolve", "resolve_sync"]

#: A coroutine function ``name -> RegistryMetadata``, or any object with
#: such a ``fetch_metadata`` method (see :mod:`rangekeeper.managers`).
MetadataProvider = Union[Callable[[str], Awaitable[RegistryMetadata]], "PackageManager"]

CurrentDependencies = Mapping[str, Any]


# ---------------------------------------------------------------------------
# Result model
# ---------------------------------------------------------------------------


@dataclass
class ResolutionResult:
    """Complete result of one resolution run.

    Attributes:
        upgraded: Name → rewritten range, only where the range changed
            (in minimal mode, only where the declared range does not
            already admit the candidate).
        latest: Name → candidate version (``None`` when nothing qualified
            or the lookup failed), for every checked name.
        peer_dependencies: Name → peer ranges declared by the selected
            version. Only set in peer mode.
        satisfied: Name → whether the declared range admits the candidate.
        errors: Name → per-package failure (fetch or invalid range).
        unrewritable: Name → why a candidate could not be written back.
        ignored: Name → ``{"from", "to", "reason"}`` for upgrades held back
            by peer constraints.
        owners_changed: Name → whether the owner set differs from the
            previously known one. Only names with a known previous set.
        candidates: Full per-name detail, in input order.
    """

    upgraded: Dict[str, str] = field(default_factory=dict)
    latest: Dict[str, Optional[str]] = field(default_factory=dict)
    peer_dependencies: Optional[Dict[str, Dict[str, str]]] = None
    satisfied: Dict[str, bool] = field(default_factory=dict)
    errors: Dict[str, RangekeeperError] = field(default_factory=dict)
    unrewritable: Dict[str, UnrewritableRangeError] = field(default_factory=dict)
    ignored: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    owners_changed: Dict[str, bool] = field(default_factory=dict)
    candidates: List[UpgradeCandidate] = field(default_factory=list)

    @property
    def has_upgrades(self) -> bool:
        return bool(self.upgraded)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def get_candidate(self, name: str) -> Optional[UpgradeCandidate]:
        """Return the candidate for *name*, or ``None`` if it was not checked."""
        for candidate in self.candidates:
            if candidate.name == name:
                return candidate
        return None

    def to_json(self) -> Dict[str, Any]:
        """Serialize the result to a JSON-compatible dictionary.

        Example::

            >>> result.to_json()["upgraded"]
            {'lodash': '^4.17.21'}
        """
        data: Dict[str, Any] = {
            "upgraded": dict(self.upgraded),
            "latest": dict(self.latest),
            "satisfied": dict(self.satisfied),
            "errors": {name: str(exc) for name, exc in self.errors.items()},
        }
        if self.peer_dependencies is not None:
            data["peerDependencies"] = {
                name: dict(peers) for name, peers in self.peer_dependencies.items()
            }
        if self.unrewritable:
            data["unrewritable"] = {
                name: str(exc) for name, exc in self.unrewritable.items()
            }
        if self.ignored:
            data["ignored"] = dict(self.ignored)
        if self.owners_changed:
            data["ownersChanged"] = dict(self.owners_changed)
        return data

    def summary(self) -> str:
        """Return a short multi-line, human-readable summary.

        Example::

            >>> print(result.summary())
            Checked 3 package(s): 1 upgrade(s), 0 error(s)
              lodash ^3.0.0 → ^4.17.21
        """
        lines = [
            f"Checked {len(self.candidates)} package(s): "
            f"{len(self.upgraded)} upgrade(s), {len(self.errors)} error(s)"
        ]
        for candidate in self.candidates:
            if candidate.name in self.upgraded or candidate.failed:
                lines.append(f"  {candidate}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Input normalisation
# ---------------------------------------------------------------------------


def normalize_current(current: CurrentDependencies) -> List[DependencyDeclaration]:
    """Turn the caller's dependency mapping into declarations.

    Accepts ``name → range``, ``name → DependencyDeclaration`` or
    ``section → {name → range}`` (a ``package.json`` shape). When a name
    appears more than once the first occurrence wins.

    Raises:
        TypeError: A value is neither a string, a declaration nor a mapping.
    """
    declarations: Dict[str, DependencyDeclaration] = {}

    def _add(declaration: DependencyDeclaration) -> None:
        if declaration.name in declarations:
            logger.debug(
                "%s declared more than once; keeping %s",
                declaration.name,
                declarations[declaration.name].section.value,
            )
            return
        declarations[declaration.name] = declaration

    for key, value in current.items():
        if isinstance(value, DependencyDeclaration):
            _add(value)
        elif value is None or isinstance(value, str):
            _add(DependencyDeclaration(name=key, declared_range=value or ""))
        elif isinstance(value, Mapping):
            section = DependencySection.from_name(key)
            for name, range_text in value.items():
                _add(
                    DependencyDeclaration(
                        name=name,
                        declared_range=range_text or "",
                        section=section,
                    )
                )
        else:
            raise TypeError(
                f"Unsupported dependency value for {key!r}: {type(value).__name__}"
            )

    return list(declarations.values())


def _fetcher_for(
    metadata_provider: MetadataProvider,
    policy: TargetPolicy,
) -> Callable[[str], Awaitable[RegistryMetadata]]:
    """Return the fetch coroutine of *metadata_provider*.

    Package-manager adapters are checked for policy support first.

    Raises:
        PolicyConflictError: The adapter cannot serve *policy*.
    """
    supports = getattr(metadata_provider, "supports", None)
    if supports is not None and not supports(policy):
        raise PolicyConflictError(
            f"Package manager {getattr(metadata_provider, 'name', '?')!r} "
            f"does not support target {policy.value!r}",
            options=("target", "package_manager"),
        )
    return getattr(metadata_provider, "fetch_metadata", metadata_provider)


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


async def resolve(
    current: CurrentDependencies,
    options: Optional[ResolveOptions] = None,
    metadata_provider: MetadataProvider = None,
    *,
    previous_owners: Optional[Mapping[str, Iterable[str]]] = None,
    cache: Optional[MetadataCache] = None,
) -> ResolutionResult:
    """Resolve upgrades for the declared dependencies in *current*.

    Args:
        current: Declared dependencies (see :func:`normalize_current`).
        options: Run options; defaults to ``ResolveOptions()``.
        metadata_provider: Coroutine function ``name -> RegistryMetadata``
            or a package-manager adapter.
        previous_owners: Name → previously known owners, for owner-change
            flags.
        cache: Run-scoped metadata cache; a fresh one is used when omitted.

    Returns:
        A :class:`ResolutionResult`.

    Raises:
        PolicyConflictError: Contradictory target options, or a target the
            package manager does not support.
        ResolutionTimeoutError: ``options.timeout_ms`` elapsed.
        ValueError: No *metadata_provider* was given.
    """
    options = options or ResolveOptions()
    policy = options.resolve_target()

    if metadata_provider is None:
        raise ValueError("metadata_provider is required")
    fetch_one = _fetcher_for(metadata_provider, policy)

    declarations = normalize_current(current)
    run = _Resolution(
        declarations,
        options,
        policy,
        fetch_one,
        previous_owners=previous_owners,
        cache=cache if cache is not None else MetadataCache(),
    )

    logger.debug(
        "Resolving %d dependencies with target %s",
        len(declarations),
        policy.value,
    )

    if not options.timeout_ms:
        return await run.execute()

    try:
        return await asyncio.wait_for(run.execute(), timeout=options.timeout_ms / 1000)
    except asyncio.TimeoutError as exc:
        raise ResolutionTimeoutError(
            f"Resolution exceeded the global timeout of {options.timeout_ms} ms",
            timeout_ms=options.timeout_ms,
        ) from exc


def resolve_sync(
    current: CurrentDependencies,
    options: Optional[ResolveOptions] = None,
    metadata_provider: MetadataProvider = None,
    **kwargs: Any,
) -> ResolutionResult:
    """Blocking wrapper around :func:`resolve` for non-async callers."""
    return asyncio.run(resolve(current, options, metadata_provider, **kwargs))


class _Resolution:
    """State of one run; every step after the fetch is synchronous."""

    def __init__(
        self,
        declarations: List[DependencyDeclaration],
        options: ResolveOptions,
        policy: TargetPolicy,
        fetch_one: Callable[[str], Awaitable[RegistryMetadata]],
        *,
        previous_owners: Optional[Mapping[str, Iterable[str]]],
        cache: MetadataCache,
    ) -> None:
        self.declarations = declarations
        self.options = options
        self.policy = policy
        self.fetch_one = fetch_one
        self.previous_owners = previous_owners
        self.cache = cache

        self.result = ResolutionResult()
        self.candidates: Dict[str, UpgradeCandidate] = {}
        self.parsed: Dict[str, ParsedRange] = {}
        self.metadata: Dict[str, RegistryMetadata] = {}

    async def execute(self) -> ResolutionResult:
        to_fetch = self._parse_declarations()

        outcomes = await fetch_all(
            to_fetch,
            self.fetch_one,
            concurrency=self.options.concurrency,
            retries=self.options.retries,
            retry_backoff=self.options.retry_backoff,
            cache=self.cache,
        )

        picks = self._select(outcomes)

        if self.options.peer:
            picks = self._reconcile(picks)

        self._rewrite(picks)
        self._compare_owners()

        self.result.candidates = [
            self.candidates[d.name] for d in self.declarations
        ]

        logger.info(
            "Resolved %d package(s): %d upgrade(s), %d error(s)",
            len(self.declarations),
            len(self.result.upgraded),
            len(self.result.errors),
        )
        return self.result

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _parse_declarations(self) -> List[str]:
        """Parse declared ranges; return the names worth fetching."""
        to_fetch: List[str] = []

        for declaration in self.declarations:
            candidate = UpgradeCandidate(
                name=declaration.name,
                current_range=declaration.declared_range,
                section=declaration.section,
            )
            self.candidates[declaration.name] = candidate

            try:
                parsed = parse_range(declaration.declared_range)
            except InvalidRangeError as exc:
                exc.package_name = declaration.name
                exc.details["package"] = declaration.name
                candidate.error = exc
                self.result.errors[declaration.name] = exc
                logger.warning("%s", exc)
                continue

            self.parsed[declaration.name] = parsed
            candidate.base_version = base_version(parsed)

            if parsed.kind is RangeKind.OPAQUE:
                logger.debug(
                    "Skipping %s: %r is not a semver range",
                    declaration.name,
                    declaration.declared_range,
                )
                self.result.latest[declaration.name] = None
                self.result.unrewritable[declaration.name] = UnrewritableRangeError(
                    f"{declaration.declared_range!r} is not a version range",
                    range_text=declaration.declared_range,
                )
                continue

            to_fetch.append(declaration.name)

        return to_fetch

    def _select(self, outcomes: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        picks: Dict[str, Optional[str]] = {}

        for name, outcome in outcomes.items():
            candidate = self.candidates[name]
            self.result.latest[name] = None

            if isinstance(outcome, FetchError):
                candidate.error = outcome
                self.result.errors[name] = outcome
                continue

            self.metadata[name] = outcome
            picks[name] = select_version(
                self.policy,
                outcome,
                candidate.current_range,
                self.options,
            )

        return picks

    def _reconcile(self, picks: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
        def _reselect(name: str, ranges: List[str]) -> Optional[str]:
            return select_version(
                self.policy,
                self.metadata[name],
                self.candidates[name].current_range,
                self.options,
                constraint=ranges,
            )

        outcome = reconcile(
            picks,
            {name: self.metadata[name].peers_of(pick) for name, pick in picks.items()},
            _reselect,
            self.options.ignore_peer_dependencies_for,
            current={name: self.candidates[name].current_range for name in picks},
        )

        for name, original in outcome.demoted.items():
            candidate = self.candidates[name]
            candidate.demoted_from = original
            candidate.peer_conflicts = outcome.conflicts.get(name, [])

        self.result.ignored = outcome.ignored
        self.result.peer_dependencies = {
            name: self.metadata[name].peers_of(pick)
            for name, pick in outcome.selected.items()
            if pick is not None
        }
        return outcome.selected

    def _rewrite(self, picks: Mapping[str, Optional[str]]) -> None:
        for name, pick in picks.items():
            candidate = self.candidates[name]
            candidate.candidate_version = pick
            self.result.latest[name] = pick

            if pick is None:
                continue

            candidate.satisfied = satisfies(pick, candidate.current_range)
            self.result.satisfied[name] = candidate.satisfied

            if _is_downgrade(candidate.base_version, pick):
                logger.debug(
                    "Not rewriting %s: %s is below %s",
                    name,
                    pick,
                    candidate.current_range,
                )
                continue

            try:
                candidate.new_range = rewrite_range(
                    candidate.current_range,
                    pick,
                    include_prerelease=self.options.effective_pre,
                    remove_range=self.options.remove_range,
                )
            except UnrewritableRangeError as exc:
                logger.debug("Cannot rewrite %s: %s", name, exc)
                self.result.unrewritable[name] = exc
                continue

            if not candidate.changed:
                continue
            if self.options.minimal and candidate.satisfied:
                continue

            self.result.upgraded[name] = candidate.new_range

    def _compare_owners(self) -> None:
        if self.previous_owners is None:
            return

        for name, metadata in self.metadata.items():
            previous = self.previous_owners.get(name)
            if previous is None:
                continue
            self.result.owners_changed[name] = set(previous) != set(metadata.owners)


def _is_downgrade(base: Optional[str], pick: str) -> bool:
    """True when *pick* is strictly below the declared base version."""
    base_parsed = parse_version(base)
    pick_parsed = parse_version(pick)
    if base_parsed is None or pick_parsed is None:
        return False
    return pick_parsed < base_parsed

"""
Version comparison utilities for rangekeeper.

Helpers for parsing registry versions and classifying version changes
with Semantic Versioning 2.0 precedence rules (via ``semantic_version``).
"""

from __future__ import annotations

import re
import functools
from typing import Optional

import semantic_version

from rangekeeper.constants import WILDCARD_RANGES


def parse_version(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Parse a strict semver string, returning ``None`` when invalid.

    A leading ``v`` or ``=`` is tolerated, as npm does.

    Examples:
        >>> parse_version("1.2.3")
        Version('1.2.3')
        >>> parse_version("not-a-version") is None
        True
    """
    if not value:
        return None
    text = value.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version(text)
    except ValueError:
        return None


def coerce_version(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Parse a possibly partial version (``"1"``, ``"1.2"``) by zero-filling.

    Examples:
        >>> coerce_version("1.2")
        Version('1.2.0')
    """
    if not value:
        return None
    text = value.strip().lstrip("=v").strip()
    try:
        return semantic_version.Version.coerce(text)
    except ValueError:
        return None


def get_update_type(
    current_version: Optional[str],
    target_version: Optional[str],
) -> str:
    """Determine the semantic update type between two versions.

    Args:
        current_version: Declared base version, or ``None`` if unknown.
        target_version: Target version to compare against.

    Returns:
        One of ``"new"``, ``"same"``, ``"downgrade"``, ``"major"``,
        ``"minor"``, ``"patch"``, ``"update"`` (prerelease or build only)
        or ``"unknown"``.

    Examples:
        >>> get_update_type("1.0.0", "2.0.0")
        'major'
        >>> get_update_type(None, "1.0.0")
        'new'
        >>> get_update_type("1.2.3", "1.2.3")
        'same'
    """
    if current_version is None and target_version is None:
        return "unknown"

    if current_version is None:
        return "new"

    if target_version is None:
        return "unknown"

    current = coerce_version(current_version)
    target = coerce_version(target_version)

    if current is None or target is None:
        return "unknown"

    if target == current:
        return "same"

    if target < current:
        return "downgrade"

    if current.major != target.major:
        return "major"

    if current.minor != target.minor:
        return "minor"

    if current.patch != target.patch:
        return "patch"

    # Prerelease → release or build-only changes
    return "update"


# ---------------------------------------------------------------------------
# Range satisfaction
# ---------------------------------------------------------------------------

_OPERATOR_SPACE_RE = re.compile(r"(<=|>=|<|>|=|\^|~)\s+")
_V_PREFIX_RE = re.compile(r"(?<![\w.])[vV](?=\d)")


def normalize_range_text(range_text: Optional[str]) -> str:
    """Tidy npm range text into the form ``semantic_version.NpmSpec`` reads.

    Drops whitespace between an operator and its version (``>= 1.0``) and
    ``v`` prefixes (``^v1.2.3``).
    """
    text = (range_text or "").strip()
    text = _OPERATOR_SPACE_RE.sub(r"\1", text)
    return _V_PREFIX_RE.sub("", text)


@functools.lru_cache(maxsize=1024)
def npm_spec(text: str) -> semantic_version.NpmSpec:
    """Build (and memoize) an ``NpmSpec``; raises ``ValueError`` if invalid."""
    return semantic_version.NpmSpec(text)


def satisfies(version: Optional[str], range_text: Optional[str]) -> bool:
    """Return True if *version* is admitted by the npm range *range_text*.

    Prereleases follow npm rules: they only match a comparator that names
    a prerelease on the same ``major.minor.patch``. An empty range means
    ``*``. Unparseable versions and ranges never match.

    Examples:
        >>> satisfies("4.17.21", "^4.0.0")
        True
        >>> satisfies("2.0.0", ">=1.0.0 <2.0.0")
        False
    """
    parsed = parse_version(version)
    if parsed is None:
        return False

    text = normalize_range_text(range_text)
    if text in WILDCARD_RANGES:
        return not parsed.prerelease

    try:
        spec = npm_spec(text)
    except ValueError:
        return False

    return spec.match(parsed)


_RANGE_VERSION_RE = re.compile(r"\d+(?:\.\d+){0,2}(?:-[0-9A-Za-z.-]+)?")


def min_version(range_text: Optional[str]) -> Optional[semantic_version.Version]:
    """Return the lowest version the npm range *range_text* admits.

    Partial versions count as ranges (``"16"`` → ``16.0.0``), so this also
    reads ``engines.node`` style values. ``None`` when the range is
    unparseable or admits nothing.

    Examples:
        >>> min_version(">=14")
        Version('14.0.0')
        >>> min_version(">1.2.3 <2")
        Version('1.2.4')
        >>> min_version("<16")
        Version('0.0.0')
    """
    text = normalize_range_text(range_text)
    floor = semantic_version.Version("0.0.0")
    if text in WILDCARD_RANGES:
        return floor

    try:
        spec = npm_spec(text)
    except ValueError:
        return None

    # The minimum is always 0.0.0, a bound named in the range, or the
    # patch after an exclusive lower bound
    candidates = {floor}
    for match in _RANGE_VERSION_RE.finditer(text):
        bound = coerce_version(match.group(0))
        if bound is not None:
            candidates.update((bound, bound.next_patch()))

    for candidate in sorted(candidates):
        if spec.match(candidate):
            return candidate
    return None

"""Range parsing and rewriting for npm-style version declarations.

A declaration is classified into one of five shapes (see
:class:`~rangekeeper.models.range.RangeKind`) and, when it has one,
split into an operator and a base version. Rewriting produces a range for
a new version in the same style as the original:

==================  ===============  =====================
declared            new version      rewritten
==================  ===============  =====================
``^3.0.0``          ``4.17.21``      ``^4.17.21``
``~1.2``            ``1.4.0``        ``~1.4``
``<1.0.0``          ``4.17.21``      ``<=4.17.21``
``1.x``             ``4.17.21``      ``4.x``
``1.2``             ``4.17.21``      ``4.17``
``*``               ``4.17.21``      ``*``
``>=1 <2``          ``1.5.0``        ``>=1 <2`` (admitted)
``>=1 <2``          ``4.17.21``      :exc:`UnrewritableRangeError`
``latest``          any              :exc:`UnrewritableRangeError`
==================  ===============  =====================

Satisfaction uses ``semantic_version.NpmSpec``, which implements npm's
range grammar including its prerelease rules.
"""

from __future__ import annotations

import re
from typing import Optional

import semantic_version

from rangekeeper.models.range import ParsedRange, RangeKind
from rangekeeper.exceptions import InvalidRangeError, UnrewritableRangeError
from rangekeeper.constants import OPAQUE_PREFIXES, WILDCARD_CHARS, WILDCARD_RANGES
from rangekeeper.utils.version_utils import (
    npm_spec,
    coerce_version,
    normalize_range_text,
    parse_version,
    satisfies,
)

__all__ = [
    "base_version",
    "is_wildcard",
    "parse_range",
    "rewrite_range",
    "satisfies",
]

# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------

_PART = r"(?:\d+|[xX*])"

_SINGLE_RE = re.compile(
    r"^(?P<op><=|>=|<|>|=|\^|~)?\s*"
    r"(?P<prefix>[vV])?"
    rf"(?P<version>{_PART}(?:\.{_PART}){{0,2}}"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?)$"
)

_FIRST_VERSION_RE = re.compile(r"\d+(?:\.\d+){0,2}(?:-[0-9A-Za-z.-]+)?")

# dist-tags such as "latest", "next", "beta"; must not look like a version
_DIST_TAG_RE = re.compile(r"^(?![vV]?\d)(?![xX](?:\.|$))[A-Za-z][\w.-]*$")

# GitHub "user/repo" or "user/repo#ref" shorthand
_GITHUB_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+(?:#.+)?$")

_PATH_PREFIXES = ("./", "../", "/", "~/")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_range(range_text: Optional[str]) -> ParsedRange:
    """Classify *range_text* and split it into operator and version.

    Args:
        range_text: Declared range. ``None`` or empty means ``*``.

    Returns:
        A :class:`ParsedRange`. Dist-tags, protocol ranges, URLs, paths
        and GitHub shorthands are returned with ``kind=OPAQUE`` rather
        than raising.

    Raises:
        InvalidRangeError: The text is neither a semver range nor a
            recognised non-semver declaration.

    Example::

        >>> parse_range("^1.2.3")
        ParsedRange(raw='^1.2.3', kind=<RangeKind.PREFIXED: 'prefixed'>, operator='^', version='1.2.3', ...)
    """
    raw = range_text if range_text is not None else ""
    text = raw.strip()

    if text in WILDCARD_RANGES:
        return ParsedRange(raw=raw, kind=RangeKind.WILDCARD)

    if _is_opaque(text):
        return ParsedRange(raw=raw, kind=RangeKind.OPAQUE)

    normalized = normalize_range_text(text)

    if _is_compound(normalized):
        try:
            npm_spec(normalized)
        except ValueError as exc:
            raise InvalidRangeError(
                f"Invalid version range: {raw!r}",
                range_text=raw,
            ) from exc
        return ParsedRange(raw=raw, kind=RangeKind.COMPOUND)

    match = _SINGLE_RE.match(text)
    if match is None:
        raise InvalidRangeError(f"Invalid version range: {raw!r}", range_text=raw)

    operator = match.group("op") or ""
    prefix = match.group("prefix") or ""
    version = match.group("version")

    parts = version.split("-", 1)[0].split("+", 1)[0].split(".")
    wildcards = [part for part in parts if part in WILDCARD_CHARS]

    if parts[0] in WILDCARD_CHARS:
        # "x.1", ">=*" and friends admit everything
        return ParsedRange(raw=raw, kind=RangeKind.WILDCARD)

    if not operator and (wildcards or len(parts) < 3):
        return ParsedRange(
            raw=raw,
            kind=RangeKind.XRANGE,
            version=version,
            prefix=prefix,
            wildcard=wildcards[0] if wildcards else None,
        )

    return ParsedRange(
        raw=raw,
        kind=RangeKind.PREFIXED,
        operator=operator,
        version=version,
        prefix=prefix,
    )


def _is_opaque(text: str) -> bool:
    """Return True for declarations that are not semver ranges by design."""
    lowered = text.lower()
    if lowered.startswith(tuple(OPAQUE_PREFIXES)) or "://" in lowered:
        return True
    if text.startswith(_PATH_PREFIXES):
        return True
    if _DIST_TAG_RE.match(text):
        return True
    return bool(_GITHUB_SHORTHAND_RE.match(text))


def _is_compound(text: str) -> bool:
    """Return True for ranges made of more than one comparator."""
    return "||" in text or len(text.split()) > 1


def is_wildcard(range_text: Optional[str]) -> bool:
    """Return True if *range_text* admits any version (``*``, ``x``, empty)."""
    try:
        return parse_range(range_text).kind is RangeKind.WILDCARD
    except InvalidRangeError:
        return False


def base_version(parsed: ParsedRange) -> Optional[str]:
    """Return the version a range is anchored on, zero-filled.

    ``^1.2`` → ``1.2.0``; ``1.x`` → ``1.0.0``; for compound ranges the
    first version mentioned (``>=1.5.0 <2`` → ``1.5.0``). Wildcard and
    opaque ranges have no base.
    """
    if parsed.kind in (RangeKind.WILDCARD, RangeKind.OPAQUE):
        return None

    if parsed.kind is RangeKind.COMPOUND:
        match = _FIRST_VERSION_RE.search(parsed.raw)
        text = match.group(0) if match else None
    else:
        text = _strip_wildcards(parsed.version or "")

    coerced = coerce_version(text)
    return str(coerced) if coerced is not None else None


def _strip_wildcards(version: str) -> str:
    """Drop wildcard parts: ``1.2.x`` → ``1.2``."""
    parts = version.split(".")
    numeric = []
    for part in parts:
        if part in WILDCARD_CHARS:
            break
        numeric.append(part)
    return ".".join(numeric)


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------


def rewrite_range(
    original: Optional[str],
    new_version: str,
    *,
    include_prerelease: bool = False,
    remove_range: bool = False,
) -> str:
    """Return a range for *new_version* in the style of *original*.

    Args:
        original: Declared range.
        new_version: Version the new range must be built around.
        include_prerelease: Allow rewriting to a prerelease version.
        remove_range: Pin the exact version instead of keeping the
            operator style.

    Returns:
        The rewritten range string. Wildcards come back unchanged, and so
        do compound ranges that already admit *new_version*.

    Raises:
        InvalidRangeError: *original* is not a recognisable range.
        UnrewritableRangeError: *original* is opaque, is a compound range
            that does not admit *new_version*, or *new_version* is a
            prerelease while prereleases are disabled.
    """
    parsed = parse_range(original)
    version = parse_version(new_version)

    if version is None:
        raise UnrewritableRangeError(
            f"Not a semantic version: {new_version!r}",
            range_text=parsed.raw,
            version=new_version,
        )

    if version.prerelease and not include_prerelease:
        raise UnrewritableRangeError(
            f"Refusing to rewrite to prerelease {new_version}",
            range_text=parsed.raw,
            version=new_version,
        )

    if parsed.kind is RangeKind.OPAQUE:
        raise UnrewritableRangeError(
            f"{parsed.raw!r} is not a semver range",
            range_text=parsed.raw,
            version=new_version,
        )

    bare = str(version)

    if remove_range:
        return bare

    if parsed.kind is RangeKind.WILDCARD:
        return parsed.raw

    if parsed.kind is RangeKind.COMPOUND:
        if satisfies(bare, parsed.raw):
            return parsed.raw
        raise UnrewritableRangeError(
            f"Compound range {parsed.raw!r} does not admit {bare}",
            range_text=parsed.raw,
            version=new_version,
        )

    if parsed.kind is RangeKind.XRANGE:
        return parsed.prefix + _rewrite_xrange(parsed.version or "", version)

    written = bare
    if parsed.precision < 3 and not (version.prerelease or version.build):
        # "~1.2" stays two parts wide
        written = _rewrite_xrange(parsed.version or "", version)

    return f"{_widen(parsed.operator)}{parsed.prefix}{written}"


def _widen(operator: str) -> str:
    """Map strict bounds to inclusive ones so the new version is admitted."""
    if operator == "<":
        return "<="
    if operator == ">":
        return ">="
    return operator


def _rewrite_xrange(written: str, version: semantic_version.Version) -> str:
    """Replace the numeric parts of an x-range, keeping its precision.

    ``1.2.x`` with 4.17.21 → ``4.17.x``; ``1`` → ``4``.
    """
    replacements = [str(version.major), str(version.minor), str(version.patch)]
    parts = written.split("-", 1)[0].split("+", 1)[0].split(".")
    rewritten = [
        part if part in WILDCARD_CHARS else replacements[index]
        for index, part in enumerate(parts)
    ]
    return ".".join(rewritten)

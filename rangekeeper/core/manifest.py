"""package.json helpers for rangekeeper.

Two operations sit between a manifest and the resolver:

- :func:`get_current_dependencies` pulls the declared dependencies out of
  a parsed ``package.json`` (selected sections, name filters applied).
- :func:`upgrade_manifest_text` writes rewritten ranges back into the
  manifest *text*, touching nothing but the range strings so that
  indentation, key order and trailing newlines survive.
"""

from __future__ import annotations

import re
import json
import fnmatch
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from rangekeeper.constants import DEFAULT_SECTIONS, DEPENDENCY_SECTIONS
from rangekeeper.models.dependency import DependencyDeclaration, DependencySection
from rangekeeper.utils.logger import get_logger

logger = get_logger("manifest")

__all__ = [
    "compile_name_matcher",
    "get_current_dependencies",
    "parse_manifest",
    "upgrade_manifest_text",
]

Patterns = Union[str, Iterable[str], None]

_REGEX_PATTERN_RE = re.compile(r"^/(?P<body>.+)/(?P<flags>[imsx]*)$")
_PATTERN_SPLIT_RE = re.compile(r"[,\s]+")

_SECTION_BLOCK_RE = re.compile(
    r'(?P<head>"(?P<section>{names})"\s*:\s*\{{)(?P<body>[^{{}}]*)(?P<tail>\}})'.format(
        names="|".join(re.escape(s) for s in DEPENDENCY_SECTIONS)
    )
)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def parse_manifest(text: str) -> Dict[str, Any]:
    """Parse ``package.json`` text.

    Raises:
        ValueError: The text is not a JSON object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid package manifest: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Invalid package manifest: expected a JSON object")
    return data


def _split_patterns(patterns: Patterns) -> List[str]:
    if patterns is None:
        return []
    if isinstance(patterns, str):
        # A single /regex/ may legitimately contain commas or spaces
        if _REGEX_PATTERN_RE.match(patterns.strip()):
            return [patterns.strip()]
        return [p for p in _PATTERN_SPLIT_RE.split(patterns) if p]
    return [p for p in patterns if p]


def compile_name_matcher(patterns: Patterns) -> Optional[Callable[[str], bool]]:
    """Build a predicate matching package names against *patterns*.

    Each pattern is either a glob (``@types/*``, ``eslint-*``) or a
    ``/regex/`` with optional ``i`` / ``m`` / ``s`` / ``x`` flags. A string
    may list several patterns separated by commas or whitespace.

    Returns:
        The predicate, or ``None`` when there are no patterns.

    Example::

        >>> matcher = compile_name_matcher("react*, /^@babel\\//")
        >>> matcher("react-dom"), matcher("@babel/core"), matcher("vue")
        (True, True, False)
    """
    split = _split_patterns(patterns)
    if not split:
        return None

    regexes: List["re.Pattern[str]"] = []
    globs: List[str] = []

    for pattern in split:
        match = _REGEX_PATTERN_RE.match(pattern)
        if match:
            flags = 0
            for flag in match.group("flags"):
                flags |= getattr(re, flag.upper())
            regexes.append(re.compile(match.group("body"), flags))
        else:
            globs.append(pattern)

    def _matches(name: str) -> bool:
        if any(fnmatch.fnmatchcase(name, glob) for glob in globs):
            return True
        return any(regex.search(name) for regex in regexes)

    return _matches


def get_current_dependencies(
    manifest: Mapping[str, Any],
    *,
    sections: Optional[Iterable[Union[str, DependencySection]]] = None,
    filter: Patterns = None,
    reject: Patterns = None,
) -> Dict[str, DependencyDeclaration]:
    """Collect the declared dependencies of a parsed ``package.json``.

    Args:
        manifest: Parsed manifest.
        sections: Sections to read (names or aliases such as ``"dev"``);
            defaults to dependencies, devDependencies and
            optionalDependencies. Sections are read in precedence order
            whatever order they are given in.
        filter: Only keep names matching one of these patterns.
        reject: Drop names matching one of these patterns.

    Returns:
        Name → :class:`DependencyDeclaration`, in manifest order. A name
        declared in several sections keeps its highest-precedence entry.

    Example::

        >>> deps = get_current_dependencies(
        ...     {"dependencies": {"lodash": "^3.0.0"},
        ...      "devDependencies": {"jest": "^26.0.0"}},
        ...     reject="jest",
        ... )
        >>> list(deps)
        ['lodash']
    """
    wanted = {
        DependencySection.from_name(getattr(s, "value", s))
        for s in (sections if sections is not None else DEFAULT_SECTIONS)
    }
    include = compile_name_matcher(filter)
    exclude = compile_name_matcher(reject)

    declarations: Dict[str, DependencyDeclaration] = {}

    for section in DependencySection:
        if section not in wanted:
            continue

        entries = manifest.get(section.value) or {}
        if not isinstance(entries, Mapping):
            logger.warning("Ignoring malformed %s section", section.value)
            continue

        for name, declared in entries.items():
            if name in declarations:
                continue
            if include is not None and not include(name):
                continue
            if exclude is not None and exclude(name):
                continue
            if declared is not None and not isinstance(declared, str):
                logger.warning("Ignoring %s: range is not a string", name)
                continue

            declarations[name] = DependencyDeclaration(
                name=name,
                declared_range=declared or "",
                section=section,
            )

    return declarations


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def upgrade_manifest_text(
    text: str,
    current: Mapping[str, Any],
    upgraded: Mapping[str, str],
) -> str:
    """Replace upgraded ranges in manifest text, keeping its formatting.

    Only entries inside dependency sections whose value still equals the
    declared range are rewritten.

    Args:
        text: Original ``package.json`` text.
        current: Name → declared range (or :class:`DependencyDeclaration`).
        upgraded: Name → new range.

    Returns:
        The updated text. Unchanged if nothing matched.

    Example::

        >>> upgrade_manifest_text(
        ...     '{"dependencies": {"lodash": "^3.0.0"}}',
        ...     {"lodash": "^3.0.0"},
        ...     {"lodash": "^4.17.21"},
        ... )
        '{"dependencies": {"lodash": "^4.17.21"}}'
    """
    if not upgraded:
        return text

    declared: Dict[str, str] = {}
    for name, value in current.items():
        declared[name] = (
            value.declared_range if isinstance(value, DependencyDeclaration) else value or ""
        )

    def _rewrite_block(block: "re.Match[str]") -> str:
        body = block.group("body")
        for name, new_range in upgraded.items():
            if name not in declared:
                continue
            entry = re.compile(
                r'(?P<key>"{name}"\s*:\s*")(?P<value>{old})(?P<end>")'.format(
                    name=re.escape(_json_escape(name)),
                    old=re.escape(_json_escape(declared[name])),
                )
            )
            body = entry.sub(
                lambda m: m.group("key") + _json_escape(new_range) + m.group("end"),
                body,
            )
        return block.group("head") + body + block.group("tail")

    return _SECTION_BLOCK_RE.sub(_rewrite_block, text)


def _json_escape(value: str) -> str:
    """Escape *value* the way it appears inside a JSON string literal."""
    return json.dumps(value, ensure_ascii=False)[1:-1]

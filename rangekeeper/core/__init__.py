"""
Core functionality exports for rangekeeper.

This module provides convenient access to the resolution engine:

    from rangekeeper.core import resolve, rewrite_range, select_version

Range handling, version selection, metadata fetching, peer reconciliation
and orchestration each live in their own module; the stable entry points
are re-exported here.
"""

from __future__ import annotations

from rangekeeper.core.ranges import (
    base_version,
    is_wildcard,
    parse_range,
    rewrite_range,
    satisfies,
)
from rangekeeper.core.selector import select_version
from rangekeeper.core.fetcher import MetadataCache, fetch_all
from rangekeeper.core.peer import ReconcileOutcome, reconcile
from rangekeeper.core.resolver import ResolutionResult, resolve, resolve_sync
from rangekeeper.core.manifest import get_current_dependencies, upgrade_manifest_text

__all__ = [
    "MetadataCache",
    "ReconcileOutcome",
    "ResolutionResult",
    "base_version",
    "fetch_all",
    "get_current_dependencies",
    "is_wildcard",
    "parse_range",
    "reconcile",
    "resolve",
    "resolve_sync",
    "rewrite_range",
    "satisfies",
    "select_version",
    "upgrade_manifest_text",
]

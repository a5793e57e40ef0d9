"""
rangekeeper — upgrade resolution for npm-style dependency ranges.

rangekeeper looks at the dependencies a manifest declares, asks a package
registry which versions exist, picks an upgrade target under a policy
(latest, greatest, newest, minor, patch or semver) and rewrites each range
in the style it was declared in (``^3.0.0`` becomes ``^4.17.21``).

Features include:
    • Bounded-concurrency registry lookups with per-package failure isolation
    • Six target policies, prerelease / deprecation / engine filtering
    • Range rewriting that preserves the declared operator style
    • Peer-dependency aware demotion of conflicting upgrades

Typical usage::

    from rangekeeper import ResolveOptions, resolve
    from rangekeeper.managers import get_package_manager

    manager = get_package_manager("npm")
    result = await resolve({"lodash": "^3.0.0"}, ResolveOptions(), manager.fetch_metadata)
    result.upgraded   # {"lodash": "^4.17.21"}
"""

from __future__ import annotations

from rangekeeper.__version__ import __version__
from rangekeeper.config import ResolveOptions
from rangekeeper.core.resolver import ResolutionResult, resolve, resolve_sync

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "rangekeeper Contributors"
__license__ = "Apache-2.0"
__description__ = "Find newer versions of npm-style dependencies and rewrite their ranges."

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    "__version__",
    "ResolveOptions",
    "ResolutionResult",
    "resolve",
    "resolve_sync",
]

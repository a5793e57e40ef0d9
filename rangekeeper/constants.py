"""
Centralized constants for rangekeeper.

This module defines immutable configuration values used across rangekeeper,
including registry endpoints, resolution defaults, manifest sections, and
logging formats. All values are intended to be treated as read-only.
"""

from typing import Final, Mapping, Sequence, Tuple

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests.
USER_AGENT_TEMPLATE: Final[str] = "rangekeeper/{version}"

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Base URL of the public npm registry.
NPM_REGISTRY_URL: Final[str] = "https://registry.npmjs.org/"

#: Base URL of the yarn registry mirror.
YARN_REGISTRY_URL: Final[str] = "https://registry.yarnpkg.com/"

#: Accept header for full packuments (the abbreviated form lacks ``time``
#: and ``maintainers``).
PACKUMENT_ACCEPT: Final[str] = "application/json"

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

# ---------------------------------------------------------------------------
# Resolution defaults
# ---------------------------------------------------------------------------

#: Default target policy.
DEFAULT_TARGET: Final[str] = "latest"

#: Maximum number of registry fetches in flight at once.
DEFAULT_CONCURRENCY: Final[int] = 8

#: Retries for a transient fetch failure (attempts = retries + 1).
DEFAULT_RETRIES: Final[int] = 3

#: Base delay in seconds for exponential retry backoff.
DEFAULT_RETRY_BACKOFF: Final[float] = 0.5

#: Upper bound of the random jitter added to each backoff delay.
RETRY_JITTER: Final[float] = 0.3

#: Default package manager adapter.
DEFAULT_PACKAGE_MANAGER: Final[str] = "npm"

#: Registry adapters selectable by name.
PACKAGE_MANAGERS: Final[Sequence[str]] = ("npm", "yarn", "static")

# ---------------------------------------------------------------------------
# Manifest layout
# ---------------------------------------------------------------------------

#: Dependency sections of a package.json, in precedence order.
DEPENDENCY_SECTIONS: Final[Sequence[str]] = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
    "peerDependencies",
)

#: Sections checked when the caller does not choose.
DEFAULT_SECTIONS: Final[Sequence[str]] = (
    "dependencies",
    "devDependencies",
    "optionalDependencies",
)

#: Short aliases accepted for section names in configuration.
SECTION_ALIASES: Final[Mapping[str, str]] = {
    "prod": "dependencies",
    "dev": "devDependencies",
    "optional": "optionalDependencies",
    "peer": "peerDependencies",
}

# ---------------------------------------------------------------------------
# Range syntax
# ---------------------------------------------------------------------------

#: Characters that stand for "any" in a version part.
WILDCARD_CHARS: Final[Sequence[str]] = ("*", "x", "X")

#: Whole-range wildcards.
WILDCARD_RANGES: Final[Sequence[str]] = ("", "*", "x", "X")

#: Protocol prefixes that mark a declaration as something other than a
#: semver range.
OPAQUE_PREFIXES: Final[Sequence[str]] = (
    "workspace:",
    "npm:",
    "file:",
    "link:",
    "portal:",
    "patch:",
    "git:",
    "git+",
    "github:",
    "gitlab:",
    "bitbucket:",
    "http://",
    "https://",
)

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and component.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s %(component)-9s %(levelname)s %(message)s"

#: Environment variable holding per-component levels (``fetcher=debug,peer=info``).
LOG_LEVELS_ENV: Final[str] = "RANGEKEEPER_LOG"

#: Component loggers below ``rangekeeper`` that accept their own level.
LOG_COMPONENTS: Final[Tuple[str, ...]] = (
    "cli",
    "commands",
    "config",
    "fetcher",
    "http",
    "managers",
    "manifest",
    "peer",
    "resolver",
    "selector",
)

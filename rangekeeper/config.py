"""Resolution options and configuration file loading for rangekeeper.

:class:`ResolveOptions` is the single options object every resolution run
takes. It can be built directly, or loaded from a configuration file in
one of two formats:

- ``rangekeeper.toml``: settings under a ``[rangekeeper]`` table
- ``pyproject.toml``: settings under a ``[tool.rangekeeper]`` table

Discovery order:

1. Explicit path from ``--config`` or ``RANGEKEEPER_CONFIG``
2. ``rangekeeper.toml`` in the current directory
3. ``pyproject.toml`` with a ``[tool.rangekeeper]`` section

Configuration precedence: defaults < config file < CLI args.

Example (``rangekeeper.toml``)::

    [rangekeeper]
    target = "minor"
    peer = true
    concurrency = 4
    reject = ["@types/*"]
"""

from __future__ import annotations

import dataclasses
import tomli as tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from rangekeeper.exceptions import ConfigError, PolicyConflictError
from rangekeeper.models.dependency import DependencySection
from rangekeeper.models.policy import TargetPolicy
from rangekeeper.utils.logger import get_logger
from rangekeeper.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_PACKAGE_MANAGER,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    DEFAULT_SECTIONS,
    DEFAULT_TARGET,
    PACKAGE_MANAGERS,
)

logger = get_logger("config")

CONFIG_FILE_NAME = "rangekeeper.toml"


@dataclass
class ResolveOptions:
    """Options for one resolution run.

    All fields have defaults, so ``ResolveOptions()`` is a valid
    "upgrade everything to latest" configuration.

    Attributes:
        target: Target policy name (see :class:`TargetPolicy`). ``None``
            means ``latest``.
        greatest: Alias for ``target="greatest"``.
        newest: Alias for ``target="newest"``.
        pre: Include prereleases. ``None`` means "only for the greatest and
            newest policies".
        deprecated: Include deprecated versions.
        peer: Demote upgrades that break peer ranges of other upgrades.
        minimal: Leave out upgrades the declared range already admits.
        remove_range: Rewrite to exact versions instead of keeping the
            declared operator.
        engines_node: Node version every candidate's ``engines.node`` must
            admit.
        concurrency: Maximum registry fetches in flight.
        retries: Retries for a transient fetch failure.
        retry_backoff: Base retry delay in seconds.
        timeout_ms: Global timeout for the whole run, in milliseconds.
        ignore_peer_dependencies_for: Names never demoted in peer mode.
        sections: Manifest sections to read.
        filter: Only check names matching one of these patterns.
        reject: Skip names matching one of these patterns.
        package_manager: Registry adapter name (``npm``, ``yarn``,
            ``static``).
        registry: Registry URL override (for ``static``: a packument file).
        source_path: Config file the options were loaded from.
        explicit: Option names set by a config file or an override, as
            opposed to left at their defaults.
    """

    target: Optional[str] = None
    greatest: bool = False
    newest: bool = False
    pre: Optional[bool] = None
    deprecated: bool = False
    peer: bool = False
    minimal: bool = False
    remove_range: bool = False
    engines_node: Optional[str] = None
    concurrency: int = DEFAULT_CONCURRENCY
    retries: int = DEFAULT_RETRIES
    retry_backoff: float = DEFAULT_RETRY_BACKOFF
    timeout_ms: Optional[int] = None
    ignore_peer_dependencies_for: List[str] = field(default_factory=list)
    sections: List[str] = field(default_factory=lambda: list(DEFAULT_SECTIONS))
    filter: List[str] = field(default_factory=list)
    reject: List[str] = field(default_factory=list)
    package_manager: str = DEFAULT_PACKAGE_MANAGER
    registry: Optional[str] = None

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)
    explicit: FrozenSet[str] = field(default_factory=frozenset, repr=False, compare=False)

    # ------------------------------------------------------------------
    # Policy
    # ------------------------------------------------------------------

    def resolve_target(self) -> TargetPolicy:
        """Return the single target policy these options ask for.

        Raises:
            PolicyConflictError: More than one of ``target``, ``greatest``
                and ``newest`` is set.
            ConfigError: ``target`` is not a known policy name.
        """
        if self.target and self.greatest:
            raise PolicyConflictError(
                "Cannot specify both target and greatest; "
                "greatest is an alias for target 'greatest'",
                options=("target", "greatest"),
            )
        if self.target and self.newest:
            raise PolicyConflictError(
                "Cannot specify both target and newest; "
                "newest is an alias for target 'newest'",
                options=("target", "newest"),
            )
        if self.greatest and self.newest:
            raise PolicyConflictError(
                "Cannot specify both greatest and newest",
                options=("greatest", "newest"),
            )

        if self.newest:
            return TargetPolicy.NEWEST
        if self.greatest:
            return TargetPolicy.GREATEST

        name = self.target or DEFAULT_TARGET
        try:
            return TargetPolicy(name)
        except ValueError:
            raise ConfigError(
                f"Unknown target {name!r}; expected one of "
                f"{', '.join(TargetPolicy.choices())}",
                option="target",
            ) from None

    @property
    def effective_pre(self) -> bool:
        """Whether prereleases are candidates for this run."""
        if self.pre is not None:
            return self.pre
        return self.resolve_target() in (TargetPolicy.GREATEST, TargetPolicy.NEWEST)

    @property
    def section_names(self) -> List[DependencySection]:
        """``sections`` as enum members, aliases expanded."""
        return [DependencySection.from_name(name) for name in self.sections]

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------

    def merged(self, **overrides: Any) -> "ResolveOptions":
        """Return a copy with every non-``None`` override applied.

        Used to layer CLI arguments over file configuration.
        """
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **changes, explicit=self.explicit | frozenset(changes))

    def to_log_dict(self) -> Dict[str, Any]:
        """Return options as a dictionary for debug logging.

        Excludes the ``source_path`` and ``explicit`` metadata.
        """
        return {
            f.name: getattr(self, f.name)
            for f in dataclasses.fields(self)
            if f.name not in ("source_path", "explicit")
        }


# ---------------------------------------------------------------------------
# Discovery & loading
# ---------------------------------------------------------------------------


def discover_config_file(
    explicit_path: Optional[Path] = None,
    *,
    cwd: Optional[Path] = None,
) -> Optional[Path]:
    """Find the configuration file to load.

    Search order:

    1. ``explicit_path`` (from ``--config`` or ``RANGEKEEPER_CONFIG``)
    2. ``rangekeeper.toml`` in *cwd*
    3. ``pyproject.toml`` with a ``[tool.rangekeeper]`` section in *cwd*

    Args:
        explicit_path: Explicit config path. If provided, must exist.
        cwd: Directory to search; defaults to the current directory.

    Returns:
        Resolved path to the config file, or ``None`` if not found.

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    base = cwd or Path.cwd()

    own_file = base / CONFIG_FILE_NAME
    if own_file.is_file():
        logger.debug("Found %s: %s", CONFIG_FILE_NAME, own_file)
        return own_file

    pyproject_toml = base / "pyproject.toml"
    if pyproject_toml.is_file() and _pyproject_has_section(pyproject_toml):
        logger.debug("Found [tool.rangekeeper] in pyproject.toml: %s", pyproject_toml)
        return pyproject_toml

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    """Check if pyproject.toml contains a ``[tool.rangekeeper]`` section.

    A pyproject.toml that fails to parse simply does not count.
    """
    try:
        raw = _read_toml(path)
    except ConfigError:
        return False
    return "rangekeeper" in raw.get("tool", {})


def load_config(
    config_path: Optional[Path] = None,
    *,
    cwd: Optional[Path] = None,
) -> ResolveOptions:
    """Load and validate rangekeeper configuration.

    Args:
        config_path: Explicit path to a config file. If ``None``, uses
            auto-discovery (see :func:`discover_config_file`).
        cwd: Directory used for auto-discovery.

    Returns:
        Validated :class:`ResolveOptions` with values from file or defaults.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path, cwd=cwd)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return ResolveOptions()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get("rangekeeper", {})
    else:
        section = raw.get("rangekeeper", {})

    if not section:
        logger.debug("Config file found but no rangekeeper section, using defaults")
        return ResolveOptions(source_path=resolved)

    options = _parse_section(section, config_path=str(resolved))
    options.source_path = resolved

    logger.debug("Loaded configuration: %s", options.to_log_dict())
    return options


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

# option → (accepted types, human-readable type name)
_OPTION_TYPES: Dict[str, Tuple[Tuple[type, ...], str]] = {
    "target": ((str,), "a string"),
    "greatest": ((bool,), "a boolean"),
    "newest": ((bool,), "a boolean"),
    "pre": ((bool,), "a boolean"),
    "deprecated": ((bool,), "a boolean"),
    "peer": ((bool,), "a boolean"),
    "minimal": ((bool,), "a boolean"),
    "remove_range": ((bool,), "a boolean"),
    "engines_node": ((str,), "a string"),
    "concurrency": ((int,), "an integer"),
    "retries": ((int,), "an integer"),
    "retry_backoff": ((int, float), "a number"),
    "timeout_ms": ((int,), "an integer"),
    "ignore_peer_dependencies_for": ((list,), "a list of strings"),
    "sections": ((list,), "a list of strings"),
    "filter": ((list,), "a list of strings"),
    "reject": ((list,), "a list of strings"),
    "package_manager": ((str,), "a string"),
    "registry": ((str,), "a string"),
}


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> ResolveOptions:
    """Parse and validate a ``[rangekeeper]`` / ``[tool.rangekeeper]`` table.

    Rejects unknown keys, type mismatches and out-of-range values.

    Raises:
        ConfigError: The section is invalid.
    """
    # TOML keys may use dashes like the CLI flags
    values = {key.replace("-", "_"): value for key, value in section.items()}

    unknown = set(values) - set(_OPTION_TYPES)
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    for key, value in values.items():
        accepted, type_name = _OPTION_TYPES[key]
        # bool is an int subclass; never accept it for numeric options
        wrong_type = not isinstance(value, accepted) or (
            isinstance(value, bool) and bool not in accepted
        )
        if wrong_type:
            raise ConfigError(
                f"{key} must be {type_name}, got {type(value).__name__}",
                config_path=config_path,
                option=key,
            )
        if isinstance(value, list) and not all(isinstance(v, str) for v in value):
            raise ConfigError(
                f"{key} must be {type_name}",
                config_path=config_path,
                option=key,
            )

    options = ResolveOptions(**values, explicit=frozenset(values))
    validate_options(options, config_path=config_path)
    return options


def validate_options(options: ResolveOptions, *, config_path: Optional[str] = None) -> None:
    """Check value ranges that types alone cannot express.

    Raises:
        ConfigError: A value is out of range or names something unknown.
        PolicyConflictError: The target options contradict each other.
    """
    if options.concurrency < 1:
        raise ConfigError(
            f"concurrency must be at least 1, got {options.concurrency}",
            config_path=config_path,
            option="concurrency",
        )
    if options.retries < 0:
        raise ConfigError(
            f"retries must not be negative, got {options.retries}",
            config_path=config_path,
            option="retries",
        )
    if options.retry_backoff < 0:
        raise ConfigError(
            f"retry_backoff must not be negative, got {options.retry_backoff}",
            config_path=config_path,
            option="retry_backoff",
        )
    if options.timeout_ms is not None and options.timeout_ms <= 0:
        raise ConfigError(
            f"timeout_ms must be positive, got {options.timeout_ms}",
            config_path=config_path,
            option="timeout_ms",
        )
    if options.package_manager not in PACKAGE_MANAGERS:
        raise ConfigError(
            f"Unknown package manager {options.package_manager!r}; expected one of "
            f"{', '.join(PACKAGE_MANAGERS)}",
            config_path=config_path,
            option="package_manager",
        )
    for name in options.sections:
        try:
            DependencySection.from_name(name)
        except ValueError:
            raise ConfigError(
                f"Unknown dependency section {name!r}",
                config_path=config_path,
                option="sections",
            ) from None

    try:
        options.resolve_target()
    except ConfigError as exc:
        exc.config_path = config_path
        if config_path is not None:
            exc.details["path"] = config_path
        raise

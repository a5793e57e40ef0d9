"""Check command implementation for rangekeeper.

Reads one ``package.json``, resolves upgrades for its dependencies
against the configured registry and prints the outcome as JSON.

The command wires together:

1. **Manifest helpers** that extract the declared dependencies (sections,
   ``--filter`` and ``--reject`` applied).
2. **A package-manager adapter** chosen once from ``--package-manager``
   (auto-detected as yarn when only a ``yarn.lock`` sits next to the
   manifest).
3. **The resolver**, which fetches, selects, reconciles and rewrites.

Typical usage::

    # Ranges that would change, as {"name": "new range"}
    $ rangekeeper check

    # Whole manifest with the new ranges written in
    $ rangekeeper check --json-all path/to/package.json

    # Stay within the declared major, fail CI when anything is outdated
    $ rangekeeper check --target minor --error-level 2
"""

from __future__ import annotations

import sys
import json
import click
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from rangekeeper.config import ResolveOptions, validate_options
from rangekeeper.constants import DEFAULT_PACKAGE_MANAGER, PACKAGE_MANAGERS
from rangekeeper.context import pass_context, RangekeeperContext
from rangekeeper.core import get_current_dependencies, resolve, upgrade_manifest_text
from rangekeeper.core.manifest import parse_manifest
from rangekeeper.core.resolver import ResolutionResult
from rangekeeper.exceptions import RangekeeperError
from rangekeeper.managers import get_package_manager
from rangekeeper.models.policy import TargetPolicy
from rangekeeper.utils import get_logger, print_error, print_success, print_warning

logger = get_logger("commands.check")


@click.command()
@click.argument(
    "manifest",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default="package.json",
)
@click.option(
    "--target",
    "-t",
    type=click.Choice(TargetPolicy.choices(), case_sensitive=False),
    default=None,
    help="Upgrade policy (default: latest).",
)
@click.option("--greatest", "-g", is_flag=True, help='Alias for "--target greatest".')
@click.option("--newest", "-n", is_flag=True, help='Alias for "--target newest".')
@click.option(
    "--pre/--no-pre",
    default=None,
    help="Include prereleases (default: only with greatest/newest).",
)
@click.option("--deprecated", is_flag=True, help="Include deprecated versions.")
@click.option("--peer", is_flag=True, help="Hold back upgrades that break peer ranges.")
@click.option(
    "--ignore-peer",
    multiple=True,
    help="Package never held back by peer ranges (repeatable).",
)
@click.option("--minimal", "-m", is_flag=True, help="Skip upgrades the range already admits.")
@click.option("--remove-range", is_flag=True, help="Pin exact versions.")
@click.option("--engines-node", default=None, help="Node version candidates must support.")
@click.option("--dep", "sections", default=None, help="Comma-separated sections (prod,dev,optional,peer).")
@click.option("--filter", "-f", "filter_", default=None, help="Only check matching names (globs or /regex/).")
@click.option("--reject", "-x", default=None, help="Skip matching names (globs or /regex/).")
@click.option("--concurrency", type=int, default=None, help="Maximum concurrent registry requests.")
@click.option("--retries", type=int, default=None, help="Retries for transient registry failures.")
@click.option("--timeout", "timeout_ms", type=int, default=None, help="Global timeout in milliseconds.")
@click.option(
    "--package-manager",
    "-p",
    type=click.Choice(list(PACKAGE_MANAGERS)),
    default=None,
    help="Registry adapter (npm, yarn or static).",
)
@click.option("--registry", "-r", default=None, help="Registry URL, or packument file for static.")
@click.option(
    "--previous-owners",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file of previously known owners, to flag owner changes.",
)
@click.option(
    "--json-upgraded",
    "output",
    flag_value="upgraded",
    default=True,
    help="Print only the upgraded ranges (default).",
)
@click.option("--json-all", "output", flag_value="all", help="Print the upgraded manifest.")
@click.option("--json-result", "output", flag_value="result", help="Print the full resolution result.")
@click.option(
    "--error-level",
    "-e",
    type=click.IntRange(1, 2),
    default=1,
    help="1: exit 0 unless an error occurs. 2: exit 1 if upgrades exist.",
)
@pass_context
def check(
    ctx: RangekeeperContext,
    manifest: Path,
    target: Optional[str],
    greatest: bool,
    newest: bool,
    pre: Optional[bool],
    deprecated: bool,
    peer: bool,
    ignore_peer: tuple,
    minimal: bool,
    remove_range: bool,
    engines_node: Optional[str],
    sections: Optional[str],
    filter_: Optional[str],
    reject: Optional[str],
    concurrency: Optional[int],
    retries: Optional[int],
    timeout_ms: Optional[int],
    package_manager: Optional[str],
    registry: Optional[str],
    previous_owners: Optional[Path],
    output: str,
    error_level: int,
) -> None:
    """Report dependency upgrades for a package.json.

    Exits:
        0 on success, 1 on errors or, with ``--error-level 2``, when any
        dependency can be upgraded.
    """
    try:
        options = ctx.options.merged(
            target=target,
            # Flags can only switch on what the config file left off
            greatest=greatest or None,
            newest=newest or None,
            pre=pre,
            deprecated=deprecated or None,
            peer=peer or None,
            ignore_peer_dependencies_for=list(ignore_peer) or None,
            minimal=minimal or None,
            remove_range=remove_range or None,
            engines_node=engines_node,
            sections=_split(sections),
            filter=_split(filter_, keep_regex=True),
            reject=_split(reject, keep_regex=True),
            concurrency=concurrency,
            retries=retries,
            timeout_ms=timeout_ms,
            package_manager=package_manager or _detect_package_manager(ctx.options, manifest),
            registry=registry,
        )
        validate_options(options)
        logger.debug("Effective options: %s", options.to_log_dict())

        owners = _load_owners(previous_owners) if previous_owners else None
        result, text, current = asyncio.run(_check_async(manifest, options, owners))

        for name, error in result.errors.items():
            print_warning(f"{name}: {error}")

        click.echo(_render(output, result, text, current))

        if not result.has_upgrades and not result.has_errors:
            print_success(
                f"All dependencies match the {options.resolve_target().value} package versions"
            )

    except RangekeeperError as e:
        print_error(f"{e}")
        sys.exit(1)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        logger.exception("Error in check command")
        sys.exit(1)

    if error_level == 2 and result.has_upgrades:
        sys.exit(1)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


async def _check_async(
    manifest: Path,
    options: ResolveOptions,
    previous_owners: Optional[Dict[str, List[str]]],
) -> tuple:
    """Read *manifest* and resolve its dependencies.

    Returns:
        ``(result, manifest_text, current_dependencies)``.

    Raises:
        RangekeeperError: The manifest cannot be read or parsed, or the
            run fails as a whole.
    """
    logger.info("Checking %s...", manifest)

    try:
        text = manifest.read_text(encoding="utf-8")
        data = parse_manifest(text)
    except (OSError, ValueError) as e:
        raise RangekeeperError(f"Failed to read {manifest}: {e}") from e

    current = get_current_dependencies(
        data,
        sections=options.sections,
        filter=options.filter,
        reject=options.reject,
    )
    if not current:
        print_warning(f"No dependencies found in {manifest}")

    logger.info("Found %d dependencies", len(current))

    policy = options.resolve_target()
    async with get_package_manager(
        options.package_manager,
        policy=policy,
        registry=options.registry,
    ) as registry:
        result = await resolve(current, options, registry, previous_owners=previous_owners)

    return result, text, current


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _split(value: Optional[str], *, keep_regex: bool = False) -> Optional[List[str]]:
    """Split a comma/space separated CLI value; ``None`` when not given."""
    if value is None:
        return None
    stripped = value.strip()
    if keep_regex and stripped.startswith("/"):
        return [stripped]
    return [part for part in stripped.replace(",", " ").split() if part]


def _detect_package_manager(options: ResolveOptions, manifest: Path) -> Optional[str]:
    """Pick yarn when only a yarn.lock sits next to the manifest.

    A package manager named in the config file always wins, even when it
    is the default.
    """
    if "package_manager" in options.explicit:
        return None
    if options.package_manager != DEFAULT_PACKAGE_MANAGER:
        return None

    folder = manifest.resolve().parent
    if (folder / "yarn.lock").is_file() and not (folder / "package-lock.json").is_file():
        logger.info("Using yarn")
        return "yarn"
    return None


def _load_owners(path: Path) -> Dict[str, List[str]]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise RangekeeperError(f"Failed to read {path}: {e}") from e
    if not isinstance(data, dict):
        raise RangekeeperError(f"{path} must contain a JSON object of owner lists")
    return {name: list(owners) for name, owners in data.items()}


def _render(
    output: str,
    result: ResolutionResult,
    text: str,
    current: Dict[str, Any],
) -> str:
    if output == "all":
        return upgrade_manifest_text(text, current, result.upgraded).rstrip("\n")
    if output == "result":
        return json.dumps(result.to_json(), indent=2)
    return json.dumps(result.upgraded, indent=2)

"""
Command-line interface for rangekeeper.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from rangekeeper.config import load_config
from rangekeeper.__version__ import __version__
from rangekeeper.context import RangekeeperContext
from rangekeeper.exceptions import ConfigError, RangekeeperError
from rangekeeper.constants import LOG_LEVELS_ENV
from rangekeeper.utils.logger import get_logger, parse_component_levels, setup_logging
from rangekeeper.utils.console import print_error, print_warning, reconfigure_console
from rangekeeper.commands.check import check

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="RANGEKEEPER_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="RANGEKEEPER_COLOR",
)
@click.version_option(
    version=__version__,
    prog_name="rangekeeper",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
) -> None:
    """rangekeeper: find newer versions of npm dependencies.

    \b
    Available commands:
      rangekeeper check            Report upgrades for a package.json

    \b
    Examples:
      rangekeeper check
      rangekeeper check --target minor path/to/package.json
      rangekeeper -v check --peer

    Use ``rangekeeper COMMAND --help`` for command-specific options.
    """
    try:
        _configure_logging(verbose)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    try:
        loaded = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    rk_ctx = RangekeeperContext()
    rk_ctx.config_path = config or loaded.source_path
    rk_ctx.color = color
    rk_ctx.verbose = verbose
    rk_ctx.options = loaded
    ctx.obj = rk_ctx

    logger.debug("rangekeeper v%s", __version__)
    logger.debug("Config path: %s", rk_ctx.config_path)
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging from the verbosity flags and ``RANGEKEEPER_LOG``."""
    if verbose <= 0:
        level = logging.WARNING
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    setup_logging(
        level=level,
        verbose=verbose >= 2,
        component_levels=parse_component_levels(os.environ.get(LOG_LEVELS_ENV)),
    )
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


cli.add_command(check)


def main() -> int:
    """Main entry point for the rangekeeper CLI.

    Returns:
        Exit code:
            0   Success
            1   Application error, or upgrades found with ``--error-level 2``
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except click.exceptions.Abort:
        print_warning("Operation cancelled by user")
        return 130

    except RangekeeperError as exc:
        print_error(str(exc))
        logger.debug(
            "RangekeeperError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except KeyboardInterrupt:
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())

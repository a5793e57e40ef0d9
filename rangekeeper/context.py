"""
Shared context object for rangekeeper CLI commands.

This module defines the Click context object used to share configuration
and runtime options across CLI subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from rangekeeper.config import ResolveOptions


class RangekeeperContext:
    """Global context object for rangekeeper CLI commands.

    An instance of this class is created once per CLI invocation and
    passed to commands using Click's context mechanism.

    Attributes:
        config_path: Path to the configuration file, if one was loaded.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        options: Resolution options loaded from the configuration file;
            commands layer their own flags on top.
    """

    __slots__ = ("config_path", "verbose", "color", "options")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.options: ResolveOptions = ResolveOptions()


#: Click decorator for injecting :class:`RangekeeperContext` into commands.
pass_context = click.make_pass_decorator(RangekeeperContext, ensure=True)

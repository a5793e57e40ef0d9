"""
Executable module for rangekeeper.

Running:
    python -m rangekeeper

is equivalent to:
    rangekeeper

This module simply forwards execution to the CLI entrypoint defined in
`rangekeeper.cli`.
"""

from __future__ import annotations

import sys


def main() -> int:
    """
    Main entrypoint when executing `python -m rangekeeper`.

    Returns:
        Exit code returned by the CLI.
    """
    # Import lazily so dependencies are only loaded during CLI use
    from rangekeeper.cli import main as cli_main

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())

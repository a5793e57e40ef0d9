"""
Utility helpers for rangekeeper.

This package provides reusable utilities used across rangekeeper, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Async HTTP client utilities
- Version parsing and range satisfaction helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from rangekeeper.utils.logger import (
    disable_logging,
    get_logger,
    parse_component_levels,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from rangekeeper.utils.console import (
    print_error,
    print_success,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from rangekeeper.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from rangekeeper.utils.version_utils import (
    coerce_version,
    get_update_type,
    parse_version,
    satisfies,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "print_error",
    "print_success",
    "print_warning",
    "reconfigure_console",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "parse_component_levels",
    # HTTP
    "HTTPClient",
    # Versions
    "coerce_version",
    "get_update_type",
    "parse_version",
    "satisfies",
]

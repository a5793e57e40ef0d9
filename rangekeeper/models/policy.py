"""
Target policy model for rangekeeper.
"""

from __future__ import annotations

from enum import Enum


class TargetPolicy(str, Enum):
    """Rule used to pick the winning version of a package.

    - ``LATEST``: the registry's ``latest`` dist-tag.
    - ``NEWEST``: the most recently published version.
    - ``GREATEST``: the highest version by semver precedence.
    - ``MINOR``: the highest version with the same major.
    - ``PATCH``: the highest version with the same major and minor.
    - ``SEMVER``: the highest version the declared range already admits.
    """

    LATEST = "latest"
    NEWEST = "newest"
    GREATEST = "greatest"
    MINOR = "minor"
    PATCH = "patch"
    SEMVER = "semver"

    @classmethod
    def choices(cls) -> list:
        """Return the policy names, e.g. for CLI ``click.Choice``."""
        return [policy.value for policy in cls]

"""
Registry adapters for rangekeeper.

Exports the :class:`PackageManager` interface, its variants and
:func:`get_package_manager`, which picks a variant once per run.

Example:
    >>> from rangekeeper.managers import get_package_manager
    >>> registry = get_package_manager("yarn")
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Type

from rangekeeper.exceptions import ConfigError, PolicyConflictError
from rangekeeper.managers.base import PackageManager
from rangekeeper.managers.npm import NpmRegistry, YarnRegistry, parse_packument
from rangekeeper.managers.static import StaticRegistry
from rangekeeper.models.policy import TargetPolicy

_NETWORK_MANAGERS: Dict[str, Type[NpmRegistry]] = {
    "npm": NpmRegistry,
    "yarn": YarnRegistry,
}


def get_package_manager(
    name: str,
    *,
    policy: Optional[TargetPolicy] = None,
    registry: Optional[str] = None,
    **kwargs: Any,
) -> PackageManager:
    """Create the adapter called *name*.

    Args:
        name: ``npm``, ``yarn`` or ``static``.
        policy: Target policy of the run; checked against the adapter's
            supported targets.
        registry: Registry URL for network adapters, or the packument file
            for ``static``.
        **kwargs: Extra constructor arguments for network adapters.

    Raises:
        ConfigError: Unknown adapter, or ``static`` without a file.
        PolicyConflictError: The adapter does not support *policy*.
    """
    manager: PackageManager
    if name == "static":
        if not registry:
            raise ConfigError(
                "The static package manager needs a registry file",
                option="registry",
            )
        manager = StaticRegistry.from_file(registry)
    elif name in _NETWORK_MANAGERS:
        manager = _NETWORK_MANAGERS[name](registry, **kwargs)
    else:
        raise ConfigError(
            f"Unknown package manager {name!r}",
            option="package_manager",
        )

    if policy is not None and not manager.supports(policy):
        raise PolicyConflictError(
            f"Target {policy.value!r} is not supported by the {name} package manager",
            options=("target", "package_manager"),
        )
    return manager


__all__ = [
    "NpmRegistry",
    "PackageManager",
    "StaticRegistry",
    "YarnRegistry",
    "get_package_manager",
    "parse_packument",
]

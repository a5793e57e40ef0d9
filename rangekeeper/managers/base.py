"""Package-manager adapter interface for rangekeeper.

An adapter answers one question for the resolver: "what does the
registry know about this package?" (:meth:`PackageManager.fetch_metadata`).
It also exposes the three registry-level shortcuts ``latest``,
``greatest`` and ``newest`` and declares which target policies it can
serve.

Adapters are chosen once per run by
:func:`rangekeeper.managers.get_package_manager`; the resolver never
branches on the adapter type.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, FrozenSet, Optional

from rangekeeper.config import ResolveOptions
from rangekeeper.core.selector import select_version
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.models.policy import TargetPolicy


class PackageManager(ABC):
    """Base class for registry adapters.

    Subclasses implement :meth:`fetch_metadata` and may narrow
    :attr:`supported_targets`. Adapters are async context managers so that
    network-backed ones can own a connection pool.
    """

    #: Adapter name used in configuration (``package_manager = "npm"``).
    name: str = ""

    #: Target policies this adapter can serve.
    supported_targets: FrozenSet[TargetPolicy] = frozenset(TargetPolicy)

    @abstractmethod
    async def fetch_metadata(self, name: str) -> RegistryMetadata:
        """Return registry metadata for *name*.

        Raises:
            FetchError: The lookup failed (subclasses say how).
        """

    def supports(self, policy: TargetPolicy) -> bool:
        """Return True if this adapter can serve *policy*."""
        return policy in self.supported_targets

    # ------------------------------------------------------------------
    # Registry shortcuts
    # ------------------------------------------------------------------

    async def latest(
        self,
        name: str,
        options: Optional[ResolveOptions] = None,
    ) -> Optional[str]:
        """Version the ``latest`` policy would pick for *name*."""
        return await self._pick(TargetPolicy.LATEST, name, options)

    async def greatest(
        self,
        name: str,
        options: Optional[ResolveOptions] = None,
    ) -> Optional[str]:
        """Highest published version of *name*."""
        return await self._pick(TargetPolicy.GREATEST, name, options)

    async def newest(
        self,
        name: str,
        options: Optional[ResolveOptions] = None,
    ) -> Optional[str]:
        """Most recently published version of *name*."""
        return await self._pick(TargetPolicy.NEWEST, name, options)

    async def _pick(
        self,
        policy: TargetPolicy,
        name: str,
        options: Optional[ResolveOptions],
    ) -> Optional[str]:
        # The shortcut decides the policy; alias flags would conflict with it
        base = options or ResolveOptions()
        run_options = base.merged(target=policy.value, greatest=False, newest=False)
        metadata = await self.fetch_metadata(name)
        return select_version(policy, metadata, "*", run_options)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Release resources held by the adapter."""

    async def __aenter__(self) -> "PackageManager":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

"""npm-compatible registry adapters for rangekeeper.

Both adapters read the full *packument* (``GET <registry>/<name>``) and
turn it into :class:`~rangekeeper.models.metadata.RegistryMetadata` with
:func:`parse_packument`. They differ only in the default registry:

- :class:`NpmRegistry`: ``https://registry.npmjs.org/``
- :class:`YarnRegistry`: ``https://registry.yarnpkg.com/``

Typical usage::

    async with NpmRegistry() as registry:
        metadata = await registry.fetch_metadata("lodash")
        print(metadata.latest_tag)   # e.g. "4.17.21"
"""

from __future__ import annotations

import re
from datetime import datetime
from urllib.parse import quote
from typing import Any, Dict, FrozenSet, Mapping, Optional

from rangekeeper.constants import (
    DEFAULT_TIMEOUT,
    NPM_REGISTRY_URL,
    PACKUMENT_ACCEPT,
    YARN_REGISTRY_URL,
)
from rangekeeper.exceptions import InvalidPackageNameError, NetworkError
from rangekeeper.managers.base import PackageManager
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.utils.http import HTTPClient
from rangekeeper.utils.logger import get_logger

logger = get_logger("managers.npm")

__all__ = ["NpmRegistry", "YarnRegistry", "parse_packument", "validate_package_name"]

_MAX_NAME_LENGTH = 214

# Legacy packages may contain capitals, so case is not enforced
_NAME_RE = re.compile(r"^(?:@[A-Za-z0-9~-][A-Za-z0-9._~-]*/)?[A-Za-z0-9~-][A-Za-z0-9._~-]*$")

# Keys of the packument "time" object that are not versions
_TIME_META_KEYS = frozenset({"created", "modified", "unpublished"})


def validate_package_name(name: str) -> None:
    """Reject names the npm registry could never serve.

    Raises:
        InvalidPackageNameError: The name is empty, too long, or contains
            characters not allowed in npm package names.
    """
    if not name or len(name) > _MAX_NAME_LENGTH or not _NAME_RE.match(name):
        raise InvalidPackageNameError(
            f"Invalid package name: {name!r}",
            package_name=name,
        )


# ---------------------------------------------------------------------------
# Packument parsing
# ---------------------------------------------------------------------------


def parse_packument(name: str, data: Mapping[str, Any]) -> RegistryMetadata:
    """Transform a raw registry packument into :class:`RegistryMetadata`.

    Malformed per-version entries are skipped rather than failing the whole
    package, matching what npm itself tolerates.

    Args:
        name: Package name that was requested.
        data: Decoded packument JSON.

    Returns:
        Populated metadata.

    Raises:
        NetworkError: The packument has no ``versions`` object.

    Example::

        >>> meta = parse_packument("left-pad", {
        ...     "dist-tags": {"latest": "1.3.0"},
        ...     "versions": {"1.3.0": {}},
        ... })
        >>> meta.versions
        ['1.3.0']
    """
    versions_obj = data.get("versions")
    if not isinstance(versions_obj, Mapping):
        raise NetworkError(
            f"Malformed packument for {name!r}: missing versions",
            package_name=name,
        )

    engines: Dict[str, Dict[str, str]] = {}
    deprecated: Dict[str, str] = {}
    peers: Dict[str, Dict[str, str]] = {}

    for version, manifest in versions_obj.items():
        if not isinstance(manifest, Mapping):
            continue

        # Old packages sometimes list engines as an array of strings
        version_engines = manifest.get("engines")
        if isinstance(version_engines, Mapping):
            engines[version] = {
                str(k): str(v) for k, v in version_engines.items() if isinstance(v, str)
            }

        message = manifest.get("deprecated")
        if isinstance(message, str) and message:
            deprecated[version] = message

        version_peers = manifest.get("peerDependencies")
        if isinstance(version_peers, Mapping):
            peers[version] = {
                str(k): str(v) for k, v in version_peers.items() if isinstance(v, str)
            }

    dist_tags = data.get("dist-tags")
    maintainers = data.get("maintainers")

    return RegistryMetadata(
        name=name,
        versions=list(versions_obj),
        dist_tags=(
            {str(k): str(v) for k, v in dist_tags.items()}
            if isinstance(dist_tags, Mapping)
            else {}
        ),
        owners=_parse_owners(maintainers),
        engines=engines,
        deprecated=deprecated,
        published_at=_parse_times(data.get("time")),
        peer_dependencies=peers,
    )


def _parse_owners(maintainers: Any) -> FrozenSet[str]:
    """Maintainer names; old packuments list plain strings."""
    if not isinstance(maintainers, list):
        return frozenset()

    owners = set()
    for entry in maintainers:
        if isinstance(entry, Mapping) and entry.get("name"):
            owners.add(str(entry["name"]))
        elif isinstance(entry, str) and entry:
            # "name <email>" form
            owners.add(entry.split("<", 1)[0].strip())
    return frozenset(owners)


def _parse_times(times: Any) -> Dict[str, datetime]:
    if not isinstance(times, Mapping):
        return {}

    published: Dict[str, datetime] = {}
    for version, stamp in times.items():
        if version in _TIME_META_KEYS or not isinstance(stamp, str):
            continue
        parsed = _parse_timestamp(stamp)
        if parsed is not None:
            published[version] = parsed
    return published


def _parse_timestamp(value: str) -> Optional[datetime]:
    """Parse the registry's ISO-8601 timestamps (``...T15:42:16.891Z``)."""
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Ignoring unparseable publish time %r", value)
        return None


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------


class NpmRegistry(PackageManager):
    """Adapter for the npm registry (or any npm-compatible mirror).

    Args:
        registry: Registry base URL; defaults to the public npm registry.
        http_client: Pre-configured client. When omitted the adapter
            creates one on first use and closes it in :meth:`close`.
        timeout: Request timeout in seconds for an owned client.
    """

    name = "npm"
    default_registry = NPM_REGISTRY_URL

    def __init__(
        self,
        registry: Optional[str] = None,
        *,
        http_client: Optional[HTTPClient] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ) -> None:
        self.registry = (registry or self.default_registry).rstrip("/") + "/"
        self.timeout = timeout
        self._http = http_client
        self._owns_client = http_client is None

    def packument_url(self, name: str) -> str:
        """Registry URL of *name*'s packument; scoped names keep their ``@``."""
        validate_package_name(name)
        return self.registry + quote(name, safe="@")

    async def fetch_metadata(self, name: str) -> RegistryMetadata:
        """Fetch and parse the packument for *name*.

        Raises:
            InvalidPackageNameError: *name* is not a valid npm name.
            PackageNotFoundError: The registry answered 404.
            TransientFetchError: Timeout, connection failure, 429 or 5xx.
            NetworkError: Any other failure, including malformed bodies.
        """
        url = self.packument_url(name)
        client = self._client()

        logger.debug("Fetching %s", url)
        try:
            data = await client.get_json(url)
        except NetworkError as exc:
            if exc.package_name is None:
                exc.package_name = name
                exc.details["package"] = name
            raise

        return parse_packument(name, data)

    def _client(self) -> HTTPClient:
        if self._http is None:
            self._http = HTTPClient(
                timeout=self.timeout,
                headers={"Accept": PACKUMENT_ACCEPT},
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None and self._owns_client:
            await self._http.close()
            self._http = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(registry={self.registry!r})"


class YarnRegistry(NpmRegistry):
    """Adapter for the yarn registry mirror."""

    name = "yarn"
    default_registry = YARN_REGISTRY_URL

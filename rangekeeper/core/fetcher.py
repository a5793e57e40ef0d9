"""Concurrency-bounded registry metadata retrieval for rangekeeper.

:func:`fetch_all` retrieves metadata for many package names at once:

- an :class:`asyncio.Semaphore` caps the number of in-flight fetches;
- transient failures (timeouts, connection errors, 5xx, 429) are retried
  with exponential backoff plus jitter;
- a failure for one name never affects the others: it is returned as a
  :class:`~rangekeeper.exceptions.FetchError` value in that name's slot;
- a :class:`MetadataCache` shared across calls of the same run guarantees
  each name is fetched at most once.

Typical usage::

    from rangekeeper.core.fetcher import MetadataCache, fetch_all

    cache = MetadataCache()
    results = await fetch_all(["lodash", "react"], registry.fetch_metadata,
                              concurrency=8, cache=cache)
    for name, outcome in results.items():
        if isinstance(outcome, FetchError):
            ...
"""

from __future__ import annotations

import random
import asyncio
from typing import (
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Union,
)

import httpx

from rangekeeper.constants import (
    DEFAULT_CONCURRENCY,
    DEFAULT_RETRIES,
    DEFAULT_RETRY_BACKOFF,
    RETRY_JITTER,
)
from rangekeeper.exceptions import FetchError, TransientFetchError
from rangekeeper.models.metadata import RegistryMetadata
from rangekeeper.utils.logger import get_logger

logger = get_logger("fetcher")

__all__ = ["FetchOne", "FetchOutcome", "MetadataCache", "fetch_all", "fetch_with_retry"]

FetchOne = Callable[[str], Awaitable[RegistryMetadata]]
FetchOutcome = Union[RegistryMetadata, FetchError]

_RETRYABLE = (TransientFetchError, httpx.TransportError, asyncio.TimeoutError)


# ---------------------------------------------------------------------------
# Run-scoped cache
# ---------------------------------------------------------------------------


class MetadataCache:
    """Name → metadata store shared by every fetch of one resolution run.

    Only successful lookups are stored; a failed name is fetched again if
    a later call asks for it.

    Example::

        >>> cache = MetadataCache()
        >>> cache.put("lodash", RegistryMetadata(name="lodash"))
        >>> "lodash" in cache
        True
    """

    def __init__(self) -> None:
        self._entries: Dict[str, RegistryMetadata] = {}

    def get(self, name: str) -> Optional[RegistryMetadata]:
        return self._entries.get(name)

    def put(self, name: str, metadata: RegistryMetadata) -> None:
        """Store *metadata* under the name it was requested by."""
        self._entries[name] = metadata

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)


# ---------------------------------------------------------------------------
# Single fetch with retry
# ---------------------------------------------------------------------------


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, _RETRYABLE):
        return True
    return isinstance(exc, FetchError) and exc.retryable


def _backoff_delay(
    attempt: int,
    retry_backoff: float,
    retry_after: Optional[float] = None,
) -> float:
    """Seconds to wait before retry number ``attempt + 1``."""
    if retry_after is not None and retry_after >= 0:
        return retry_after
    return retry_backoff * (2**attempt) + random.uniform(0.0, RETRY_JITTER)


def _as_fetch_error(name: str, exc: Exception) -> FetchError:
    """Wrap any exception escaping a fetch into a :class:`FetchError`."""
    if isinstance(exc, FetchError):
        if exc.package_name is None:
            exc.package_name = name
            exc.details.setdefault("package", name)
        return exc

    if isinstance(exc, (httpx.TransportError, asyncio.TimeoutError)):
        return TransientFetchError(
            f"Fetching '{name}' failed: {exc.__class__.__name__}: {exc}",
            package_name=name,
        )

    return FetchError(
        f"Fetching '{name}' failed: {exc.__class__.__name__}: {exc}",
        package_name=name,
    )


async def fetch_with_retry(
    name: str,
    fetch_one: FetchOne,
    *,
    retries: int = DEFAULT_RETRIES,
    retry_backoff: float = DEFAULT_RETRY_BACKOFF,
) -> RegistryMetadata:
    """Call ``fetch_one(name)``, retrying transient failures.

    Args:
        name: Package name.
        fetch_one: Coroutine function returning metadata for one name.
        retries: Maximum additional attempts after the first.
        retry_backoff: Base delay in seconds; doubles on every attempt.

    Returns:
        The fetched metadata.

    Raises:
        FetchError: The last failure, once retries are exhausted or the
            failure is terminal (not found, invalid name, anything
            unexpected).
    """
    attempt = 0

    while True:
        try:
            return await fetch_one(name)
        except Exception as exc:  # noqa: BLE001 - classified below
            if not _is_retryable(exc) or attempt >= retries:
                error = _as_fetch_error(name, exc)
                if error is exc:
                    raise
                raise error from exc

            delay = _backoff_delay(
                attempt, retry_backoff, getattr(exc, "retry_after", None)
            )
            logger.debug(
                "Fetch of %s failed (%d/%d): %s; retrying in %.2fs",
                name,
                attempt + 1,
                retries + 1,
                exc,
                delay,
            )
            await asyncio.sleep(delay)
            attempt += 1


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


async def fetch_all(
    names: Iterable[str],
    fetch_one: FetchOne,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    retries: int = DEFAULT_RETRIES,
    retry_backoff: float = DEFAULT_RETRY_BACKOFF,
    cache: Optional[MetadataCache] = None,
) -> Dict[str, FetchOutcome]:
    """Fetch metadata for every name with at most *concurrency* in flight.

    Args:
        names: Package names; duplicates are fetched once.
        fetch_one: Coroutine function returning metadata for one name.
        concurrency: Maximum simultaneous fetches (at least 1).
        retries: Retries per name for transient failures.
        retry_backoff: Base backoff delay in seconds.
        cache: Run-scoped cache; a private one is used when omitted.

    Returns:
        Name → metadata or :class:`FetchError`, in the order of *names*.

    Raises:
        ValueError: *concurrency* is below 1.

    Example::

        >>> results = await fetch_all(["a", "b"], fetch_one, concurrency=2)
        >>> list(results)
        ['a', 'b']
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    store = cache if cache is not None else MetadataCache()
    semaphore = asyncio.Semaphore(concurrency)

    unique: List[str] = list(dict.fromkeys(names))
    # Pre-allocated slots keep results in input order whatever the
    # completion order
    slots: List[Optional[FetchOutcome]] = [None] * len(unique)

    async def _fetch_slot(index: int, name: str) -> None:
        # Fast path: already fetched earlier in this run
        cached = store.get(name)
        if cached is not None:
            slots[index] = cached
            return

        async with semaphore:
            cached = store.get(name)
            if cached is not None:
                slots[index] = cached
                return

            try:
                metadata = await fetch_with_retry(
                    name,
                    fetch_one,
                    retries=retries,
                    retry_backoff=retry_backoff,
                )
            except FetchError as exc:
                logger.warning("Could not fetch metadata for %s: %s", name, exc)
                slots[index] = exc
                return

            store.put(name, metadata)
            slots[index] = metadata

    await asyncio.gather(*(_fetch_slot(i, name) for i, name in enumerate(unique)))

    logger.debug(
        "Fetched %d package(s), %d failed",
        len(unique),
        sum(isinstance(s, FetchError) for s in slots),
    )
    return {name: outcome for name, outcome in zip(unique, slots) if outcome is not None}

"""
HTTP client utilities for rangekeeper.

This module provides an asynchronous HTTP client with rate limiting and
registry-specific error classification. Each call makes exactly one
attempt; retrying is the job of the fetcher pool
(:mod:`rangekeeper.core.fetcher`), which knows from the raised error
class whether another attempt is worthwhile:

- :class:`~rangekeeper.exceptions.TransientFetchError`: timeouts,
  connection failures, 5xx responses and 429 rate limiting.
- :class:`~rangekeeper.exceptions.PackageNotFoundError`: 404.
- :class:`~rangekeeper.exceptions.NetworkError`: any other 4xx or a
  malformed body; terminal.
"""

from __future__ import annotations

import time
import httpx
import asyncio
from typing import Any, Dict, Mapping, Optional, cast

from rangekeeper.utils.logger import get_logger
from rangekeeper.__version__ import __version__
from rangekeeper.exceptions import (
    NetworkError,
    PackageNotFoundError,
    TransientFetchError,
)
from rangekeeper.constants import DEFAULT_TIMEOUT, USER_AGENT_TEMPLATE

logger = get_logger("http")


class HTTPClient:
    """Asynchronous HTTP client with rate limiting and error classification.

    Args:
        timeout: Request timeout in seconds.
        rate_limit_delay: Minimum delay (seconds) between requests.
        verify_ssl: Whether to verify SSL certificates.
        user_agent: Custom User-Agent header value.
        headers: Extra headers sent with every request.

    Example:
        >>> async with HTTPClient() as client:
        ...     data = await client.get_json("https://registry.npmjs.org/lodash")
    """

    def __init__(
        self,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        rate_limit_delay: float = 0.0,
        verify_ssl: bool = True,
        user_agent: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.timeout = timeout
        self.rate_limit_delay = rate_limit_delay
        self.verify_ssl = verify_ssl
        self.user_agent = user_agent or USER_AGENT_TEMPLATE.format(version=__version__)
        self.headers: Dict[str, str] = dict(headers) if headers else {}

        self._client: Optional[httpx.AsyncClient] = None
        self._last_request_time: float = 0.0
        self._rate_limit_lock = asyncio.Lock()

    async def __aenter__(self) -> "HTTPClient":
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()

    async def _ensure_client(self) -> None:
        """Initialize the underlying httpx client if needed."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                http2=True,
                verify=self.verify_ssl,
                follow_redirects=True,
                headers={"User-Agent": self.user_agent, **self.headers},
            )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _rate_limit(self) -> None:
        """Enforce a minimum delay between outgoing requests."""
        if self.rate_limit_delay <= 0:
            return

        async with self._rate_limit_lock:
            now = time.time()
            elapsed = now - self._last_request_time

            if elapsed < self.rate_limit_delay:
                delay = self.rate_limit_delay - elapsed
                self._last_request_time = now + delay
                await asyncio.sleep(delay)
            else:
                self._last_request_time = now

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Perform a single GET request and classify failures.

        Raises:
            TransientFetchError: Timeout, transport failure, 429 or 5xx.
            PackageNotFoundError: The server answered 404.
            NetworkError: Any other 4xx status.
        """
        await self._ensure_client()
        assert self._client is not None

        clean_url = url.strip().strip("\"'")
        await self._rate_limit()

        try:
            response = await self._client.get(clean_url, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransientFetchError(
                f"Request timed out: {clean_url}",
                url=clean_url,
            ) from exc
        except httpx.TransportError as exc:
            raise TransientFetchError(
                f"Network error for {clean_url}: {exc}",
                url=clean_url,
            ) from exc

        status = response.status_code

        if status == 429:
            raise TransientFetchError(
                f"Rate limited by {clean_url}",
                url=clean_url,
                status_code=status,
                retry_after=_parse_retry_after(response.headers.get("Retry-After")),
            )

        if status == 404:
            raise PackageNotFoundError(
                f"Resource not found: {clean_url}",
                url=clean_url,
                status_code=status,
            )

        if status >= 500:
            raise TransientFetchError(
                f"HTTP {status} error for {clean_url}",
                url=clean_url,
                status_code=status,
                response_body=response.text,
            )

        if status >= 400:
            raise NetworkError(
                f"HTTP {status} error for {clean_url}",
                url=clean_url,
                status_code=status,
                response_body=response.text,
            )

        return response

    async def get_json(self, url: str, **kwargs: Any) -> Dict[str, Any]:
        """Fetch a URL and parse the response as a JSON object."""
        response = await self.get(url, **kwargs)

        try:
            data = response.json()
        except ValueError as exc:
            raise NetworkError(
                f"Invalid JSON response from {url}",
                url=url,
                response_body=response.text,
            ) from exc

        if not isinstance(data, dict):
            raise NetworkError(
                f"Expected JSON object from {url}",
                url=url,
                response_body=response.text,
            )

        return cast(Dict[str, Any], data)


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a ``Retry-After`` header given in seconds."""
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        logger.debug("Ignoring non-numeric Retry-After header: %r", value)
        return None

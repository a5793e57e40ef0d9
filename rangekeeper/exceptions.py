"""
Custom exception hierarchy for rangekeeper.

All exceptions inherit from :class:`RangekeeperError` and support optional
structured metadata via the ``details`` attribute to improve diagnostics
and logging.

Two kinds of failure exist during a resolution run:

- **Per-package** failures (:class:`InvalidRangeError`, :class:`FetchError`
  and its subclasses) are captured and reported next to the successful
  results so that a partial result is always usable.
- **Run-level** failures (:class:`PolicyConflictError`,
  :class:`ResolutionTimeoutError`) abort the whole resolution.
"""

from __future__ import annotations

from typing import Any, Mapping, MutableMapping, Optional


class RangekeeperError(Exception):
    """Base exception for all rangekeeper errors.

    Args:
        message: Human-readable error message.
        details: Optional structured metadata describing the error.
    """

    __slots__ = ("message", "details")

    def __init__(
        self,
        message: str,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.message: str = message
        # Internally normalize to a mutable dict
        self.details: MutableMapping[str, Any] = dict(details) if details else {}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        formatted = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({formatted})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, details={dict(self.details)!r})"
        )


def _add_if(details: MutableMapping[str, Any], key: str, value: Any) -> None:
    """Add a key to ``details`` only if ``value`` is not ``None``."""
    if value is not None:
        details[key] = value


def _truncate(text: str, max_length: int = 200) -> str:
    """Truncate long text for safe logging or error reporting."""
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


# ---------------------------------------------------------------------------
# Range errors
# ---------------------------------------------------------------------------


class InvalidRangeError(RangekeeperError):
    """Raised when a declared range is not a recognizable version range.

    Args:
        message: Error description.
        range_text: The offending range string.
        package_name: Package that declared it, if known.
    """

    __slots__ = ("range_text", "package_name")

    def __init__(
        self,
        message: str,
        *,
        range_text: Optional[str] = None,
        package_name: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "range", range_text)
        _add_if(details, "package", package_name)

        super().__init__(message, details)

        self.range_text = range_text
        self.package_name = package_name


class UnrewritableRangeError(RangekeeperError):
    """Raised when a range cannot be rewritten to admit a new version.

    Compound ranges that the new version falls outside of, opaque
    declarations (dist-tags, URLs, workspace protocols) and prerelease
    targets without prerelease support all end up here.
    """

    __slots__ = ("range_text", "version")

    def __init__(
        self,
        message: str,
        *,
        range_text: Optional[str] = None,
        version: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "range", range_text)
        _add_if(details, "version", version)

        super().__init__(message, details)

        self.range_text = range_text
        self.version = version


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------


class FetchError(RangekeeperError):
    """Raised when registry metadata for a package cannot be retrieved.

    Args:
        message: Error description.
        package_name: Name of the package involved.
        retryable: Whether another attempt may succeed.
    """

    __slots__ = ("package_name", "retryable")

    def __init__(
        self,
        message: str,
        *,
        package_name: Optional[str] = None,
        retryable: bool = False,
        details: Optional[Mapping[str, Any]] = None,
    ) -> None:
        merged: MutableMapping[str, Any] = dict(details) if details else {}
        _add_if(merged, "package", package_name)

        super().__init__(message, merged)

        self.package_name = package_name
        self.retryable = retryable


class NetworkError(FetchError):
    """Raised when HTTP or network operations fail.

    Args:
        message: Error description.
        url: URL being accessed.
        status_code: HTTP status code, if available.
        response_body: Raw response body, truncated for safety.
        package_name: Package being fetched, if known.
        retryable: Whether the failure is transient.
    """

    __slots__ = ("url", "status_code", "response_body")

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        package_name: Optional[str] = None,
        retryable: bool = False,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "url", url)
        _add_if(details, "status_code", status_code)

        if response_body is not None:
            details["response"] = _truncate(response_body)

        super().__init__(
            message,
            package_name=package_name,
            retryable=retryable,
            details=details,
        )

        self.url = url
        self.status_code = status_code
        self.response_body = response_body


class TransientFetchError(NetworkError):
    """A fetch failure worth retrying (timeouts, 5xx, rate limiting).

    Args:
        retry_after: Server-requested delay in seconds, if any.
    """

    __slots__ = ("retry_after",)

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[float] = None,
        **kwargs: Any,
    ) -> None:
        kwargs["retryable"] = True
        super().__init__(message, **kwargs)
        self.retry_after = retry_after
        _add_if(self.details, "retry_after", retry_after)


class PackageNotFoundError(NetworkError):
    """The registry has no package by this name (HTTP 404). Never retried."""

    __slots__ = ()


class InvalidPackageNameError(FetchError):
    """The package name is malformed and was never sent to the registry."""

    __slots__ = ()


# ---------------------------------------------------------------------------
# Run-level errors
# ---------------------------------------------------------------------------


class PolicyConflictError(RangekeeperError):
    """Raised when mutually exclusive target policies are requested together.

    Args:
        message: Error description.
        options: Names of the conflicting options.
    """

    __slots__ = ("options",)

    def __init__(self, message: str, *, options: Optional[tuple] = None) -> None:
        details: MutableMapping[str, Any] = {}
        if options:
            details["options"] = ", ".join(options)

        super().__init__(message, details)

        self.options = options


class ResolutionTimeoutError(RangekeeperError):
    """Raised when a resolution run exceeds its global timeout."""

    __slots__ = ("timeout_ms",)

    def __init__(self, message: str, *, timeout_ms: Optional[int] = None) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "timeout_ms", timeout_ms)

        super().__init__(message, details)

        self.timeout_ms = timeout_ms


class ConfigError(RangekeeperError):
    """Raised when a configuration file or option is invalid.

    Args:
        message: Error description.
        config_path: Path of the configuration file involved.
        option: Name of the offending option.
    """

    __slots__ = ("config_path", "option")

    def __init__(
        self,
        message: str,
        *,
        config_path: Optional[str] = None,
        option: Optional[str] = None,
    ) -> None:
        details: MutableMapping[str, Any] = {}
        _add_if(details, "path", config_path)
        _add_if(details, "option", option)

        super().__init__(message, details)

        self.config_path = config_path
        self.option = option

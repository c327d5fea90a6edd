"""
Exceptions raised by the cache.

Errors raised by user fetchers are propagated unchanged; the classes here
only cover failures that originate inside this package.
"""
from typing import Optional


class SWRError(Exception):
    """Base class for cache errors."""
    pass


class ConfigurationError(SWRError):
    """Raised when a configuration option is unknown or invalid."""
    pass


class NoFetcherError(SWRError):
    """Raised when a key has to be fetched but no fetcher is available."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"No fetcher configured for key {key!r}")


class FetchError(SWRError):
    """Raised by the default HTTP fetcher when a request fails."""

    def __init__(self, url: str, status_code: Optional[int] = None, message: str = ""):
        self.url = url
        self.status_code = status_code
        detail = message or (f"HTTP {status_code}" if status_code else "request failed")
        super().__init__(f"Fetching {url} failed: {detail}")

"""
swrcache: serve cached data immediately, revalidate in the background.
"""
from .cache import (
    MISSING,
    CacheStore,
    Configuration,
    InfiniteConfiguration,
    Revalidator,
    SWRInfinite,
    SWRResource,
    get_revalidator,
    serialize,
)
from .exceptions import ConfigurationError, FetchError, NoFetcherError, SWRError
from .fetchers import json_fetcher, make_json_fetcher
from .logging_config import configure_logging

__version__ = "0.1.0"

__all__ = [
    "MISSING",
    "CacheStore",
    "Configuration",
    "InfiniteConfiguration",
    "Revalidator",
    "SWRInfinite",
    "SWRResource",
    "get_revalidator",
    "serialize",
    "ConfigurationError",
    "FetchError",
    "NoFetcherError",
    "SWRError",
    "json_fetcher",
    "make_json_fetcher",
    "configure_logging",
]

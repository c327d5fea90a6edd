"""
Stale-while-revalidate cache with request deduplication, error retry and pagination.
"""
from .core import MISSING, CacheEntry, PageContext, RetryState, SerializedKey
from .keys import (
    as_descriptor,
    context_key,
    error_key,
    infinite_key,
    page_size_key,
    serialize,
    serialize_page,
)
from .store import CacheProvider, CacheStore, wrap_cache
from .config import Configuration, InfiniteConfiguration, deep_equal
from .retry_policies import on_error_retry, wait_swr_backoff
from .coalescer import RequestCoalescer
from .manager import Revalidator, get_revalidator
from .resource import SWRResource
from .infinite import SWRInfinite

__all__ = [
    # Core types
    "MISSING",
    "CacheEntry",
    "PageContext",
    "RetryState",
    "SerializedKey",
    # Keys
    "as_descriptor",
    "context_key",
    "error_key",
    "infinite_key",
    "page_size_key",
    "serialize",
    "serialize_page",
    # Store
    "CacheProvider",
    "CacheStore",
    "wrap_cache",
    # Configuration
    "Configuration",
    "InfiniteConfiguration",
    "deep_equal",
    # Retry
    "on_error_retry",
    "wait_swr_backoff",
    # Coalescing
    "RequestCoalescer",
    # Revalidation
    "Revalidator",
    "get_revalidator",
    "SWRResource",
    "SWRInfinite",
]

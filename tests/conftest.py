"""
Shared fixtures: an isolated cache/revalidator per test and recording fetchers.
"""
import asyncio
from typing import Any, Callable, Dict, List

import pytest

from swrcache.cache import CacheStore, Configuration, InfiniteConfiguration, Revalidator


class RecordingFetcher:
    """Async fetcher returning ``responses[key]`` (or key.upper()) and logging calls."""

    def __init__(self, responses: Dict[str, Any] = None, delay: float = 0.0):
        self.responses = responses or {}
        self.delay = delay
        self.calls: List[tuple] = []

    async def __call__(self, *args: Any) -> Any:
        self.calls.append(args)
        if self.delay:
            await asyncio.sleep(self.delay)
        key = args[0] if len(args) == 1 else args
        value = self.responses.get(key, key.upper() if isinstance(key, str) else key)
        if isinstance(value, BaseException):
            raise value
        if callable(value):
            return value(*args)
        return value

    @property
    def keys(self) -> List[Any]:
        return [args[0] if len(args) == 1 else args for args in self.calls]


async def eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll ``predicate`` until true or fail after ``timeout`` seconds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def cache():
    return CacheStore()


@pytest.fixture
def config():
    """No dedupe window, no retries, no slow-load timer."""
    return Configuration(
        deduping_interval=0,
        should_retry_on_error=False,
        loading_timeout=0,
        error_retry_interval=1,
        fetcher=None,
    )


@pytest.fixture
def infinite_config():
    return InfiniteConfiguration(
        deduping_interval=0,
        should_retry_on_error=False,
        loading_timeout=0,
        error_retry_interval=1,
        fetcher=None,
    )


@pytest.fixture
def revalidator(cache, config):
    r = Revalidator(cache=cache, config=config)
    yield r
    r.close()

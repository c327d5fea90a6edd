"""
Revalidation scheduling: deduplicated fetches, error retry and mutation.
"""
import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from ..exceptions import NoFetcherError
from .coalescer import RequestCoalescer
from .config import Configuration
from .core import MISSING, KeyStats, RetryState, SerializedKey
from .keys import KeyDescriptor, error_key, serialize
from .store import CacheProvider, CacheStore

logger = logging.getLogger("swrcache.manager")

# Registered per key by resources; called with dedupe=False for the first
# one and dedupe=True for the rest
RevalidateCallback = Callable[[bool], Awaitable[Any]]


class Revalidator:
    """
    Resolves keys through a shared cache with:
    - Request deduplication inside ``deduping_interval``
    - Success/error hooks and retained last error per key
    - Error retry via the configured ``on_error_retry`` policy
    - Slow-loading notification after ``loading_timeout``
    """

    def __init__(
        self,
        cache: Optional[CacheProvider] = None,
        config: Optional[Configuration] = None,
    ):
        """
        Initialize the revalidator.

        Args:
            cache: Shared cache provider (a private CacheStore if omitted)
            config: Configuration used when resolve() gets none
        """
        self.cache: CacheProvider = cache if cache is not None else CacheStore()
        self.config = config or Configuration()
        self._coalescer = RequestCoalescer()
        self._revalidators: Dict[str, List[RevalidateCallback]] = {}
        self._retry_timers: Dict[str, asyncio.TimerHandle] = {}
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._stats = KeyStats()

    async def resolve(
        self,
        key: KeyDescriptor,
        fetcher: Optional[Callable[..., Any]] = None,
        config: Optional[Configuration] = None,
        retry_state: Optional[RetryState] = None,
        dedupe: bool = True,
    ) -> Any:
        """
        Fetch the value of ``key`` and store it in the cache.

        Args:
            key: Key descriptor (scalar, argument list, or key function)
            fetcher: Called with the argument list or the key string;
                falls back to ``config.fetcher``
            config: Options for this resolution
            retry_state: Position in the current retry chain
            dedupe: False bypasses in-flight and recent results

        Returns:
            The fetched value, or None when the key is not ready

        Raises:
            Exception: The fetcher's error, after hooks and retry scheduling
        """
        serialized = serialize(key)
        if not serialized.is_ready:
            return None
        return await self._resolve_serialized(
            serialized, fetcher, config or self.config, retry_state or RetryState(), dedupe
        )

    async def _resolve_serialized(
        self,
        serialized: SerializedKey,
        fetcher: Optional[Callable[..., Any]],
        config: Configuration,
        retry_state: RetryState,
        dedupe: bool,
    ) -> Any:
        identity = serialized.identity
        if config.is_paused():
            logger.debug(f"Paused, serving cached value for {identity}")
            return self.cache.get(identity)

        fetcher = fetcher if fetcher is not None else config.fetcher
        if fetcher is None:
            raise NoFetcherError(identity)

        return await self._coalescer.get_or_fetch(
            identity,
            lambda: self._fetch(serialized, fetcher, config, retry_state),
            window_ms=config.deduping_interval,
            dedupe=dedupe,
        )

    async def _fetch(
        self,
        serialized: SerializedKey,
        fetcher: Callable[..., Any],
        config: Configuration,
        retry_state: RetryState,
    ) -> Any:
        identity = serialized.identity
        loop = asyncio.get_running_loop()
        slow_timer = None
        if config.loading_timeout and config.loading_timeout > 0:
            slow_timer = loop.call_later(
                config.loading_timeout / 1000, self._on_loading_slow, identity, config
            )

        self._stats.fetches += 1
        try:
            if serialized.args is not None:
                data = fetcher(*serialized.args)
            else:
                data = fetcher(identity)
            if inspect.isawaitable(data):
                data = await data
        except Exception as error:
            self._stats.failures += 1
            logger.warning(f"Fetch failed for {identity}: {error!r}")
            self.cache.set(error_key(identity), error)
            self._call_hook("on_error", config.on_error, error, identity, config)
            if config.should_retry_on_error:
                self._schedule_retry(error, serialized, fetcher, config, retry_state.next())
            raise
        finally:
            if slow_timer is not None:
                slow_timer.cancel()

        self._stats.successes += 1
        self.cache.set(identity, data)
        self.cache.delete(error_key(identity))
        self.cancel_retries(identity)
        self._call_hook("on_success", config.on_success, data, identity, config)
        return data

    def _on_loading_slow(self, identity: str, config: Configuration) -> None:
        self._stats.slow_loads += 1
        logger.info(f"Slow loading: {identity} still pending after {config.loading_timeout}ms")
        self._call_hook("on_loading_slow", config.on_loading_slow, identity, config)

    def _schedule_retry(
        self,
        error: BaseException,
        serialized: SerializedKey,
        fetcher: Callable[..., Any],
        config: Configuration,
        retry_state: RetryState,
    ) -> None:
        identity = serialized.identity

        def revalidate(next_state: RetryState = retry_state) -> None:
            self._retry_timers.pop(identity, None)
            self._spawn(self._retry(serialized, fetcher, config, next_state))

        handle = self._call_hook(
            "on_error_retry", config.on_error_retry,
            error, identity, config, revalidate, retry_state,
        )
        if isinstance(handle, asyncio.TimerHandle):
            previous = self._retry_timers.pop(identity, None)
            if previous is not None:
                previous.cancel()
            self._retry_timers[identity] = handle
            self._stats.retries_scheduled += 1

    async def _retry(
        self,
        serialized: SerializedKey,
        fetcher: Callable[..., Any],
        config: Configuration,
        retry_state: RetryState,
    ) -> None:
        try:
            await self._resolve_serialized(serialized, fetcher, config, retry_state, dedupe=True)
        except Exception as e:
            # already recorded under the error key; the next retry, if any, is scheduled
            logger.debug(f"Retry #{retry_state.retry_count} failed for {serialized.identity}: {e!r}")

    def _spawn(self, coro: Awaitable[Any]) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _call_hook(self, name: str, hook: Callable[..., Any], *args: Any) -> Any:
        try:
            return hook(*args)
        except Exception:
            logger.exception(f"{name} hook failed")
            return None

    async def mutate(
        self,
        key: KeyDescriptor,
        data: Any = MISSING,
        should_revalidate: bool = True,
    ) -> Any:
        """
        Replace the cached value of ``key`` and optionally revalidate it.

        ``data`` may be a value, a callable receiving the current value, or
        an awaitable. Revalidation runs every callback registered for the
        key; the first bypasses deduplication.

        Returns:
            The value cached for the key afterwards
        """
        serialized = serialize(key)
        if not serialized.is_ready:
            return None
        identity = serialized.identity

        if data is not MISSING:
            if callable(data):
                data = data(self.cache.get(identity))
            if inspect.isawaitable(data):
                data = await data
            self.cache.set(identity, data)
            self.cache.delete(error_key(identity))

        if should_revalidate:
            callbacks = list(self._revalidators.get(identity, ()))
            if callbacks:
                logger.debug(f"Revalidating {identity} ({len(callbacks)} subscribers)")
                await asyncio.gather(
                    *(cb(i > 0) for i, cb in enumerate(callbacks))
                )

        return self.cache.get(identity)

    def register(self, identity: str, callback: RevalidateCallback) -> Callable[[], None]:
        """Subscribe a revalidation callback to mutations of ``identity``."""
        callbacks = self._revalidators.setdefault(identity, [])
        callbacks.append(callback)

        def unregister() -> None:
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks and self._revalidators.get(identity) is callbacks:
                del self._revalidators[identity]

        return unregister

    def get_data(self, key: KeyDescriptor) -> Any:
        return self.cache.get(serialize(key).identity)

    def get_error(self, key: KeyDescriptor) -> Optional[BaseException]:
        identity = serialize(key).identity
        if not identity:
            return None
        return self.cache.get(error_key(identity))

    def is_validating(self, key: KeyDescriptor) -> bool:
        identity = serialize(key).identity
        return bool(identity) and self._coalescer.is_in_flight(identity)

    def cancel_retries(self, identity: str) -> None:
        handle = self._retry_timers.pop(identity, None)
        if handle is not None:
            handle.cancel()
            logger.debug(f"Cancelled pending retry for {identity}")

    def close(self) -> None:
        """Cancel pending retry timers and background retries."""
        for handle in self._retry_timers.values():
            handle.cancel()
        self._retry_timers.clear()
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        self._tasks.clear()

    def get_stats(self) -> Dict[str, Any]:
        """Get revalidator statistics."""
        stats = self._stats.to_dict()
        stats["pending_retries"] = len(self._retry_timers)
        stats["coalescer"] = self._coalescer.get_stats()
        return stats


# Global revalidator instance
_revalidator: Optional[Revalidator] = None

# One revalidator per custom cache provider, keyed by id(); each entry holds
# its provider through Revalidator.cache, so the id stays unique
_cache_revalidators: Dict[int, Revalidator] = {}


def get_revalidator(cache: Optional[CacheProvider] = None) -> Revalidator:
    """
    Get or create the revalidator shared by every consumer of ``cache``.

    Without a cache this is the process-wide revalidator. Consumers of one
    provider must share a revalidator so they share in-flight requests and
    mutate subscriptions.
    """
    global _revalidator
    if cache is None:
        if _revalidator is None:
            _revalidator = Revalidator()
        return _revalidator

    revalidator = _cache_revalidators.get(id(cache))
    if revalidator is None or revalidator.cache is not cache:
        revalidator = Revalidator(cache=cache)
        _cache_revalidators[id(cache)] = revalidator
        logger.debug(f"Created revalidator for cache provider {type(cache).__name__}")
    return revalidator

"""
Live, stale-while-revalidate view of a single key.

A resource never stores values itself: ``data`` and ``error`` are read from
the cache on every access, so every consumer of a key sees the same value.
External triggers (focus, reconnect, refresh interval) all funnel into
``revalidate``.
"""
import asyncio
import logging
from typing import Any, Callable, Optional, Set

from .config import Configuration
from .core import MISSING, RetryState, SerializedKey
from .keys import KeyDescriptor, as_descriptor, serialize
from .manager import Revalidator, get_revalidator

logger = logging.getLogger("swrcache.resource")


class SWRResource:
    """
    Accessor for one key bound to a fetcher and a configuration.

    Usage:
        async with SWRResource("/api/user", fetch_json) as user:
            print(user.data)          # cached value, possibly stale
            await user.revalidate()   # refresh explicitly
    """

    def __init__(
        self,
        key: KeyDescriptor,
        fetcher: Optional[Callable[..., Any]] = None,
        config: Optional[Configuration] = None,
        revalidator: Optional[Revalidator] = None,
    ):
        self.config = config or Configuration()
        if revalidator is None:
            revalidator = get_revalidator(self.config.cache)
        self.revalidator = revalidator
        self.fetcher = fetcher
        self._key = key
        self._registered_identity: Optional[str] = None
        self._unregister: Optional[Callable[[], None]] = None
        self._tasks: Set["asyncio.Task[Any]"] = set()
        self._refresh_task: Optional["asyncio.Task[Any]"] = None
        self._last_focus_at: Optional[float] = None
        self._closed = False

    # ------------------------------------------------------------------
    # key tracking
    # ------------------------------------------------------------------

    def _current_key(self) -> SerializedKey:
        serialized = serialize(self._key)
        self._follow_key(serialized.identity)
        return serialized

    def _follow_key(self, identity: Optional[str]) -> None:
        """Keep the mutate subscription on the key currently in use."""
        if identity == self._registered_identity:
            return
        if self._unregister is not None:
            self._unregister()
            self._unregister = None
        self._registered_identity = None
        if identity and not self._closed:
            self._unregister = self.revalidator.register(identity, self._on_mutate)
            self._registered_identity = identity

    async def _on_mutate(self, dedupe: bool) -> bool:
        return await self.revalidate(dedupe=dedupe)

    @property
    def key(self) -> Optional[str]:
        return self._current_key().identity

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def data(self) -> Any:
        return self.revalidator.cache.get(self._current_key().identity)

    @property
    def error(self) -> Optional[BaseException]:
        serialized = self._current_key()
        if not serialized.is_ready:
            return None
        return self.revalidator.get_error(as_descriptor(serialized))

    @property
    def is_validating(self) -> bool:
        serialized = self._current_key()
        return serialized.is_ready and self.revalidator.is_validating(as_descriptor(serialized))

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    async def revalidate(
        self,
        retry_state: Optional[RetryState] = None,
        dedupe: bool = True,
    ) -> bool:
        """
        Resolve the key now.

        Returns:
            True on success; False when the key is not ready or the fetch
            failed (the failure is then available as ``error``)
        """
        serialized = self._current_key()
        if not serialized.is_ready:
            return False
        try:
            await self.revalidator.resolve(
                as_descriptor(serialized), self.fetcher, self.config, retry_state, dedupe
            )
        except Exception as e:
            logger.debug(f"Revalidation of {serialized.identity} failed: {e!r}")
            return False
        return True

    async def mutate(self, data: Any = MISSING, should_revalidate: bool = True) -> Any:
        """Replace the cached value and optionally revalidate every consumer."""
        serialized = self._current_key()
        if not serialized.is_ready:
            return None
        return await self.revalidator.mutate(
            as_descriptor(serialized), data, should_revalidate
        )

    async def load(self) -> Any:
        """
        Return the current value, revalidating it.

        Without ``suspense`` the cached (possibly stale) value is returned
        right away and revalidation continues in the background. With
        ``suspense`` a missing value is awaited and a fetch error is raised.
        """
        serialized = self._current_key()
        if not serialized.is_ready:
            return None
        cached = self.revalidator.cache.get(serialized.identity)
        if self.config.suspense and cached is None:
            return await self.revalidator.resolve(
                as_descriptor(serialized), self.fetcher, self.config
            )
        self._spawn(self.revalidate())
        return cached

    # ------------------------------------------------------------------
    # lifecycle and triggers
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Subscribe, revalidate on mount and start the refresh loop."""
        self._closed = False
        serialized = self._current_key()
        mount = self.config.revalidate_on_mount
        if serialized.is_ready and mount is not False:
            self._spawn(self.revalidate())
        if self.config.refresh_interval and self._refresh_task is None:
            self._refresh_task = self._spawn(self._refresh_loop())

    def on_focus(self) -> Optional["asyncio.Task[Any]"]:
        """Focus trigger; throttled by ``focus_throttle_interval``."""
        config = self.config
        if not config.revalidate_on_focus or not config.is_visible() or not config.is_online():
            return None
        now = asyncio.get_running_loop().time()
        if (
            self._last_focus_at is not None
            and (now - self._last_focus_at) * 1000 < config.focus_throttle_interval
        ):
            logger.debug(f"Focus revalidation throttled for {self.key}")
            return None
        self._last_focus_at = now
        return self._spawn(self.revalidate())

    def on_reconnect(self) -> Optional["asyncio.Task[Any]"]:
        """Connectivity-restored trigger."""
        if not self.config.revalidate_on_reconnect or not self.config.is_online():
            return None
        return self._spawn(self.revalidate())

    async def _refresh_loop(self) -> None:
        config = self.config
        while not self._closed:
            await asyncio.sleep(config.refresh_interval / 1000)
            if not config.refresh_when_hidden and not config.is_visible():
                continue
            if not config.refresh_when_offline and not config.is_online():
                continue
            await self.revalidate()

    def _spawn(self, coro: Any) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def close(self) -> None:
        """Stop timers and background work and drop the subscription."""
        self._closed = True
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
        self._tasks.clear()
        self._refresh_task = None
        if self._registered_identity:
            self.revalidator.cancel_retries(self._registered_identity)
        self._follow_key(None)

    async def __aenter__(self) -> "SWRResource":
        self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

"""
Request coalescing to prevent duplicate fetches for the same key.

Concurrent resolutions of one key share a single fetch, and a successful
result is reused for the rest of the deduping window.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

logger = logging.getLogger("swrcache.coalescer")


@dataclass
class InFlightRequest:
    """Tracks a fetch that is running or finished inside its window."""
    task: "asyncio.Future[Any]"
    started_at: float
    waiter_count: int = 0

    @property
    def succeeded(self) -> bool:
        return (
            self.task.done()
            and not self.task.cancelled()
            and self.task.exception() is None
        )


def _retrieve_exception(task: "asyncio.Future[Any]") -> None:
    # mark the exception as observed; awaiting callers still receive it
    if not task.cancelled():
        task.exception()


class RequestCoalescer:
    """
    Ensures concurrent resolutions of a key share one fetch.

    Pattern:
    - First request for a key starts the fetch as a task
    - Requests arriving while it runs await the same task
    - A successful result is reused until ``window_ms`` has passed since
      the fetch started; failed results are never reused

    Usage:
        coalescer = RequestCoalescer()
        result = await coalescer.get_or_fetch(
            "users/1", lambda: fetch_user(1), window_ms=2000,
        )
    """

    def __init__(self):
        self._in_flight: Dict[str, InFlightRequest] = {}
        self._coalesced = 0

    def join(self, key: str, window_ms: int) -> Optional[InFlightRequest]:
        """Return a request that can be shared for ``key``, if any."""
        request = self._in_flight.get(key)
        if request is None:
            return None

        if not request.task.done():
            request.waiter_count += 1
            self._coalesced += 1
            logger.debug(
                f"Coalescing request for {key} (waiters: {request.waiter_count})"
            )
            return request

        age_ms = (asyncio.get_running_loop().time() - request.started_at) * 1000
        if request.succeeded and age_ms < window_ms:
            request.waiter_count += 1
            self._coalesced += 1
            logger.debug(f"Reusing result for {key} [age={age_ms:.0f}ms]")
            return request

        # expired or failed
        del self._in_flight[key]
        return None

    def start(self, key: str, fetch: Awaitable[Any], window_ms: int = 0) -> InFlightRequest:
        """
        Start a new fetch for ``key``, replacing any previous one.

        The entry is dropped when the fetch fails, or once ``window_ms`` has
        passed since it started when it succeeds.
        """
        loop = asyncio.get_running_loop()
        task = asyncio.ensure_future(fetch)
        task.add_done_callback(_retrieve_exception)
        request = InFlightRequest(task=task, started_at=loop.time())
        task.add_done_callback(lambda _: self._schedule_expiry(key, request, window_ms))
        self._in_flight[key] = request
        logger.debug(f"Initiating fetch for {key}")
        return request

    def _schedule_expiry(self, key: str, request: InFlightRequest, window_ms: int) -> None:
        if not request.succeeded:
            self._expire(key, request)
            return
        loop = asyncio.get_running_loop()
        remaining = request.started_at + window_ms / 1000 - loop.time()
        loop.call_later(max(remaining, 0), self._expire, key, request)

    def _expire(self, key: str, request: InFlightRequest) -> None:
        # a newer request for the key may have replaced this one
        if self._in_flight.get(key) is request:
            del self._in_flight[key]

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        window_ms: int,
        dedupe: bool = True,
    ) -> Any:
        """
        Either join an existing request or start a new one.

        Args:
            key: Serialized cache key
            fetch_fn: Called to create the fetch coroutine when needed
            window_ms: How long a successful result stays shareable
            dedupe: False always starts a new fetch

        Returns:
            The fetched data (shared among all concurrent callers)

        Raises:
            Exception: Any error from the fetch is propagated to every waiter
        """
        request = self.join(key, window_ms) if dedupe else None
        if request is None:
            request = self.start(key, fetch_fn(), window_ms)
        # a cancelled waiter must not cancel the shared fetch
        return await asyncio.shield(request.task)

    def is_in_flight(self, key: str) -> bool:
        request = self._in_flight.get(key)
        return request is not None and not request.task.done()

    def __len__(self) -> int:
        """Number of tracked requests, running or reusable."""
        return len(self._in_flight)

    @property
    def active_requests(self) -> int:
        """Number of currently running fetches."""
        return sum(1 for r in self._in_flight.values() if not r.task.done())

    def get_stats(self) -> Dict[str, Any]:
        """Get coalescer statistics."""
        return {
            "active_requests": self.active_requests,
            "coalesced": self._coalesced,
            "active_keys": [k for k, r in self._in_flight.items() if not r.task.done()],
        }

"""
Cache provider contract and the default in-memory store.

The store is the single source of truth: revalidators, resources and the
pagination controller only hold string keys and always read through it.
"""
import logging
from typing import Any, Callable, Iterator, List, MutableMapping, Optional, Protocol

from .core import CacheEntry

logger = logging.getLogger("swrcache.store")

Listener = Callable[[CacheEntry], None]
Unsubscribe = Callable[[], None]


class CacheProvider(Protocol):
    """Protocol for cache backends shared by every consumer of a key."""

    def get(self, key: Optional[str]) -> Any:
        """Return the cached value or None."""
        ...

    def set(self, key: Optional[str], value: Any) -> None:
        """Store value; visible to the next get immediately."""
        ...

    def delete(self, key: Optional[str]) -> None:
        """Remove key from the cache."""
        ...

    def subscribe(self, listener: Listener) -> Unsubscribe:
        """Register a change listener; returns a callable that removes it."""
        ...


class CacheStore:
    """
    Unbounded key -> value store with synchronous change notification.

    Writes are last-write-wins with no buffering, so ``get`` right after
    ``set`` returns the value just written. Listeners are called with a
    CacheEntry whose value is None for deletions.
    """

    def __init__(self, mapping: Optional[MutableMapping[str, Any]] = None):
        self._data: MutableMapping[str, Any] = mapping if mapping is not None else {}
        self._listeners: List[Listener] = []

    def get(self, key: Optional[str]) -> Any:
        if not key:
            return None
        return self._data.get(key)

    def has(self, key: Optional[str]) -> bool:
        return bool(key) and key in self._data

    def set(self, key: Optional[str], value: Any) -> None:
        if not key:
            return
        self._data[key] = value
        self._notify(CacheEntry(key=key, value=value))

    def delete(self, key: Optional[str]) -> None:
        if not key or key not in self._data:
            return
        del self._data[key]
        self._notify(CacheEntry(key=key, value=None))

    def keys(self) -> List[str]:
        return list(self._data.keys())

    def clear(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries cleared
        """
        keys = self.keys()
        for key in keys:
            self.delete(key)
        logger.info(f"Cleared {len(keys)} cache entries")
        return len(keys)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)
        subscribed = True

        def unsubscribe() -> None:
            nonlocal subscribed
            if subscribed:
                subscribed = False
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, entry: CacheEntry) -> None:
        # copy: listeners may unsubscribe while being notified
        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception:
                logger.exception(f"Cache listener failed for {entry.key}")

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())


def wrap_cache(mapping: MutableMapping[str, Any]) -> CacheStore:
    """Adapt a plain mapping into a CacheStore sharing that mapping."""
    return CacheStore(mapping)


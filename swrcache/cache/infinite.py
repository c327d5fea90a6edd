"""
Paginated sequences on top of the revalidator.

A page loader ``get_key(page_index, previous_page_data)`` names every page;
the assembled list of pages is cached under ``["inf", first_page_key]`` and
resolved like any other key, so deduplication, hooks and error retry apply
to the sequence as a whole. Page values are cached under their own keys and
shared with any other consumer of those keys.
"""
import logging
from typing import Any, Callable, List, Optional, Union

from .config import InfiniteConfiguration, noop
from .core import MISSING, PageContext, RetryState, SerializedKey
from .keys import (
    as_descriptor,
    context_key,
    infinite_key,
    page_size_key,
    serialize_page,
)
from .manager import Revalidator
from .resource import SWRResource

logger = logging.getLogger("swrcache.infinite")

PageLoader = Callable[[int, Any], Any]
SizeArg = Union[int, Callable[[int], int]]


class SWRInfinite(SWRResource):
    """
    Stale-while-revalidate view of a paginated sequence.

    ``data`` is the list of page values, ``size`` the number of pages the
    sequence should hold. ``set_size`` loads more (or fewer) pages and
    ``mutate`` re-checks the pages, refetching only what changed unless
    called without data.

    Usage:
        pages = SWRInfinite(
            lambda i, prev: None if prev == [] else f"/items?page={i}",
            fetch_json,
        )
        await pages.revalidate()
        await pages.set_size(pages.size + 1)
    """

    def __init__(
        self,
        get_key: PageLoader,
        fetcher: Optional[Callable[..., Any]] = None,
        config: Optional[InfiniteConfiguration] = None,
        revalidator: Optional[Revalidator] = None,
    ):
        config = config or InfiniteConfiguration()
        super().__init__(self._sequence_key, self._load_pages, config, revalidator)
        self.get_key = get_key
        self.page_fetcher = fetcher if fetcher is not None else config.fetcher
        self.cache = self.revalidator.cache
        # pages never retry or fire hooks on their own; the sequence does
        self._page_config = config.merge(
            should_retry_on_error=False,
            on_success=noop,
            on_error=noop,
            on_loading_slow=noop,
        )

        first_page_key = self._first_page_key()
        self._observed_first_page_key = first_page_key
        # last explicitly chosen size, restored on key change with persist_size
        self._last_page_size = self._resolve_page_size(first_page_key)
        # page list produced by the previous pass, None before the first one
        self._data_ref: Optional[List[Any]] = None

    # ------------------------------------------------------------------
    # key derivation
    # ------------------------------------------------------------------

    def _first_page_key(self) -> Optional[str]:
        return serialize_page(self.get_key, 0, None).identity

    def _sequence_key(self) -> Optional[list]:
        first_page_key = self._sync_first_page_key()
        if not first_page_key:
            return None
        return as_descriptor(infinite_key(first_page_key))

    def _sync_first_page_key(self) -> Optional[str]:
        """
        Re-derive the first page key and apply the size reset rule when the
        sequence changed identity.
        """
        first_page_key = self._first_page_key()
        if first_page_key != self._observed_first_page_key:
            if first_page_key:
                size = self._last_page_size if self.config.persist_size else self.config.initial_size
                self.cache.set(page_size_key(first_page_key), size)
                logger.debug(f"Sequence changed to {first_page_key}, size reset to {size}")
            self._observed_first_page_key = first_page_key
            self._data_ref = self.cache.get(infinite_key(first_page_key).identity)
        return first_page_key

    def _resolve_page_size(self, first_page_key: Optional[str]) -> int:
        if not first_page_key:
            return self.config.initial_size
        cached = self.cache.get(page_size_key(first_page_key))
        return cached if cached is not None else self.config.initial_size

    # ------------------------------------------------------------------
    # accessors
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return self._resolve_page_size(self._sync_first_page_key())

    # ------------------------------------------------------------------
    # page assembly
    # ------------------------------------------------------------------

    async def _load_pages(self, _marker: str, first_page_key: str) -> List[Any]:
        """Fetcher of the sequence key: one full assembly pass."""
        context_cache_key = context_key(first_page_key)
        context = self.cache.get(context_cache_key) or PageContext()

        page_size = self._resolve_page_size(first_page_key)
        data: List[Any] = []
        previous_page_data = None
        for i in range(page_size):
            page_key = serialize_page(self.get_key, i, previous_page_data)
            if not page_key.is_ready:
                # the loader signalled the end of the sequence
                break

            page_data = self.cache.get(page_key.identity)
            forced = self._is_forced(i, page_data, context)
            should_fetch = (
                forced
                or page_data is None
                or (context.force is None and i == 0 and self._data_ref is not None)
            )

            if self.page_fetcher is not None and should_fetch:
                page_data = await self._fetch_page(page_key, dedupe=not forced)

            data.append(page_data)
            previous_page_data = page_data

        # a failed pass leaves the context for the next one
        self.cache.delete(context_cache_key)
        logger.debug(f"Assembled {len(data)}/{page_size} pages for {first_page_key}")
        self._data_ref = data
        return data

    def _is_forced(self, index: int, page_data: Any, context: PageContext) -> bool:
        if self.config.revalidate_all or context.force:
            return True
        if context.previous_data is None:
            return False
        previous = context.previous_data[index] if index < len(context.previous_data) else None
        return not self.config.compare(previous, page_data)

    async def _fetch_page(self, page_key: SerializedKey, dedupe: bool) -> Any:
        return await self.revalidator.resolve(
            as_descriptor(page_key),
            self.page_fetcher,
            self._page_config,
            RetryState(),
            dedupe,
        )

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------

    async def revalidate(
        self,
        retry_state: Optional[RetryState] = None,
        dedupe: bool = True,
    ) -> bool:
        ok = await super().revalidate(retry_state, dedupe)
        if ok:
            self._data_ref = self.data
        return ok

    async def mutate(self, data: Any = MISSING, should_revalidate: bool = True) -> Any:
        """
        Replace the assembled pages and optionally revalidate them.

        With data, the next pass refetches only the pages whose cached value
        no longer matches the previous page list; without data every page is
        refetched.
        """
        first_page_key = self._sync_first_page_key()
        if not first_page_key:
            return None

        context_cache_key = context_key(first_page_key)
        if should_revalidate and data is not MISSING:
            self.cache.set(
                context_cache_key,
                PageContext(previous_data=self._data_ref, force=False),
            )
        elif should_revalidate:
            self.cache.set(context_cache_key, PageContext(force=True))

        result = await super().mutate(data, should_revalidate)
        self._data_ref = self.data
        return result

    async def set_size(self, size: SizeArg) -> Any:
        """
        Change the number of pages and re-assemble without forcing page 0.

        ``size`` is either the new count or a function of the current one.
        """
        first_page_key = self._sync_first_page_key()
        if not first_page_key:
            return None

        if callable(size):
            size = size(self._resolve_page_size(first_page_key))
        if isinstance(size, int) and not isinstance(size, bool):
            size = max(size, 0)
            self.cache.set(page_size_key(first_page_key), size)
            self._last_page_size = size

        return await self.mutate(lambda current: current)

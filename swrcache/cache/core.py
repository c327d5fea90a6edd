"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple


class _Missing:
    """Sentinel for "no value supplied" (distinct from ``None``)."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


@dataclass
class CacheEntry:
    """A key/value pair as seen by cache subscribers."""
    key: str
    value: Any = None


@dataclass(frozen=True)
class SerializedKey:
    """
    Stable identity derived from a key descriptor.

    ``identity`` is None when the descriptor is "not ready" and nothing
    must be fetched. ``args`` holds the positional fetch arguments of an
    array descriptor, None for scalars.
    """
    identity: Optional[str] = None
    args: Optional[Tuple[Any, ...]] = None

    @property
    def is_ready(self) -> bool:
        return bool(self.identity)


@dataclass
class PageContext:
    """
    Transient record passed from a paginated mutate call to the next
    assembly pass, stored under ``ctx@<first page key>``.

    ``force`` is None when the pass was not triggered by mutate.
    """
    previous_data: Optional[List[Any]] = None
    force: Optional[bool] = None


@dataclass(frozen=True)
class RetryState:
    """Attempt counter threaded through one retry chain."""
    retry_count: int = 0

    def next(self) -> "RetryState":
        return RetryState(retry_count=self.retry_count + 1)


@dataclass
class KeyStats:
    """Per-revalidator counters, reported by ``Revalidator.get_stats``."""
    fetches: int = 0
    successes: int = 0
    failures: int = 0
    retries_scheduled: int = 0
    slow_loads: int = 0

    def to_dict(self) -> dict:
        return {
            "fetches": self.fetches,
            "successes": self.successes,
            "failures": self.failures,
            "retries_scheduled": self.retries_scheduled,
            "slow_loads": self.slow_loads,
        }

"""
Error-retry policy: randomized exponential backoff capped at 2^8.
"""
import asyncio
import logging
import math
import random
from typing import TYPE_CHECKING, Any, Callable, Optional

from tenacity import RetryCallState
from tenacity.wait import wait_base

from .core import RetryState

if TYPE_CHECKING:
    from .config import Configuration

logger = logging.getLogger("swrcache.retry")

# Backoff exponent cap: worst-case delay is 1.5 * 2^8 * interval
MAX_BACKOFF_EXPONENT = 8

Revalidate = Callable[[RetryState], Any]


class wait_swr_backoff(wait_base):
    """
    Randomized exponential backoff usable as a tenacity wait strategy.

    The delay for retry ``n`` is ``floor((random() + 0.5) * 2^min(n, 8))``
    times the base interval. Called by tenacity it returns seconds and uses
    the attempt number as ``n``.
    """

    def __init__(
        self,
        interval_ms: int,
        max_exponent: int = MAX_BACKOFF_EXPONENT,
        rand: Callable[[], float] = random.random,
    ):
        self.interval_ms = interval_ms
        self.max_exponent = max_exponent
        self.rand = rand

    def delay_ms(self, retry_count: int) -> int:
        count = min(max(retry_count, 0), self.max_exponent)
        return math.floor((self.rand() + 0.5) * (1 << count)) * self.interval_ms

    def __call__(self, retry_state: RetryCallState) -> float:
        return self.delay_ms(retry_state.attempt_number) / 1000


def retry_budget_exhausted(config: "Configuration", retry_state: RetryState) -> bool:
    """True once the retry count went past ``error_retry_count``."""
    limit = config.error_retry_count
    return limit is not None and retry_state.retry_count > limit


def on_error_retry(
    error: BaseException,
    key: str,
    config: "Configuration",
    revalidate: Revalidate,
    retry_state: RetryState,
) -> Optional[asyncio.TimerHandle]:
    """
    Default ``on_error_retry`` hook.

    Schedules ``revalidate(retry_state)`` after a backoff delay and returns
    the timer handle, or returns None when it decides not to retry.
    """
    if not config.is_visible():
        # revalidation restarts when the consumer becomes visible again
        logger.debug(f"Not retrying {key}: consumer hidden")
        return None

    if retry_budget_exhausted(config, retry_state):
        logger.info(
            f"Giving up on {key} after {retry_state.retry_count} attempts: {error!r}"
        )
        return None

    timeout = wait_swr_backoff(config.error_retry_interval).delay_ms(
        retry_state.retry_count
    )
    logger.debug(
        f"Retry #{retry_state.retry_count} for {key} in {timeout}ms"
    )
    loop = asyncio.get_running_loop()
    return loop.call_later(timeout / 1000, revalidate, retry_state)

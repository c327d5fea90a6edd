"""
Cache configuration: event hooks, switches, timeouts and providers.

Timeouts are in milliseconds. Defaults that depend on the environment
(slow connection) come from ``config.settings``.
"""
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Optional

from config.settings import Settings, settings as default_settings

from ..exceptions import ConfigurationError
from ..fetchers import json_fetcher
from .retry_policies import on_error_retry
from .store import CacheProvider


def noop(*args: Any, **kwargs: Any) -> None:
    return None


def deep_equal(a: Any, b: Any) -> bool:
    """Python's ``==``; lists, tuples and dicts already compare their items recursively."""
    return a == b


def _always_false() -> bool:
    return False


def _always_true() -> bool:
    return True


@dataclass
class Configuration:
    """Options recognized by the revalidator and cache resources."""

    # events
    on_loading_slow: Callable[..., Any] = noop
    on_success: Callable[..., Any] = noop
    on_error: Callable[..., Any] = noop
    on_error_retry: Callable[..., Any] = on_error_retry

    # switches
    revalidate_on_focus: bool = True
    revalidate_on_reconnect: bool = True
    revalidate_on_mount: Optional[bool] = None
    refresh_when_hidden: bool = False
    refresh_when_offline: bool = False
    should_retry_on_error: bool = True
    suspense: bool = False

    # timeouts (ms)
    error_retry_interval: int = field(
        default_factory=lambda: default_settings.resolved_error_retry_interval
    )
    focus_throttle_interval: int = field(
        default_factory=lambda: default_settings.focus_throttle_interval
    )
    deduping_interval: int = field(
        default_factory=lambda: default_settings.deduping_interval
    )
    loading_timeout: int = field(
        default_factory=lambda: default_settings.resolved_loading_timeout
    )
    refresh_interval: int = field(
        default_factory=lambda: default_settings.refresh_interval
    )
    error_retry_count: Optional[int] = field(
        default_factory=lambda: default_settings.error_retry_count
    )

    # providers
    fetcher: Optional[Callable[..., Any]] = json_fetcher
    compare: Callable[[Any, Any], bool] = deep_equal
    is_paused: Callable[[], bool] = _always_false
    cache: Optional[CacheProvider] = None

    # environment
    is_visible: Callable[[], bool] = _always_true
    is_online: Callable[[], bool] = _always_true

    def merge(self, **overrides: Any) -> "Configuration":
        """Return a copy with ``overrides`` applied."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) for {type(self).__name__}: {', '.join(unknown)}"
            )
        return replace(self, **overrides)

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any):
        """Build a configuration whose timeouts come from ``settings``."""
        base = dict(
            error_retry_interval=settings.resolved_error_retry_interval,
            focus_throttle_interval=settings.focus_throttle_interval,
            deduping_interval=settings.deduping_interval,
            loading_timeout=settings.resolved_loading_timeout,
            refresh_interval=settings.refresh_interval,
            error_retry_count=settings.error_retry_count,
        )
        base.update(overrides)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(base) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) for {cls.__name__}: {', '.join(unknown)}"
            )
        return cls(**base)


@dataclass
class InfiniteConfiguration(Configuration):
    """Configuration of a paginated sequence."""
    initial_size: int = 1
    revalidate_all: bool = False
    persist_size: bool = False

    def __post_init__(self) -> None:
        if self.initial_size < 0:
            raise ConfigurationError("initial_size must be >= 0")


"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Cache defaults loaded from environment variables (prefix ``SWR_``)."""

    # Connection profile
    # Data-saving / 2G style links get longer retry and slow-loading timeouts
    slow_connection: bool = False

    # Timeouts (milliseconds)
    # None means "derive from slow_connection"
    error_retry_interval: Optional[int] = None
    loading_timeout: Optional[int] = None
    focus_throttle_interval: int = 5 * 1000
    deduping_interval: int = 2 * 1000
    refresh_interval: int = 0

    # Retry budget, None = retry until success
    error_retry_count: Optional[int] = None

    # Logging
    log_level: str = "INFO"

    class Config:
        env_prefix = "SWR_"
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def resolved_error_retry_interval(self) -> int:
        if self.error_retry_interval is not None:
            return self.error_retry_interval
        return (10 if self.slow_connection else 5) * 1000

    @property
    def resolved_loading_timeout(self) -> int:
        if self.loading_timeout is not None:
            return self.loading_timeout
        return (5 if self.slow_connection else 3) * 1000


settings = Settings()

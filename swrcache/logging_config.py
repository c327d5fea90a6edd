"""Logging configuration for the cache."""
import logging
import sys
from typing import Optional

from config.settings import settings


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure logging for applications embedding the cache.

    Level defaults to ``SWR_LOG_LEVEL`` (INFO). Output goes to stdout.
    """
    log_level = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

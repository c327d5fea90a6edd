"""
Default fetchers.

The cache itself never performs I/O; these are the ready-made fetchers used
when a key is resolved without an explicit one.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import requests

from .exceptions import FetchError

logger = logging.getLogger("swrcache.fetchers")

DEFAULT_TIMEOUT = 30


def _get_json(url: str, headers: Optional[Dict[str, str]], timeout: float) -> Any:
    try:
        response = requests.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        logger.warning(f"HTTP {status} fetching {url}")
        raise FetchError(url, status_code=status) from e
    except requests.exceptions.RequestException as e:
        logger.warning(f"Request failed for {url}: {e}")
        raise FetchError(url, message=str(e)) from e

    try:
        return response.json()
    except ValueError as e:
        raise FetchError(url, status_code=response.status_code, message="invalid JSON body") from e


async def json_fetcher(url: str) -> Any:
    """GET ``url`` and decode the JSON body, off the event loop."""
    return await asyncio.to_thread(_get_json, url, None, DEFAULT_TIMEOUT)


def make_json_fetcher(
    base_url: str = "",
    headers: Optional[Dict[str, str]] = None,
    timeout: float = DEFAULT_TIMEOUT,
):
    """
    Build a JSON fetcher bound to a base URL and headers.

    Usage:
        fetcher = make_json_fetcher("https://api.example.com", {"x-apikey": key})
        resource = SWRResource("/items?page=1", fetcher)
    """
    async def fetcher(path: str) -> Any:
        return await asyncio.to_thread(_get_json, f"{base_url}{path}", headers, timeout)

    return fetcher

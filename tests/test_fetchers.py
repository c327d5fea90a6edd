"""
Tests for the default HTTP fetchers (requests is mocked).
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from swrcache.exceptions import FetchError
from swrcache.fetchers import json_fetcher, make_json_fetcher


def _response(status=200, body=None):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = body
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    return response


class TestJsonFetcher:

    @pytest.mark.asyncio
    async def test_returns_json_body(self):
        with patch("swrcache.fetchers.requests.get", return_value=_response(body={"ok": True})) as get:
            assert await json_fetcher("https://api.test/items") == {"ok": True}
        get.assert_called_once_with("https://api.test/items", headers=None, timeout=30)

    @pytest.mark.asyncio
    async def test_http_error_becomes_fetch_error(self):
        with patch("swrcache.fetchers.requests.get", return_value=_response(status=503)):
            with pytest.raises(FetchError) as exc_info:
                await json_fetcher("https://api.test/items")
        assert exc_info.value.status_code == 503
        assert exc_info.value.url == "https://api.test/items"

    @pytest.mark.asyncio
    async def test_connection_error_becomes_fetch_error(self):
        with patch(
            "swrcache.fetchers.requests.get",
            side_effect=requests.exceptions.ConnectionError("refused"),
        ):
            with pytest.raises(FetchError):
                await json_fetcher("https://api.test/items")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        response = _response()
        response.json.side_effect = ValueError("no JSON")
        with patch("swrcache.fetchers.requests.get", return_value=response):
            with pytest.raises(FetchError):
                await json_fetcher("https://api.test/items")

    @pytest.mark.asyncio
    async def test_bound_fetcher(self):
        with patch("swrcache.fetchers.requests.get", return_value=_response(body=[1])) as get:
            fetcher = make_json_fetcher("https://api.test", {"x-apikey": "k"}, timeout=5)
            assert await fetcher("/items?page=1") == [1]
        get.assert_called_once_with(
            "https://api.test/items?page=1", headers={"x-apikey": "k"}, timeout=5,
        )

"""
Tests for request coalescing and expiry of finished requests.
"""
import asyncio

import pytest

from swrcache.cache import RequestCoalescer

from conftest import eventually


async def _value(result="v", delay=0.0):
    if delay:
        await asyncio.sleep(delay)
    return result


async def _failure():
    raise RuntimeError("boom")


class TestRequestCoalescer:

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_task(self):
        coalescer = RequestCoalescer()
        started = []

        def fetch():
            started.append(1)
            return _value(delay=0.01)

        results = await asyncio.gather(
            coalescer.get_or_fetch("k", fetch, window_ms=0),
            coalescer.get_or_fetch("k", fetch, window_ms=0),
        )

        assert results == ["v", "v"]
        assert started == [1]
        assert coalescer.get_stats()["coalesced"] == 1

    @pytest.mark.asyncio
    async def test_finished_request_expires_after_window(self):
        coalescer = RequestCoalescer()

        await coalescer.get_or_fetch("k", lambda: _value(), window_ms=20)
        assert len(coalescer) == 1

        await eventually(lambda: len(coalescer) == 0)

    @pytest.mark.asyncio
    async def test_distinct_keys_do_not_accumulate(self):
        coalescer = RequestCoalescer()

        for i in range(20):
            await coalescer.get_or_fetch(f"k{i}", lambda: _value(), window_ms=0)

        await eventually(lambda: len(coalescer) == 0)

    @pytest.mark.asyncio
    async def test_failed_request_is_dropped(self):
        coalescer = RequestCoalescer()

        with pytest.raises(RuntimeError):
            await coalescer.get_or_fetch("k", _failure, window_ms=1000)

        await eventually(lambda: len(coalescer) == 0)

    @pytest.mark.asyncio
    async def test_replaced_request_survives_old_expiry(self):
        coalescer = RequestCoalescer()

        await coalescer.get_or_fetch("k", lambda: _value("old"), window_ms=10)
        await coalescer.get_or_fetch("k", lambda: _value("new"), window_ms=1000, dedupe=False)
        await asyncio.sleep(0.03)

        assert len(coalescer) == 1
        assert await coalescer.get_or_fetch("k", lambda: _value("third"), window_ms=1000) == "new"

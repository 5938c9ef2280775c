# test_cache.py
"""
Test the QueryCache service
Populate on first read, invalidate on write, refetch lazily
"""

import asyncio

import pytest

from logguard.core.cache import ANOMALIES, LOG_FILES, QueryCache, anomaly_key


class CountingLoader:
    def __init__(self, value="value"):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return f"{self.value}-{self.calls}"


@pytest.mark.asyncio
async def test_first_read_populates():
    cache = QueryCache()
    loader = CountingLoader()

    assert await cache.get(ANOMALIES, loader) == "value-1"
    assert await cache.get(ANOMALIES, loader) == "value-1"
    assert loader.calls == 1
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_invalidate_forces_refetch():
    cache = QueryCache()
    loader = CountingLoader()
    await cache.get(ANOMALIES, loader)

    assert cache.invalidate(ANOMALIES) == 1
    assert not cache.is_fresh(ANOMALIES)
    assert cache.peek(ANOMALIES) == "value-1", "Stale value is still visible until refetched"

    assert await cache.get(ANOMALIES, loader) == "value-2"
    assert cache.is_fresh(ANOMALIES)


@pytest.mark.asyncio
async def test_invalidate_is_prefix_based():
    cache = QueryCache()
    await cache.get(ANOMALIES, CountingLoader())
    await cache.get(anomaly_key("a1"), CountingLoader())
    await cache.get(LOG_FILES, CountingLoader())

    assert cache.invalidate(ANOMALIES) == 2
    assert not cache.is_fresh(anomaly_key("a1"))
    assert cache.is_fresh(LOG_FILES)


@pytest.mark.asyncio
async def test_late_response_is_not_stored():
    """A load overtaken by an invalidation returns its value but does not land in the cache"""
    print("\n🧪 Testing late response handling\n")

    cache = QueryCache()
    release = asyncio.Event()

    async def slow_loader():
        await release.wait()
        return "old"

    task = asyncio.create_task(cache.get(anomaly_key("a1"), slow_loader))
    await asyncio.sleep(0)

    cache.invalidate(ANOMALIES)
    release.set()

    assert await task == "old"
    assert cache.peek(anomaly_key("a1")) is None
    assert not cache.is_fresh(anomaly_key("a1"))


@pytest.mark.asyncio
async def test_loader_errors_propagate():
    cache = QueryCache()

    async def broken():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await cache.get(ANOMALIES, broken)
    assert cache.peek(ANOMALIES) is None


def test_subscribers_are_notified():
    cache = QueryCache()
    seen = []
    unsubscribe = cache.subscribe(anomaly_key("a1"), seen.append)

    cache.invalidate(ANOMALIES)
    cache.invalidate(LOG_FILES)
    assert seen == [ANOMALIES], "Parent invalidation reaches child subscribers"

    unsubscribe()
    cache.invalidate(ANOMALIES)
    assert seen == [ANOMALIES]


def test_failing_subscriber_does_not_break_invalidation():
    cache = QueryCache()
    seen = []

    def broken(_):
        raise ValueError("listener bug")

    cache.subscribe(ANOMALIES, broken)
    cache.subscribe(ANOMALIES, seen.append)
    cache.set(ANOMALIES, [])

    assert cache.invalidate(ANOMALIES) == 1
    assert seen == [ANOMALIES]


def test_clear():
    cache = QueryCache()
    cache.set(ANOMALIES, [1])
    cache.clear()
    assert len(cache) == 0
    assert cache.peek(ANOMALIES) is None

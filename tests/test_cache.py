from __future__ import annotations

import asyncio

import pytest

from tableside.cache import EntryState, QueryCache, bill_key, bills_by_order_key, order_key
from tests.fakes import FakeClock


class CountingFetcher:
    def __init__(self, cache: QueryCache | None = None, key: tuple[str, ...] | None = None) -> None:
        self.count = 0
        self.cache = cache
        self.key = key
        self.seen_states: list[EntryState] = []

    async def __call__(self) -> str:
        self.count += 1
        if self.cache is not None and self.key is not None:
            self.seen_states.append(self.cache.snapshot(self.key).state)
        await asyncio.sleep(0)
        return f"value-{self.count}"


def test_get_reads_through_once(cache: QueryCache) -> None:
    fetcher = CountingFetcher()

    async def scenario() -> tuple[str, str]:
        return await cache.get(order_key("o1"), fetcher), await cache.get(order_key("o1"), fetcher)

    assert asyncio.run(scenario()) == ("value-1", "value-1")
    assert fetcher.count == 1
    assert cache.snapshot(order_key("o1")).state is EntryState.FRESH


def test_invalidate_hides_value_until_refetched(cache: QueryCache) -> None:
    key = order_key("o1")
    fetcher = CountingFetcher(cache, key)
    asyncio.run(cache.get(key, fetcher))

    assert cache.invalidate(key) == [key]
    snapshot = cache.snapshot(key)
    assert snapshot.state is EntryState.STALE
    assert snapshot.value is None

    assert asyncio.run(cache.refetch(key)) == "value-2"
    assert fetcher.seen_states == [EntryState.LOADING, EntryState.LOADING]
    assert cache.snapshot(key).value == "value-2"


def test_concurrent_refetches_share_one_request(cache: QueryCache) -> None:
    fetcher = CountingFetcher()
    key = bill_key("b1")

    async def scenario() -> list[str]:
        return list(await asyncio.gather(cache.get(key, fetcher), cache.get(key, fetcher)))

    assert asyncio.run(scenario()) == ["value-1", "value-1"]
    assert fetcher.count == 1


def test_fetch_error_is_recorded_and_raised(cache: QueryCache) -> None:
    async def failing() -> str:
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError):
        asyncio.run(cache.get(order_key("o1"), failing))

    snapshot = cache.snapshot(order_key("o1"))
    assert snapshot.state is EntryState.ERROR
    assert str(snapshot.error) == "backend down"


def test_entries_go_stale_with_age(cache: QueryCache, clock: FakeClock) -> None:
    fetcher = CountingFetcher()
    asyncio.run(cache.get(order_key("o1"), fetcher))

    clock.advance(61)

    snapshot = cache.snapshot(order_key("o1"))
    assert snapshot.state is EntryState.STALE
    assert snapshot.value == "value-1"
    assert asyncio.run(cache.get(order_key("o1"), fetcher)) == "value-2"


def test_invalidate_by_prefix(cache: QueryCache) -> None:
    fetcher = CountingFetcher()

    async def scenario() -> None:
        await cache.get(bill_key("b1"), fetcher)
        await cache.get(bills_by_order_key("o1"), fetcher)
        await cache.get(order_key("o1"), fetcher)

    asyncio.run(scenario())

    assert sorted(cache.invalidate(("bills",))) == sorted([bill_key("b1"), bills_by_order_key("o1")])
    assert cache.snapshot(order_key("o1")).state is EntryState.FRESH


def test_refetch_needs_a_fetcher(cache: QueryCache) -> None:
    with pytest.raises(KeyError):
        asyncio.run(cache.refetch(order_key("never-loaded")))
    assert cache.snapshot(order_key("missing")).state is EntryState.EMPTY


def test_refetch_after_invalidate_ignores_earlier_read(cache: QueryCache) -> None:
    key = order_key("o1")
    server = {"version": "old"}

    async def scenario() -> tuple[str, str]:
        release = asyncio.Event()

        async def fetch() -> str:
            version = server["version"]
            if version == "old":
                await release.wait()
            return version

        early = asyncio.create_task(cache.get(key, fetch))
        await asyncio.sleep(0)
        server["version"] = "new"
        cache.invalidate(key)
        fresh = await cache.get(key, fetch)
        release.set()
        return fresh, await early

    fresh, earlier = asyncio.run(scenario())

    assert fresh == "new"
    assert earlier == "old"
    snapshot = cache.snapshot(key)
    assert snapshot.state is EntryState.FRESH
    assert snapshot.value == "new"

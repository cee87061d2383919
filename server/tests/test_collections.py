import asyncio

import pytest

from clinicdesk.services import cache_keys
from clinicdesk.services.collections import (
    CollectionFetcher,
    CollectionOptions,
    centers_options,
    products_options,
)
from clinicdesk.services.document_store import DocumentStoreError, InMemoryDocumentStore


class SlowStore(InMemoryDocumentStore):
    """Blocks every query until released."""

    def __init__(self, data):
        super().__init__(data)
        self.release = asyncio.Event()

    async def run_query(self, collection, query):
        await self.release.wait()
        return await super().run_query(collection, query)


class FirstQueryBlocksStore(InMemoryDocumentStore):
    """Only the first query waits for release; later ones answer at once."""

    def __init__(self, data):
        super().__init__(data)
        self.release = asyncio.Event()
        self._blocked_once = False

    async def run_query(self, collection, query):
        if not self._blocked_once:
            self._blocked_once = True
            await self.release.wait()
        return await super().run_query(collection, query)


class BrokenStore(InMemoryDocumentStore):
    async def run_query(self, collection, query):
        self.query_count += 1
        raise DocumentStoreError("backend unavailable")


@pytest.mark.asyncio
async def test_fetch_caches_result(store, cache):
    fetcher = CollectionFetcher(store, cache)

    first = await fetcher.fetch("centers")
    second = await fetcher.fetch("centers")

    assert len(first) == 2
    assert second == first
    assert store.query_count == 1
    assert cache.has("centers")


@pytest.mark.asyncio
async def test_fetch_uses_configured_key_and_ttl(store, cache, clock):
    fetcher = CollectionFetcher(store, cache)

    docs = await fetcher.fetch("products", products_options())

    assert [d["name"] for d in docs] == ["Battery 312", "Oticon More", "Phonak Audeo"]
    assert cache.has(cache_keys.PRODUCTS)

    clock.advance(600.5)
    await fetcher.fetch("products", products_options())
    assert store.query_count == 2


@pytest.mark.asyncio
async def test_centers_preset_uses_fifteen_minute_ttl(store, cache, clock):
    fetcher = CollectionFetcher(store, cache)
    await fetcher.fetch("centers", centers_options())

    clock.advance(899)
    await fetcher.fetch("centers", centers_options())

    assert store.query_count == 1


@pytest.mark.asyncio
async def test_expired_cache_triggers_new_query(store, cache, clock):
    fetcher = CollectionFetcher(store, cache)
    options = CollectionOptions(cache_ttl=10)

    await fetcher.fetch("centers", options)
    store.add("centers", "c3", {"name": "Airport"})
    clock.advance(11)
    docs = await fetcher.fetch("centers", options)

    assert len(docs) == 3
    assert store.query_count == 2


@pytest.mark.asyncio
async def test_refresh_bypasses_cache(store, cache):
    fetcher = CollectionFetcher(store, cache)
    await fetcher.fetch("centers")
    store.add("centers", "c3", {"name": "Airport"})

    assert len(await fetcher.fetch("centers")) == 2
    assert len(await fetcher.refresh("centers")) == 3


@pytest.mark.asyncio
async def test_invalidate_collection_drops_prefixed_keys(store, cache):
    fetcher = CollectionFetcher(store, cache)
    await fetcher.fetch("products")
    await fetcher.fetch("products", CollectionOptions(cache_key="products_by_price", order_by_field="price"))
    await fetcher.fetch("centers")

    assert fetcher.invalidate_collection("products") == 2
    assert cache.has("centers")


@pytest.mark.asyncio
async def test_fetch_page(store, cache):
    fetcher = CollectionFetcher(store, cache)
    options = CollectionOptions(enable_pagination=True, page_size=2, order_by_field="price", order_direction="desc")

    first = await fetcher.fetch_page("products", options, 0)
    second = await fetcher.fetch_page("products", options, 1)

    assert [d["id"] for d in first.items] == ["p2", "p1"]
    assert first.has_more is True
    assert [d["id"] for d in second.items] == ["p3"]
    assert second.has_more is False
    assert second.page == 1
    assert cache.size() == 0


@pytest.mark.asyncio
async def test_paginated_fetch_skips_cache(store, cache):
    fetcher = CollectionFetcher(store, cache)
    options = CollectionOptions(enable_pagination=True, page_size=10)

    await fetcher.fetch("products", options)
    await fetcher.fetch("products", options)

    assert store.query_count == 2
    assert not cache.has("products")


@pytest.mark.asyncio
async def test_negative_page_rejected(store, cache):
    fetcher = CollectionFetcher(store, cache)
    with pytest.raises(ValueError):
        await fetcher.fetch_page("products", CollectionOptions(), -1)


@pytest.mark.asyncio
async def test_concurrent_misses_share_one_query(cache):
    store = SlowStore({"centers": {"c1": {"name": "Main Street"}}})
    fetcher = CollectionFetcher(store, cache)

    tasks = [asyncio.create_task(fetcher.fetch("centers")) for _ in range(3)]
    await asyncio.sleep(0)
    store.release.set()
    results = await asyncio.gather(*tasks)

    assert store.query_count == 1
    assert all(r == results[0] for r in results)


@pytest.mark.asyncio
async def test_store_failure_propagates_and_is_not_cached(cache):
    store = BrokenStore()
    fetcher = CollectionFetcher(store, cache)

    with pytest.raises(DocumentStoreError):
        await fetcher.fetch("products")

    assert cache.size() == 0


@pytest.mark.asyncio
async def test_refresh_does_not_join_fetch_already_in_flight(cache):
    store = FirstQueryBlocksStore({"centers": {"c1": {"name": "Main Street"}}})
    fetcher = CollectionFetcher(store, cache)

    pending = asyncio.create_task(fetcher.fetch("centers"))
    await asyncio.sleep(0)
    store.add("centers", "c2", {"name": "Airport"})

    refreshed = await asyncio.wait_for(fetcher.refresh("centers"), timeout=1)

    assert len(refreshed) == 2
    assert cache.get("centers") == refreshed
    store.release.set()
    await pending

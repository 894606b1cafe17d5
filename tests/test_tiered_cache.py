import json
import time

import httpx
import pytest

from taborganizer.cache.remote_store import RemoteStore
from taborganizer.cache.tiered_cache import TieredCache
from taborganizer.models import SOURCE_DOMAIN, SOURCE_EXACT, SOURCE_REMOTE

from .conftest import make_tab

DAY = 86400


def remote_store(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteStore(base_url="https://db.example.com", api_key="secret", client=client)


@pytest.mark.asyncio
async def test_miss_then_exact_hit(clock):
    cache = TieredCache(clock=clock)
    tab = make_tab()
    assert await cache.lookup(tab) is None

    await cache.store(tab, "development", 0.9)
    result = await cache.lookup(tab)
    assert result.category == "development"
    assert result.source == SOURCE_EXACT
    assert result.confidence == 0.9
    assert not result.cacheable
    assert cache.misses == 1
    assert cache.hits[SOURCE_EXACT] == 1


@pytest.mark.asyncio
async def test_domain_hit_backfills_exact_tier(clock):
    cache = TieredCache(clock=clock)
    await cache.store(make_tab(1, "https://www.youtube.com/watch?v=1", "First video"), "entertainment")

    other = make_tab(2, "https://www.youtube.com/watch?v=2", "Second video")
    first = await cache.lookup(other)
    assert (first.category, first.source) == ("entertainment", SOURCE_DOMAIN)

    second = await cache.lookup(other)
    assert (second.category, second.source) == ("entertainment", SOURCE_EXACT)
    assert len(cache.exact_tier) == 2


@pytest.mark.asyncio
async def test_unknown_domain_is_not_shared(clock):
    cache = TieredCache(clock=clock)
    await cache.store(make_tab(1, url="", title="Blank"), "general")
    assert len(cache.domain_tier) == 0
    assert await cache.lookup(make_tab(2, url="", title="Another blank")) is None


@pytest.mark.asyncio
async def test_expired_entries_are_misses(clock):
    cache = TieredCache(clock=clock, max_age_days=30)
    tab = make_tab()
    await cache.store(tab, "development")

    clock.advance(29 * DAY)
    assert await cache.lookup(tab) is not None

    clock.advance(2 * DAY)
    assert await cache.lookup(tab) is None
    assert len(cache.exact_tier) == 0
    assert len(cache.domain_tier) == 0


@pytest.mark.asyncio
async def test_zero_max_age_disables_expiry(clock):
    cache = TieredCache(clock=clock, max_age_days=0)
    tab = make_tab()
    await cache.store(tab, "development")
    clock.advance(3650 * DAY)
    assert (await cache.lookup(tab)).category == "development"


@pytest.mark.asyncio
async def test_tiers_survive_restart(snapshot_store):
    tab = make_tab()
    cache = TieredCache(snapshot_store=snapshot_store)
    await cache.store(tab, "development")

    restored = TieredCache(snapshot_store=snapshot_store)
    restored.load()
    result = await restored.lookup(tab)
    assert (result.category, result.source) == ("development", SOURCE_EXACT)


@pytest.mark.asyncio
async def test_clear_empties_local_tiers_and_snapshots(snapshot_store):
    tab = make_tab()
    cache = TieredCache(snapshot_store=snapshot_store)
    await cache.store(tab, "development")
    cache.clear()
    assert await cache.lookup(tab) is None

    restored = TieredCache(snapshot_store=snapshot_store)
    restored.load()
    assert len(restored.exact_tier) == 0


@pytest.mark.asyncio
async def test_remote_hit_backfills_local_tiers():
    def handler(request):
        assert request.url.path == "/rest/v1/tab_categorizations"
        return httpx.Response(200, json=[{"result": {
            "category": "finance",
            "timestamp": time.time(),
            "source_confidence": 0.7,
        }}])

    cache = TieredCache(remote_store=remote_store(handler))
    tab = make_tab(url="https://bank.example.com/accounts", title="Accounts")
    result = await cache.lookup(tab)
    assert (result.category, result.source) == ("finance", SOURCE_REMOTE)
    assert len(cache.exact_tier) == 1
    assert len(cache.domain_tier) == 1

    again = await cache.lookup(tab)
    assert again.source == SOURCE_EXACT


@pytest.mark.asyncio
async def test_remote_failure_is_a_miss():
    cache = TieredCache(remote_store=remote_store(lambda request: httpx.Response(500)))
    assert await cache.lookup(make_tab()) is None
    assert cache.misses == 1


@pytest.mark.asyncio
async def test_store_writes_remote_in_background():
    posted = []

    def handler(request):
        if request.method == "POST":
            posted.append(json.loads(request.content))
            return httpx.Response(201)
        return httpx.Response(200, json=[])

    cache = TieredCache(remote_store=remote_store(handler))
    tab = make_tab()
    await cache.store(tab, "development", 0.9)
    await cache.drain()

    assert len(posted) == 1
    assert posted[0]["category"] == "development"
    assert posted[0]["domain"] == "github.com"
    assert posted[0]["cache_key"].startswith("github.com_")
    assert posted[0]["result"]["source_confidence"] == 0.9


@pytest.mark.asyncio
async def test_stats(clock):
    cache = TieredCache(clock=clock)
    stats = await cache.stats()
    assert stats["hit_availability"] == "Empty"
    assert stats["remote"] == {"configured": False}

    await cache.store(make_tab(), "development")
    stats = await cache.stats()
    assert stats["tier_sizes"] == {"exact": 1, "domain": 1}
    assert stats["hit_availability"] == "Available"


@pytest.mark.asyncio
async def test_storing_twice_overwrites(clock):
    cache = TieredCache(clock=clock)
    tab = make_tab()
    await cache.store(tab, "development")
    await cache.store(tab, "work-productivity")
    assert len(cache.exact_tier) == 1
    assert (await cache.lookup(tab)).category == "work-productivity"

import asyncio

import pytest

from taborganizer.agents.tab_group_reconciler import TabGroupReconciler
from taborganizer.surfaces import InMemoryGroupingSurface

from .conftest import make_tab

YOUTUBE = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class FailingSurface:
    async def query_groups(self):
        raise RuntimeError("tabGroups API unavailable")

    async def create_group(self, tab_ids):
        raise RuntimeError("tabGroups API unavailable")

    async def update_group(self, group_id, title=None, color=None):
        raise RuntimeError("tabGroups API unavailable")

    async def add_to_group(self, group_id, tab_ids):
        raise RuntimeError("tabGroups API unavailable")


class SlowSurface(InMemoryGroupingSurface):
    """Native calls take a while and let other work run meanwhile."""

    def __init__(self, delay=0.05):
        super().__init__()
        self.delay = delay

    async def query_groups(self):
        await asyncio.sleep(self.delay)
        return await super().query_groups()


class ClosingSurface(InMemoryGroupingSurface):
    """Closes the tab while the native grouping call is in flight."""

    def __init__(self):
        super().__init__()
        self.reconciler = None

    async def create_group(self, tab_ids):
        for tab_id in tab_ids:
            self.reconciler.on_tab_removed(tab_id)
        return await super().create_group(tab_ids)


@pytest.fixture
def surface():
    return InMemoryGroupingSurface()


@pytest.fixture
def reconciler(offline_resolver, surface, registry):
    return TabGroupReconciler(offline_resolver, surface, registry, analysis_delay=0)


@pytest.mark.asyncio
async def test_assign_groups_natively_and_in_state(reconciler, surface):
    tab = make_tab(1, YOUTUBE, "Video")
    assert await reconciler.assign(tab, "entertainment")

    assert [t.id for t in reconciler.state.members("entertainment")] == [1]
    assert surface.tabs_in("entertainment") == [1]
    groups = await surface.query_groups()
    assert groups[0]["color"] == "orange"


@pytest.mark.asyncio
async def test_assign_then_remove(reconciler):
    await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    assert reconciler.remove(1) == "entertainment"
    assert reconciler.state.snapshot() == {}


@pytest.mark.asyncio
async def test_second_tab_joins_existing_native_group(reconciler, surface):
    await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    await reconciler.assign(make_tab(2, "https://www.netflix.com/browse", "Netflix"), "entertainment")
    assert len(surface.groups) == 1
    assert surface.tabs_in("entertainment") == [1, 2]


@pytest.mark.asyncio
async def test_reassign_moves_tab(reconciler, surface):
    await reconciler.assign(make_tab(1), "development")
    await reconciler.assign(make_tab(1), "work-productivity")
    assert reconciler.state.categories == ["work-productivity"]
    assert surface.tabs_in("development") == []
    assert surface.tabs_in("work-productivity") == [1]


@pytest.mark.asyncio
async def test_unknown_category_gets_grey_group(reconciler, surface):
    await reconciler.assign(make_tab(1), "misc")
    groups = await surface.query_groups()
    assert (groups[0]["title"], groups[0]["color"]) == ("misc", "grey")


@pytest.mark.asyncio
async def test_surface_failure_still_updates_state(offline_resolver, registry):
    reconciler = TabGroupReconciler(offline_resolver, FailingSurface(), registry, analysis_delay=0)
    assert await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    assert reconciler.state.find(1) == "entertainment"


@pytest.mark.asyncio
async def test_resync_repairs_native_groups(offline_resolver, registry):
    reconciler = TabGroupReconciler(offline_resolver, FailingSurface(), registry, analysis_delay=0)
    await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    await reconciler.assign(make_tab(2), "development")

    assert await reconciler.resync() == {"synced": [], "failed": ["entertainment", "development"]}

    healthy = InMemoryGroupingSurface()
    reconciler.surface = healthy
    assert await reconciler.resync() == {"synced": ["entertainment", "development"], "failed": []}
    assert healthy.tabs_in("entertainment") == [1]
    assert healthy.tabs_in("development") == [2]


@pytest.mark.asyncio
async def test_assign_after_close_is_ignored(reconciler, surface):
    reconciler.on_tab_removed(1)
    assert not await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    assert reconciler.state.snapshot() == {}
    assert surface.groups == {}


@pytest.mark.asyncio
async def test_close_during_native_call_drops_assignment(offline_resolver, registry):
    surface = ClosingSurface()
    reconciler = TabGroupReconciler(offline_resolver, surface, registry, analysis_delay=0)
    surface.reconciler = reconciler
    assert not await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    assert 1 not in reconciler.state


@pytest.mark.asyncio
async def test_tab_created_schedules_analysis(reconciler, surface):
    task = reconciler.on_tab_created(make_tab(1))
    assert await task == "development"
    assert surface.tabs_in("development") == [1]


@pytest.mark.asyncio
async def test_internal_pages_are_ignored(reconciler):
    assert reconciler.on_tab_created(make_tab(1, "chrome://settings", "Settings")) is None
    assert await reconciler.on_tab_updated(2, make_tab(2, "about:blank", ""), "complete") is None
    assert len(reconciler.state) == 0


@pytest.mark.asyncio
async def test_tab_updated_waits_for_complete(reconciler):
    tab = make_tab(1, YOUTUBE, "Video")
    assert await reconciler.on_tab_updated(1, tab, "loading") is None
    assert 1 not in reconciler.state
    assert await reconciler.on_tab_updated(1, tab, "complete") == "entertainment"


@pytest.mark.asyncio
async def test_closed_tab_created_again_is_grouped(reconciler):
    reconciler.on_tab_removed(1)
    task = reconciler.on_tab_created(make_tab(1))
    assert await task == "development"


@pytest.mark.asyncio
async def test_organize_all(reconciler):
    grouped = await reconciler.organize_all([
        make_tab(1),
        make_tab(2, "chrome://extensions", "Extensions"),
        make_tab(3, "https://amazon.com/dp/1", "Kettle"),
    ])
    assert grouped == {1: "development", 3: "shopping"}


@pytest.mark.asyncio
async def test_regroup_only_moves_tracked_tabs(reconciler):
    await reconciler.assign(make_tab(1), "development")
    assert await reconciler.regroup([1, 42], "deep-work") == [1]
    assert reconciler.state.find(1) == "deep-work"


@pytest.mark.asyncio
async def test_activate_and_unused(reconciler):
    await reconciler.assign(make_tab(1, last_accessed=0.0), "development")
    await reconciler.assign(make_tab(2, last_accessed=0.0), "development")
    assert reconciler.activate(2)
    assert not reconciler.on_tab_activated(99)
    assert [t.id for t in reconciler.unused_tabs(7)] == [1]


@pytest.mark.asyncio
async def test_state_survives_restart(offline_resolver, surface, registry, snapshot_store):
    reconciler = TabGroupReconciler(offline_resolver, surface, registry, snapshot_store=snapshot_store)
    await reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment")
    await reconciler.assign(make_tab(2), "development")
    reconciler.on_tab_removed(2)

    restored = TabGroupReconciler(offline_resolver, surface, registry, snapshot_store=snapshot_store)
    restored.load()
    assert restored.state.snapshot() == reconciler.state.snapshot()
    assert restored.state.categories == ["entertainment"]


@pytest.mark.asyncio
async def test_remove_while_native_call_in_flight(offline_resolver, registry):
    reconciler = TabGroupReconciler(offline_resolver, SlowSurface(), registry, analysis_delay=0)
    task = asyncio.create_task(reconciler.assign(make_tab(1, YOUTUBE, "Video"), "entertainment"))
    await asyncio.sleep(0.01)

    reconciler.remove(1)
    assert await task is False
    assert 1 not in reconciler.state
    assert reconciler.state.snapshot() == {}


@pytest.mark.asyncio
async def test_concurrent_assigns_of_one_tab_keep_a_single_home(offline_resolver, registry):
    reconciler = TabGroupReconciler(offline_resolver, SlowSurface(delay=0), registry, analysis_delay=0)
    results = await asyncio.gather(
        reconciler.assign(make_tab(1), "development"),
        reconciler.assign(make_tab(1), "finance"),
    )
    assert results == [True, True]

    snapshot = reconciler.state.snapshot()
    homes = [category for category, tabs in snapshot.items() if any(t.id == 1 for t in tabs)]
    assert len(homes) == 1
    assert all(tabs for tabs in snapshot.values())
    assert reconciler.state.find(1) == homes[0]


@pytest.mark.asyncio
async def test_resync_moves_tab_out_of_stale_group(reconciler, surface):
    stale = await surface.create_group([1])
    await surface.update_group(stale, title="finance")
    reconciler.state.place(make_tab(1), "development")

    assert await reconciler.resync() == {"synced": ["development"], "failed": []}
    assert surface.tabs_in("finance") == []
    assert surface.tabs_in("development") == [1]

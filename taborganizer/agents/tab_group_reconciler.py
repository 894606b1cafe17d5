"""TabGroupReconciler: keeps GroupState and the native tab groups in step."""
from collections import OrderedDict
from typing import Any, Dict, Iterable, List, Optional, Set
import asyncio
import logging
import time

from ..categories import CategoryRegistry
from ..config import INTERNAL_URL_PREFIXES, TAB_ANALYSIS_DELAY_SECONDS
from ..database.snapshot_store import TAB_GROUPS_KEY, SnapshotStore
from ..errors import ExternalSurfaceError
from ..group_state import GroupState
from ..models import TabDescriptor
from ..surfaces import GroupingSurface
from .categorization_resolver import CategorizationResolver

logger = logging.getLogger(__name__)

CLOSED_TAB_MEMORY = 1024
TAB_COMPLETE = "complete"


class TabGroupReconciler:
    """Applies tab lifecycle events to GroupState and mirrors it onto the native surface.

    GroupState is the only source of truth. Native surface failures are
    logged and the in-memory mutation still happens; ``resync`` repairs
    the drift later.
    """

    def __init__(
        self,
        resolver: CategorizationResolver,
        surface: GroupingSurface,
        registry: CategoryRegistry,
        snapshot_store: Optional[SnapshotStore] = None,
        state: Optional[GroupState] = None,
        analysis_delay: float = TAB_ANALYSIS_DELAY_SECONDS,
        internal_prefixes: Iterable[str] = INTERNAL_URL_PREFIXES,
    ):
        self.resolver = resolver
        self.surface = surface
        self.registry = registry
        self.snapshot_store = snapshot_store
        self.state = state if state is not None else GroupState()
        self.analysis_delay = analysis_delay
        self.internal_prefixes = tuple(internal_prefixes)
        self._closed: "OrderedDict[int, float]" = OrderedDict()
        self._tasks: Set[asyncio.Task] = set()

    # Persistence

    def load(self) -> None:
        if self.snapshot_store is None:
            return
        self.state = GroupState.from_payload(self.snapshot_store.load_or_default(TAB_GROUPS_KEY, {}))
        logger.info(f"Restored {len(self.state)} tabs in {len(self.state.categories)} groups")

    def persist(self) -> None:
        if self.snapshot_store is not None:
            self.snapshot_store.save_quietly(TAB_GROUPS_KEY, self.state.to_payload())

    # Closed-tab bookkeeping

    def _mark_closed(self, tab_id: int) -> None:
        self._closed[tab_id] = time.time()
        self._closed.move_to_end(tab_id)
        while len(self._closed) > CLOSED_TAB_MEMORY:
            self._closed.popitem(last=False)

    def is_closed(self, tab_id: int) -> bool:
        return tab_id in self._closed

    def is_eligible(self, descriptor: TabDescriptor) -> bool:
        url = descriptor.url or ""
        return bool(url) and not url.startswith(self.internal_prefixes)

    # Lifecycle events

    def on_tab_created(self, descriptor: TabDescriptor) -> Optional[asyncio.Task]:
        """Schedule analysis of a new tab; returns the background task, if any."""
        self._closed.pop(descriptor.id, None)
        if not self.is_eligible(descriptor):
            return None
        task = asyncio.create_task(self._delayed_analysis(descriptor))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _delayed_analysis(self, descriptor: TabDescriptor) -> Optional[str]:
        if self.analysis_delay > 0:
            await asyncio.sleep(self.analysis_delay)
        return await self.analyze_and_group(descriptor)

    async def on_tab_updated(self, tab_id: int, descriptor: TabDescriptor, status: Optional[str] = None) -> Optional[str]:
        """Re-resolve only once the page reports it finished loading."""
        if status != TAB_COMPLETE or not self.is_eligible(descriptor):
            return None
        if descriptor.id != tab_id:
            descriptor = descriptor.model_copy(update={"id": tab_id})
        self._closed.pop(tab_id, None)
        return await self.analyze_and_group(descriptor)

    def on_tab_removed(self, tab_id: int) -> Optional[str]:
        return self.remove(tab_id)

    def on_tab_activated(self, tab_id: int) -> bool:
        return self.activate(tab_id)

    # Operations

    async def analyze_and_group(self, descriptor: TabDescriptor) -> Optional[str]:
        result = await self.resolver.resolve(descriptor)
        if await self.assign(descriptor, result.category):
            logger.info(f"Tab '{descriptor.title[:50]}' grouped as {result.category} ({result.source})")
            return result.category
        return None

    async def assign(self, descriptor: TabDescriptor, category: str) -> bool:
        """Group a tab under category, natively and in GroupState.

        A tab closed before this call (or while the native calls were in
        flight) is ignored.
        """
        if self.is_closed(descriptor.id):
            logger.debug(f"Ignoring assignment for closed tab {descriptor.id}")
            return False

        try:
            await self._join_native_group(descriptor.id, category)
        except ExternalSurfaceError as e:
            logger.error(f"Native grouping failed for tab {descriptor.id}: {e}")

        if self.is_closed(descriptor.id):
            logger.debug(f"Tab {descriptor.id} closed while grouping; dropping assignment")
            return False

        previous = self.state.place(descriptor, category)
        if previous is not None:
            logger.info(f"Tab {descriptor.id} moved from {previous} to {category}")
        self.persist()
        return True

    def remove(self, tab_id: int) -> Optional[str]:
        """Drop a closed tab. Assignments still in flight for it become no-ops."""
        self._mark_closed(tab_id)
        category = self.state.remove(tab_id)
        if category is not None:
            self.persist()
        return category

    def activate(self, tab_id: int) -> bool:
        touched = self.state.touch(tab_id)
        if touched:
            self.persist()
        return touched

    async def _find_native_group(self, title: str) -> Optional[int]:
        for group in await self.surface.query_groups():
            if group.get("title") == title:
                return group.get("id")
        return None

    async def _join_native_group(self, tab_id: int, category: str) -> int:
        try:
            group_id = await self._find_native_group(category)
            if group_id is None:
                group_id = await self.surface.create_group([tab_id])
                await self.surface.update_group(group_id, title=category, color=self.registry.color_for(category))
            else:
                await self.surface.add_to_group(group_id, [tab_id])
            return group_id
        except ExternalSurfaceError:
            raise
        except Exception as e:
            raise ExternalSurfaceError(f"Could not group tab {tab_id} as {category}: {e}") from e

    async def resync(self) -> Dict[str, Any]:
        """Full reconciliation pass: push every GroupState list onto the native surface.

        Drift is repaired only by adding tabs to the group named for their
        category; the surface moves a tab out of its old group when it joins a
        new one. Native groups whose title matches no category are left alone,
        since the surface offers no call to dissolve them.
        """
        synced: List[str] = []
        failed: List[str] = []
        for category, tabs in self.state.snapshot().items():
            tab_ids = [t.id for t in tabs]
            try:
                group_id = await self._find_native_group(category)
                if group_id is None:
                    group_id = await self.surface.create_group(tab_ids)
                else:
                    await self.surface.add_to_group(group_id, tab_ids)
                await self.surface.update_group(group_id, title=category, color=self.registry.color_for(category))
                synced.append(category)
            except Exception as e:
                logger.error(f"Resync failed for group {category}: {e}")
                failed.append(category)
        return {"synced": synced, "failed": failed}

    async def organize_all(self, descriptors: Iterable[TabDescriptor]) -> Dict[int, str]:
        """Analyse and group every eligible tab, one after another."""
        grouped: Dict[int, str] = {}
        for descriptor in descriptors:
            if not self.is_eligible(descriptor):
                continue
            self._closed.pop(descriptor.id, None)
            category = await self.analyze_and_group(descriptor)
            if category is not None:
                grouped[descriptor.id] = category
        return grouped

    async def regroup(self, tab_ids: Iterable[int], category: str) -> List[int]:
        """Move tabs already known to GroupState into category."""
        known = {t.id: t for tabs in self.state.snapshot().values() for t in tabs}
        moved = []
        for tab_id in tab_ids:
            descriptor = known.get(tab_id)
            if descriptor is None:
                logger.warning(f"Tab {tab_id} is not tracked; cannot add it to {category}")
                continue
            if await self.assign(descriptor, category):
                moved.append(tab_id)
        return moved

    def unused_tabs(self, days: float) -> List[TabDescriptor]:
        return self.state.unused(time.time() - days * 86400)

    async def drain(self) -> None:
        """Wait for scheduled tab analyses."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

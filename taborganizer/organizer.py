"""TabOrganizer: owns all shared state and exposes the command surface."""
from typing import Any, Dict, Iterable, List, Optional
import logging

from .agents.categorization_resolver import CategorizationResolver
from .agents.heuristic_classifier import HeuristicClassifier
from .agents.tab_classifier_agent import TabClassifierAgent
from .agents.tab_group_reconciler import TabGroupReconciler
from .cache.remote_store import RemoteStore
from .cache.tiered_cache import TieredCache
from .categories import CategoryRegistry
from .config import UNUSED_TAB_DAYS
from .database.db import make_session_factory
from .database.snapshot_store import USER_CATEGORIES_KEY, SnapshotStore
from .models import CategoryDefinition, CategoryResult, TabDescriptor
from .rate_limiter import RateLimiter
from .surfaces import ContentSource, GroupingSurface, InMemoryGroupingSurface

logger = logging.getLogger(__name__)


class TabOrganizer:
    """Single coordinating component.

    Everything mutable (cache tiers, rate limiter window, GroupState, user
    categories) is owned here and reached only through these methods.
    """

    def __init__(
        self,
        snapshot_store: Optional[SnapshotStore] = None,
        surface: Optional[GroupingSurface] = None,
        remote_store: Optional[RemoteStore] = None,
        content_source: Optional[ContentSource] = None,
        rate_limiter: Optional[RateLimiter] = None,
        llm: Any = None,
        classifier_options: Optional[Dict[str, Any]] = None,
        cache_options: Optional[Dict[str, Any]] = None,
        reconciler_options: Optional[Dict[str, Any]] = None,
    ):
        self.snapshot_store = snapshot_store
        self.registry = CategoryRegistry.from_payload(
            snapshot_store.load_or_default(USER_CATEGORIES_KEY, {}) if snapshot_store else {}
        )
        self.rate_limiter = rate_limiter or RateLimiter()
        self.surface = surface or InMemoryGroupingSurface()
        self.cache = TieredCache(snapshot_store=snapshot_store, remote_store=remote_store, **(cache_options or {}))
        self.classifier = TabClassifierAgent(self.registry, self.rate_limiter, llm=llm, **(classifier_options or {}))
        self.heuristic = HeuristicClassifier(self.registry)
        self.resolver = CategorizationResolver(self.cache, self.classifier, self.heuristic, content_source=content_source)
        self.reconciler = TabGroupReconciler(
            self.resolver,
            self.surface,
            self.registry,
            snapshot_store=snapshot_store,
            **(reconciler_options or {}),
        )

    @classmethod
    def from_config(cls, **kwargs: Any) -> "TabOrganizer":
        """Organizer backed by the configured SQLite file and remote store."""
        kwargs.setdefault("snapshot_store", SnapshotStore(make_session_factory()))
        kwargs.setdefault("remote_store", RemoteStore())
        organizer = cls(**kwargs)
        organizer.load()
        return organizer

    def load(self) -> None:
        """Restore cache tiers and GroupState. Call once before first use."""
        self.cache.load()
        self.reconciler.load()

    async def close(self) -> None:
        await self.reconciler.drain()
        await self.cache.drain()
        await self.cache.remote_store.aclose()

    # Command surface

    async def resolve(self, descriptor: TabDescriptor) -> str:
        return (await self.resolver.resolve(descriptor)).category

    async def resolve_detailed(self, descriptor: TabDescriptor) -> CategoryResult:
        return await self.resolver.resolve(descriptor)

    async def assign(self, descriptor: TabDescriptor, category: str) -> bool:
        return await self.reconciler.assign(descriptor, category)

    def remove(self, tab_id: int) -> Optional[str]:
        return self.reconciler.remove(tab_id)

    def activate(self, tab_id: int) -> bool:
        return self.reconciler.activate(tab_id)

    def get_state(self) -> Dict[str, List[TabDescriptor]]:
        return self.reconciler.state.snapshot()

    async def get_cache_stats(self) -> Dict[str, Any]:
        stats = await self.cache.stats()
        stats["rate_limit"] = self.rate_limiter.stats()
        stats["classifier_available"] = self.classifier.available
        return stats

    def clear_cache(self) -> None:
        self.cache.clear()

    # Tab lifecycle events

    def on_tab_created(self, descriptor: TabDescriptor):
        return self.reconciler.on_tab_created(descriptor)

    async def on_tab_updated(self, tab_id: int, descriptor: TabDescriptor, status: Optional[str] = None) -> Optional[str]:
        return await self.reconciler.on_tab_updated(tab_id, descriptor, status)

    def on_tab_removed(self, tab_id: int) -> Optional[str]:
        return self.reconciler.on_tab_removed(tab_id)

    def on_tab_activated(self, tab_id: int) -> bool:
        return self.reconciler.on_tab_activated(tab_id)

    # Housekeeping

    async def organize_all(self, descriptors: Iterable[TabDescriptor]) -> Dict[int, str]:
        return await self.reconciler.organize_all(descriptors)

    async def resync(self) -> Dict[str, Any]:
        return await self.reconciler.resync()

    def unused_tabs(self, days: float = UNUSED_TAB_DAYS) -> List[TabDescriptor]:
        return self.reconciler.unused_tabs(days)

    # Categories

    def categories(self) -> List[CategoryDefinition]:
        return self.registry.definitions()

    def _persist_categories(self) -> None:
        if self.snapshot_store is not None:
            self.snapshot_store.save_quietly(USER_CATEGORIES_KEY, self.registry.user_payload())

    def add_category(
        self,
        name: str,
        color: str = "grey",
        description: str = "",
        keywords: Optional[List[str]] = None,
    ) -> CategoryDefinition:
        definition = self.registry.add_user_category(name, color, description, keywords)
        self._persist_categories()
        return definition

    def remove_category(self, name: str) -> bool:
        removed = self.registry.remove_user_category(name)
        if removed:
            self._persist_categories()
        return removed

    async def create_custom_group(self, name: str, tab_ids: Iterable[int], color: str = "grey") -> Dict[str, Any]:
        definition = self.add_category(name, color=color)
        moved = await self.reconciler.regroup(tab_ids, definition.name)
        return {"category": definition.name, "moved_tab_ids": moved}

"""Three-tier categorization cache.

Lookup walks an ordered list of strategies (exact tier, domain-pattern
tier, remote store). A hit at one strategy back-fills every local
strategy ahead of it, so the next identical request is answered by the
exact tier. Local tiers are written through to the snapshot store after
every mutating batch; remote writes are fire-and-forget.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ..config import CACHE_MAX_AGE_DAYS, DOMAIN_CACHE_MAX_SIZE, EXACT_CACHE_MAX_SIZE
from ..database.snapshot_store import DOMAIN_CACHE_KEY, EXACT_CACHE_KEY, SnapshotStore
from ..errors import PersistenceError
from ..models import (
    SOURCE_DOMAIN,
    SOURCE_EXACT,
    SOURCE_REMOTE,
    CacheEntry,
    CategoryResult,
    TabDescriptor,
)
from ..utils.fingerprint import UNKNOWN_DOMAIN_KEY, domain_key, exact_key, extract_domain
from .remote_store import RemoteStore
from .tiers import FifoTier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheKeys:
    exact: str
    domain: str
    site: str

    @classmethod
    def for_descriptor(cls, descriptor: TabDescriptor) -> "CacheKeys":
        return cls(
            exact=exact_key(descriptor.url, descriptor.title, descriptor.extracted_content),
            domain=domain_key(descriptor.url),
            site=extract_domain(descriptor.url),
        )


class LocalTierLookup:
    """Lookup strategy over one in-memory tier."""

    def __init__(self, tier: FifoTier, source: str, key_of: Callable[[CacheKeys], Optional[str]]):
        self.tier = tier
        self.source = source
        self.key_of = key_of
        self.is_local = True

    async def lookup(self, keys: CacheKeys) -> Optional[CacheEntry]:
        key = self.key_of(keys)
        return self.tier.get(key) if key else None

    def backfill(self, keys: CacheKeys, entry: CacheEntry) -> None:
        key = self.key_of(keys)
        if key:
            self.tier.put(key, entry)

    def expire(self, keys: CacheKeys) -> None:
        key = self.key_of(keys)
        if key:
            self.tier.discard(key)


class RemoteStoreLookup:
    """Lookup strategy over the optional remote store, keyed by the exact fingerprint."""

    def __init__(self, store: RemoteStore):
        self.store = store
        self.source = SOURCE_REMOTE
        self.is_local = False

    async def lookup(self, keys: CacheKeys) -> Optional[CacheEntry]:
        if not self.store.configured:
            return None
        try:
            return await self.store.get(keys.exact)
        except PersistenceError as e:
            logger.warning(f"[CACHE] Remote lookup failed, treating as miss: {e}")
            return None

    def backfill(self, keys: CacheKeys, entry: CacheEntry) -> None:
        pass

    def expire(self, keys: CacheKeys) -> None:
        pass


def _domain_slot(keys: CacheKeys) -> Optional[str]:
    # Unparseable URLs would all share one slot; keep them out of the domain tier.
    return None if keys.domain == UNKNOWN_DOMAIN_KEY else keys.domain


class TieredCache:
    """Exact tier, domain-pattern tier and optional remote store, in that order."""

    def __init__(
        self,
        snapshot_store: Optional[SnapshotStore] = None,
        remote_store: Optional[RemoteStore] = None,
        exact_max_size: int = EXACT_CACHE_MAX_SIZE,
        domain_max_size: int = DOMAIN_CACHE_MAX_SIZE,
        max_age_days: float = CACHE_MAX_AGE_DAYS,
        clock: Callable[[], float] = time.time,
    ):
        self.snapshot_store = snapshot_store
        self.remote_store = remote_store or RemoteStore(base_url=None, api_key=None)
        self.exact_tier = FifoTier("exact", exact_max_size)
        self.domain_tier = FifoTier("domain", domain_max_size)
        self.max_age_seconds = max_age_days * 86400 if max_age_days and max_age_days > 0 else None
        self._clock = clock
        self.strategies: List[Any] = [
            LocalTierLookup(self.exact_tier, SOURCE_EXACT, lambda k: k.exact),
            LocalTierLookup(self.domain_tier, SOURCE_DOMAIN, _domain_slot),
            RemoteStoreLookup(self.remote_store),
        ]
        self.hits: Dict[str, int] = {s.source: 0 for s in self.strategies}
        self.misses = 0
        self._pending: Set[asyncio.Task] = set()

    def _is_fresh(self, entry: CacheEntry) -> bool:
        if self.max_age_seconds is None:
            return True
        return entry.age(self._clock()) <= self.max_age_seconds

    def load(self) -> None:
        """Restore both local tiers from the snapshot store. Call once at startup."""
        if self.snapshot_store is None:
            return
        exact = self.exact_tier.load_payload(self.snapshot_store.load_or_default(EXACT_CACHE_KEY, []))
        domain = self.domain_tier.load_payload(self.snapshot_store.load_or_default(DOMAIN_CACHE_KEY, []))
        logger.info(f"[CACHE] Restored {exact} exact and {domain} domain-pattern entries")

    def persist(self) -> None:
        if self.snapshot_store is None:
            return
        self.snapshot_store.save_quietly(EXACT_CACHE_KEY, self.exact_tier.to_payload())
        self.snapshot_store.save_quietly(DOMAIN_CACHE_KEY, self.domain_tier.to_payload())

    async def lookup(self, descriptor: TabDescriptor) -> Optional[CategoryResult]:
        keys = CacheKeys.for_descriptor(descriptor)
        dirty = False
        for position, strategy in enumerate(self.strategies):
            entry = await strategy.lookup(keys)
            if entry is None:
                continue
            if not self._is_fresh(entry):
                logger.debug(f"[CACHE] Expired {strategy.source} entry for {descriptor.url}")
                strategy.expire(keys)
                dirty = dirty or strategy.is_local
                continue
            for earlier in self.strategies[:position]:
                if earlier.is_local:
                    earlier.backfill(keys, entry)
                    dirty = True
            if dirty:
                self.persist()
            self.hits[strategy.source] += 1
            logger.debug(f"[CACHE] {strategy.source} hit for {descriptor.url}: {entry.category}")
            return CategoryResult(
                category=entry.category,
                source=strategy.source,
                confidence=entry.source_confidence,
                cacheable=False,
            )
        if dirty:
            self.persist()
        self.misses += 1
        return None

    async def store(self, descriptor: TabDescriptor, category: str, confidence: float = 1.0) -> CacheEntry:
        keys = CacheKeys.for_descriptor(descriptor)
        entry = CacheEntry(category=category, timestamp=self._clock(), source_confidence=confidence)
        for strategy in self.strategies:
            if strategy.is_local:
                strategy.backfill(keys, entry)
        self.persist()
        if self.remote_store.configured:
            task = asyncio.create_task(self._store_remote(keys, entry))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return entry

    async def _store_remote(self, keys: CacheKeys, entry: CacheEntry) -> None:
        try:
            await self.remote_store.put(keys.exact, entry, domain=keys.site)
        except PersistenceError as e:
            logger.warning(f"[CACHE] Failed to store in remote store: {e}")

    async def drain(self) -> None:
        """Wait for in-flight remote writes."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def clear(self) -> None:
        """Empty both local tiers and drop their snapshots. Remote rows are preserved."""
        self.exact_tier.clear()
        self.domain_tier.clear()
        if self.snapshot_store is not None:
            try:
                self.snapshot_store.delete(EXACT_CACHE_KEY, DOMAIN_CACHE_KEY)
            except PersistenceError as e:
                logger.error(f"[CACHE] {e}")
        logger.info("[CACHE] Local caches cleared, remote store preserved")

    async def stats(self) -> Dict[str, Any]:
        remote: Dict[str, Any] = {"configured": self.remote_store.configured}
        if self.remote_store.configured:
            try:
                remote["total_records"] = await self.remote_store.count()
            except PersistenceError as e:
                logger.warning(f"[CACHE] Could not get remote stats: {e}")
                remote["total_records"] = None
        tier_sizes = {"exact": len(self.exact_tier), "domain": len(self.domain_tier)}
        return {
            "tier_sizes": tier_sizes,
            "exact": self.exact_tier.stats(),
            "domain": self.domain_tier.stats(),
            "remote": remote,
            "hit_availability": "Available" if any(tier_sizes.values()) else "Empty",
            "hits": dict(self.hits),
            "misses": self.misses,
        }

"""Bounded in-memory cache tiers."""
from collections import OrderedDict
from typing import Any, Dict, Iterator, List, Optional, Tuple
import logging

from pydantic import ValidationError

from ..models import CacheEntry

logger = logging.getLogger(__name__)


class FifoTier:
    """Key -> CacheEntry map evicting the oldest inserted entries first.

    Overwriting an existing key replaces the entry in place and keeps its
    insertion position. Reads never reorder entries (FIFO, not LRU).
    """

    def __init__(self, name: str, max_size: int):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.name = name
        self.max_size = max_size
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def get(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        return entry.model_copy() if entry is not None else None

    def put(self, key: str, entry: CacheEntry) -> List[str]:
        """Store a private copy of entry; return the keys evicted to make room."""
        self._entries[key] = entry.model_copy()
        evicted = []
        while len(self._entries) > self.max_size:
            old_key, _ = self._entries.popitem(last=False)
            evicted.append(old_key)
        if evicted:
            logger.debug(f"[CACHE] {self.name} tier evicted {len(evicted)} entries")
        return evicted

    def discard(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def to_payload(self) -> List[List[Any]]:
        """Insertion-ordered [key, entry] pairs."""
        return [[key, entry.model_dump()] for key, entry in self._entries.items()]

    def load_payload(self, payload: Optional[List[Any]]) -> int:
        """Replace contents from persisted pairs; malformed pairs are skipped."""
        self._entries.clear()
        for item in payload or []:
            try:
                key, raw = item
                entry = CacheEntry.model_validate(raw)
            except (TypeError, ValueError, ValidationError) as e:
                logger.warning(f"[CACHE] Skipping malformed {self.name} entry: {e}")
                continue
            self.put(str(key), entry)
        return len(self._entries)

    def items(self) -> List[Tuple[str, CacheEntry]]:
        return [(k, v.model_copy()) for k, v in self._entries.items()]

    def stats(self) -> Dict[str, Any]:
        size = len(self._entries)
        return {
            "size": size,
            "max_size": self.max_size,
            "usage": f"{(size / self.max_size) * 100:.1f}%",
        }

"""Categorization cache tiers."""
from .tiers import FifoTier
from .remote_store import RemoteStore
from .tiered_cache import CacheKeys, TieredCache

__all__ = ["FifoTier", "RemoteStore", "CacheKeys", "TieredCache"]

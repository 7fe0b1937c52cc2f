"""Cross-run item deduplication cache."""

from .interfaces import CacheKey, CacheEntry
from .item_cache import ItemCache, utcnow

__all__ = ["CacheKey", "CacheEntry", "ItemCache", "utcnow"]

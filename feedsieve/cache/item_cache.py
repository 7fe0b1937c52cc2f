"""Persistent deduplication cache with TTL expiry."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import structlog

from .interfaces import CacheEntry, CacheKey
from ..errors import CacheIOError

logger = structlog.get_logger()

DEFAULT_SHARDS = 16


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemCache:
    """Maps item identity to first-seen metadata.

    The map is split into shards, each guarded by its own lock, so workers
    touching unrelated keys do not contend on one mutex. ``prune`` takes
    every shard lock and is meant to run as a barrier before any worker
    starts reading.
    """

    def __init__(self, storage=None, shards: int = DEFAULT_SHARDS):
        if storage is None:
            from ..storage.database import CacheStorage
            storage = CacheStorage()
        self.storage = storage
        self._shards: List[Dict[CacheKey, CacheEntry]] = [{} for _ in range(shards)]
        self._locks = [threading.Lock() for _ in range(shards)]
        self.modified = False

    def _index(self, key: CacheKey) -> int:
        return hash(key) % len(self._shards)

    def contains(self, key: CacheKey, now: datetime = None) -> bool:
        """True iff an unexpired entry exists for key."""
        now = now or utcnow()
        i = self._index(key)
        with self._locks[i]:
            entry = self._shards[i].get(key)
        return entry is not None and entry.is_live(now)

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        i = self._index(key)
        with self._locks[i]:
            return self._shards[i].get(key)

    def insert(self, key: CacheKey, first_seen: datetime, ttl: timedelta) -> bool:
        """Record key as seen. First-seen wins: a live entry is never refreshed.

        Returns True if an entry was written.
        """
        i = self._index(key)
        with self._locks[i]:
            existing = self._shards[i].get(key)
            if existing is not None and existing.is_live(first_seen):
                return False
            self._shards[i][key] = CacheEntry(key=key, first_seen=first_seen, ttl=ttl)
            self.modified = True
        logger.debug("cache_insert", feed=key.feed_id, item=key.identity)
        return True

    def prune(self, now: datetime, live_feed_ids: Iterable[str]) -> int:
        """Drop expired, future-dated and orphaned entries. Returns the count removed."""
        live = set(live_feed_ids)
        removed = {"expired": 0, "future": 0, "orphaned": 0}

        for lock in self._locks:
            lock.acquire()
        try:
            for shard in self._shards:
                for key in list(shard):
                    entry = shard[key]
                    if key.feed_id not in live:
                        reason = "orphaned"
                    elif entry.first_seen > now:
                        reason = "future"
                    elif entry.expires_at < now:
                        reason = "expired"
                    else:
                        continue
                    del shard[key]
                    removed[reason] += 1
        finally:
            for lock in reversed(self._locks):
                lock.release()

        total = sum(removed.values())
        if total:
            self.modified = True
        logger.info("cache_pruned", removed=total, remaining=len(self), **removed)
        return total

    def load(self) -> bool:
        """Replace in-memory state with the stored snapshot.

        A failed load is not fatal: the cache starts empty and False is returned.
        """
        try:
            entries = self.storage.load_entries()
        except CacheIOError as e:
            logger.warning("cache_load_failed", error=str(e))
            self.clear()
            return False

        self.clear()
        for entry in entries:
            i = self._index(entry.key)
            with self._locks[i]:
                self._shards[i][entry.key] = entry
        self.modified = False
        logger.info("cache_loaded", entries=len(entries))
        return True

    def save(self, force: bool = False) -> int:
        """Write the whole map to storage. Raises CacheIOError."""
        if not (self.modified or force):
            logger.debug("cache_unchanged")
            return 0
        count = self.storage.replace_entries(self.entries())
        self.modified = False
        logger.info("cache_saved", entries=count)
        return count

    def entries(self) -> List[CacheEntry]:
        """Snapshot of all entries."""
        snapshot = []
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                snapshot.extend(shard.values())
        return snapshot

    def clear(self) -> None:
        for lock, shard in zip(self._locks, self._shards):
            with lock:
                shard.clear()

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)

"""Cache key and entry types."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import NamedTuple


class CacheKey(NamedTuple):
    """Identity of an item across runs: its feed plus its identity within that feed."""
    feed_id: str
    identity: str


@dataclass(frozen=True)
class CacheEntry:
    """An item that was new in some past run."""
    key: CacheKey
    first_seen: datetime  # Timezone-aware UTC
    ttl: timedelta        # Feed TTL at the time of insert

    @property
    def expires_at(self) -> datetime:
        return self.first_seen + self.ttl

    def is_live(self, now: datetime) -> bool:
        """Live from first_seen through first_seen + ttl, both ends included."""
        return self.first_seen <= now <= self.expires_at

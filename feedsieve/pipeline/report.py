"""Per-feed outcomes and the run report."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from ..ingestion.interfaces import FeedSource, Item


class FeedStatus(Enum):
    """Terminal state of one feed in one run."""
    DONE = "done"
    SKIPPED = "skipped"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class FeedResult:
    """What happened to one feed."""
    source: FeedSource
    status: FeedStatus
    title: str = ""
    link: str = ""
    items: List[Item] = field(default_factory=list)  # New items, DONE only
    error: Optional[BaseException] = None            # FAILED only
    stage: str = ""                                  # Last stage reached

    @property
    def feed_id(self) -> str:
        return self.source.feed_id

    @property
    def display_title(self) -> str:
        return self.source.title_override or self.title or self.source.display_name

    def to_dict(self) -> dict:
        return {
            "feed": self.feed_id,
            "status": self.status.value,
            "title": self.display_title,
            "new_items": len(self.items),
            "error": str(self.error) if self.error else None,
            "stage": self.stage,
        }


@dataclass
class RunReport:
    """Outcome of Scheduler.run_once, one result per scheduled feed in config order."""
    started_at: datetime
    results: List[FeedResult] = field(default_factory=list)
    artifacts: Dict[str, str] = field(default_factory=dict)
    render_errors: Dict[str, str] = field(default_factory=dict)
    pruned_entries: int = 0
    finished_at: Optional[datetime] = None
    cache_error: Optional[str] = None

    def with_status(self, status: FeedStatus) -> List[FeedResult]:
        return [r for r in self.results if r.status is status]

    @property
    def done(self) -> List[FeedResult]:
        return self.with_status(FeedStatus.DONE)

    @property
    def skipped(self) -> List[FeedResult]:
        return self.with_status(FeedStatus.SKIPPED)

    @property
    def failed(self) -> List[FeedResult]:
        return self.with_status(FeedStatus.FAILED)

    @property
    def cancelled(self) -> List[FeedResult]:
        return self.with_status(FeedStatus.CANCELLED)

    @property
    def new_item_count(self) -> int:
        return sum(len(r.items) for r in self.done)

    @property
    def nothing_processed(self) -> bool:
        """Feeds were scheduled, none got through, and at least one failed."""
        return bool(self.failed) and not (self.done or self.skipped)

    def result_for(self, feed_id: str) -> Optional[FeedResult]:
        for result in self.results:
            if result.feed_id == feed_id:
                return result
        return None

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "feeds": [r.to_dict() for r in self.results],
            "done": len(self.done),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "cancelled": len(self.cancelled),
            "new_items": self.new_item_count,
            "pruned_entries": self.pruned_entries,
            "render_errors": dict(self.render_errors),
            "cache_error": self.cache_error,
        }

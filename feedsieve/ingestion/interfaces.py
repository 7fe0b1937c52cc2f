"""Interface definitions for feed ingestion."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any
from enum import Enum


class SortPolicy(Enum):
    """How surviving items are ordered within a feed."""
    NONE = "none"      # Keep feed order
    TIME = "time"      # Newest first, undated last
    TITLE = "title"    # Case-insensitive title


@dataclass(frozen=True)
class FeedSource:
    """A configured feed. Immutable once configuration is loaded."""
    url: str  # Canonical, see urls.normalize_url
    name: str = ""
    enabled: bool = True
    days_to_cache: int = 7
    sort_by: SortPolicy = SortPolicy.NONE
    ignore_duplicate_titles: bool = False
    title_override: Optional[str] = None
    summary_only: bool = False
    encoding: Optional[str] = None
    options: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @property
    def feed_id(self) -> str:
        return self.url

    @property
    def ttl(self) -> timedelta:
        """Cache retention window: exact days."""
        return timedelta(days=self.days_to_cache)

    @property
    def display_name(self) -> str:
        return self.name or self.url

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


@dataclass
class Item:
    """One entry in a feed. Lives for a single run; hooks may edit it in place."""
    url: str = ""
    title: str = ""
    summary: str = ""
    content: str = ""
    author: str = ""
    published_at: Optional[datetime] = None
    guid: str = ""
    metadata: Dict[str, Dict[str, str]] = field(default_factory=dict)

    def set_metadata(self, namespace: str, key: str, value: str) -> None:
        self.metadata.setdefault(namespace, {})[key] = str(value)

    def get_metadata(self, namespace: str, key: str, default: str = None) -> Optional[str]:
        return self.metadata.get(namespace, {}).get(key, default)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "content": self.content,
            "author": self.author,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "guid": self.guid,
            "metadata": {ns: dict(values) for ns, values in self.metadata.items()},
        }


@dataclass
class FetchResult:
    """Raw bytes downloaded for a feed."""
    url: str
    raw: bytes
    encoding: Optional[str] = None  # Hint from the transport, may be None


@dataclass
class ParsedFeed:
    """Normalized output of the parser."""
    title: str = ""
    link: str = ""
    items: List[Item] = field(default_factory=list)


class FetcherInterface:
    """Interface for downloading raw feed content."""

    async def fetch(self, url: str) -> FetchResult:
        """Download one feed. Raises FetchError."""
        raise NotImplementedError


class ParserInterface:
    """Interface for turning raw feed content into items."""

    def parse(self, raw: bytes, encoding: Optional[str] = None, url: str = "") -> ParsedFeed:
        """Parse raw bytes. Raises ParseError."""
        raise NotImplementedError

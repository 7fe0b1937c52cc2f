"""Feed parser built on feedparser."""

from calendar import timegm
from datetime import datetime, timezone
from typing import Optional

import feedparser
import structlog

from .interfaces import Item, ParsedFeed, ParserInterface
from ..errors import ParseError

logger = structlog.get_logger()


class FeedParser(ParserInterface):
    """Converts raw RSS/Atom bytes into a ParsedFeed."""

    def parse(self, raw: bytes, encoding: Optional[str] = None, url: str = "") -> ParsedFeed:
        headers = {}
        if encoding:
            headers["content-type"] = f"application/xml; charset={encoding}"

        try:
            parsed = feedparser.parse(raw, response_headers=headers)
        except Exception as e:
            raise ParseError(url, f"parser crashed: {e}", e) from e

        if parsed.bozo and not parsed.entries and not parsed.feed:
            cause = parsed.get("bozo_exception")
            raise ParseError(url, f"not a feed: {cause}", cause)

        items = [self._parse_entry(entry) for entry in parsed.entries]

        logger.debug("feed_parsed", feed=url, items=len(items), bozo=bool(parsed.bozo))
        return ParsedFeed(
            title=parsed.feed.get("title", ""),
            link=parsed.feed.get("link", ""),
            items=items,
        )

    def _parse_entry(self, entry) -> Item:
        """Parse a feed entry into an Item."""
        summary = entry.get("summary", "")

        # Get content if available
        content = summary
        if entry.get("content"):
            content = entry.content[0].get("value", summary)

        # Parse date
        published_at = None
        for attr in ["published_parsed", "updated_parsed"]:
            parsed = entry.get(attr)
            if parsed:
                try:
                    published_at = datetime.fromtimestamp(timegm(parsed), tz=timezone.utc)
                    break
                except (TypeError, ValueError, OverflowError):
                    pass

        return Item(
            url=entry.get("link", ""),
            title=entry.get("title", ""),
            summary=summary,
            content=content,
            author=entry.get("author", ""),
            published_at=published_at,
            guid=entry.get("id", ""),
        )

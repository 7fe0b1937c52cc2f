"""Pytest configuration and shared fixtures."""

import asyncio
import os
import sys
import tempfile
from datetime import datetime, timezone
from email.utils import format_datetime
from pathlib import Path
from xml.sax.saxutils import escape

import pytest

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from feedsieve.errors import FetchError
from feedsieve.ingestion.interfaces import FeedSource, FetcherInterface, FetchResult


def build_rss(title: str, items: list) -> bytes:
    """Build an RSS 2.0 document. Items are dicts with title/link/description/author/published/guid."""
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">',
        '<channel>',
        f'<title>{escape(title)}</title>',
        '<link>https://example.com/</link>',
        '<description>Test feed</description>',
    ]
    for item in items:
        parts.append('<item>')
        if item.get("title") is not None:
            parts.append(f'<title>{escape(item["title"])}</title>')
        if item.get("link"):
            parts.append(f'<link>{escape(item["link"])}</link>')
        if item.get("description"):
            parts.append(f'<description>{escape(item["description"])}</description>')
        if item.get("author"):
            parts.append(f'<dc:creator>{escape(item["author"])}</dc:creator>')
        if item.get("published"):
            parts.append(f'<pubDate>{format_datetime(item["published"])}</pubDate>')
        if item.get("guid"):
            parts.append(f'<guid isPermaLink="false">{escape(item["guid"])}</guid>')
        parts.append('</item>')
    parts.append('</channel></rss>')
    return "\n".join(parts).encode("utf-8")


class FakeFetcher(FetcherInterface):
    """Serves documents from a dict and records concurrency."""

    def __init__(self, documents: dict, delay: float = 0.0, failures=()):
        self.documents = documents
        self.delay = delay
        self.failures = set(failures)
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        if url in self.failures or url not in self.documents:
            raise FetchError(url, "connection refused")
        return FetchResult(url=url, raw=self.documents[url], encoding="utf-8")


@pytest.fixture
def temp_db():
    """Provide a temporary database file."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield f"sqlite:///{db_path}"
    # Cleanup
    try:
        os.unlink(db_path)
    except FileNotFoundError:
        pass


@pytest.fixture
def t0():
    """A fixed run time."""
    return datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def rss_document():
    """Provide the RSS document builder."""
    return build_rss


@pytest.fixture
def make_fetcher():
    """Provide the FakeFetcher class."""
    return FakeFetcher


@pytest.fixture
def feed_a():
    return FeedSource(url="https://example.com/a.xml", name="Feed A", days_to_cache=1)


@pytest.fixture
def feed_b():
    return FeedSource(url="https://example.com/b.xml", name="Feed B", days_to_cache=1)

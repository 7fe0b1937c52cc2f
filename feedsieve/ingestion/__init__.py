"""Feed ingestion - fetching and parsing."""

from .interfaces import (
    SortPolicy, FeedSource, Item, FetchResult, ParsedFeed,
    FetcherInterface, ParserInterface
)
from .urls import normalize_url, item_identity, title_hash
from .fetcher import HTTPFetcher
from .parser import FeedParser

__all__ = [
    "SortPolicy", "FeedSource", "Item", "FetchResult", "ParsedFeed",
    "FetcherInterface", "ParserInterface",
    "normalize_url", "item_identity", "title_hash",
    "HTTPFetcher", "FeedParser"
]

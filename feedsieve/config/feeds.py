"""Feed configuration loader."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from ..errors import ConfigError
from ..ingestion.interfaces import FeedSource, SortPolicy
from ..ingestion.urls import normalize_url
from .settings import settings


@dataclass
class FeedRunConfig:
    """Everything the pipeline needs from the configuration file."""
    feeds: List[FeedSource] = field(default_factory=list)
    max_workers: int = 5

    @property
    def live_feed_ids(self) -> set:
        """Every configured feed, enabled or not. Cache entries of other feeds are orphans."""
        return {f.feed_id for f in self.feeds}


def load_feeds(config_path: str = None) -> FeedRunConfig:
    """Load feed configurations from a JSON or YAML file."""
    if config_path is None:
        config_path = settings.feeds_config_path
    path = Path(config_path)

    try:
        with open(path) as f:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(f) or {}
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read feed configuration {path}: {e}") from e

    return parse_feed_config(data, source=str(path))


def parse_feed_config(data: dict, source: str = "<config>") -> FeedRunConfig:
    """Build a FeedRunConfig from already-decoded configuration data."""
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: top level must be a mapping")

    global_settings = data.get("settings", {}) or {}
    default_days = _non_negative_int(
        global_settings.get("default_days_to_cache", settings.default_days_to_cache),
        f"{source}: settings.default_days_to_cache"
    )
    max_workers = _non_negative_int(
        global_settings.get("max_workers", settings.max_workers),
        f"{source}: settings.max_workers"
    )
    if max_workers < 1:
        raise ConfigError(f"{source}: settings.max_workers must be at least 1")

    feeds = []
    seen = {}
    for index, feed_data in enumerate(data.get("feeds", []) or []):
        where = f"{source}: feeds[{index}]"
        feed = _parse_feed(feed_data, default_days, where)
        if feed.feed_id in seen:
            raise ConfigError(f"{where}: duplicate feed URL {feed.feed_id} (also feeds[{seen[feed.feed_id]}])")
        seen[feed.feed_id] = index
        feeds.append(feed)

    return FeedRunConfig(feeds=feeds, max_workers=max_workers)


def _parse_feed(feed_data: dict, default_days: int, where: str) -> FeedSource:
    if not isinstance(feed_data, dict):
        raise ConfigError(f"{where}: feed entry must be a mapping")
    url = normalize_url(str(feed_data.get("url") or ""))
    if not url:
        raise ConfigError(f"{where}: missing url")

    sort_value = str(feed_data.get("sort_by", SortPolicy.NONE.value)).lower()
    try:
        sort_by = SortPolicy(sort_value)
    except ValueError:
        raise ConfigError(f"{where}: unknown sort_by {sort_value!r}") from None

    options = feed_data.get("options", {}) or {}
    if not isinstance(options, dict):
        raise ConfigError(f"{where}: options must be a mapping")

    return FeedSource(
        url=url,
        name=feed_data.get("name", ""),
        enabled=bool(feed_data.get("enabled", True)),
        days_to_cache=_non_negative_int(feed_data.get("days_to_cache", default_days), f"{where}: days_to_cache"),
        sort_by=sort_by,
        ignore_duplicate_titles=bool(feed_data.get("ignore_duplicate_titles", False)),
        title_override=feed_data.get("title_override"),
        summary_only=bool(feed_data.get("summary_only", False)),
        encoding=_optional_str(feed_data.get("encoding")),
        options=dict(options),
    )


def _non_negative_int(value, what: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{what} must be an integer, got {value!r}") from None
    if number < 0:
        raise ConfigError(f"{what} must not be negative")
    return number


def _optional_str(value) -> Optional[str]:
    return str(value) if value else None

"""Hook stages, results and the context objects hooks receive."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..ingestion.interfaces import FeedSource, Item


class Stage(Enum):
    """Pipeline checkpoints, in the order a feed passes through them."""
    PRE_FEED_DOWNLOAD = "pre_feed_download"
    POST_FEED_DOWNLOAD = "post_feed_download"
    POST_FEED_PARSE = "post_feed_parse"
    POST_FEED_PROCESS = "post_feed_process"  # Once per item
    PRE_FEED_OUTPUT = "pre_feed_output"
    POST_OUTPUT = "post_output"              # Once per run, after every renderer


class HookResult(Enum):
    """What a hook wants to happen next."""
    CONTINUE = "continue"
    SKIP_FEED = "skip_feed"   # Stop processing this feed; not an error
    DROP_ITEM = "drop_item"   # POST_FEED_PROCESS only: remove this item, keep its siblings


@dataclass(frozen=True)
class HookRegistration:
    """One callback registered for one stage."""
    stage: Stage
    plugin_name: str
    callback: Callable[[Any], Optional[HookResult]]
    priority: int = 100

    @property
    def sort_key(self):
        return (self.priority, self.plugin_name)


@dataclass
class FeedContext:
    """Mutable state of one feed as it moves through the stages.

    Hooks edit this in place; later hooks see earlier hooks' edits.
    """
    source: FeedSource
    log: Any
    plugin_data: Any = None  # PluginDataStore
    raw: Optional[bytes] = None
    encoding: Optional[str] = None
    title: str = ""
    link: str = ""
    items: List[Item] = field(default_factory=list)
    state: Dict[str, Any] = field(default_factory=dict)  # Per-run scratch space for plugins

    @property
    def feed_id(self) -> str:
        return self.source.feed_id

    def get_data(self, namespace: str, key: str, default: str = None) -> Optional[str]:
        if self.plugin_data is None:
            return default
        return self.plugin_data.get(namespace, self.feed_id, key, default)

    def set_data(self, namespace: str, key: str, value) -> None:
        if self.plugin_data is not None:
            self.plugin_data.set(namespace, self.feed_id, key, value)


@dataclass
class ItemContext:
    """One item under POST_FEED_PROCESS, seen together with its feed."""
    feed: FeedContext
    item: Item

    @property
    def source(self) -> FeedSource:
        return self.feed.source

    @property
    def feed_id(self) -> str:
        return self.feed.feed_id

    @property
    def log(self):
        return self.feed.log


@dataclass
class OutputContext:
    """Everything a run produced, handed to POST_OUTPUT hooks."""
    results: list
    artifacts: Dict[str, str]
    log: Any
    plugin_data: Any = None

    feed_id = "*"

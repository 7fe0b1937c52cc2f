"""Built-in plugins."""

from .max_items import MaxItemsPlugin
from .prune_original_rss import PruneOriginalRSSPlugin, prune_document
from .raw_feed_edit import RawFeedEditPlugin
from .raw_feed_save_as import RawFeedSaveAsPlugin
from .show_authors import ShowAuthorsPlugin


def builtin_plugins():
    """Fresh instances of every built-in plugin."""
    return [
        RawFeedEditPlugin(),
        RawFeedSaveAsPlugin(),
        ShowAuthorsPlugin(),
        MaxItemsPlugin(),
        PruneOriginalRSSPlugin(),
    ]


__all__ = [
    "MaxItemsPlugin", "PruneOriginalRSSPlugin", "RawFeedEditPlugin", "RawFeedSaveAsPlugin",
    "ShowAuthorsPlugin", "builtin_plugins", "prune_document"
]

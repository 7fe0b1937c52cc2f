"""Settings and feed configuration loading."""

from .settings import Settings, settings
from .feeds import FeedRunConfig, load_feeds

__all__ = ["Settings", "settings", "FeedRunConfig", "load_feeds"]

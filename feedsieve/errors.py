"""Error taxonomy for the feed pipeline."""

from typing import Optional


class FeedSieveError(Exception):
    """Base class for all feedsieve errors."""


class FeedError(FeedSieveError):
    """An error scoped to a single feed. Recorded per feed, never fatal to a run."""

    def __init__(self, feed_id: str, message: str, cause: Optional[BaseException] = None):
        super().__init__(f"{feed_id}: {message}")
        self.feed_id = feed_id
        self.cause = cause


class FetchError(FeedError):
    """Raw feed content could not be downloaded."""


class ParseError(FeedError):
    """Raw feed content could not be turned into items."""


class HookError(FeedError):
    """A plugin hook raised, or returned something it may not return."""

    def __init__(self, feed_id: str, plugin: str, stage: str, cause: Optional[BaseException] = None,
                 message: str = None):
        super().__init__(
            feed_id,
            message or f"plugin {plugin!r} failed at {stage}: {cause}",
            cause,
        )
        self.plugin = plugin
        self.stage = stage


class CacheIOError(FeedSieveError):
    """The item cache could not be loaded or saved."""


class ConfigError(FeedSieveError):
    """The feed configuration is malformed."""


class RunFailedError(FeedSieveError):
    """The run as a whole failed. Carries the report, which may hold usable output."""

    def __init__(self, message: str, report=None):
        super().__init__(message)
        self.report = report

"""feedsieve - fetch feeds, keep only what is new, hand it to renderers."""

__version__ = "0.1.0"

"""Persistent storage for the item cache."""

from .database import CacheStorage

__all__ = ["CacheStorage"]

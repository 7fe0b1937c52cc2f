"""Plugin hook stages and dispatch."""

from .interfaces import (
    Stage, HookResult, HookRegistration,
    FeedContext, ItemContext, OutputContext
)
from .chain import HookChain
from .plugin import Plugin, PluginDataStore

__all__ = [
    "Stage", "HookResult", "HookRegistration",
    "FeedContext", "ItemContext", "OutputContext",
    "HookChain", "Plugin", "PluginDataStore"
]

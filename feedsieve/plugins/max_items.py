"""Cap the number of new items shown per feed."""

from ..hooks.interfaces import FeedContext, HookResult, ItemContext
from ..hooks.plugin import Plugin


class MaxItemsPlugin(Plugin):
    """Feed option ``max_items`` (int). Items past the cap are dropped, not skipped."""

    name = "max_items"
    priority = 900  # After plugins that drop items for content reasons

    def post_feed_process(self, ctx: ItemContext):
        limit = ctx.source.option("max_items")
        if limit is None:
            return HookResult.CONTINUE

        kept = ctx.feed.state.get(self.name, 0)
        if kept >= int(limit):
            return HookResult.DROP_ITEM
        ctx.feed.state[self.name] = kept + 1
        return HookResult.CONTINUE

    def pre_feed_output(self, ctx: FeedContext):
        if ctx.source.option("max_items") is not None:
            ctx.set_data(self.name, "last_kept", len(ctx.items))

"""Save downloaded feed bytes to a file, optionally without processing the feed."""

from pathlib import Path

from ..hooks.interfaces import FeedContext, HookResult
from ..hooks.plugin import Plugin


class RawFeedSaveAsPlugin(Plugin):
    """Feed options: ``save_as`` (path) and ``save_only`` (bool)."""

    name = "raw_feed_save_as"

    def pre_feed_download(self, ctx: FeedContext):
        if ctx.source.option("save_only") and not ctx.source.option("save_as"):
            ctx.log.warning("save_only_without_save_as")
            return HookResult.SKIP_FEED
        return HookResult.CONTINUE

    def post_feed_download(self, ctx: FeedContext):
        save_as = ctx.source.option("save_as")
        if not save_as or ctx.raw is None:
            return HookResult.CONTINUE

        path = Path(save_as)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(ctx.raw)
        ctx.log.info("raw_feed_saved", path=str(path), size=len(ctx.raw))

        if ctx.source.option("save_only"):
            return HookResult.SKIP_FEED
        return HookResult.CONTINUE

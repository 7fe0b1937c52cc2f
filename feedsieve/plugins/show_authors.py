"""Strip item authors unless a feed asks to show them."""

from ..hooks.interfaces import ItemContext
from ..hooks.plugin import Plugin


class ShowAuthorsPlugin(Plugin):
    """Feed option ``show_authors`` (bool) overrides the plugin default."""

    name = "show_authors"

    def __init__(self, show_by_default: bool = False):
        self.show_by_default = show_by_default

    def post_feed_process(self, ctx: ItemContext):
        if not bool(ctx.source.option("show_authors", self.show_by_default)):
            ctx.item.author = ""

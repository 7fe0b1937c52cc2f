"""Regex edits applied to downloaded feed bytes before parsing."""

import re
from pathlib import Path
from typing import List, Tuple

from ..hooks.interfaces import FeedContext
from ..hooks.plugin import Plugin


class RawFeedEditPlugin(Plugin):
    """Applies the feed option ``preparse_edit``: a list of ``[pattern, replacement]`` pairs.

    Edits run in order on the decoded document. With ``save_edited_as``
    set, the edited bytes are also written to that path.
    """

    name = "raw_feed_edit"

    def post_feed_download(self, ctx: FeedContext):
        edits = self._edits(ctx)
        if not edits or ctx.raw is None:
            return

        encoding = ctx.encoding or "utf-8"
        text = ctx.raw.decode(encoding, errors="surrogateescape")
        for pattern, replacement in edits:
            text, count = re.subn(pattern, replacement, text)
            ctx.log.debug("raw_feed_edited", pattern=pattern, replacements=count)
        ctx.raw = text.encode(encoding, errors="surrogateescape")

        save_as = ctx.source.option("save_edited_as")
        if save_as:
            path = Path(save_as)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(ctx.raw)

    @staticmethod
    def _edits(ctx: FeedContext) -> List[Tuple[str, str]]:
        edits = ctx.source.option("preparse_edit") or []
        pairs = []
        for edit in edits:
            if not isinstance(edit, (list, tuple)) or len(edit) != 2:
                raise ValueError(f"preparse_edit entries must be [pattern, replacement], got {edit!r}")
            pairs.append((str(edit[0]), str(edit[1])))
        return pairs

"""Processing of a single feed through every stage."""

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

import structlog

from ..cache.interfaces import CacheKey
from ..cache.item_cache import ItemCache
from ..errors import FeedError, FetchError, ParseError
from ..hooks.chain import HookChain
from ..hooks.interfaces import FeedContext, HookResult, ItemContext, Stage
from ..ingestion.interfaces import (
    FeedSource, FetcherInterface, Item, ParserInterface, SortPolicy
)
from ..ingestion.urls import item_identity
from .report import FeedResult, FeedStatus

logger = structlog.get_logger()


class WorkerState(Enum):
    """Where a feed is in its run. DONE, SKIPPED, FAILED and CANCELLED are in FeedStatus."""
    PENDING = "pending"
    PRE_HOOKS_RUN = "pre_hooks_run"
    DOWNLOADED = "downloaded"
    POST_DOWNLOAD_HOOKS_RUN = "post_download_hooks_run"
    PARSED = "parsed"
    POST_PARSE_HOOKS_RUN = "post_parse_hooks_run"
    ITEMS_FILTERED = "items_filtered"
    CACHE_CHECKED = "cache_checked"
    POST_PROCESS_HOOKS_RUN = "post_process_hooks_run"
    PRE_OUTPUT_HOOKS_RUN = "pre_output_hooks_run"
    COMMITTED = "committed"


class FeedWorker:
    """Fetches one feed, runs it through the hook chain and decides which items are new.

    Cancellation is checked between stages only. The cache is written in
    a single step at the end, so a cancelled, skipped or failed feed
    leaves the cache untouched.
    """

    def __init__(
        self,
        source: FeedSource,
        fetcher: FetcherInterface,
        parser: ParserInterface,
        hooks: HookChain,
        cache: ItemCache,
        now: datetime,
        cancel_event: Optional[asyncio.Event] = None,
        log=None,
        plugin_data=None,
    ):
        self.source = source
        self.fetcher = fetcher
        self.parser = parser
        self.hooks = hooks
        self.cache = cache
        self.now = now
        self.cancel_event = cancel_event
        self.log = (log or logger).bind(feed=source.feed_id)
        self.plugin_data = plugin_data
        self.state = WorkerState.PENDING

    async def run(self) -> FeedResult:
        ctx = FeedContext(source=self.source, log=self.log, plugin_data=self.plugin_data)
        try:
            return await self._run(ctx)
        except FeedError as e:
            self.log.warning("feed_failed", stage=self.state.value, error=str(e))
            return self._result(FeedStatus.FAILED, ctx, error=e)
        except Exception as e:
            # Unexpected errors fail this feed only
            self.log.error("feed_crashed", stage=self.state.value, error=repr(e), exc_info=True)
            return self._result(FeedStatus.FAILED, ctx, error=e)

    async def _run(self, ctx: FeedContext) -> FeedResult:
        if self._dispatch(Stage.PRE_FEED_DOWNLOAD, ctx) is HookResult.SKIP_FEED:
            return self._skipped(ctx, Stage.PRE_FEED_DOWNLOAD)
        self.state = WorkerState.PRE_HOOKS_RUN
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        await self._download(ctx)
        self.state = WorkerState.DOWNLOADED
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        if self._dispatch(Stage.POST_FEED_DOWNLOAD, ctx) is HookResult.SKIP_FEED:
            return self._skipped(ctx, Stage.POST_FEED_DOWNLOAD)
        self.state = WorkerState.POST_DOWNLOAD_HOOKS_RUN
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        self._parse(ctx)
        self.state = WorkerState.PARSED
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        if self._dispatch(Stage.POST_FEED_PARSE, ctx) is HookResult.SKIP_FEED:
            return self._skipped(ctx, Stage.POST_FEED_PARSE)
        self.state = WorkerState.POST_PARSE_HOOKS_RUN
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        keyed = self._dedupe(ctx.items)
        self.state = WorkerState.ITEMS_FILTERED

        novel = [(key, item) for key, item in keyed if not self.cache.contains(key, self.now)]
        self.state = WorkerState.CACHE_CHECKED
        self.log.debug("novelty_checked", items=len(keyed), new=len(novel))
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        survivors = []
        for key, item in novel:
            result = self._dispatch(Stage.POST_FEED_PROCESS, ItemContext(feed=ctx, item=item))
            if result is HookResult.SKIP_FEED:
                return self._skipped(ctx, Stage.POST_FEED_PROCESS)
            if result is HookResult.DROP_ITEM:
                self.log.debug("item_dropped", item=key.identity)
                continue
            survivors.append((key, item))
        ctx.items = [item for _, item in survivors]
        self.state = WorkerState.POST_PROCESS_HOOKS_RUN
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        if self._dispatch(Stage.PRE_FEED_OUTPUT, ctx) is HookResult.SKIP_FEED:
            return self._skipped(ctx, Stage.PRE_FEED_OUTPUT)
        self.state = WorkerState.PRE_OUTPUT_HOOKS_RUN
        if self._cancelled():
            return self._result(FeedStatus.CANCELLED, ctx)

        committed = 0
        for key in self._keys_to_commit(survivors, ctx.items):
            if self.cache.insert(key, self.now, self.source.ttl):
                committed += 1
        self.state = WorkerState.COMMITTED

        ctx.items = sort_items(ctx.items, self.source.sort_by)
        self.log.info("feed_processed", items=len(keyed), new=len(ctx.items), committed=committed)
        return self._result(FeedStatus.DONE, ctx)

    async def _download(self, ctx: FeedContext) -> None:
        try:
            fetched = await self.fetcher.fetch(self.source.url)
        except FeedError:
            raise
        except Exception as e:
            raise FetchError(self.source.feed_id, str(e) or type(e).__name__, e) from e
        ctx.raw = fetched.raw
        ctx.encoding = self.source.encoding or fetched.encoding

    def _parse(self, ctx: FeedContext) -> None:
        try:
            parsed = self.parser.parse(ctx.raw, ctx.encoding, url=self.source.url)
        except FeedError:
            raise
        except Exception as e:
            raise ParseError(self.source.feed_id, str(e) or type(e).__name__, e) from e
        ctx.title = parsed.title
        ctx.link = parsed.link
        ctx.items = list(parsed.items)

    def _dedupe(self, items: List[Item]) -> List[Tuple[CacheKey, Item]]:
        """Key every item, keeping only the first of any repeated identity."""
        seen = set()
        keyed = []
        for item in items:
            key = CacheKey(self.source.feed_id, item_identity(item, self.source.ignore_duplicate_titles))
            if key in seen:
                self.log.debug("duplicate_in_feed", item=key.identity)
                continue
            seen.add(key)
            keyed.append((key, item))
        return keyed

    def _keys_to_commit(self, survivors: List[Tuple[CacheKey, Item]], items: List[Item]) -> List[CacheKey]:
        """Keys of the items still present after PRE_FEED_OUTPUT.

        Items are matched by object first. A replacement object (an edited
        copy) is matched by its recomputed identity, and only against keys
        that survived post-process hooks.
        """
        keys_by_object = {id(item): key for key, item in survivors}
        surviving_keys = {key for key, _ in survivors}
        keys = []
        seen = set()
        for item in items:
            key = keys_by_object.get(id(item))
            if key is None:
                key = CacheKey(self.source.feed_id, item_identity(item, self.source.ignore_duplicate_titles))
                if key not in surviving_keys:
                    self.log.debug("item_not_committed", item=key.identity)
                    continue
            if key not in seen:
                seen.add(key)
                keys.append(key)
        return keys

    def _dispatch(self, stage: Stage, ctx) -> HookResult:
        return self.hooks.dispatch(stage, ctx)

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _skipped(self, ctx: FeedContext, stage: Stage) -> FeedResult:
        self.log.info("feed_skipped", stage=stage.value)
        return self._result(FeedStatus.SKIPPED, ctx)

    def _result(self, status: FeedStatus, ctx: FeedContext, error: Exception = None) -> FeedResult:
        if status is FeedStatus.CANCELLED:
            self.log.info("feed_cancelled", stage=self.state.value)
        return FeedResult(
            source=self.source,
            status=status,
            title=ctx.title,
            link=ctx.link,
            items=list(ctx.items) if status is FeedStatus.DONE else [],
            error=error,
            stage=self.state.value,
        )


def sort_items(items: List[Item], policy: SortPolicy) -> List[Item]:
    """Order items per a feed's sort policy. Sorting is stable."""
    if policy is SortPolicy.TIME:
        dated = sorted((i for i in items if i.published_at), key=_published_utc, reverse=True)
        return dated + [i for i in items if not i.published_at]
    if policy is SortPolicy.TITLE:
        return sorted(items, key=lambda i: (i.title or "").casefold())
    return list(items)


def _published_utc(item: Item) -> datetime:
    # Naive dates (set by hooks) are taken as UTC
    if item.published_at.tzinfo is None:
        return item.published_at.replace(tzinfo=timezone.utc)
    return item.published_at

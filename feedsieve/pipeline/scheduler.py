"""Bounded-concurrency fan-out of feed workers, fan-in, and output."""

import asyncio
import uuid
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from ..cache.item_cache import ItemCache, utcnow
from ..config.settings import settings
from ..errors import HookError
from ..hooks.chain import HookChain
from ..hooks.interfaces import OutputContext, Stage
from ..ingestion.interfaces import FeedSource, FetcherInterface, ParserInterface
from .report import FeedResult, FeedStatus, RunReport
from .worker import FeedWorker

logger = structlog.get_logger()


class Scheduler:
    """Runs every enabled feed through a FeedWorker on a fixed-size pool.

    Order of a run: prune the cache (barrier), start the pool, wait for
    every worker to finish, render, then run POST_OUTPUT hooks once.
    """

    def __init__(
        self,
        fetcher: FetcherInterface,
        parser: ParserInterface,
        hooks: HookChain,
        cache: ItemCache,
        max_workers: int = None,
        renderers: Sequence = (),
        plugin_data=None,
    ):
        self.fetcher = fetcher
        self.parser = parser
        self.hooks = hooks
        self.cache = cache
        self.max_workers = max_workers or settings.max_workers
        self.renderers = list(renderers)
        self.plugin_data = plugin_data

    async def run_once(
        self,
        feeds: List[FeedSource],
        live_feed_ids: Iterable[str] = None,
        cancel_event: Optional[asyncio.Event] = None,
        timeout: float = None,
        now: datetime = None,
    ) -> RunReport:
        """Process every enabled feed once and return one result per feed."""
        now = now or utcnow()
        log = logger.bind(run_id=uuid.uuid4().hex[:8])
        live = set(live_feed_ids) if live_feed_ids is not None else {f.feed_id for f in feeds}
        report = RunReport(started_at=now)

        # Nothing reads the cache until pruning is finished
        report.pruned_entries = self.cache.prune(now, live)
        if self.plugin_data is not None:
            self.plugin_data.prune(live)

        scheduled = [f for f in feeds if f.enabled]
        if len(scheduled) < len(feeds):
            log.info("feeds_disabled", count=len(feeds) - len(scheduled))

        cancel_event = cancel_event or asyncio.Event()
        timer = None
        if timeout is not None:
            timer = asyncio.get_running_loop().call_later(timeout, cancel_event.set)

        results: Dict[int, FeedResult] = {}
        queue: asyncio.Queue = asyncio.Queue()
        for index, source in enumerate(scheduled):
            queue.put_nowait((index, source))

        async def pool_worker(worker_id: int):
            while True:
                try:
                    index, source = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if cancel_event.is_set():
                    results[index] = FeedResult(source=source, status=FeedStatus.CANCELLED, stage="pending")
                    continue
                log.debug("feed_started", feed=source.feed_id, worker=worker_id)
                worker = FeedWorker(
                    source=source,
                    fetcher=self.fetcher,
                    parser=self.parser,
                    hooks=self.hooks,
                    cache=self.cache,
                    now=now,
                    cancel_event=cancel_event,
                    log=log,
                    plugin_data=self.plugin_data,
                )
                results[index] = await worker.run()

        pool_size = max(1, min(self.max_workers, len(scheduled)))
        log.info("run_started", feeds=len(scheduled), workers=pool_size, pruned=report.pruned_entries)
        try:
            await asyncio.gather(*(pool_worker(n) for n in range(pool_size)))
        finally:
            if timer is not None:
                timer.cancel()

        # Fan-in barrier: every scheduled feed has a terminal result from here on
        report.results = [results[i] for i in range(len(scheduled))]
        for result in report.failed:
            log.warning("feed_result_failed", feed=result.feed_id, error=str(result.error))

        self._render(report, log)
        self._post_output(report, log)

        report.finished_at = utcnow()
        log.info(
            "run_complete",
            done=len(report.done),
            skipped=len(report.skipped),
            failed=len(report.failed),
            cancelled=len(report.cancelled),
            new_items=report.new_item_count,
        )
        return report

    def _render(self, report: RunReport, log) -> None:
        done = report.done
        for renderer in self.renderers:
            try:
                report.artifacts[renderer.name] = renderer.render(done)
            except Exception as e:
                log.error("render_failed", renderer=renderer.name, error=str(e))
                report.render_errors[renderer.name] = str(e)

    def _post_output(self, report: RunReport, log) -> None:
        ctx = OutputContext(
            results=list(report.results),
            artifacts=report.artifacts,
            log=log,
            plugin_data=self.plugin_data,
        )
        try:
            self.hooks.dispatch(Stage.POST_OUTPUT, ctx)
        except HookError as e:
            log.error("post_output_failed", plugin=e.plugin, error=str(e))
            report.render_errors[f"{Stage.POST_OUTPUT.value}:{e.plugin}"] = str(e)

"""Full pipeline run: cache load, scheduling, output files, cache save."""

from contextlib import AsyncExitStack
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

from ..cache.item_cache import ItemCache
from ..config.feeds import FeedRunConfig, load_feeds
from ..config.settings import settings
from ..errors import CacheIOError, RunFailedError
from ..hooks.chain import HookChain
from ..hooks.plugin import PluginDataStore
from ..ingestion.fetcher import HTTPFetcher
from ..ingestion.parser import FeedParser
from ..output import get_renderers
from ..plugins import builtin_plugins
from ..storage.database import CacheStorage
from .report import RunReport
from .scheduler import Scheduler

logger = structlog.get_logger()


class FeedPipeline:
    """Wires configuration, cache, plugins and renderers around Scheduler.run_once."""

    def __init__(
        self,
        config: FeedRunConfig,
        storage: CacheStorage = None,
        fetcher=None,
        parser=None,
        plugins: Sequence = None,
        renderers: Sequence = None,
        outputs_dir: Optional[Path] = None,
        max_workers: int = None,
    ):
        self.config = config
        self.storage = storage or CacheStorage()
        self.cache = ItemCache(self.storage)
        self.plugin_data = PluginDataStore()
        self.fetcher = fetcher
        self.parser = parser or FeedParser()
        self.hooks = HookChain.from_plugins(builtin_plugins() if plugins is None else plugins)
        self.renderers = get_renderers(settings.output_formats) if renderers is None else list(renderers)
        self.outputs_dir = Path(outputs_dir) if outputs_dir else None
        self.max_workers = max_workers or config.max_workers

    async def run(self, timeout: float = None, cancel_event=None, now=None) -> RunReport:
        """Run once. Raises RunFailedError after output is written if the cache cannot be saved."""
        self.cache.load()
        try:
            self.plugin_data.load(self.storage)
        except CacheIOError as e:
            logger.warning("plugin_data_load_failed", error=str(e))

        async with AsyncExitStack() as stack:
            fetcher = self.fetcher
            if fetcher is None:
                fetcher = await stack.enter_async_context(HTTPFetcher())

            scheduler = Scheduler(
                fetcher=fetcher,
                parser=self.parser,
                hooks=self.hooks,
                cache=self.cache,
                max_workers=self.max_workers,
                renderers=self.renderers,
                plugin_data=self.plugin_data,
            )
            report = await scheduler.run_once(
                self.config.feeds,
                live_feed_ids=self.config.live_feed_ids,
                cancel_event=cancel_event,
                timeout=timeout,
                now=now,
            )

        self._write_outputs(report)

        try:
            self.cache.save()
            self.plugin_data.save(self.storage)
        except CacheIOError as e:
            report.cache_error = str(e)
            logger.error("cache_save_failed", error=str(e))
            raise RunFailedError(f"cache could not be saved: {e}", report) from e

        if report.nothing_processed:
            raise RunFailedError(f"all {len(report.failed)} scheduled feeds failed", report)

        return report

    def _write_outputs(self, report: RunReport) -> List[Path]:
        if self.outputs_dir is None:
            return []
        written = []
        for renderer in self.renderers:
            artifact = report.artifacts.get(renderer.name)
            if artifact is None:
                continue
            path = self.outputs_dir / f"feedsieve.{renderer.extension}"
            try:
                self.outputs_dir.mkdir(parents=True, exist_ok=True)
                path.write_text(artifact, encoding="utf-8")
            except OSError as e:
                logger.error("output_write_failed", renderer=renderer.name, path=str(path), error=str(e))
                report.render_errors[renderer.name] = str(e)
                continue
            written.append(path)
            logger.info("output_written", renderer=renderer.name, path=str(path))
        return written


async def run_pipeline(
    config_path: str = None,
    database_url: str = None,
    max_workers: int = None,
    timeout: float = None,
    formats: Sequence[str] = None,
    outputs_dir: Path = None,
) -> RunReport:
    """Load configuration and run the pipeline once.

    Args:
        config_path: Feed list (JSON or YAML); defaults to settings.feeds_config_path
        database_url: Cache database; defaults to settings.cache_database_url
        max_workers: Pool size; defaults to the config file, then settings
        timeout: Seconds before pending feeds are cancelled
        formats: Renderer names; defaults to settings.output_formats
        outputs_dir: Where artifacts are written; defaults to settings.outputs_dir

    Returns:
        The RunReport
    """
    config = load_feeds(config_path)
    pipeline = FeedPipeline(
        config,
        storage=CacheStorage(database_url),
        renderers=get_renderers(formats or settings.output_formats),
        outputs_dir=outputs_dir or settings.outputs_dir,
        max_workers=max_workers,
    )
    return await pipeline.run(timeout=timeout if timeout is not None else settings.run_timeout_seconds)

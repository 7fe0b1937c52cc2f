"""Integration tests for scheduled runs and the full pipeline."""

import asyncio
import pytest
from dataclasses import replace
from datetime import datetime, timedelta

from feedsieve.cache.interfaces import CacheKey
from feedsieve.cache.item_cache import ItemCache
from feedsieve.config.feeds import parse_feed_config
from feedsieve.errors import CacheIOError, HookError, RunFailedError
from feedsieve.hooks.chain import HookChain
from feedsieve.hooks.interfaces import HookRegistration, HookResult, Stage
from feedsieve.ingestion.interfaces import FeedSource, Item, SortPolicy
from feedsieve.ingestion.parser import FeedParser
from feedsieve.output import TextRenderer
from feedsieve.pipeline.report import FeedStatus
from feedsieve.pipeline.run import FeedPipeline
from feedsieve.pipeline.scheduler import Scheduler
from feedsieve.storage.database import CacheStorage


@pytest.fixture
def cache(temp_db):
    return ItemCache(CacheStorage(temp_db))


@pytest.fixture
def documents(feed_a, feed_b, rss_document):
    return {
        feed_a.url: rss_document("Alpha", [
            {"title": "A one", "link": "https://example.com/a/1"},
            {"title": "A two", "link": "https://example.com/a/2"},
        ]),
        feed_b.url: rss_document("Beta", [
            {"title": "B one", "link": "https://example.com/b/1"},
        ]),
    }


def make_scheduler(fetcher, cache, registrations=(), **kwargs):
    return Scheduler(
        fetcher=fetcher,
        parser=FeedParser(),
        hooks=HookChain(registrations),
        cache=cache,
        **kwargs
    )


@pytest.mark.asyncio
class TestScheduler:
    """Tests for Scheduler.run_once."""

    async def test_items_are_new_once_per_retention_window(self, feed_a, cache, t0, documents, make_fetcher):
        scheduler = make_scheduler(make_fetcher(documents), cache)

        first = await scheduler.run_once([feed_a], now=t0)
        assert first.result_for(feed_a.feed_id).status is FeedStatus.DONE
        assert first.new_item_count == 2

        second = await scheduler.run_once([feed_a], now=t0 + timedelta(hours=1))
        assert second.result_for(feed_a.feed_id).status is FeedStatus.DONE
        assert second.new_item_count == 0

        # days_to_cache=1 has lapsed 25 hours later
        third = await scheduler.run_once([feed_a], now=t0 + timedelta(seconds=90000))
        assert third.pruned_entries == 2
        assert third.new_item_count == 2

    async def test_skip_after_download_isolated(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        def skip_a(ctx):
            if ctx.feed_id == feed_a.feed_id:
                return HookResult.SKIP_FEED

        scheduler = make_scheduler(
            make_fetcher(documents), cache,
            [HookRegistration(Stage.POST_FEED_DOWNLOAD, "skip_a", skip_a)],
            renderers=[TextRenderer()],
        )

        report = await scheduler.run_once([feed_a, feed_b], now=t0)

        assert report.result_for(feed_a.feed_id).status is FeedStatus.SKIPPED
        assert report.result_for(feed_b.feed_id).status is FeedStatus.DONE
        assert [e.key.feed_id for e in cache.entries()] == [feed_b.feed_id]
        assert "Alpha" not in report.artifacts["text"]
        assert "Beta" in report.artifacts["text"]

    async def test_dropped_items_stay_new(self, feed_a, cache, t0, documents, make_fetcher):
        def drop_two(ctx):
            if ctx.item.title == "A two":
                return HookResult.DROP_ITEM

        scheduler = make_scheduler(
            make_fetcher(documents), cache,
            [HookRegistration(Stage.POST_FEED_PROCESS, "drop_two", drop_two)],
        )

        report = await scheduler.run_once([feed_a], now=t0)

        assert [i.title for i in report.result_for(feed_a.feed_id).items] == ["A one"]
        assert cache.contains(CacheKey(feed_a.feed_id, "https://example.com/a/1"), t0)
        assert not cache.contains(CacheKey(feed_a.feed_id, "https://example.com/a/2"), t0)

    async def test_fetch_failure_isolated(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        fetcher = make_fetcher(documents, failures=[feed_a.url])

        report = await make_scheduler(fetcher, cache).run_once([feed_a, feed_b], now=t0)

        assert report.result_for(feed_a.feed_id).status is FeedStatus.FAILED
        assert report.result_for(feed_b.feed_id).status is FeedStatus.DONE
        assert not report.nothing_processed
        assert len(cache) == 1

    async def test_hook_error_fails_feed(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        def broken(ctx):
            if ctx.feed_id == feed_a.feed_id:
                raise RuntimeError("boom")

        scheduler = make_scheduler(
            make_fetcher(documents), cache,
            [HookRegistration(Stage.POST_FEED_PARSE, "broken", broken)],
        )

        report = await scheduler.run_once([feed_a, feed_b], now=t0)

        failed = report.result_for(feed_a.feed_id)
        assert failed.status is FeedStatus.FAILED
        assert isinstance(failed.error, HookError)
        assert failed.error.plugin == "broken"
        assert report.result_for(feed_b.feed_id).status is FeedStatus.DONE

    async def test_duplicates_within_one_fetch(self, feed_a, cache, t0, rss_document, make_fetcher):
        fetcher = make_fetcher({feed_a.url: rss_document("Alpha", [
            {"title": "Same", "link": "https://example.com/a/1"},
            {"title": "Same again", "link": "https://EXAMPLE.com/a/1/"},
        ])})

        report = await make_scheduler(fetcher, cache).run_once([feed_a], now=t0)

        assert [i.title for i in report.result_for(feed_a.feed_id).items] == ["Same"]
        assert len(cache) == 1

    async def test_duplicate_titles(self, cache, t0, rss_document, make_fetcher):
        source = FeedSource(url="https://example.com/titles.xml", ignore_duplicate_titles=True)
        fetcher = make_fetcher({source.url: rss_document("Titles", [
            {"title": "Weekly digest", "link": "https://example.com/digest?week=1"},
            {"title": "Weekly Digest", "link": "https://example.com/digest?week=2"},
        ])})
        scheduler = make_scheduler(fetcher, cache)

        report = await scheduler.run_once([source], now=t0)
        assert report.new_item_count == 1

        again = await scheduler.run_once([source], now=t0 + timedelta(hours=1))
        assert again.new_item_count == 0

    async def test_concurrency_bound(self, cache, t0, rss_document, make_fetcher):
        feeds = [FeedSource(url=f"https://example.com/{n}.xml") for n in range(6)]
        fetcher = make_fetcher({f.url: rss_document(f"Feed {n}", []) for n, f in enumerate(feeds)}, delay=0.02)

        report = await make_scheduler(fetcher, cache, max_workers=2).run_once(feeds, now=t0)

        assert len(report.done) == 6
        assert fetcher.max_in_flight == 2
        assert [r.feed_id for r in report.results] == [f.feed_id for f in feeds]

    async def test_disabled_feeds_are_not_scheduled(self, feed_a, cache, t0, documents, make_fetcher):
        disabled = FeedSource(url=feed_a.url, enabled=False)
        fetcher = make_fetcher(documents)

        report = await make_scheduler(fetcher, cache).run_once([disabled], now=t0)

        assert report.results == []
        assert fetcher.calls == []
        assert not report.nothing_processed

    async def test_cancel_before_start(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        fetcher = make_fetcher(documents)
        cancel = asyncio.Event()
        cancel.set()

        report = await make_scheduler(fetcher, cache).run_once([feed_a, feed_b], cancel_event=cancel, now=t0)

        assert [r.status for r in report.results] == [FeedStatus.CANCELLED, FeedStatus.CANCELLED]
        assert fetcher.calls == []
        assert len(cache) == 0

    async def test_timeout_cancels_in_flight_feeds(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        fetcher = make_fetcher(documents, delay=0.3)

        report = await make_scheduler(fetcher, cache, max_workers=1).run_once(
            [feed_a, feed_b], timeout=0.05, now=t0
        )

        assert [r.status for r in report.results] == [FeedStatus.CANCELLED, FeedStatus.CANCELLED]
        assert fetcher.calls == [feed_a.url]
        assert len(cache) == 0

    async def test_post_output_runs_once_with_all_results(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        calls = []
        fetcher = make_fetcher(documents, failures=[feed_b.url])
        scheduler = make_scheduler(
            fetcher, cache,
            [HookRegistration(Stage.POST_OUTPUT, "collector", calls.append)],
            renderers=[TextRenderer()],
        )

        await scheduler.run_once([feed_a, feed_b], now=t0)

        assert len(calls) == 1
        assert [r.status for r in calls[0].results] == [FeedStatus.DONE, FeedStatus.FAILED]
        assert "text" in calls[0].artifacts

    async def test_render_failure_is_recorded(self, feed_a, cache, t0, documents, make_fetcher):
        class BrokenRenderer(TextRenderer):
            name = "broken"

            def render(self, results):
                raise RuntimeError("no ink")

        scheduler = make_scheduler(make_fetcher(documents), cache, renderers=[BrokenRenderer(), TextRenderer()])

        report = await scheduler.run_once([feed_a], now=t0)

        assert report.render_errors == {"broken": "no ink"}
        assert "A one" in report.artifacts["text"]

    async def test_orphaned_entries_pruned(self, feed_a, feed_b, cache, t0, documents, make_fetcher):
        scheduler = make_scheduler(make_fetcher(documents), cache)
        await scheduler.run_once([feed_a, feed_b], now=t0)
        assert len(cache) == 3

        report = await scheduler.run_once([feed_a], now=t0 + timedelta(minutes=5))

        assert report.pruned_entries == 1
        assert {e.key.feed_id for e in cache.entries()} == {feed_a.feed_id}

    async def test_unexpected_error_fails_only_that_feed(self, feed_a, feed_b, t0, temp_db, documents, make_fetcher):
        class BrokenCache(ItemCache):
            def insert(self, key, first_seen, ttl):
                if key.feed_id == feed_a.feed_id:
                    raise RuntimeError("disk on fire")
                return super().insert(key, first_seen, ttl)

        cache = BrokenCache(CacheStorage(temp_db))
        calls = []
        scheduler = make_scheduler(
            make_fetcher(documents), cache,
            [HookRegistration(Stage.POST_OUTPUT, "collector", calls.append)],
            renderers=[TextRenderer()],
        )

        report = await scheduler.run_once([feed_a, feed_b], now=t0)

        failed = report.result_for(feed_a.feed_id)
        assert failed.status is FeedStatus.FAILED
        assert isinstance(failed.error, RuntimeError)
        assert failed.stage == "pre_output_hooks_run"
        assert report.result_for(feed_b.feed_id).status is FeedStatus.DONE
        assert "Beta" in report.artifacts["text"]
        assert len(calls) == 1

    async def test_naive_dates_from_hooks_sort_with_aware_ones(self, feed_b, cache, t0, rss_document, make_fetcher):
        source = FeedSource(url="https://example.com/timed.xml", sort_by=SortPolicy.TIME)
        fetcher = make_fetcher({
            source.url: rss_document("Timed", [
                {"title": "Aware", "link": "https://example.com/t/1", "published": t0},
                {"title": "Naive", "link": "https://example.com/t/2"},
            ]),
            feed_b.url: rss_document("Beta", [{"title": "B one", "link": "https://example.com/b/1"}]),
        })

        def backdate(ctx):
            if ctx.item.title == "Naive":
                ctx.item.published_at = datetime(2024, 1, 2)

        scheduler = make_scheduler(fetcher, cache, [HookRegistration(Stage.POST_FEED_PROCESS, "backdate", backdate)])

        report = await scheduler.run_once([source, feed_b], now=t0)

        timed = report.result_for(source.feed_id)
        assert timed.status is FeedStatus.DONE
        assert [i.title for i in timed.items] == ["Naive", "Aware"]
        assert report.result_for(feed_b.feed_id).status is FeedStatus.DONE

    async def test_items_replaced_before_output_are_committed(self, feed_a, cache, t0, documents, make_fetcher):
        def shout(ctx):
            ctx.items = [replace(item, title=item.title.upper()) for item in ctx.items]

        scheduler = make_scheduler(
            make_fetcher(documents), cache,
            [HookRegistration(Stage.PRE_FEED_OUTPUT, "shout", shout)],
        )

        first = await scheduler.run_once([feed_a], now=t0)
        assert [i.title for i in first.result_for(feed_a.feed_id).items] == ["A ONE", "A TWO"]
        assert len(cache) == 2

        second = await scheduler.run_once([feed_a], now=t0 + timedelta(hours=1))
        assert second.new_item_count == 0

    async def test_unknown_items_added_before_output_are_not_committed(self, feed_a, cache, t0, documents, make_fetcher):
        def inject(ctx):
            ctx.items = ctx.items + [Item(url="https://example.com/injected", title="Injected")]

        scheduler = make_scheduler(
            make_fetcher(documents), cache,
            [HookRegistration(Stage.PRE_FEED_OUTPUT, "inject", inject)],
        )

        report = await scheduler.run_once([feed_a], now=t0)

        assert report.new_item_count == 3
        assert len(cache) == 2
        assert not cache.contains(CacheKey(feed_a.feed_id, "https://example.com/injected"), t0)


class FailingStorage(CacheStorage):
    """Loads normally, cannot save the cache."""

    def replace_entries(self, entries):
        raise CacheIOError("disk full")


def make_config(*sources):
    return parse_feed_config({"feeds": [{"url": s.url, "name": s.name, "days_to_cache": 1} for s in sources]})


@pytest.mark.asyncio
class TestFeedPipeline:
    """Tests for FeedPipeline runs against a real cache database."""

    async def test_cache_persists_between_runs(self, feed_a, feed_b, temp_db, tmp_path, t0, documents, make_fetcher):
        config = make_config(feed_a, feed_b)

        first = FeedPipeline(
            config, storage=CacheStorage(temp_db), fetcher=make_fetcher(documents),
            plugins=[], renderers=[TextRenderer()], outputs_dir=tmp_path,
        )
        report = await first.run(now=t0)
        assert report.new_item_count == 3
        assert "A one" in (tmp_path / "feedsieve.txt").read_text()

        second = FeedPipeline(
            config, storage=CacheStorage(temp_db), fetcher=make_fetcher(documents),
            plugins=[], renderers=[TextRenderer()], outputs_dir=tmp_path,
        )
        report = await second.run(now=t0 + timedelta(hours=2))
        assert report.new_item_count == 0
        assert (tmp_path / "feedsieve.txt").read_text() == ""

    async def test_plugin_data_persists(self, feed_a, temp_db, t0, documents, make_fetcher):
        config = parse_feed_config({"feeds": [{"url": feed_a.url, "options": {"max_items": 1}}]})

        pipeline = FeedPipeline(config, storage=CacheStorage(temp_db), fetcher=make_fetcher(documents), renderers=[])
        report = await pipeline.run(now=t0)
        assert report.new_item_count == 1

        reloaded = FeedPipeline(config, storage=CacheStorage(temp_db), fetcher=make_fetcher(documents), renderers=[])
        reloaded.plugin_data.load(reloaded.storage)
        assert reloaded.plugin_data.get("max_items", feed_a.feed_id, "last_kept") == "1"

    async def test_save_failure_after_output(self, feed_a, temp_db, tmp_path, t0, documents, make_fetcher):
        pipeline = FeedPipeline(
            make_config(feed_a), storage=FailingStorage(temp_db), fetcher=make_fetcher(documents),
            plugins=[], renderers=[TextRenderer()], outputs_dir=tmp_path,
        )

        with pytest.raises(RunFailedError) as exc_info:
            await pipeline.run(now=t0)

        assert "disk full" in exc_info.value.report.cache_error
        assert "A one" in (tmp_path / "feedsieve.txt").read_text()

    async def test_every_feed_failing_fails_the_run(self, feed_a, feed_b, temp_db, t0, make_fetcher):
        pipeline = FeedPipeline(
            make_config(feed_a, feed_b), storage=CacheStorage(temp_db), fetcher=make_fetcher({}),
            plugins=[], renderers=[],
        )

        with pytest.raises(RunFailedError) as exc_info:
            await pipeline.run(now=t0)

        assert len(exc_info.value.report.failed) == 2

"""Tests for rss_search.aggregator module."""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import NOW, FakeCollector, entry, fake_factory, make_article, make_source
from rss_search.aggregator import Aggregator, build_collection
from rss_search.collectors import RSSCollector
from rss_search.errors import ConfigError, FetchError, NotReadyError, ParseError
from rss_search.storage import ArticleCache


def refresh(aggregator: Aggregator):
    return asyncio.run(aggregator.refresh_all())


class TestBuildCollection:
    def test_dedupes_and_sorts_newest_first(self) -> None:
        old = make_article("https://a.com/old", title="old")
        new = make_article("https://a.com/new", age=timedelta(0))
        dup = make_article("https://a.com/old", title="dup", age=timedelta(0))
        assert [a.title for a in build_collection([old, new, dup])] == ["Untitled", "old"]

    def test_equal_timestamps_keep_insertion_order(self) -> None:
        articles = [make_article(f"https://a.com/{i}") for i in range(5)]
        assert [a.url for a in build_collection(articles)] == [a.url for a in articles]


class TestRefreshAll:
    def test_merges_dedupes_and_sorts(self, clock) -> None:
        a, b = make_source("A", category="technology", keywords=["ai"]), make_source("B")
        factory = fake_factory({
            "A": [
                entry("https://x.com/1", "A one", "Sat, 15 Jun 2024 08:00:00 GMT"),
                entry("https://x.com/shared", "A shared", "Sat, 15 Jun 2024 09:00:00 GMT"),
            ],
            "B": [
                entry("https://x.com/shared", "B shared", "Sat, 15 Jun 2024 11:00:00 GMT"),
                entry("https://x.com/2", "B two", "Sat, 15 Jun 2024 10:00:00 GMT"),
                entry("", "no identity"),
            ],
        })
        aggregator = Aggregator([a, b], collector_factory=factory, clock=clock)

        report = refresh(aggregator)

        assert [x.title for x in aggregator.articles] == ["B two", "A shared", "A one"]
        shared = aggregator.articles[1]
        assert shared.source_name == "A"
        assert shared.keywords == ("ai",)
        assert report.succeeded == 2
        assert report.failed == 0
        assert report.article_count == 3
        assert report.replaced
        assert aggregator.last_update == NOW
        assert all(c.closed for c in factory.created)

    def test_partial_failure_still_builds_collection(self, clock) -> None:
        sources = [make_source(name) for name in ("A", "B", "C", "D", "E")]
        factory = fake_factory({
            "A": [entry("https://x.com/a", published="Sat, 15 Jun 2024 08:00:00 GMT")],
            "B": FetchError("B", ConnectionError("refused")),
            "C": [entry("https://x.com/c", published="Sat, 15 Jun 2024 10:00:00 GMT"),
                  entry("https://x.com/a", published="Sat, 15 Jun 2024 11:00:00 GMT")],
            "D": ParseError("D", message="bad xml"),
            "E": [entry("https://x.com/e", published="Fri, 14 Jun 2024 10:00:00 GMT")],
        })
        aggregator = Aggregator(sources, collector_factory=factory, clock=clock)

        report = refresh(aggregator)

        assert [x.url for x in aggregator.articles] == ["https://x.com/c", "https://x.com/a", "https://x.com/e"]
        assert report.succeeded == 3
        assert report.failed == 2
        assert report.failed_sources == ("B", "D")
        assert all(c.closed for c in factory.created)

    def test_unexpected_collector_error_is_isolated(self, clock) -> None:
        factory = fake_factory({
            "A": RuntimeError("boom"),
            "B": [entry("https://x.com/b")],
        })
        aggregator = Aggregator([make_source("A"), make_source("B")], collector_factory=factory, clock=clock)
        report = refresh(aggregator)
        assert report.failed_sources == ("A",)
        assert [x.url for x in aggregator.articles] == ["https://x.com/b"]

    def test_empty_registry_raises_config_error(self) -> None:
        with pytest.raises(ConfigError):
            refresh(Aggregator([]))

    def test_all_failures_keep_existing_collection(self, clock) -> None:
        results = {"A": [entry("https://x.com/1")]}
        aggregator = Aggregator([make_source("A")], collector_factory=fake_factory(results), clock=clock)
        refresh(aggregator)
        before = aggregator.snapshot

        aggregator.collector_factory = fake_factory({"A": FetchError("A", message="down")})
        report = refresh(aggregator)

        assert aggregator.snapshot is before
        assert not report.replaced
        assert report.article_count == 1
        assert report.failed == 1

    def test_first_cycle_with_all_failures_leaves_collection_empty(self, clock) -> None:
        aggregator = Aggregator([make_source("A")], collector_factory=fake_factory({}), clock=clock)
        report = refresh(aggregator)

        assert aggregator.articles == ()
        assert not aggregator.is_ready()
        assert report.article_count == 0
        with pytest.raises(NotReadyError):
            aggregator.search("anything")

    def test_each_refresh_installs_a_new_snapshot(self, clock) -> None:
        results = {"A": [entry("https://x.com/1")]}
        aggregator = Aggregator([make_source("A")], collector_factory=fake_factory(results), clock=clock)
        refresh(aggregator)
        first = aggregator.snapshot
        refresh(aggregator)
        assert aggregator.snapshot is not first
        assert aggregator.snapshot.version == first.version + 1

    def test_candidate_order_ignores_completion_order(self, clock) -> None:
        class SlowCollector(FakeCollector):
            async def fetch(self):
                if self.source.source_name == "A":
                    await asyncio.sleep(0.05)
                return await super().fetch()

        same_time = "Sat, 15 Jun 2024 08:00:00 GMT"
        results = {
            "A": [entry("https://x.com/shared", "from A", same_time)],
            "B": [entry("https://x.com/shared", "from B", same_time)],
        }
        aggregator = Aggregator(
            [make_source("A"), make_source("B")],
            collector_factory=lambda source: SlowCollector(source, results[source.source_name]),
            clock=clock,
        )
        refresh(aggregator)
        assert [x.title for x in aggregator.articles] == ["from A"]


class TestConcurrentReads:
    def test_reader_sees_old_collection_until_swap(self, clock) -> None:
        source = make_source("A")
        old_results = {"A": [entry(f"https://x.com/old{i}") for i in range(3)]}
        aggregator = Aggregator([source], collector_factory=fake_factory(old_results), clock=clock)
        refresh(aggregator)
        old_urls = [a.url for a in aggregator.articles]

        async def scenario():
            release = asyncio.Event()

            class GatedCollector(FakeCollector):
                async def fetch(self):
                    await release.wait()
                    return await super().fetch()

            new_entries = [entry(f"https://x.com/new{i}") for i in range(4)]
            aggregator.collector_factory = lambda s: GatedCollector(s, new_entries)

            task = asyncio.create_task(aggregator.refresh_all())
            await asyncio.sleep(0)
            during = [a.url for a in aggregator.search("", limit=10)]
            release.set()
            await task
            after = [a.url for a in aggregator.search("", limit=10)]
            return during, after

        during, after = asyncio.run(scenario())
        assert during == old_urls
        assert after == [f"https://x.com/new{i}" for i in range(4)]


class TestSearchAndStats:
    def test_search_uses_the_engine_clock(self) -> None:
        results = {"A": [entry("https://x.com/1", "Other", "Sat, 15 Jun 2024 11:00:00 GMT")]}
        aggregator = Aggregator([make_source("A")], collector_factory=fake_factory(results), clock=lambda: NOW)
        refresh(aggregator)
        # Only the recency boost matches
        assert len(aggregator.search("zzz")) == 1

        aggregator.clock = lambda: datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert aggregator.search("zzz") == []

    def test_stats(self, clock) -> None:
        sources = [
            make_source("A", category="technology"),
            make_source("B", category="sports"),
            make_source("C", category="technology"),
        ]
        factory = fake_factory({
            "A": [entry("https://x.com/a1"), entry("https://x.com/a2")],
            "B": [entry("https://x.com/b1")],
            "C": FetchError("C", message="down"),
        })
        aggregator = Aggregator(sources, collector_factory=factory, clock=clock)
        refresh(aggregator)

        stats = aggregator.get_stats()
        assert stats == {
            "totalArticles": 3,
            "totalFeeds": 3,
            "lastUpdate": NOW.isoformat(),
            "categories": ["technology", "sports"],
            "sources": ["A", "B"],
        }

    def test_stats_before_first_refresh(self) -> None:
        stats = Aggregator([make_source("A")]).get_stats()
        assert stats["totalArticles"] == 0
        assert stats["lastUpdate"] is None


class TestCache:
    def test_save_then_load_cache(self, tmp_path, clock) -> None:
        cache = ArticleCache(tmp_path / "cache.json")
        results = {"A": [entry("https://x.com/1", "One", "Sat, 15 Jun 2024 08:00:00 GMT")]}
        aggregator = Aggregator([make_source("A")], cache=cache, collector_factory=fake_factory(results), clock=clock)
        refresh(aggregator)
        asyncio.run(aggregator.save_cache())

        restarted = Aggregator([make_source("A")], cache=cache, clock=clock)
        assert asyncio.run(restarted.load_cache())
        assert restarted.is_ready()
        assert [vars(a) for a in restarted.articles] == [vars(a) for a in aggregator.articles]
        assert restarted.last_update == NOW

    def test_load_cache_without_file(self, tmp_path) -> None:
        aggregator = Aggregator([make_source("A")], cache=ArticleCache(tmp_path / "missing.json"))
        assert not asyncio.run(aggregator.load_cache())
        assert not aggregator.is_ready()

    def test_no_cache_configured(self) -> None:
        aggregator = Aggregator([make_source("A")])
        assert not asyncio.run(aggregator.load_cache())
        asyncio.run(aggregator.save_cache())

    def test_cache_with_mixed_offsets_is_searchable(self, tmp_path) -> None:
        path = tmp_path / "cache.json"
        cache = ArticleCache(path)
        cache.save([make_article("https://a.com/1", title="AI one"), make_article("https://a.com/2", title="AI two")], NOW)
        data = json.loads(path.read_text(encoding="utf-8"))
        data["articles"][0]["pubDate"] = "2024-06-15T10:00:00"
        path.write_text(json.dumps(data), encoding="utf-8")

        aggregator = Aggregator([make_source("A")], cache=cache, clock=lambda: NOW)
        assert asyncio.run(aggregator.load_cache())
        assert [a.url for a in aggregator.search("ai")] == ["https://a.com/1", "https://a.com/2"]


class TestFailureLogging:
    def test_fetch_failure_is_logged_once(self, clock, caplog) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        aggregator = Aggregator(
            [make_source("A")],
            collector_factory=lambda source: RSSCollector(source, client=client),
            clock=clock,
        )

        with caplog.at_level(logging.ERROR):
            report = refresh(aggregator)

        assert report.failed_sources == ("A",)
        errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert "[A]" in errors[0].getMessage()

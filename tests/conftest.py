"""Shared fixtures and fakes."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Union

import pytest

from rss_search.collectors.base import Article, Collector, RawEntry
from rss_search.errors import FetchError
from rss_search.sources import FeedSource

NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


def make_article(
    url: str,
    title: str = "Untitled",
    snippet: str = "",
    category: str = "general",
    keywords: Sequence[str] = (),
    age: timedelta = timedelta(days=30),
    source_name: str = "Test",
    image_url: Optional[str] = None,
) -> Article:
    return Article(
        title=title,
        url=url,
        snippet=snippet,
        raw_content=snippet,
        image_url=image_url,
        source_name=source_name,
        category=category,
        keywords=tuple(keywords),
        published_at=NOW - age,
        fetched_at=NOW,
    )


def make_source(name: str, category: str = "general", keywords: Sequence[str] = ()) -> FeedSource:
    return FeedSource(
        url=f"https://{name.lower()}.example.com/rss",
        category=category,
        source_name=name,
        keywords=tuple(keywords),
    )


class FakeCollector(Collector):
    """Returns canned entries, or raises, for one source."""

    def __init__(self, source: FeedSource, result: Union[list[RawEntry], Exception]):
        self.source = source
        self.result = result
        self.closed = False

    @property
    def name(self) -> str:
        return self.source.source_name

    async def fetch(self) -> list[RawEntry]:
        if isinstance(self.result, Exception):
            raise self.result
        return list(self.result)

    async def close(self) -> None:
        self.closed = True


def fake_factory(results: dict):
    """Collector factory keyed by source name. Unknown sources fail."""
    created = []

    def factory(source: FeedSource) -> FakeCollector:
        result = results.get(source.source_name, FetchError(source.source_name, message="unknown"))
        collector = FakeCollector(source, result)
        created.append(collector)
        return collector

    factory.created = created
    return factory


def entry(link: str, title: str = "Title", published: Optional[str] = None, **kwargs) -> RawEntry:
    return RawEntry(title=title, link=link, published=published, **kwargs)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock():
    return lambda: NOW

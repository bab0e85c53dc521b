"""Aggregation engine: fetch all feeds, merge, dedupe, sort, swap."""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from .collectors import Article, Collector, RSSCollector
from .errors import ConfigError, FetchError, NotReadyError
from .processors import Deduper, normalize
from .processors import search as search_articles
from .sources import FeedSource
from .storage import ArticleCache
from .utils import get_logger

logger = get_logger(__name__)

CollectorFactory = Callable[[FeedSource], Collector]


@dataclass(frozen=True)
class CollectionSnapshot:
    """Immutable view of the live collection. Replaced wholesale, never edited."""

    articles: tuple[Article, ...] = ()
    last_update: Optional[datetime] = None
    version: int = 0


@dataclass(frozen=True)
class RefreshReport:
    """Outcome of one refresh cycle."""

    succeeded: int
    failed: int
    article_count: int
    replaced: bool
    finished_at: datetime
    failed_sources: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failedSources": list(self.failed_sources),
            "articleCount": self.article_count,
            "replaced": self.replaced,
            "finishedAt": self.finished_at.isoformat(),
        }


def build_collection(candidates: Sequence[Article]) -> tuple[Article, ...]:
    """Dedupe by url (first wins) and sort newest first. The sort is stable."""
    unique = Deduper().deduplicate(candidates)
    return tuple(sorted(unique, key=lambda a: a.published_at, reverse=True))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Aggregator:
    """
    Owns the live article collection.

    ``refresh_all`` is the only writer: it builds a new snapshot off to the
    side and installs it with a single attribute assignment, so readers always
    see one complete snapshot.
    """

    def __init__(
        self,
        sources: Sequence[FeedSource],
        cache: Optional[ArticleCache] = None,
        collector_factory: CollectorFactory = RSSCollector,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.sources = tuple(sources)
        self.cache = cache
        self.collector_factory = collector_factory
        self.clock = clock
        self._snapshot = CollectionSnapshot()

    @property
    def snapshot(self) -> CollectionSnapshot:
        return self._snapshot

    @property
    def articles(self) -> tuple[Article, ...]:
        return self._snapshot.articles

    @property
    def last_update(self) -> Optional[datetime]:
        return self._snapshot.last_update

    def is_ready(self) -> bool:
        """True once the collection holds at least one article."""
        return bool(self._snapshot.articles)

    def _install(self, articles: tuple[Article, ...], last_update: Optional[datetime]) -> None:
        self._snapshot = CollectionSnapshot(
            articles=articles,
            last_update=last_update,
            version=self._snapshot.version + 1,
        )

    async def collect_from_source(
        self, source: FeedSource
    ) -> tuple[list[Article], Optional[str]]:
        """Fetch and normalize a single source. Returns (articles, error_source_name)."""
        collector = self.collector_factory(source)
        try:
            entries = await collector.fetch()
            fetched_at = self.clock()
            articles = [
                article
                for article in (normalize(entry, source, fetched_at) for entry in entries)
                if article is not None
            ]
            logger.info(f"[{source.source_name}] {len(articles)} articles")
            return articles, None
        except FetchError as e:
            logger.error(f"Collection failed: {e}")
            return [], source.source_name
        except Exception as e:
            logger.exception(f"[{source.source_name}] Unexpected error: {e}")
            return [], source.source_name
        finally:
            await collector.close()

    async def refresh_all(self) -> RefreshReport:
        """
        Fetch every source concurrently and replace the collection.

        A failing source only reduces coverage. If nothing at all was
        collected, a non-empty existing collection is kept as-is.
        """
        if not self.sources:
            raise ConfigError("No feed sources configured")

        logger.info(f"Fetching from {len(self.sources)} sources in parallel...")
        started = self.clock()

        results = await asyncio.gather(
            *(self.collect_from_source(source) for source in self.sources)
        )

        # gather preserves argument order, so candidates follow registry order
        candidates: list[Article] = []
        failed_sources = []
        for source_articles, error_source in results:
            candidates.extend(source_articles)
            if error_source:
                failed_sources.append(error_source)

        articles = build_collection(candidates)
        finished_at = self.clock()

        replaced = True
        if not articles and self.is_ready():
            logger.warning("Refresh produced no articles, keeping the existing collection")
            replaced = False
        else:
            self._install(articles, finished_at)

        succeeded = len(self.sources) - len(failed_sources)
        elapsed = (finished_at - started).total_seconds()
        logger.info(
            f"RSS aggregation complete in {elapsed:.2f}s: "
            f"{succeeded}/{len(self.sources)} feeds, {len(articles)} articles, "
            f"{len(failed_sources)} failed"
        )
        if failed_sources:
            logger.warning(f"Failed feeds: {', '.join(failed_sources)}")

        return RefreshReport(
            succeeded=succeeded,
            failed=len(failed_sources),
            failed_sources=tuple(failed_sources),
            article_count=len(self._snapshot.articles),
            replaced=replaced,
            finished_at=finished_at,
        )

    def search(
        self,
        query: Optional[str],
        limit: int = 20,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> list[Article]:
        """Search the current snapshot. Raises NotReadyError if it was never populated."""
        snapshot = self._snapshot
        if not snapshot.articles:
            raise NotReadyError("Articles not yet loaded. Please try again in a moment.")
        return search_articles(snapshot.articles, query, limit, offset, now or self.clock())

    def get_stats(self) -> dict:
        snapshot = self._snapshot
        return {
            "totalArticles": len(snapshot.articles),
            "totalFeeds": len(self.sources),
            "lastUpdate": snapshot.last_update.isoformat() if snapshot.last_update else None,
            "categories": list(dict.fromkeys(a.category for a in snapshot.articles)),
            "sources": list(dict.fromkeys(a.source_name for a in snapshot.articles)),
        }

    async def load_cache(self) -> bool:
        """Install the cached collection if there is one. Returns True on success."""
        if self.cache is None:
            return False
        cached = await asyncio.to_thread(self.cache.load)
        if cached is None or not cached.articles:
            return False
        self._install(build_collection(cached.articles), cached.last_update)
        return True

    async def save_cache(self) -> None:
        """Write the current snapshot to the cache. Raises OSError on failure."""
        if self.cache is None:
            return
        snapshot = self._snapshot
        await asyncio.to_thread(self.cache.save, snapshot.articles, snapshot.last_update)

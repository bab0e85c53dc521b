"""Article deduplication by canonical url."""

from typing import Iterable

from ..collectors.base import Article
from ..utils import get_logger

logger = get_logger(__name__)


class Deduper:
    """Drop articles whose url was already seen, keeping the first occurrence."""

    def __init__(self):
        self._seen_urls: set[str] = set()

    def deduplicate(self, articles: Iterable[Article]) -> list[Article]:
        kept = []
        total = 0
        for total, article in enumerate(articles, start=1):
            if article.url in self._seen_urls:
                continue
            self._seen_urls.add(article.url)
            kept.append(article)

        if total > len(kept):
            logger.debug(f"Dropped {total - len(kept)} duplicate urls")
        return kept

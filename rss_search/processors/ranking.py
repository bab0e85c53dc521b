"""Keyword-weighted search over the article collection.

Scoring, per query word (query lower-cased and split on whitespace):

- +10 if the word occurs in the title
- +5 if the word occurs in the snippet
- +3 for every article keyword that contains the word or is contained by it

plus +7 if the category contains the whole query, and a recency boost of +2
for articles younger than a day or +1 for younger than a week. Articles that
score zero are dropped. Ties keep the collection's (newest-first) order.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence

from ..collectors.base import Article

TITLE_WEIGHT = 10
SNIPPET_WEIGHT = 5
KEYWORD_WEIGHT = 3
CATEGORY_WEIGHT = 7


@dataclass(frozen=True)
class SearchResult:
    article: Article
    score: int


def recency_boost(published_at: datetime, now: datetime) -> int:
    age = now - published_at
    if age < timedelta(days=1):
        return 2
    if age < timedelta(days=7):
        return 1
    return 0


def score_article(article: Article, query: str, now: datetime) -> int:
    """Score one article against a non-blank query."""
    query_lower = query.lower().strip()
    words = query_lower.split()
    score = 0

    title = article.title.lower()
    snippet = article.snippet.lower()
    score += sum(TITLE_WEIGHT for word in words if word in title)
    score += sum(SNIPPET_WEIGHT for word in words if word in snippet)

    for keyword in article.keywords:
        keyword = keyword.lower()
        for word in words:
            if word in keyword or keyword in word:
                score += KEYWORD_WEIGHT

    if query_lower in article.category.lower():
        score += CATEGORY_WEIGHT

    score += recency_boost(article.published_at, now)
    return score


def _check_page(limit: int, offset: int) -> None:
    if limit < 0:
        raise ValueError(f"limit must be >= 0, got {limit}")
    if offset < 0:
        raise ValueError(f"offset must be >= 0, got {offset}")


def rank(
    articles: Sequence[Article],
    query: str,
    now: Optional[datetime] = None,
) -> list[SearchResult]:
    """Score every article and return the positive ones, best first."""
    now = now or datetime.now(timezone.utc)
    scored = [SearchResult(article, score_article(article, query, now)) for article in articles]
    # sorted() is stable, so equal scores stay newest-first
    return sorted((r for r in scored if r.score > 0), key=lambda r: r.score, reverse=True)


def search(
    articles: Sequence[Article],
    query: Optional[str],
    limit: int = 20,
    offset: int = 0,
    now: Optional[datetime] = None,
) -> list[Article]:
    """
    Search a newest-first article sequence.

    A blank query pages through the collection as-is. Otherwise articles are
    ranked by score and the page ``[offset:offset + limit]`` is returned.
    """
    _check_page(limit, offset)

    if not query or not query.strip():
        return list(articles[offset:offset + limit])

    ranked = rank(articles, query, now)
    return [r.article for r in ranked[offset:offset + limit]]

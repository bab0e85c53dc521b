"""JSON file cache of the article collection."""

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from ..collectors.base import Article
from ..errors import CacheLoadError
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CachedCollection:
    articles: tuple[Article, ...]
    last_update: Optional[datetime]


class ArticleCache:
    """Serializes the article collection to a JSON side file.

    The file holds ``{"articles": [...], "lastUpdate": "<iso>"}`` so a restart
    can serve immediately instead of waiting for every feed.
    """

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, articles: Sequence[Article], last_update: Optional[datetime]) -> None:
        """Write the collection atomically. Raises OSError on failure."""
        data = {
            "articles": [article.to_dict() for article in articles],
            "lastUpdate": last_update.isoformat() if last_update else None,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".articles-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

        logger.info(f"Cached {len(articles)} articles to {self.path}")

    def decode(self, raw: str) -> CachedCollection:
        """Parse cache file contents. Raises CacheLoadError if malformed."""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheLoadError(f"Cache is not valid JSON: {e}") from e

        if not isinstance(data, dict) or not isinstance(data.get("articles"), list):
            raise CacheLoadError("Cache has no 'articles' list")

        articles = tuple(Article.from_dict(item) for item in data["articles"])

        last_update = data.get("lastUpdate")
        try:
            last_update = datetime.fromisoformat(last_update) if last_update else None
            if last_update is not None and last_update.tzinfo is None:
                last_update = last_update.replace(tzinfo=timezone.utc)
        except (TypeError, ValueError) as e:
            raise CacheLoadError(f"Invalid lastUpdate: {e}") from e

        return CachedCollection(articles=articles, last_update=last_update)

    def load(self) -> Optional[CachedCollection]:
        """Load the cached collection, or None if it is absent or unreadable."""
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No cache file found, will fetch fresh data")
            return None
        except OSError as e:
            logger.warning(f"Cannot read cache file {self.path}: {e}")
            return None

        try:
            cached = self.decode(raw)
        except CacheLoadError as e:
            logger.warning(f"Ignoring cache file {self.path}: {e}")
            return None

        logger.info(f"Loaded {len(cached.articles)} articles from cache")
        return cached

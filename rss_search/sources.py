"""Load feed sources from the JSON side file."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import DEFAULT_CATEGORY
from .errors import ConfigError
from .utils import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeedSource:
    """One configured RSS origin. Identity is the feed url."""

    url: str
    category: str
    source_name: str
    keywords: tuple[str, ...] = ()

    def __hash__(self):
        return hash(self.url)

    def __eq__(self, other):
        if not isinstance(other, FeedSource):
            return False
        return self.url == other.url


def _parse_source(raw: Any, index: int) -> FeedSource:
    """Validate one entry of the ``feeds`` list."""
    if not isinstance(raw, dict):
        raise ConfigError(f"Feed #{index} is not an object")

    url = raw.get("url")
    name = raw.get("source")
    if not isinstance(url, str) or not url.strip():
        raise ConfigError(f"Feed #{index} has no url")
    if not isinstance(name, str) or not name.strip():
        raise ConfigError(f"Feed #{index} ({url}) has no source name")

    category = raw.get("category") or DEFAULT_CATEGORY
    if not isinstance(category, str):
        raise ConfigError(f"Feed #{index} ({url}) has a non-string category")

    keywords = raw.get("keywords", [])
    if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
        raise ConfigError(f"Feed #{index} ({url}) keywords must be a list of strings")

    # Keep file order, drop repeats
    unique_keywords = tuple(dict.fromkeys(k.strip() for k in keywords if k.strip()))

    return FeedSource(
        url=url.strip(),
        category=category.strip(),
        source_name=name.strip(),
        keywords=unique_keywords,
    )


def load_sources(path: Path) -> list[FeedSource]:
    """
    Load feed sources from a feeds.json file.

    The file holds ``{"feeds": [{"url", "category", "source", "keywords"}]}``.
    Raises ConfigError if the file is missing or malformed.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Feed file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read feed file {path}: {e}") from e

    feeds = data.get("feeds") if isinstance(data, dict) else None
    if not isinstance(feeds, list):
        raise ConfigError(f"Feed file {path} has no 'feeds' list")

    sources: list[FeedSource] = []
    seen_urls: set[str] = set()
    for index, raw in enumerate(feeds):
        source = _parse_source(raw, index)
        if source.url in seen_urls:
            logger.warning(f"Skipping duplicate feed url: {source.url}")
            continue
        seen_urls.add(source.url)
        sources.append(source)

    logger.info(f"Loaded {len(sources)} RSS feed sources from {path.name}")
    return sources

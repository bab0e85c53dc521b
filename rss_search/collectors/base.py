"""Base collector interface, raw feed entries and the Article dataclass."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..errors import CacheLoadError


@dataclass(frozen=True)
class RawEntry:
    """One feed item as parsed from the payload, before normalization."""

    title: Optional[str] = None
    link: Optional[str] = None
    guid: Optional[str] = None
    content: Optional[str] = None
    description: Optional[str] = None
    media_content: tuple[Mapping[str, str], ...] = ()
    media_thumbnail: tuple[Mapping[str, str], ...] = ()
    enclosures: tuple[Mapping[str, str], ...] = ()
    published: Optional[str] = None


def _parse_timestamp(value: str) -> datetime:
    """Parse an ISO timestamp. Naive values are taken as UTC."""
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class Article:
    """Normalized article. Identity is the url."""

    title: str
    url: str
    snippet: str
    raw_content: str
    source_name: str
    category: str
    published_at: datetime
    fetched_at: datetime
    image_url: Optional[str] = None
    keywords: tuple[str, ...] = field(default_factory=tuple)

    def __hash__(self):
        return hash(self.url)

    def __eq__(self, other):
        if not isinstance(other, Article):
            return False
        return self.url == other.url

    def to_dict(self) -> dict[str, Any]:
        """Serialize with ISO-8601 timestamps (microseconds and offset kept)."""
        return {
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "content": self.raw_content,
            "imageUrl": self.image_url,
            "source": self.source_name,
            "category": self.category,
            "keywords": list(self.keywords),
            "pubDate": self.published_at.isoformat(),
            "fetchedAt": self.fetched_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Article":
        """Inverse of to_dict. Raises CacheLoadError on missing or bad fields."""
        try:
            url = data["url"]
            if not isinstance(url, str) or not url:
                raise ValueError("empty url")
            return cls(
                title=data["title"],
                url=url,
                snippet=data["snippet"],
                raw_content=data.get("content", ""),
                image_url=data.get("imageUrl"),
                source_name=data["source"],
                category=data["category"],
                keywords=tuple(data.get("keywords", ())),
                published_at=_parse_timestamp(data["pubDate"]),
                fetched_at=_parse_timestamp(data["fetchedAt"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise CacheLoadError(f"Invalid cached article: {e}") from e


class Collector(ABC):
    """Abstract base class for feed collectors."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the collector/source name."""
        pass

    @abstractmethod
    async def fetch(self) -> list[RawEntry]:
        """Fetch and parse the raw entries of the source."""
        pass

    async def close(self) -> None:
        """Release any network resources."""
        pass

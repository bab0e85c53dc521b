"""RSS feed collector."""

from typing import Any, Mapping, Optional

import feedparser
import httpx

from ..config import FETCH_TIMEOUT_SECONDS, USER_AGENT
from ..errors import FetchError, ParseError
from ..sources import FeedSource
from ..utils import get_logger
from .base import Collector, RawEntry

logger = get_logger(__name__)


def _attrs(items: Any, url_key: str = "url") -> tuple[dict[str, str], ...]:
    """Copy feedparser attribute dicts, renaming ``url_key`` to ``url``."""
    if not items:
        return ()
    if isinstance(items, Mapping):
        items = [items]
    result = []
    for item in items:
        if not isinstance(item, Mapping):
            continue
        attrs = {k: v for k, v in item.items() if isinstance(v, str)}
        if url_key != "url" and url_key in attrs:
            attrs["url"] = attrs.pop(url_key)
        result.append(attrs)
    return tuple(result)


def entry_to_raw(entry: Mapping[str, Any]) -> RawEntry:
    """Map a feedparser entry onto a RawEntry."""
    content = None
    content_blocks = entry.get("content") or []
    if content_blocks:
        content = content_blocks[0].get("value")

    return RawEntry(
        title=entry.get("title"),
        link=entry.get("link"),
        guid=entry.get("id"),
        content=content,
        description=entry.get("summary"),
        media_content=_attrs(entry.get("media_content")),
        media_thumbnail=_attrs(entry.get("media_thumbnail")),
        enclosures=_attrs(entry.get("enclosures"), url_key="href"),
        published=entry.get("published") or entry.get("updated"),
    )


class RSSCollector(Collector):
    """Collector for a single configured RSS feed."""

    def __init__(
        self,
        source: FeedSource,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ):
        self.source = source
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    @property
    def name(self) -> str:
        return self.source.source_name

    async def fetch(self) -> list[RawEntry]:
        """Fetch and parse the RSS feed.

        Raises FetchError on network errors, timeouts and bad status codes,
        ParseError when the payload is not a feed.
        """
        try:
            response = await self.client.get(self.source.url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise FetchError(self.name, e) from e

        feed = feedparser.parse(response.content)
        if feed.bozo and not feed.entries:
            cause = feed.get("bozo_exception")
            raise ParseError(self.name, cause, "unparseable feed payload")

        entries = [entry_to_raw(entry) for entry in feed.entries]
        logger.debug(f"[{self.name}] Parsed {len(entries)} entries")
        return entries

    async def close(self) -> None:
        """Close the HTTP client if this collector created it."""
        if self._owns_client:
            await self.client.aclose()

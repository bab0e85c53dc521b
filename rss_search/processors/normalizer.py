"""Turn raw feed entries into Articles: snippet cleanup, image and date extraction."""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from dateutil.parser import parse as parse_date

from ..collectors.base import Article, RawEntry
from ..config import SNIPPET_LENGTH
from ..sources import FeedSource

TAG_RE = re.compile(r"<[^>]*>")
IMG_SRC_RE = re.compile(r"""<img[^>]+src=["']([^"']+)["']""", re.IGNORECASE)

# Only these six are decoded; anything else is left as-is
HTML_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)

# Timezone abbreviations for date parsing
TZINFOS = {
    "EST": timezone(timedelta(hours=-5)),
    "EDT": timezone(timedelta(hours=-4)),
    "CST": timezone(timedelta(hours=-6)),
    "CDT": timezone(timedelta(hours=-5)),
    "MST": timezone(timedelta(hours=-7)),
    "MDT": timezone(timedelta(hours=-6)),
    "PST": timezone(timedelta(hours=-8)),
    "PDT": timezone(timedelta(hours=-7)),
    "GMT": timezone.utc,
    "UTC": timezone.utc,
    "BST": timezone(timedelta(hours=1)),
}


def strip_tags(html: str) -> str:
    return TAG_RE.sub("", html)


def decode_entities(text: str) -> str:
    for entity, char in HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def clean_snippet(html: str, max_length: int = SNIPPET_LENGTH) -> str:
    """Strip tags, decode common entities, trim and truncate."""
    return decode_entities(strip_tags(html or "")).strip()[:max_length]


def extract_image(entry: RawEntry) -> Optional[str]:
    """
    Pick a representative image for an entry.

    Priority: media:content (image or untyped), media:thumbnail,
    image/* enclosure, then the first <img> in the content or description.
    """
    for media in entry.media_content:
        url = media.get("url")
        medium = media.get("medium")
        if url and (not medium or medium == "image"):
            return url

    # Only the first thumbnail counts
    if entry.media_thumbnail:
        url = entry.media_thumbnail[0].get("url")
        if url:
            return url

    for enclosure in entry.enclosures:
        url = enclosure.get("url")
        if url and (enclosure.get("type") or "").startswith("image/"):
            return url

    html = entry.content or entry.description or ""
    match = IMG_SRC_RE.search(html)
    if match:
        return match.group(1)

    return None


def parse_published(value: Optional[str], default: datetime) -> datetime:
    """Parse a feed date string, falling back to ``default``. Naive dates are UTC."""
    if not value:
        return default
    try:
        dt = parse_date(value, tzinfos=TZINFOS)
    except (ValueError, OverflowError):
        return default
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize(entry: RawEntry, source: FeedSource, now: Optional[datetime] = None) -> Optional[Article]:
    """Build an Article from a raw entry, or None if it has no link or guid."""
    url = (entry.link or entry.guid or "").strip()
    if not url:
        return None

    fetched_at = now or datetime.now(timezone.utc)
    raw_content = entry.content or entry.description or ""

    return Article(
        title=entry.title or "Untitled",
        url=url,
        snippet=clean_snippet(entry.description or entry.content or ""),
        raw_content=raw_content,
        image_url=extract_image(entry),
        source_name=source.source_name,
        category=source.category,
        keywords=source.keywords,
        published_at=parse_published(entry.published, fetched_at),
        fetched_at=fetched_at,
    )

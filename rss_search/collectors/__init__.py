"""Feed collectors."""

from .base import Article, Collector, RawEntry
from .rss import RSSCollector

__all__ = ["Article", "Collector", "RawEntry", "RSSCollector"]

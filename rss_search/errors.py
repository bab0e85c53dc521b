"""Error types raised by the aggregation and search engine."""

from typing import Optional


class RSSSearchError(Exception):
    """Base class for all errors raised by rss_search."""


class ConfigError(RSSSearchError):
    """The feed source registry is missing, malformed or empty."""


class FetchError(RSSSearchError):
    """A single feed could not be fetched.

    Always scoped to one source; the aggregator records it and moves on.
    """

    def __init__(self, source: str, cause: Optional[BaseException] = None, message: str = ""):
        self.source = source
        self.cause = cause
        detail = message or (str(cause) if cause else "fetch failed")
        super().__init__(f"[{source}] {detail}")


class ParseError(FetchError):
    """The feed payload could not be parsed."""


class CacheLoadError(RSSSearchError):
    """The article cache file exists but cannot be decoded."""


class NotReadyError(RSSSearchError):
    """Search was requested before the collection was ever populated."""

"""Article collection persistence."""

from .cache import ArticleCache, CachedCollection

__all__ = ["ArticleCache", "CachedCollection"]

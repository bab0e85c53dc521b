"""Content processing modules."""

from .deduper import Deduper
from .normalizer import normalize
from .ranking import SearchResult, rank, search

__all__ = ["Deduper", "SearchResult", "normalize", "rank", "search"]

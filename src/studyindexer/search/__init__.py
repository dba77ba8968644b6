"""Search index access."""

from .engine import ElasticsearchIndex, ScrollPage, SearchIndex
from .reader import ScrollReader

__all__ = ["ElasticsearchIndex", "ScrollPage", "SearchIndex", "ScrollReader"]

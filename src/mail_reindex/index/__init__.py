"""FTS5 search index built by a reindex run.

This module provides:
- SearchIndex: Create, bulk-load, search and inspect an index directory
- FTS5 full-text search with BM25 ranking and label filters
"""

from .manager import IndexStats, SearchIndex
from .search import SearchResult

__all__ = ["IndexStats", "SearchIndex", "SearchResult"]

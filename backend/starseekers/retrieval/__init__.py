"""Retrieval orchestration components."""

from .search import SearchHit, SearchService

__all__ = [
    "SearchHit",
    "SearchService",
]

"""Vector store contract shared by the sync pipeline and search."""

from __future__ import annotations

from typing import Any, Protocol, Sequence

from starseekers.models.entities import IndexRecord, QueryMatch


class VectorStore(Protocol):
    """Global record collection with metadata filtering by ``starredBy`` membership.

    Every read that serves a user carries ``member``; implementations must never
    return records whose ``starredBy`` excludes that member.
    """

    def fetch(self, ids: Sequence[str]) -> dict[str, IndexRecord]:
        """Return existing records for ``ids``; unknown ids are absent."""
        ...

    def upsert(self, records: Sequence[IndexRecord]) -> None:
        """Insert or replace vectors and metadata."""
        ...

    def update_metadata(self, record_id: str, metadata: dict[str, Any]) -> None:
        """Overwrite the given top-level metadata keys, keeping the vector."""
        ...

    def query(self, vector: Sequence[float], top_k: int, member: str) -> list[QueryMatch]:
        """Similarity search restricted to records starred by ``member``."""
        ...


__all__ = ["VectorStore"]

"""Vector store backends."""

from __future__ import annotations

from starseekers.core.config import Settings

from .base import VectorStore
from .pinecone import PineconeVectorStore
from .sqlite import SQLiteVectorStore


def build_vector_store(settings: Settings) -> VectorStore:
    """Construct the configured backend; credentials are checked here, at first use."""
    if settings.vector_backend == "pinecone":
        return PineconeVectorStore.from_settings(settings)
    return SQLiteVectorStore(settings.db_path)


__all__ = ["VectorStore", "PineconeVectorStore", "SQLiteVectorStore", "build_vector_store"]

"""Pinecone-backed vector store built on the official ``pinecone`` SDK."""

from __future__ import annotations

from typing import Any, Sequence

from pinecone import Pinecone
from pinecone.exceptions import PineconeApiException, PineconeException

from starseekers.core.config import Settings
from starseekers.core.errors import IndexOperationFailure, RateLimited
from starseekers.core.logging import get_logger
from starseekers.models.entities import IndexRecord, QueryMatch

logger = get_logger(__name__)


class PineconeVectorStore:
    """One shared index; membership filtering uses ``{"starredBy": {"$in": [user]}}``."""

    def __init__(self, index: Any, index_name: str = "starseekers") -> None:
        self.index = index
        self.index_name = index_name

    @classmethod
    def from_settings(cls, settings: Settings) -> "PineconeVectorStore":
        client = Pinecone(api_key=settings.require("pinecone_api_key"))
        index = client.Index(name=settings.index_name, host=settings.pinecone_index_host or "")
        logger.info("Connected to Pinecone index %s", settings.index_name)
        return cls(index, index_name=settings.index_name)

    def fetch(self, ids: Sequence[str]) -> dict[str, IndexRecord]:
        if not ids:
            return {}
        response = self._call("fetch", ids=list(ids))
        return {
            record_id: IndexRecord(
                id=record_id,
                values=list(vector.values or []),
                metadata=dict(vector.metadata or {}),
            )
            for record_id, vector in (response.vectors or {}).items()
        }

    def upsert(self, records: Sequence[IndexRecord]) -> None:
        if not records:
            return
        self._call(
            "upsert",
            vectors=[
                {"id": record.id, "values": list(record.values), "metadata": record.metadata}
                for record in records
            ],
        )

    def update_metadata(self, record_id: str, metadata: dict[str, Any]) -> None:
        self._call("update", id=record_id, set_metadata=metadata)

    def query(self, vector: Sequence[float], top_k: int, member: str) -> list[QueryMatch]:
        response = self._call(
            "query",
            vector=list(vector),
            top_k=top_k,
            include_metadata=True,
            include_values=False,
            filter={"starredBy": {"$in": [member]}},
        )
        return [
            QueryMatch(id=match.id, score=float(match.score or 0.0), metadata=dict(match.metadata or {}))
            for match in response.matches or []
        ]

    def _call(self, operation: str, **kwargs: Any) -> Any:
        try:
            return getattr(self.index, operation)(**kwargs)
        except PineconeApiException as exc:
            if getattr(exc, "status", None) == 429:
                raise RateLimited("Vector index rate limit reached. Try again later.") from exc
            raise IndexOperationFailure(f"Vector index {operation} failed: {exc}") from exc
        except PineconeException as exc:
            raise IndexOperationFailure(f"Vector index {operation} failed: {exc}") from exc


__all__ = ["PineconeVectorStore"]

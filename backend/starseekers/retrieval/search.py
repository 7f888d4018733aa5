"""Search orchestration."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from starseekers.core.errors import AuthRequired, ValidationError
from starseekers.core.logging import get_logger, log_context
from starseekers.core.metrics import SEARCH_LATENCY
from starseekers.models.entities import QueryMatch
from starseekers.store.base import VectorStore
from starseekers.sync.embeddings import EmbeddingModel, embed_one
from starseekers.utils.text import normalize

logger = get_logger(__name__)

MIN_QUERY_CHARS = 2
MIN_TOP_K = 1
MAX_TOP_K = 20
DEFAULT_TOP_K = 8


@dataclass(slots=True)
class SearchHit:
    id: str
    score: float
    full_name: str
    description: str
    html_url: str
    language: str | None = None
    topics: list[str] = field(default_factory=list)

    @classmethod
    def from_match(cls, match: QueryMatch) -> "SearchHit":
        meta = match.metadata
        return cls(
            id=match.id,
            score=match.score,
            full_name=meta.get("fullName") or "",
            description=meta.get("description") or "",
            html_url=meta.get("htmlUrl") or "",
            language=meta.get("language"),
            topics=list(meta.get("topics") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "score": self.score,
            "fullName": self.full_name,
            "description": self.description,
            "htmlUrl": self.html_url,
            "language": self.language,
            "topics": list(self.topics),
        }


class SearchService:
    """Embed a free-text query and run a membership-filtered similarity search."""

    def __init__(self, store: VectorStore, embedding_model: EmbeddingModel) -> None:
        self.store = store
        self.embedding_model = embedding_model

    def search(self, user_id: str | None, query: str, top_k: int | None = None) -> list[SearchHit]:
        if not user_id:
            raise AuthRequired("Sign-in required.")
        text = normalize(query or "")
        if len(text) < MIN_QUERY_CHARS:
            raise ValidationError(f"Query must be at least {MIN_QUERY_CHARS} characters.")
        limit = DEFAULT_TOP_K if top_k is None else top_k
        if not MIN_TOP_K <= limit <= MAX_TOP_K:
            raise ValidationError(f"topK must be between {MIN_TOP_K} and {MAX_TOP_K}.")

        start_time = time.perf_counter()
        vector = embed_one(self.embedding_model, text)
        matches = self.store.query(vector, top_k=limit, member=user_id)
        # Metadata filters on remote indexes may lag behind recent detachments.
        hits = [
            SearchHit.from_match(match)
            for match in matches
            if user_id in (match.metadata.get("starredBy") or [])
        ]
        SEARCH_LATENCY.observe(time.perf_counter() - start_time)
        logger.debug("Search returned %s hits", len(hits), extra=log_context(user=user_id))
        return hits


__all__ = ["SearchService", "SearchHit", "MIN_QUERY_CHARS", "MAX_TOP_K", "DEFAULT_TOP_K"]

"""Embedding backends."""

from __future__ import annotations

import hashlib
import math
import re
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

import openai

from starseekers.core.config import Settings
from starseekers.core.errors import EmbeddingFailure, RateLimited
from starseekers.core.logging import get_logger
from starseekers.sync.hashing import prepare_for_embedding

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")


@dataclass(slots=True)
class EmbeddingBatch:
    vectors: list[list[float]]
    model: str
    dim: int
    backend: str


class EmbeddingModel(Protocol):
    model_name: str

    @property
    def dim(self) -> int: ...

    def encode(self, texts: Sequence[str]) -> EmbeddingBatch:
        """Return one vector per text, in input order."""
        ...


class OpenAIEmbeddingModel:
    """Embeds through ``client.embeddings.create``, one request per ``encode`` call."""

    def __init__(
        self,
        client: Any,
        model_name: str = "text-embedding-3-small",
        dim: int = 1536,
    ) -> None:
        self.client = client
        self.model_name = model_name
        self._dim = dim

    @classmethod
    def from_settings(cls, settings: Settings) -> "OpenAIEmbeddingModel":
        client = openai.OpenAI(
            api_key=settings.require("openai_api_key"),
            base_url=settings.openai_base_url,
            timeout=settings.http_timeout,
            max_retries=0,
        )
        return cls(client, model_name=settings.embedding_model, dim=settings.embedding_dim)

    @property
    def dim(self) -> int:
        return self._dim

    def encode(self, texts: Sequence[str]) -> EmbeddingBatch:
        if not texts:
            return EmbeddingBatch(vectors=[], model=self.model_name, dim=self._dim, backend="openai")
        try:
            response = self.client.embeddings.create(
                model=self.model_name,
                input=[prepare_for_embedding(text) for text in texts],
            )
        except openai.RateLimitError as exc:
            raise RateLimited("Embedding service rate limit reached. Try again later.") from exc
        except openai.OpenAIError as exc:
            raise EmbeddingFailure(f"Embedding request failed: {exc}") from exc

        ordered = sorted(response.data, key=lambda item: item.index)
        vectors = [list(item.embedding) for item in ordered]
        if len(vectors) != len(texts):
            raise EmbeddingFailure(f"Embedding service returned {len(vectors)} vectors for {len(texts)} inputs")
        logger.debug("Embedded %s texts with %s", len(vectors), self.model_name)
        return EmbeddingBatch(vectors=vectors, model=self.model_name, dim=self._dim, backend="openai")


class HashedEmbeddingModel:
    """Lightweight hashed embedding model with deterministic output."""

    def __init__(self, model_name: str = "hashed", dim: int = 384) -> None:
        self.model_name = model_name
        self._dim = dim

    @property
    def dim(self) -> int:
        return self._dim

    def encode(self, texts: Sequence[str]) -> EmbeddingBatch:
        vectors: list[list[float]] = []
        for text in texts:
            vector = [0.0] * self._dim
            for token in _tokenize(prepare_for_embedding(text)):
                vector[_hash_token(token, self._dim)] += 1.0
            _normalize(vector)
            vectors.append(vector)
        return EmbeddingBatch(vectors=vectors, model=self.model_name, dim=self._dim, backend="hashed")


def build_embedding_model(settings: Settings) -> EmbeddingModel:
    if settings.embedding_backend == "hashed":
        return HashedEmbeddingModel(model_name=settings.embedding_model, dim=settings.embedding_dim)
    return OpenAIEmbeddingModel.from_settings(settings)


def embed_one(model: EmbeddingModel, text: str) -> list[float]:
    vectors = model.encode([text]).vectors
    if not vectors:
        raise EmbeddingFailure("Embedding service returned no vector")
    return vectors[0]


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big") % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "EmbeddingBatch",
    "EmbeddingModel",
    "OpenAIEmbeddingModel",
    "HashedEmbeddingModel",
    "build_embedding_model",
    "embed_one",
]

"""Tests for embedding backends."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import openai
import pytest

from starseekers.core.config import Settings
from starseekers.core.errors import ConfigurationError, EmbeddingFailure, RateLimited
from starseekers.sync.embeddings import HashedEmbeddingModel, OpenAIEmbeddingModel, build_embedding_model

EMBEDDINGS_URL = "https://api.openai.com/v1/embeddings"


class FakeEmbeddings:
    def __init__(self, data=None, error: Exception | None = None) -> None:
        self.data = data or []
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(data=self.data)


def _client(embeddings: FakeEmbeddings) -> SimpleNamespace:
    return SimpleNamespace(embeddings=embeddings)


def _item(index: int, embedding: list[float]) -> SimpleNamespace:
    return SimpleNamespace(index=index, embedding=embedding)


def test_hashed_model_is_normalised() -> None:
    model = HashedEmbeddingModel("dummy-model")
    vectors = model.encode(["hello", "world"]).vectors
    assert len(vectors) == 2
    assert all(len(vec) == model.dim for vec in vectors)
    assert abs(sum(value * value for value in vectors[0]) - 1.0) < 1e-6


def test_openai_model_orders_by_index() -> None:
    embeddings = FakeEmbeddings([_item(1, [0.0, 1.0]), _item(0, [1.0, 0.0])])
    model = OpenAIEmbeddingModel(_client(embeddings), dim=2)

    batch = model.encode(["first", "  second  "])

    assert batch.vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert embeddings.calls == [{"model": "text-embedding-3-small", "input": ["first", "second"]}]


def test_openai_vector_count_mismatch_fails() -> None:
    model = OpenAIEmbeddingModel(_client(FakeEmbeddings([_item(0, [1.0])])), dim=1)

    with pytest.raises(EmbeddingFailure):
        model.encode(["one", "two"])


def test_openai_errors_are_classified() -> None:
    request = httpx.Request("POST", EMBEDDINGS_URL)
    throttled = openai.RateLimitError(
        "slow down", response=httpx.Response(429, request=request), body=None
    )
    unreachable = openai.APIConnectionError(request=request)
    limited = OpenAIEmbeddingModel(_client(FakeEmbeddings(error=throttled)))
    broken = OpenAIEmbeddingModel(_client(FakeEmbeddings(error=unreachable)))

    with pytest.raises(RateLimited):
        limited.encode(["x"])
    with pytest.raises(EmbeddingFailure):
        broken.encode(["x"])


def test_openai_backend_requires_key() -> None:
    with pytest.raises(ConfigurationError):
        build_embedding_model(Settings(embedding_backend="openai", openai_api_key=None))


def test_openai_backend_builds_sdk_client() -> None:
    model = build_embedding_model(
        Settings(embedding_backend="openai", openai_api_key="sk-test", embedding_dim=8)
    )

    assert isinstance(model, OpenAIEmbeddingModel)
    assert isinstance(model.client, openai.OpenAI)
    assert model.dim == 8

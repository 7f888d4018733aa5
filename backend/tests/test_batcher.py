"""Tests for batched embedding."""

from __future__ import annotations

import threading
import time

import pytest

from starseekers.core.errors import EmbeddingFailure
from starseekers.sync.batcher import EmbeddingBatcher
from starseekers.sync.embeddings import EmbeddingBatch, HashedEmbeddingModel
from starseekers.sync.hashing import build_embedding_text, content_fingerprint
from starseekers.sync.types import ClassifiedRepository


def _items(make_repo, count: int) -> list[ClassifiedRepository]:
    repos = [make_repo(i, name=f"octo/project-{i}") for i in range(count)]
    return [ClassifiedRepository(repo=repo, fingerprint=content_fingerprint(repo)) for repo in repos]


def test_batches_and_progress(make_repo, embedding_model) -> None:
    items = _items(make_repo, 5)
    progress: list[tuple[int, int]] = []

    vectors = EmbeddingBatcher(embedding_model, batch_size=2).embed(items, on_batch=lambda c, t: progress.append((c, t)))

    assert [len(batch) for batch in embedding_model.batches] == [2, 2, 1]
    assert progress == [(2, 5), (4, 5), (5, 5)]
    expected = HashedEmbeddingModel(dim=embedding_model.dim).encode([build_embedding_text(i.repo) for i in items])
    assert vectors == expected.vectors


def test_empty_input_skips_model(embedding_model) -> None:
    assert EmbeddingBatcher(embedding_model).embed([]) == []
    assert embedding_model.batches == []


class SlowFirstBatchModel(HashedEmbeddingModel):
    def __init__(self) -> None:
        super().__init__(dim=16)
        self.first = threading.Event()

    def encode(self, texts):
        if not self.first.is_set():
            self.first.set()
            time.sleep(0.05)
        return super().encode(texts)


def test_concurrent_batches_keep_order(make_repo) -> None:
    items = _items(make_repo, 6)
    model = SlowFirstBatchModel()
    progress: list[int] = []

    vectors = EmbeddingBatcher(model, batch_size=2, max_workers=3).embed(items, on_batch=lambda c, t: progress.append(c))

    expected = HashedEmbeddingModel(dim=16).encode([build_embedding_text(i.repo) for i in items]).vectors
    assert vectors == expected
    assert progress == [2, 4, 6]


class ShortModel(HashedEmbeddingModel):
    def encode(self, texts):
        batch = super().encode(texts)
        return EmbeddingBatch(vectors=batch.vectors[:-1], model=batch.model, dim=batch.dim, backend=batch.backend)


def test_vector_count_mismatch_is_fatal(make_repo) -> None:
    with pytest.raises(EmbeddingFailure):
        EmbeddingBatcher(ShortModel(dim=8), batch_size=4).embed(_items(make_repo, 3))

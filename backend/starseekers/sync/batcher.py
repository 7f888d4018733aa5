"""Batched embedding of changed repositories."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from starseekers.core.errors import EmbeddingFailure
from starseekers.core.logging import get_logger
from starseekers.core.metrics import REPOS_EMBEDDED
from starseekers.sync.changes import batched
from starseekers.sync.embeddings import EmbeddingModel
from starseekers.sync.hashing import build_embedding_text
from starseekers.sync.types import ClassifiedRepository

logger = get_logger(__name__)

BatchCallback = Callable[[int, int], None]


class EmbeddingBatcher:
    """Embed repositories in fixed-size batches, keeping input order.

    With ``max_workers > 1`` batches run on a bounded thread pool, but results
    and progress callbacks are still consumed in batch order.
    """

    def __init__(self, model: EmbeddingModel, batch_size: int = 64, max_workers: int = 1) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.model = model
        self.batch_size = batch_size
        self.max_workers = max(1, max_workers)

    def embed(
        self,
        items: Sequence[ClassifiedRepository],
        on_batch: BatchCallback | None = None,
    ) -> list[list[float]]:
        total = len(items)
        if total == 0:
            return []
        texts = [build_embedding_text(item.repo) for item in items]
        batches = list(batched(texts, self.batch_size))
        vectors: list[list[float]] = []

        if self.max_workers == 1:
            for batch in batches:
                vectors.extend(self._encode(batch))
                self._report(len(vectors), total, on_batch)
            return vectors

        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            futures = [pool.submit(self._encode, batch) for batch in batches]
            for future in futures:
                vectors.extend(future.result())
                self._report(len(vectors), total, on_batch)
        return vectors

    def _encode(self, texts: Sequence[str]) -> list[list[float]]:
        result = self.model.encode(list(texts))
        if len(result.vectors) != len(texts):
            raise EmbeddingFailure(
                f"Embedding model returned {len(result.vectors)} vectors for a batch of {len(texts)}"
            )
        REPOS_EMBEDDED.inc(len(texts))
        return result.vectors

    @staticmethod
    def _report(completed: int, total: int, on_batch: BatchCallback | None) -> None:
        logger.debug("Embedded %s/%s repositories", completed, total)
        if on_batch is not None:
            on_batch(completed, total)


__all__ = ["EmbeddingBatcher"]

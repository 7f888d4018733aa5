"""Reconcile a user's starred set with the shared vector index."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Sequence

from starseekers.core.logging import get_logger, log_context
from starseekers.core.metrics import INDEX_WRITES
from starseekers.models.entities import IndexRecord, record_metadata
from starseekers.store.base import VectorStore
from starseekers.sync.changes import batched
from starseekers.sync.types import ClassifiedRepository

logger = get_logger(__name__)

ProgressCallback = Callable[[int], None]


class IndexReconciler:
    """Write new vectors, add associations and detach unstarred repositories.

    No step retries; store errors propagate to the caller.
    """

    def __init__(
        self,
        store: VectorStore,
        upsert_batch_size: int = 100,
        detach_page_size: int = 1000,
        max_workers: int = 8,
    ) -> None:
        if upsert_batch_size < 1 or detach_page_size < 1:
            raise ValueError("batch sizes must be positive")
        self.store = store
        self.upsert_batch_size = upsert_batch_size
        self.detach_page_size = detach_page_size
        self.max_workers = max(1, max_workers)

    def upsert(
        self,
        user_id: str,
        items: Sequence[ClassifiedRepository],
        vectors: Sequence[Sequence[float]],
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Upsert full records for freshly embedded repositories."""
        if len(items) != len(vectors):
            raise ValueError("every repository needs exactly one vector")
        records = [
            IndexRecord(
                id=item.record_id,
                values=list(vector),
                metadata=record_metadata(item.repo, item.fingerprint, item.starred_by_with(user_id)),
            )
            for item, vector in zip(items, vectors)
        ]
        written = 0
        for chunk in batched(records, self.upsert_batch_size):
            self.store.upsert(list(chunk))
            written += len(chunk)
            INDEX_WRITES.labels(operation="upsert").inc(len(chunk))
            if on_progress is not None:
                on_progress(written)
        return written

    def associate(
        self,
        user_id: str,
        items: Sequence[ClassifiedRepository],
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """Add ``user_id`` to ``starredBy`` of unchanged records without touching vectors."""
        patches = [(item.record_id, item.starred_by_with(user_id)) for item in items]
        done = self._patch_members(patches, on_progress)
        INDEX_WRITES.labels(operation="associate").inc(done)
        return done

    def detach(self, user_id: str, current_ids: set[str], probe_vector: Sequence[float]) -> int:
        """Remove ``user_id`` from records it no longer stars.

        The store is queried with the membership filter until a round returns
        no stale record that has not already been detached, which covers result
        truncation at ``detach_page_size``.
        """
        detached: set[str] = set()
        while True:
            matches = self.store.query(probe_vector, top_k=self.detach_page_size, member=user_id)
            stale = [
                match
                for match in matches
                if match.id not in current_ids and match.id not in detached
            ]
            if not stale:
                break
            patches = [
                (
                    match.id,
                    [member for member in match.metadata.get("starredBy") or [] if member != user_id],
                )
                for match in stale
            ]
            self._patch_members(patches)
            detached.update(match.id for match in stale)
            logger.info(
                "Detached %s unstarred repositories",
                len(stale),
                extra=log_context(user=user_id),
            )
        INDEX_WRITES.labels(operation="detach").inc(len(detached))
        return len(detached)

    def _patch_members(
        self,
        patches: Sequence[tuple[str, list[str]]],
        on_progress: ProgressCallback | None = None,
    ) -> int:
        if not patches:
            return 0

        def apply(patch: tuple[str, list[str]]) -> None:
            record_id, members = patch
            self.store.update_metadata(record_id, {"starredBy": members})

        done = 0
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(patches))) as pool:
            for _ in pool.map(apply, patches):
                done += 1
                if on_progress is not None:
                    on_progress(done)
        return done


__all__ = ["IndexReconciler"]

"""Change detection against previously indexed fingerprints."""

from __future__ import annotations

from typing import Iterable, Iterator, Sequence, TypeVar

from starseekers.core.logging import get_logger, log_context
from starseekers.models.entities import IndexRecord, StarredRepository
from starseekers.store.base import VectorStore
from starseekers.sync.hashing import content_fingerprint
from starseekers.sync.types import ChangeSet, ClassifiedRepository

logger = get_logger(__name__)

T = TypeVar("T")

MAX_LOOKUP_BATCH = 100


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size < 1:
        raise ValueError("batch size must be positive")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def dedupe_repositories(repos: Iterable[StarredRepository]) -> list[StarredRepository]:
    """Remove repeated ids while preserving order; the first occurrence wins."""
    seen: set[int] = set()
    unique: list[StarredRepository] = []
    for repo in repos:
        if repo.id in seen:
            continue
        seen.add(repo.id)
        unique.append(repo)
    return unique


class ChangeDetector:
    """Classify incoming repositories as unchanged, newly associated, or needing embedding."""

    def __init__(self, store: VectorStore, lookup_batch_size: int = MAX_LOOKUP_BATCH) -> None:
        self.store = store
        self.lookup_batch_size = min(lookup_batch_size, MAX_LOOKUP_BATCH)

    def lookup(self, ids: Sequence[str]) -> dict[str, IndexRecord]:
        existing: dict[str, IndexRecord] = {}
        for chunk in batched(ids, self.lookup_batch_size):
            existing.update(self.store.fetch(list(chunk)))
        return existing

    def classify(self, user_id: str, repos: Sequence[StarredRepository]) -> ChangeSet:
        unique = dedupe_repositories(repos)
        existing = self.lookup([repo.record_id for repo in unique])
        changes = ChangeSet()
        for repo in unique:
            fingerprint = content_fingerprint(repo)
            record = existing.get(repo.record_id)
            starred_by = record.starred_by if record is not None else []
            if record is not None and record.values and changes.probe_vector is None:
                changes.probe_vector = list(record.values)
            item = ClassifiedRepository(repo=repo, fingerprint=fingerprint, starred_by=starred_by)
            if record is None or record.hash != fingerprint:
                changes.embed.append(item)
            elif user_id in starred_by:
                changes.unchanged.append(item)
            else:
                changes.associate.append(item)
        logger.info(
            "Classified %s repositories: %s unchanged, %s to associate, %s to embed",
            changes.total,
            len(changes.unchanged),
            len(changes.associate),
            len(changes.embed),
            extra=log_context(user=user_id),
        )
        return changes


__all__ = ["ChangeDetector", "batched", "dedupe_repositories", "MAX_LOOKUP_BATCH"]

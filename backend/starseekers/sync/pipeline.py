"""Sync pipeline orchestration."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from starseekers.core.config import Settings
from starseekers.core.errors import AuthRequired, StarseekersError, SyncInProgress
from starseekers.core.logging import get_logger, log_context
from starseekers.core.metrics import SYNC_DURATION, SYNC_RUNS
from starseekers.github.source import GitHubStarsClient
from starseekers.models.entities import SessionUser
from starseekers.store.base import VectorStore
from starseekers.sync.batcher import EmbeddingBatcher
from starseekers.sync.changes import ChangeDetector
from starseekers.sync.embeddings import EmbeddingModel, embed_one
from starseekers.sync.progress import (
    CompleteEvent,
    EmbedEvent,
    ErrorEvent,
    FetchEvent,
    ProgressChannel,
    ProgressEvent,
    StartEvent,
    UpsertEvent,
)
from starseekers.sync.reconciler import IndexReconciler
from starseekers.sync.types import FetchProgress, SyncSummary

logger = get_logger(__name__)

Emit = Callable[[ProgressEvent], None]

# Any valid embedding works as a probe; only the membership filter matters.
PROBE_TEXT = "starred repositories"


class UserLocks:
    """Per-user advisory locks; a second sync for the same user fails fast."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._active: set[str] = set()

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            if user_id in self._active:
                raise SyncInProgress("A sync is already running for this account. Try again later.")
            self._active.add(user_id)
        try:
            yield
        finally:
            with self._guard:
                self._active.discard(user_id)

    def is_held(self, user_id: str) -> bool:
        with self._guard:
            return user_id in self._active


class SyncPipeline:
    """Coordinate fetching, change detection, embedding and index reconciliation."""

    def __init__(
        self,
        settings: Settings,
        source: GitHubStarsClient,
        store: VectorStore,
        embedding_model: EmbeddingModel,
        locks: UserLocks | None = None,
    ) -> None:
        self.settings = settings
        self.source = source
        self.store = store
        self.embedding_model = embedding_model
        self.locks = locks or UserLocks()
        self.detector = ChangeDetector(store, lookup_batch_size=settings.lookup_batch_size)
        self.batcher = EmbeddingBatcher(
            embedding_model,
            batch_size=settings.embed_batch_size,
            max_workers=settings.embed_workers,
        )
        self.reconciler = IndexReconciler(
            store,
            upsert_batch_size=settings.upsert_batch_size,
            detach_page_size=settings.detach_page_size,
        )

    def run(self, user: SessionUser, emit: Emit) -> SyncSummary | None:
        """Run one sync, emitting exactly one terminal event.

        Failures are reported through an ``error`` event rather than raised.
        """
        started = time.perf_counter()
        emit(StartEvent())
        try:
            with self.locks.hold(user.id):
                summary = self._sync(user, emit)
        except StarseekersError as exc:
            logger.warning("Sync failed: %s", exc.message, extra=log_context(user=user.id))
            SYNC_RUNS.labels(outcome="error").inc()
            emit(ErrorEvent(message=exc.message))
            return None
        except Exception as exc:
            logger.exception("Sync failed unexpectedly", extra=log_context(user=user.id))
            SYNC_RUNS.labels(outcome="error").inc()
            emit(ErrorEvent(message=str(exc) or exc.__class__.__name__))
            return None

        SYNC_RUNS.labels(outcome="complete").inc()
        SYNC_DURATION.observe(time.perf_counter() - started)
        logger.info("Sync complete", extra=log_context(user=user.id, stats=summary.to_dict()))
        emit(CompleteEvent(synced=summary.synced, total=summary.fetched))
        return summary

    def run_in_background(self, user: SessionUser, channel: ProgressChannel | None = None) -> ProgressChannel:
        """Start a sync on a producer thread and return the channel to drain."""
        channel = channel or ProgressChannel()
        thread = threading.Thread(
            target=self.run,
            args=(user, channel.emit),
            name=f"sync-{user.id}",
            daemon=True,
        )
        thread.start()
        return channel

    def _sync(self, user: SessionUser, emit: Emit) -> SyncSummary:
        if not user.access_token:
            raise AuthRequired("Sign-in required.")
        summary = SyncSummary()

        def on_page(progress: FetchProgress) -> None:
            emit(FetchEvent(page=progress.page, fetched=progress.fetched, total_fetched=progress.total_fetched))

        fetched = self.source.fetch_starred(
            user.access_token,
            per_page=self.settings.github_per_page,
            max_pages=self.settings.github_max_pages,
            on_page=on_page,
        )
        repos = fetched.repos
        summary.fetched = len(repos)

        changes = self.detector.classify(user.id, repos)
        summary.unchanged = len(changes.unchanged)

        vectors = self.batcher.embed(
            changes.embed,
            on_batch=lambda completed, total: emit(EmbedEvent(completed=completed, total=total)),
        )

        write_total = len(changes.embed) + len(changes.associate)
        summary.embedded = self.reconciler.upsert(
            user.id,
            changes.embed,
            vectors,
            on_progress=lambda done: emit(UpsertEvent(completed=done, total=write_total)),
        )
        offset = summary.embedded
        summary.associated = self.reconciler.associate(
            user.id,
            changes.associate,
            on_progress=lambda done: emit(UpsertEvent(completed=offset + done, total=write_total)),
        )

        if not fetched.complete:
            logger.warning("Skipping detach after a partial fetch", extra=log_context(user=user.id))
            return summary
        probe = self._probe_vector(vectors, changes.probe_vector)
        current_ids = {repo.record_id for repo in repos}
        summary.detached = self.reconciler.detach(user.id, current_ids, probe)
        return summary

    def _probe_vector(self, fresh: list[list[float]], stored: list[float] | None) -> list[float]:
        if fresh:
            return fresh[0]
        if stored:
            return stored
        return embed_one(self.embedding_model, PROBE_TEXT)


__all__ = ["SyncPipeline", "UserLocks", "PROBE_TEXT"]

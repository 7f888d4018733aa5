"""Shared FastAPI dependencies."""

from __future__ import annotations

import threading
from functools import lru_cache

from fastapi import Depends, Request

from starseekers.auth.session import decode_session_token
from starseekers.core.config import Settings, get_settings
from starseekers.core.errors import AuthRequired
from starseekers.github.source import GitHubStarsClient
from starseekers.models.entities import SessionUser
from starseekers.retrieval.search import SearchService
from starseekers.store import VectorStore, build_vector_store
from starseekers.sync.embeddings import EmbeddingModel, build_embedding_model
from starseekers.sync.pipeline import SyncPipeline, UserLocks

SESSION_COOKIE = "session"


class ServiceContainer:
    """Owns the service handles for the application.

    Clients are built lazily so a missing credential surfaces as a
    ConfigurationError on the first request that needs it.
    """

    def __init__(
        self,
        settings: Settings,
        source: GitHubStarsClient | None = None,
        store: VectorStore | None = None,
        embedding_model: EmbeddingModel | None = None,
    ) -> None:
        self.settings = settings
        self._source = source
        self._store = store
        self._embedding_model = embedding_model
        self._lock = threading.Lock()
        self.locks = UserLocks()

    @property
    def source(self) -> GitHubStarsClient:
        with self._lock:
            if self._source is None:
                self._source = GitHubStarsClient.from_settings(self.settings)
            return self._source

    @property
    def store(self) -> VectorStore:
        with self._lock:
            if self._store is None:
                self._store = build_vector_store(self.settings)
            return self._store

    @property
    def embedding_model(self) -> EmbeddingModel:
        with self._lock:
            if self._embedding_model is None:
                self._embedding_model = build_embedding_model(self.settings)
            return self._embedding_model

    def sync_pipeline(self) -> SyncPipeline:
        return SyncPipeline(
            settings=self.settings,
            source=self.source,
            store=self.store,
            embedding_model=self.embedding_model,
            locks=self.locks,
        )

    def search_service(self) -> SearchService:
        return SearchService(store=self.store, embedding_model=self.embedding_model)


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


_SERVICES: ServiceContainer | None = None


def get_services() -> ServiceContainer:
    global _SERVICES
    if _SERVICES is None:
        _SERVICES = ServiceContainer(get_app_settings())
    return _SERVICES


def get_sync_pipeline(services: ServiceContainer = Depends(get_services)) -> SyncPipeline:
    return services.sync_pipeline()


def get_search_service(services: ServiceContainer = Depends(get_services)) -> SearchService:
    return services.search_service()


def get_source(services: ServiceContainer = Depends(get_services)) -> GitHubStarsClient:
    return services.source


def get_current_user(request: Request, settings: Settings = Depends(get_app_settings)) -> SessionUser:
    """Resolve the session from a bearer token or the session cookie."""
    token: str | None = None
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        token = header[7:].strip()
    if not token:
        token = request.cookies.get(SESSION_COOKIE)
    if not token:
        raise AuthRequired("Sign-in required.")
    return decode_session_token(settings, token)


def get_github_user(user: SessionUser = Depends(get_current_user)) -> SessionUser:
    if not user.access_token:
        raise AuthRequired("Sign-in required.")
    return user


__all__ = [
    "ServiceContainer",
    "get_app_settings",
    "get_services",
    "get_sync_pipeline",
    "get_search_service",
    "get_source",
    "get_current_user",
    "get_github_user",
    "SESSION_COOKIE",
]

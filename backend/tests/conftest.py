"""Test fixtures for Starseekers."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from starseekers.core.config import Settings  # noqa: E402
from starseekers.github.source import GitHubStarsClient  # noqa: E402
from starseekers.models.entities import SessionUser, StarredRepository  # noqa: E402
from starseekers.store.sqlite import SQLiteVectorStore  # noqa: E402
from starseekers.sync.embeddings import EmbeddingBatch, HashedEmbeddingModel  # noqa: E402
from starseekers.sync.pipeline import SyncPipeline  # noqa: E402

SESSION_SECRET = "test-session-secret"


class FakeResponse:
    def __init__(
        self,
        payload: Any = None,
        status_code: int = 200,
        reason: str = "OK",
        headers: dict[str, str] | None = None,
    ) -> None:
        self._payload = payload
        self.status_code = status_code
        self.reason = reason
        self.headers = headers or {}
        self.text = str(payload)
        self.content = b"{}" if payload is not None else b""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        return self._payload


class FakeGitHubSession:
    """Serves ``/user/starred`` pages from an in-memory list per access token."""

    def __init__(self) -> None:
        self.stars: dict[str, list[dict[str, Any]]] = {}
        self.users: dict[str, dict[str, Any]] = {}
        self.calls: list[dict[str, Any]] = []
        self.error: FakeResponse | None = None

    def get(self, url: str, params=None, headers=None, timeout=None) -> FakeResponse:
        self.calls.append({"url": url, "params": dict(params or {}), "headers": dict(headers or {})})
        if self.error is not None:
            return self.error
        token = (headers or {}).get("Authorization", "").removeprefix("Bearer ")
        if url.endswith("/user"):
            if token not in self.users:
                return FakeResponse({"message": "Bad credentials"}, status_code=401, reason="Unauthorized")
            return FakeResponse(self.users[token])
        if token not in self.stars:
            return FakeResponse({"message": "Bad credentials"}, status_code=401, reason="Unauthorized")
        per_page = int(params["per_page"])
        page = int(params["page"])
        items = self.stars[token]
        return FakeResponse(items[(page - 1) * per_page : page * per_page])


class CountingEmbeddingModel(HashedEmbeddingModel):
    """Hashed embeddings that record every batch sent to the model."""

    def __init__(self, dim: int = 64) -> None:
        super().__init__(model_name="counting", dim=dim)
        self.batches: list[list[str]] = []

    @property
    def texts_embedded(self) -> int:
        return sum(len(batch) for batch in self.batches)

    def encode(self, texts: Sequence[str]) -> EmbeddingBatch:
        self.batches.append(list(texts))
        return super().encode(texts)


def repo_payload(
    repo_id: int,
    name: str | None = None,
    description: str | None = "A useful project",
    language: str | None = "Python",
    topics: list[str] | None = None,
    updated_at: str = "2024-01-01T00:00:00Z",
) -> dict[str, Any]:
    full_name = name or f"octo/repo-{repo_id}"
    return {
        "id": repo_id,
        "full_name": full_name,
        "description": description,
        "html_url": f"https://github.com/{full_name}",
        "language": language,
        "topics": topics if topics is not None else ["tools"],
        "updated_at": updated_at,
    }


@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset cached settings, service handles and environment between tests."""
    monkeypatch.setenv("STARSEEK_DB_PATH", str(tmp_path / "index.db"))
    monkeypatch.setenv("STARSEEK_SESSION_SECRET", SESSION_SECRET)
    monkeypatch.setenv("STARSEEK_EMBEDDING_BACKEND", "hashed")
    monkeypatch.setenv("STARSEEK_EMBEDDING_DIM", "64")
    monkeypatch.delenv("STARSEEK_CONFIG", raising=False)
    monkeypatch.delenv("STARSEEK_OPENAI_API_KEY", raising=False)

    from starseekers.api import dependencies as deps
    from starseekers.core.config import get_settings

    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._SERVICES = None
    yield
    get_settings.cache_clear()
    deps.get_app_settings.cache_clear()
    deps._SERVICES = None


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_path=tmp_path / "index.db",
        embedding_backend="hashed",
        embedding_dim=64,
        session_secret=SESSION_SECRET,
    )


@pytest.fixture
def github() -> FakeGitHubSession:
    return FakeGitHubSession()


@pytest.fixture
def source(github: FakeGitHubSession) -> GitHubStarsClient:
    return GitHubStarsClient(api_url="https://api.github.test", session=github)


@pytest.fixture
def store(tmp_path: Path) -> SQLiteVectorStore:
    vector_store = SQLiteVectorStore(tmp_path / "vectors.db")
    yield vector_store
    vector_store.close()


@pytest.fixture
def embedding_model() -> CountingEmbeddingModel:
    return CountingEmbeddingModel()


@pytest.fixture
def pipeline(
    settings: Settings,
    source: GitHubStarsClient,
    store: SQLiteVectorStore,
    embedding_model: CountingEmbeddingModel,
) -> SyncPipeline:
    return SyncPipeline(settings=settings, source=source, store=store, embedding_model=embedding_model)


@pytest.fixture
def make_repo() -> Callable[..., StarredRepository]:
    def _make(repo_id: int, **overrides: Any) -> StarredRepository:
        return StarredRepository.from_api(repo_payload(repo_id, **overrides))

    return _make


@pytest.fixture
def alice() -> SessionUser:
    return SessionUser(id="101", access_token="token-alice", login="alice")


@pytest.fixture
def bob() -> SessionUser:
    return SessionUser(id="202", access_token="token-bob", login="bob")

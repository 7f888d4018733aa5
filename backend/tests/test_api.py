"""API integration tests."""

from __future__ import annotations

import threading

import orjson
import pytest
from fastapi.testclient import TestClient

from starseekers.api import dependencies as deps
from starseekers.api.dependencies import ServiceContainer, get_services
from starseekers.app import app
from starseekers.auth.session import create_session_token
from starseekers.core.config import get_settings
from starseekers.sync.embeddings import HashedEmbeddingModel

from conftest import repo_payload


@pytest.fixture
def services(settings, source, store, embedding_model) -> ServiceContainer:
    container = ServiceContainer(settings, source=source, store=store, embedding_model=embedding_model)
    app.dependency_overrides[get_services] = lambda: container
    yield container
    app.dependency_overrides.clear()


@pytest.fixture
def client() -> TestClient:
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def alice_headers(settings, alice) -> dict[str, str]:
    token = create_session_token(settings, alice.id, alice.access_token, login=alice.login)
    return {"Authorization": f"Bearer {token}"}


def _sync(client: TestClient, headers: dict[str, str]) -> list[dict]:
    resp = client.post("/sync", headers=headers)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("application/x-ndjson")
    assert resp.headers["cache-control"] == "no-cache"
    return [orjson.loads(line) for line in resp.text.splitlines() if line]


def test_health(client: TestClient) -> None:
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["ok"] is True


def test_sync_and_search_flow(client, services, github, alice, alice_headers) -> None:
    github.stars[alice.access_token] = [
        repo_payload(1, name="octo/vector-db", description="Embedded vector database"),
        repo_payload(2, name="octo/blog", description="Static blog generator"),
        repo_payload(3, name="octo/shell", description="Shell prompt themes"),
    ]

    events = _sync(client, alice_headers)

    assert [event["status"] for event in events] == ["start", "fetch", "embed", "upsert", "complete"]
    assert events[-1] == {"status": "complete", "synced": 3, "total": 3}

    resp = client.post("/search", headers=alice_headers, json={"query": "vector database", "topK": 2})
    assert resp.status_code == 200
    results = resp.json()["results"]
    assert len(results) == 2
    assert results[0]["fullName"] == "octo/vector-db"
    assert set(results[0]) == {"id", "score", "fullName", "description", "htmlUrl", "language", "topics"}


def test_sync_failure_is_streamed_as_error(client, services, alice_headers) -> None:
    events = _sync(client, alice_headers)

    assert [event["status"] for event in events] == ["start", "error"]


def test_search_validation_errors(client, services, alice_headers) -> None:
    short = client.post("/search", headers=alice_headers, json={"query": "a"})
    assert short.status_code == 400
    assert "error" in short.json()

    too_many = client.post("/search", headers=alice_headers, json={"query": "charts", "topK": 25})
    assert too_many.status_code == 400
    assert "topK" in too_many.json()["error"]


def test_requests_without_session_are_unauthorized(client, services) -> None:
    assert client.post("/search", json={"query": "charts"}).status_code == 401
    assert client.post("/sync").status_code == 401
    resp = client.get("/repositories", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401
    assert resp.json() == {"error": "Sign-in required."}


def test_session_cookie_is_accepted(client, services, settings, alice, github) -> None:
    github.stars[alice.access_token] = [repo_payload(5)]
    token = create_session_token(settings, alice.id, alice.access_token)

    resp = client.get("/repositories", headers={"Cookie": f"{deps.SESSION_COOKIE}={token}"})

    assert resp.status_code == 200
    assert resp.json()["repos"][0]["fullName"] == "octo/repo-5"


def test_repositories_are_fetched_live(client, services, github, alice, alice_headers) -> None:
    github.stars[alice.access_token] = [repo_payload(1)]
    first = client.get("/repositories", headers=alice_headers).json()["repos"]
    github.stars[alice.access_token] = [repo_payload(1), repo_payload(2)]
    second = client.get("/repositories", headers=alice_headers).json()["repos"]

    assert [repo["id"] for repo in first] == [1]
    assert [repo["id"] for repo in second] == [1, 2]


def test_missing_embedding_credential_fails_at_first_use(client, monkeypatch, alice_headers) -> None:
    monkeypatch.setenv("STARSEEK_EMBEDDING_BACKEND", "openai")
    deps.get_app_settings.cache_clear()
    get_settings.cache_clear()
    deps._SERVICES = None

    resp = client.post("/search", headers=alice_headers, json={"query": "charts"})

    assert resp.status_code == 500
    assert "openai_api_key" in resp.json()["error"]


def test_github_login_redirects(client, monkeypatch) -> None:
    monkeypatch.setenv("STARSEEK_GITHUB_CLIENT_ID", "client-123")
    deps.get_app_settings.cache_clear()
    get_settings.cache_clear()

    resp = client.get("/auth/github/login", follow_redirects=False)

    assert resp.status_code == 302
    assert resp.headers["location"].startswith("https://github.com/login/oauth/authorize?client_id=client-123")


def test_github_callback_issues_session(client, services, settings, github, monkeypatch) -> None:
    from starseekers.api import routes_auth
    from starseekers.auth.oauth import create_oauth_state

    github.users["gh-token"] = {"id": 77, "login": "octocat"}
    github.stars["gh-token"] = []
    monkeypatch.setattr(routes_auth, "exchange_code_for_token", lambda _settings, _code: "gh-token")

    resp = client.get("/auth/github/callback", params={"code": "abc", "state": create_oauth_state(settings)})

    assert resp.status_code == 200
    body = resp.json()
    assert body["user"] == {"id": "77", "login": "octocat"}
    assert "gh-token" not in resp.text
    sync = client.post("/sync", headers={"Authorization": f"Bearer {body['token']}"})
    assert sync.text.splitlines()[-1] == '{"status":"complete","synced":0,"total":0}'


def test_callback_rejects_forged_state(client, services) -> None:
    resp = client.get("/auth/github/callback", params={"code": "abc", "state": "forged"})

    assert resp.status_code == 400


def test_metrics_endpoint(client) -> None:
    resp = client.get("/metrics")

    assert resp.status_code == 200
    assert "starseek_sync_runs_total" in resp.text


class GatedEmbeddingModel(HashedEmbeddingModel):
    """Blocks inside ``encode`` until the test releases it."""

    def __init__(self) -> None:
        super().__init__(model_name="gated", dim=64)
        self.entered = threading.Event()
        self.release = threading.Event()
        self.finished = threading.Event()

    def encode(self, texts):
        self.entered.set()
        self.release.wait(timeout=5)
        self.finished.set()
        return super().encode(texts)


def test_slow_search_does_not_block_other_requests(client, settings, source, store, alice_headers) -> None:
    model = GatedEmbeddingModel()
    container = ServiceContainer(settings, source=source, store=store, embedding_model=model)
    app.dependency_overrides[get_services] = lambda: container
    responses = {}

    def search() -> None:
        responses["search"] = client.post("/search", headers=alice_headers, json={"query": "vector database"})

    worker = threading.Thread(target=search)
    worker.start()
    try:
        assert model.entered.wait(timeout=5)
        health = client.get("/health")
        assert health.status_code == 200
        assert not model.finished.is_set()
    finally:
        model.release.set()
        worker.join(timeout=10)
        app.dependency_overrides.clear()

    assert responses["search"].status_code == 200
    assert responses["search"].json() == {"results": []}


def test_error_responses_are_documented(client) -> None:
    schema = client.get("/openapi.json").json()

    search_responses = schema["paths"]["/search"]["post"]["responses"]
    for status in ("400", "401", "429"):
        ref = search_responses[status]["content"]["application/json"]["schema"]["$ref"]
        assert ref.endswith("/ErrorResponse")
    assert schema["components"]["schemas"]["ErrorResponse"]["required"] == ["error"]

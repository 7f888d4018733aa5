"""CLI entrypoint for Starseekers."""

from __future__ import annotations

import json
import os
from typing import Optional

import requests
import typer

from starseekers.sync.progress import decode_event

app = typer.Typer(name="starseek", help="Starseekers command-line interface")

DEFAULT_HOST = "http://127.0.0.1:8000"


def _resolve_host(override: Optional[str]) -> str:
    if override:
        return override.rstrip('/')
    env_host = os.environ.get("STARSEEK_HOST")
    if env_host:
        return env_host.rstrip('/')
    return DEFAULT_HOST


def _auth_headers(token: Optional[str]) -> dict[str, str]:
    session = token or os.environ.get("STARSEEK_SESSION")
    if not session:
        typer.echo("A session token is required (--token or STARSEEK_SESSION).", err=True)
        raise typer.Exit(code=2)
    return {"Authorization": f"Bearer {session}"}


def _request(method: str, path: str, host: Optional[str] = None, **kwargs) -> requests.Response:
    base = _resolve_host(host)
    url = f"{base}{path}"
    resp = requests.request(method, url, timeout=kwargs.pop("timeout", 60), **kwargs)
    if not resp.ok:
        try:
            detail = resp.json().get("error", resp.text)
        except ValueError:
            detail = resp.text
        typer.echo(f"Request failed ({resp.status_code}): {detail}", err=True)
        raise typer.Exit(code=1)
    return resp


@app.command()
def sync(
    token: Optional[str] = typer.Option(None, "--token", help="Session token"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Sync starred repositories and stream progress."""
    resp = _request("POST", "/sync", host=host, headers=_auth_headers(token), stream=True, timeout=None)
    failed = False
    for line in resp.iter_lines():
        if not line:
            continue
        event = decode_event(line)
        if event.status == "fetch":
            typer.echo(f"fetched page {event.page}: {event.total_fetched} repositories")
        elif event.status in {"embed", "upsert"}:
            typer.echo(f"{event.status}: {event.completed}/{event.total}")
        elif event.status == "complete":
            typer.echo(f"synced {event.synced} of {event.total} repositories")
        elif event.status == "error":
            typer.echo(f"sync failed: {event.message}", err=True)
            failed = True
    if failed:
        raise typer.Exit(code=1)


@app.command()
def search(
    q: str = typer.Argument(..., help="Query text"),
    k: int = typer.Option(8, "--k", min=1, max=20, help="Number of results to return"),
    token: Optional[str] = typer.Option(None, "--token", help="Session token"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """Search starred repositories."""
    payload = {"query": q, "topK": k}
    resp = _request("POST", "/search", host=host, headers=_auth_headers(token), json=payload)
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def repos(
    token: Optional[str] = typer.Option(None, "--token", help="Session token"),
    host: Optional[str] = typer.Option(None, "--host", help="Override backend host"),
) -> None:
    """List starred repositories as GitHub currently reports them."""
    resp = _request("GET", "/repositories", host=host, headers=_auth_headers(token))
    typer.echo(json.dumps(resp.json(), indent=2))


@app.command()
def orphans() -> None:
    """Count local index records no user stars anymore."""
    from starseekers.core.config import get_settings
    from starseekers.store.sqlite import SQLiteVectorStore

    settings = get_settings()
    if settings.vector_backend != "sqlite":
        typer.echo("Orphan counts are only available for the local SQLite index.", err=True)
        raise typer.Exit(code=1)
    store = SQLiteVectorStore(settings.db_path)
    try:
        typer.echo(json.dumps({"orphans": store.count_orphans(), "records": store.size}))
    finally:
        store.close()


@app.command()
def serve(
    bind: str = typer.Option("127.0.0.1", "--bind", help="Interface to bind"),
    port: int = typer.Option(8000, "--port", help="Port to listen on"),
) -> None:
    """Run the API server."""
    import uvicorn

    uvicorn.run("starseekers.app:app", host=bind, port=port)


if __name__ == "__main__":
    app()

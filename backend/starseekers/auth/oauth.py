"""GitHub OAuth helper utilities."""

from __future__ import annotations

from datetime import timedelta
from urllib.parse import urlencode

import requests
from jose import JWTError, jwt

from starseekers.auth.session import ALGORITHM
from starseekers.core.config import Settings
from starseekers.core.errors import AuthRequired, SourceUnavailable, ValidationError
from starseekers.utils.time import expires_at

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
OAUTH_SCOPES = ("read:user", "public_repo")
STATE_TTL = timedelta(minutes=10)


def build_authorize_url(settings: Settings, state: str) -> str:
    params = {
        "client_id": settings.require("github_client_id"),
        "scope": " ".join(OAUTH_SCOPES),
        "state": state,
    }
    if settings.github_redirect_uri:
        params["redirect_uri"] = settings.github_redirect_uri
    return f"{GITHUB_AUTHORIZE_URL}?{urlencode(params)}"


def create_oauth_state(settings: Settings) -> str:
    """Signed, short-lived state value; no server-side storage needed."""
    payload = {"purpose": "oauth-state", "exp": expires_at(STATE_TTL)}
    return jwt.encode(payload, settings.require("session_secret"), algorithm=ALGORITHM)


def verify_oauth_state(settings: Settings, state: str) -> None:
    try:
        claims = jwt.decode(state, settings.require("session_secret"), algorithms=[ALGORITHM])
    except JWTError as exc:
        raise ValidationError("Invalid or expired OAuth state") from exc
    if claims.get("purpose") != "oauth-state":
        raise ValidationError("Invalid or expired OAuth state")


def exchange_code_for_token(
    settings: Settings,
    code: str,
    session: requests.Session | None = None,
) -> str:
    client = session or requests.Session()
    data = {
        "client_id": settings.require("github_client_id"),
        "client_secret": settings.require("github_client_secret"),
        "code": code,
    }
    if settings.github_redirect_uri:
        data["redirect_uri"] = settings.github_redirect_uri
    try:
        resp = client.post(
            GITHUB_TOKEN_URL,
            headers={"Accept": "application/json"},
            data=data,
            timeout=settings.github_timeout,
        )
    except requests.RequestException as exc:
        raise SourceUnavailable(f"GitHub token exchange failed: {exc}") from exc
    if not resp.ok:
        raise SourceUnavailable(f"GitHub token exchange failed: {resp.status_code} {resp.reason}")
    access_token = resp.json().get("access_token")
    if not access_token:
        raise AuthRequired("GitHub did not return an access token")
    return access_token


__all__ = [
    "build_authorize_url",
    "create_oauth_state",
    "verify_oauth_state",
    "exchange_code_for_token",
]

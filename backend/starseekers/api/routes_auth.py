"""GitHub sign-in routes issuing session tokens."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, RedirectResponse

from starseekers.api.dependencies import SESSION_COOKIE, get_app_settings, get_source
from starseekers.auth.oauth import (
    build_authorize_url,
    create_oauth_state,
    exchange_code_for_token,
    verify_oauth_state,
)
from starseekers.auth.session import create_session_token
from starseekers.core.config import Settings
from starseekers.core.logging import get_logger, log_context
from starseekers.github.source import GitHubStarsClient
from starseekers.models.dto import SessionResponse, SessionUserOut

logger = get_logger(__name__)

router = APIRouter()


@router.get("/github/login", summary="Redirect to GitHub authorization")
def github_login(settings: Settings = Depends(get_app_settings)) -> RedirectResponse:
    state = create_oauth_state(settings)
    return RedirectResponse(build_authorize_url(settings, state), status_code=302)


@router.get("/github/callback", response_model=SessionResponse, summary="Complete GitHub sign-in")
def github_callback(
    code: str,
    state: str,
    settings: Settings = Depends(get_app_settings),
    source: GitHubStarsClient = Depends(get_source),
) -> JSONResponse:
    verify_oauth_state(settings, state)
    access_token = exchange_code_for_token(settings, code)
    profile = source.fetch_user(access_token)
    user_id = str(profile["id"])
    login = profile.get("login")
    token = create_session_token(settings, user_id, access_token, login=login)
    logger.info("Issued session", extra=log_context(user=user_id))
    payload = SessionResponse(token=token, user=SessionUserOut(id=user_id, login=login))
    response = JSONResponse(payload.model_dump())
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


__all__ = ["router"]

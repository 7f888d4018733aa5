"""Sync and repository listing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from starseekers.api.dependencies import get_github_user, get_source, get_sync_pipeline
from starseekers.github.source import GitHubStarsClient
from starseekers.models.dto import ErrorResponse, RepositoryListResponse, RepositoryOut
from starseekers.models.entities import SessionUser
from starseekers.sync.pipeline import SyncPipeline

router = APIRouter()

NDJSON_MEDIA_TYPE = "application/x-ndjson"


@router.post("/sync", responses={401: {"model": ErrorResponse}}, summary="Sync starred repositories into the index")
def trigger_sync(
    user: SessionUser = Depends(get_github_user),
    pipeline: SyncPipeline = Depends(get_sync_pipeline),
) -> StreamingResponse:
    channel = pipeline.run_in_background(user)
    return StreamingResponse(
        channel.ndjson(),
        media_type=NDJSON_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache"},
    )


@router.get(
    "/repositories",
    response_model=RepositoryListResponse,
    responses={401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="List starred repositories live",
)
def list_repositories(
    user: SessionUser = Depends(get_github_user),
    source: GitHubStarsClient = Depends(get_source),
) -> RepositoryListResponse:
    repos = source.fetch_starred(user.access_token or "").repos
    return RepositoryListResponse(repos=[RepositoryOut(**repo.to_dict()) for repo in repos])


__all__ = ["router"]

"""Search API routes."""

from __future__ import annotations

from typing import Any

import orjson
import pydantic
from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from starseekers.api.dependencies import get_current_user, get_search_service
from starseekers.core.errors import ValidationError
from starseekers.models.dto import ErrorResponse, SearchRequest, SearchResponse, SearchResultOut
from starseekers.models.entities import SessionUser
from starseekers.retrieval.search import SearchService

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
}


@router.post(
    "/search",
    response_model=SearchResponse,
    responses=ERROR_RESPONSES,
    summary="Semantic search over starred repositories",
)
async def run_search(
    request: Request,
    user: SessionUser = Depends(get_current_user),
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    body = _parse_search_request(await request.body())
    hits = await run_in_threadpool(service.search, user.id, body.query, body.top_k)
    return SearchResponse(results=[SearchResultOut(**hit.to_dict()) for hit in hits])


def _parse_search_request(raw: bytes) -> SearchRequest:
    try:
        payload: Any = orjson.loads(raw or b"{}")
    except orjson.JSONDecodeError as exc:
        raise ValidationError("Request body must be JSON.") from exc
    try:
        return SearchRequest.model_validate(payload)
    except pydantic.ValidationError as exc:
        fields = {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        if "topK" in fields:
            raise ValidationError("topK must be between 1 and 20.") from exc
        raise ValidationError("Query must be at least 2 characters.") from exc


__all__ = ["router"]

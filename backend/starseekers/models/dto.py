"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=2)
    top_k: int | None = Field(default=None, ge=1, le=20, alias="topK")


class SearchResultOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    score: float
    full_name: str = Field(alias="fullName")
    description: str
    html_url: str = Field(alias="htmlUrl")
    language: str | None = None
    topics: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    results: list[SearchResultOut]


class RepositoryOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    full_name: str = Field(alias="fullName")
    description: str
    html_url: str = Field(alias="htmlUrl")
    language: str | None = None
    topics: list[str] = Field(default_factory=list)
    updated_at: str | None = Field(default=None, alias="updatedAt")


class RepositoryListResponse(BaseModel):
    repos: list[RepositoryOut]


class SessionUserOut(BaseModel):
    id: str
    login: str | None = None


class SessionResponse(BaseModel):
    token: str
    user: SessionUserOut


class ErrorResponse(BaseModel):
    error: str


__all__ = [
    "SearchRequest",
    "SearchResultOut",
    "SearchResponse",
    "RepositoryOut",
    "RepositoryListResponse",
    "SessionUserOut",
    "SessionResponse",
    "ErrorResponse",
]

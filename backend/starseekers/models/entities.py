"""Internal dataclasses representing external snapshots and persisted entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

NO_DESCRIPTION = "(no description)"


@dataclass(slots=True)
class StarredRepository:
    """Read-only snapshot of one starred repository as returned by GitHub."""

    id: int
    full_name: str
    html_url: str
    description: str = NO_DESCRIPTION
    language: str | None = None
    topics: list[str] = field(default_factory=list)
    updated_at: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "StarredRepository":
        return cls(
            id=int(payload["id"]),
            full_name=payload["full_name"],
            html_url=payload["html_url"],
            description=payload.get("description") or NO_DESCRIPTION,
            language=payload.get("language"),
            topics=list(payload.get("topics") or []),
            updated_at=payload.get("updated_at"),
        )

    @property
    def record_id(self) -> str:
        return str(self.id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fullName": self.full_name,
            "description": self.description,
            "htmlUrl": self.html_url,
            "language": self.language,
            "topics": list(self.topics),
            "updatedAt": self.updated_at,
        }


@dataclass(slots=True)
class IndexRecord:
    """Vector index entry keyed by repository id.

    ``metadata`` follows the persisted layout: ``fullName``, ``description``,
    ``htmlUrl``, ``language`` (omitted when unknown), ``topics``, ``hash`` and
    ``starredBy``.
    """

    id: str
    values: list[float]
    metadata: dict[str, Any]

    @property
    def hash(self) -> str | None:
        return self.metadata.get("hash")

    @property
    def starred_by(self) -> list[str]:
        return list(self.metadata.get("starredBy") or [])


@dataclass(slots=True)
class QueryMatch:
    id: str
    score: float
    metadata: dict[str, Any]


@dataclass(slots=True)
class SessionUser:
    """Identity resolved from a session token."""

    id: str
    access_token: str | None = None
    login: str | None = None


def record_metadata(repo: StarredRepository, fingerprint: str, starred_by: list[str]) -> dict[str, Any]:
    """Build the persisted metadata for a repository."""
    metadata: dict[str, Any] = {
        "fullName": repo.full_name,
        "description": repo.description,
        "htmlUrl": repo.html_url,
        "topics": list(repo.topics),
        "hash": fingerprint,
        "starredBy": list(starred_by),
    }
    if repo.language:
        metadata["language"] = repo.language
    return metadata


__all__ = [
    "NO_DESCRIPTION",
    "StarredRepository",
    "IndexRecord",
    "QueryMatch",
    "SessionUser",
    "record_metadata",
]

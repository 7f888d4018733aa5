"""Common sync data structures."""

from __future__ import annotations

from dataclasses import dataclass, field

from starseekers.models.entities import StarredRepository


@dataclass(slots=True)
class FetchProgress:
    """Reported after each page of starred repositories."""

    page: int
    fetched: int
    total_fetched: int


@dataclass(slots=True)
class StarredFetch:
    """Starred repositories from one fetch; ``complete`` is false when the page cap cut it short."""

    repos: list[StarredRepository] = field(default_factory=list)
    complete: bool = True


@dataclass(slots=True)
class ClassifiedRepository:
    """A repository paired with its fingerprint and current index associations."""

    repo: StarredRepository
    fingerprint: str
    starred_by: list[str] = field(default_factory=list)

    @property
    def record_id(self) -> str:
        return self.repo.record_id

    def starred_by_with(self, user_id: str) -> list[str]:
        if user_id in self.starred_by:
            return list(self.starred_by)
        return [*self.starred_by, user_id]


@dataclass(slots=True)
class ChangeSet:
    """Classification of one user's incoming repositories against the index."""

    unchanged: list[ClassifiedRepository] = field(default_factory=list)
    associate: list[ClassifiedRepository] = field(default_factory=list)
    embed: list[ClassifiedRepository] = field(default_factory=list)
    probe_vector: list[float] | None = None

    @property
    def total(self) -> int:
        return len(self.unchanged) + len(self.associate) + len(self.embed)


@dataclass(slots=True)
class SyncSummary:
    """Aggregated sync statistics."""

    fetched: int = 0
    unchanged: int = 0
    embedded: int = 0
    associated: int = 0
    detached: int = 0

    @property
    def synced(self) -> int:
        return self.embedded + self.associated

    def to_dict(self) -> dict[str, int]:
        return {
            "fetched": self.fetched,
            "unchanged": self.unchanged,
            "embedded": self.embedded,
            "associated": self.associated,
            "detached": self.detached,
            "synced": self.synced,
        }


__all__ = [
    "FetchProgress",
    "StarredFetch",
    "ClassifiedRepository",
    "ChangeSet",
    "SyncSummary",
]

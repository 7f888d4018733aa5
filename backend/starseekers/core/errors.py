"""Error taxonomy shared by the sync pipeline, search and API layers."""

from __future__ import annotations


class StarseekersError(Exception):
    """Base error carrying a user-facing message and an HTTP status."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthRequired(StarseekersError):
    """No valid session or user identity is present."""

    status_code = 401


class AuthExpired(StarseekersError):
    """The upstream GitHub credential was rejected."""

    status_code = 401


class ValidationError(StarseekersError):
    """Malformed or undersized input."""

    status_code = 400


class SourceUnavailable(StarseekersError):
    """GitHub returned a non-success response."""

    status_code = 502


class ConfigurationError(StarseekersError):
    """A required secret or setting is missing."""

    status_code = 500


class IndexOperationFailure(StarseekersError):
    """A vector index call failed."""

    status_code = 502


class EmbeddingFailure(StarseekersError):
    """The embedding service failed or returned malformed output."""

    status_code = 502


class RateLimited(StarseekersError):
    """An upstream or hosting rate limit was hit; the caller should retry later."""

    status_code = 429


class SyncInProgress(RateLimited):
    """Another sync for the same user is still running."""


__all__ = [
    "StarseekersError",
    "AuthRequired",
    "AuthExpired",
    "ValidationError",
    "SourceUnavailable",
    "ConfigurationError",
    "IndexOperationFailure",
    "EmbeddingFailure",
    "RateLimited",
    "SyncInProgress",
]

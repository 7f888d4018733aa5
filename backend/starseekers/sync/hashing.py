"""Content fingerprints for starred repositories."""

from __future__ import annotations

from starseekers.models.entities import StarredRepository
from starseekers.utils.hashing import sha256_text
from starseekers.utils.text import clip

# Changing this template invalidates every stored fingerprint.
_LANGUAGE_LINE = "\nLanguage: {language}"
_TOPICS_LINE = "\nTopics: {topics}"

MAX_EMBEDDING_CHARS = 4000


def build_embedding_text(repo: StarredRepository) -> str:
    """Render the searchable text of a repository.

    Only name, description, language and topics contribute. Topics are sorted
    so their order on GitHub does not affect the result.
    """
    text = f"{repo.full_name}\n{repo.description}"
    if repo.language:
        text += _LANGUAGE_LINE.format(language=repo.language)
    if repo.topics:
        text += _TOPICS_LINE.format(topics=", ".join(sorted(repo.topics)))
    return text


def content_fingerprint(repo: StarredRepository) -> str:
    """Return the SHA-256 hex digest of the repository's embedding text."""
    return sha256_text(build_embedding_text(repo))


def prepare_for_embedding(text: str) -> str:
    """Trim and cap text before it is sent to the embedding model."""
    return clip(text, MAX_EMBEDDING_CHARS)


__all__ = ["build_embedding_text", "content_fingerprint", "prepare_for_embedding", "MAX_EMBEDDING_CHARS"]

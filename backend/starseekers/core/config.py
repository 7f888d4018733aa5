"""Application configuration handling."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Mapping

import yaml
from pydantic import BaseModel, Field, field_validator

from starseekers.core.errors import ConfigurationError

ENV_PREFIX = "STARSEEK_"
DEFAULT_CONFIG_PATH = Path("~/.config/starseekers/config.yaml")

_YAML_KEY_MAP: Mapping[tuple[str, ...], str] = {
    ("github", "api_url"): "github_api_url",
    ("github", "per_page"): "github_per_page",
    ("github", "max_pages"): "github_max_pages",
    ("github", "timeout"): "github_timeout",
    ("github", "client_id"): "github_client_id",
    ("github", "client_secret"): "github_client_secret",
    ("github", "redirect_uri"): "github_redirect_uri",
    ("embeddings", "backend"): "embedding_backend",
    ("embeddings", "model"): "embedding_model",
    ("embeddings", "dim"): "embedding_dim",
    ("embeddings", "api_key"): "openai_api_key",
    ("embeddings", "base_url"): "openai_base_url",
    ("embeddings", "batch_size"): "embed_batch_size",
    ("embeddings", "workers"): "embed_workers",
    ("index", "backend"): "vector_backend",
    ("index", "name"): "index_name",
    ("index", "host"): "pinecone_index_host",
    ("index", "api_key"): "pinecone_api_key",
    ("index", "db_path"): "db_path",
    ("index", "upsert_batch_size"): "upsert_batch_size",
    ("index", "lookup_batch_size"): "lookup_batch_size",
    ("index", "detach_page_size"): "detach_page_size",
    ("session", "secret"): "session_secret",
    ("session", "ttl_minutes"): "session_ttl_minutes",
}


class Settings(BaseModel):
    """Runtime configuration loaded from YAML file and environment variables."""

    github_api_url: str = "https://api.github.com"
    github_per_page: int = Field(default=100, ge=1, le=100)
    github_max_pages: int | None = Field(default=None, ge=1)
    github_timeout: float = 30.0
    github_client_id: str | None = None
    github_client_secret: str | None = None
    github_redirect_uri: str | None = None

    embedding_backend: Literal["openai", "hashed"] = "openai"
    embedding_model: str = "text-embedding-3-small"
    embedding_dim: int = 1536
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    embed_batch_size: int = Field(default=64, ge=1)
    embed_workers: int = Field(default=1, ge=1)

    vector_backend: Literal["sqlite", "pinecone"] = "sqlite"
    index_name: str = "starseekers"
    pinecone_api_key: str | None = None
    pinecone_index_host: str | None = None
    db_path: Path = Field(default=Path.home() / ".starseekers" / "index.db")
    upsert_batch_size: int = Field(default=100, ge=1)
    lookup_batch_size: int = Field(default=100, ge=1, le=100)
    detach_page_size: int = Field(default=1000, ge=1)
    http_timeout: float = 60.0

    session_secret: str | None = None
    session_ttl_minutes: int = 60 * 24 * 7

    model_config = {
        "validate_assignment": True,
        "extra": "ignore",
    }

    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_db_path(cls, value: Any) -> Path:
        if isinstance(value, Path):
            return value.expanduser()
        if isinstance(value, str):
            return Path(value).expanduser()
        raise TypeError("db_path must be a path or string")

    @field_validator("github_max_pages", mode="before")
    @classmethod
    def _empty_max_pages(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def require(self, name: str) -> str:
        """Return a credential, raising ConfigurationError when it is unset."""
        value = getattr(self, name, None)
        if value is None or not str(value).strip():
            raise ConfigurationError(
                f"Required configuration '{name}' is not set. "
                f"Provide {ENV_PREFIX}{name.upper()} or set it in the config file."
            )
        return str(value).strip()

    @classmethod
    def from_yaml(cls, path: Path | None = None) -> "Settings":
        """Load YAML config and overlay env vars; fall back to defaults."""
        config_path = cls._resolve_config_path(path)
        data: dict[str, Any] = {}
        if config_path and config_path.exists():
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
            if not isinstance(raw, Mapping):
                raise ConfigurationError(f"Config at {config_path} must be a mapping of keys.")
            data.update(_flatten_yaml(raw))
        data.update(_load_env_overrides())
        return cls(**data)

    @staticmethod
    def _resolve_config_path(path: Path | None) -> Path | None:
        if path is not None:
            return path.expanduser()
        env_path = os.environ.get(f"{ENV_PREFIX}CONFIG")
        if env_path:
            return Path(env_path).expanduser()
        resolved_default = DEFAULT_CONFIG_PATH.expanduser()
        return resolved_default if resolved_default.exists() else None


def _flatten_yaml(raw: Mapping[str, Any], prefix: tuple[str, ...] = ()) -> dict[str, Any]:
    """Flatten nested YAML configuration to Settings field names."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        next_prefix = prefix + (key,)
        if isinstance(value, Mapping):
            flat.update(_flatten_yaml(value, prefix=next_prefix))
        else:
            mapped_key = _YAML_KEY_MAP.get(next_prefix)
            if mapped_key:
                flat[mapped_key] = value
            elif key in Settings.model_fields:
                flat[key] = value
    return flat


def _load_env_overrides() -> dict[str, Any]:
    """Map environment variables with STARSEEK_ prefix into Settings fields."""
    overrides: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        if field_name in Settings.model_fields:
            overrides[field_name] = value
    return overrides


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings accessor for dependency injection."""
    return Settings.from_yaml()


__all__ = ["Settings", "get_settings"]

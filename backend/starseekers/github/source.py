"""GitHub REST client for a user's starred repositories."""

from __future__ import annotations

from typing import Any, Callable

import requests

from starseekers.core.config import Settings
from starseekers.core.errors import AuthExpired, RateLimited, SourceUnavailable
from starseekers.core.logging import get_logger
from starseekers.models.entities import StarredRepository
from starseekers.sync.types import FetchProgress, StarredFetch

logger = get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"

ProgressCallback = Callable[[FetchProgress], None]


class GitHubStarsClient:
    """Read-only access to ``/user/starred`` and ``/user`` for one access token."""

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "GitHubStarsClient":
        return cls(api_url=settings.github_api_url, timeout=settings.github_timeout)

    def fetch_starred(
        self,
        access_token: str,
        per_page: int = 100,
        max_pages: int | None = None,
        on_page: ProgressCallback | None = None,
    ) -> StarredFetch:
        """Return every starred repository, one page request at a time.

        A page shorter than ``per_page`` signals exhaustion. ``max_pages`` caps
        the number of requests when set; a fetch that stops on a full page at
        the cap is reported as incomplete.
        """
        if per_page < 1:
            raise ValueError("per_page must be positive")
        repos: list[StarredRepository] = []
        page = 1
        while True:
            payload = self._get(
                "/user/starred",
                access_token,
                params={"per_page": per_page, "page": page},
            )
            if not isinstance(payload, list):
                raise SourceUnavailable("GitHub returned an unexpected starred repositories payload")
            repos.extend(StarredRepository.from_api(item) for item in payload)
            if on_page is not None:
                on_page(FetchProgress(page=page, fetched=len(payload), total_fetched=len(repos)))
            logger.debug("Fetched starred page %s (%s repositories)", page, len(payload))
            if len(payload) < per_page:
                return StarredFetch(repos=repos, complete=True)
            if max_pages is not None and page >= max_pages:
                logger.warning("Stopped after %s pages; more starred repositories remain", page)
                return StarredFetch(repos=repos, complete=False)
            page += 1

    def fetch_user(self, access_token: str) -> dict[str, Any]:
        """Return the authenticated user's profile."""
        payload = self._get("/user", access_token)
        if not isinstance(payload, dict) or "id" not in payload:
            raise SourceUnavailable("GitHub returned an unexpected user payload")
        return payload

    def _get(self, path: str, access_token: str, params: dict[str, Any] | None = None) -> Any:
        try:
            resp = self.session.get(
                f"{self.api_url}{path}",
                params=params,
                headers={
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"Bearer {access_token}",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SourceUnavailable(f"GitHub request failed: {exc}") from exc

        if resp.status_code == 401:
            raise AuthExpired("GitHub token has expired or lacks permission.")
        if resp.status_code == 429 or (
            resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"
        ):
            raise RateLimited("GitHub rate limit reached. Try again later.")
        if not resp.ok:
            raise SourceUnavailable(f"GitHub API request failed: {resp.status_code} {resp.reason}")
        return resp.json()


__all__ = ["GitHubStarsClient", "GITHUB_API_VERSION"]

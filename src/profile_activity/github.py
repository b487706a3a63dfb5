"""Async GitHub REST client for repository listing and activity counts.

Every request goes through a tenacity retry loop that backs off on
transient failures (429, 5xx, transport errors). Paginated endpoints are
followed through their ``Link: rel="next"`` headers until exhausted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from profile_activity.exceptions import (
    AuthError,
    EmptyResultError,
    GitHubAPIError,
    RateLimitError,
)
from profile_activity.models import Repository

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from profile_activity.config import GitHubSettings
    from profile_activity.models import ActivityWindow

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class _TransientResponseError(Exception):
    """Internal signal that a response is worth retrying."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP {response.status_code} for {response.request.url}")
        self.response = response


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, (_TransientResponseError, httpx.TransportError))


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


class GitHubClient:
    """Minimal GitHub REST client for the activity ranker."""

    def __init__(
        self,
        settings: GitHubSettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if settings.token is None:
            raise AuthError("No GitHub token configured (set GH_TOKEN or --token)")

        self._settings = settings
        self._client = client or httpx.AsyncClient(
            base_url=settings.api_url,
            timeout=httpx.Timeout(settings.timeout),
        )
        self._headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {settings.token.get_secret_value()}",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self._settings.max_attempts),
            wait=wait_exponential(
                multiplier=1,
                min=self._settings.backoff_min,
                max=self._settings.backoff_max,
            ),
            reraise=True,
        )

    async def _get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        *,
        allow_status: frozenset[int] = frozenset(),
    ) -> httpx.Response:
        """GET with retry; raises domain errors for non-success responses.

        Status codes in ``allow_status`` are returned to the caller as-is.
        """
        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await self._client.get(
                        url, params=params, headers=self._headers
                    )
                    if response.status_code in _TRANSIENT_STATUS_CODES:
                        logger.debug(
                            "github_transient_response",
                            url=str(response.request.url),
                            status=response.status_code,
                            attempt=attempt.retry_state.attempt_number,
                        )
                        raise _TransientResponseError(response)
        except _TransientResponseError as exc:
            raise GitHubAPIError(
                f"GitHub request failed after retries: {exc}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.TransportError as exc:
            raise GitHubAPIError(f"GitHub request failed: {exc}") from exc

        if response.status_code in allow_status:
            return response
        self._raise_for_status(response)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return
        if status in (401, 403) and response.headers.get("x-ratelimit-remaining") == "0":
            raise RateLimitError(
                "GitHub rate limit exceeded "
                f"(resets at {response.headers.get('x-ratelimit-reset', 'unknown')})",
                status_code=status,
            )
        if status == 401:
            raise AuthError("GitHub rejected the access token (HTTP 401)")
        raise GitHubAPIError(
            f"GitHub returned HTTP {status} for {response.request.url}",
            status_code=status,
        )

    async def _paginate(
        self,
        url: str,
        params: dict[str, Any],
        *,
        allow_status: frozenset[int] = frozenset(),
    ) -> AsyncIterator[list[dict[str, Any]]]:
        """Yield each page of a list endpoint, following ``rel="next"`` links.

        A response whose status is in ``allow_status`` ends iteration
        without yielding.
        """
        next_url: str | None = url
        next_params: dict[str, Any] | None = {
            **params,
            "per_page": self._settings.per_page,
        }
        while next_url:
            response = await self._get(next_url, next_params, allow_status=allow_status)
            if response.status_code in allow_status:
                return
            try:
                payload = response.json()
            except ValueError as exc:
                raise GitHubAPIError(
                    f"Invalid JSON from {response.request.url}",
                    status_code=response.status_code,
                ) from exc
            if not isinstance(payload, list):
                raise GitHubAPIError(
                    f"Expected a JSON list from {response.request.url}",
                    status_code=response.status_code,
                )
            yield payload
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries every query parameter
            next_params = None

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def list_repositories(self) -> list[Repository]:
        """List every repository visible to the token, across all pages.

        Raises:
            AuthError: If the token is rejected.
            EmptyResultError: If the account has no repositories.
            GitHubAPIError: If the listing fails after retries.
        """
        repositories: list[Repository] = []
        try:
            async for page in self._paginate("/user/repos", {}):
                repositories.extend(
                    Repository(full_name=str(item["full_name"]))
                    for item in page
                    if isinstance(item, dict) and item.get("full_name")
                )
        except RateLimitError:
            raise
        except GitHubAPIError as exc:
            if exc.status_code == 403:
                raise AuthError(
                    "GitHub token lacks permission to list repositories (HTTP 403)"
                ) from exc
            raise

        if not repositories:
            raise EmptyResultError("No repositories returned for this account")

        logger.info("repositories_listed", count=len(repositories))
        return repositories

    async def count_commits(self, repository: Repository, window: ActivityWindow) -> int:
        """Count commits on the default branch since the window start.

        An empty repository (HTTP 409) has no commits.
        """
        total = 0
        async for page in self._paginate(
            f"/repos/{repository.full_name}/commits",
            {"since": window.start_iso},
            allow_status=frozenset({409}),
        ):
            total += len(page)
        return total

    async def count_pull_requests(
        self, repository: Repository, window: ActivityWindow
    ) -> int:
        """Count pull requests of any state created within the window.

        Pages are requested newest first, so iteration stops at the first
        page that reaches past the window start.
        """
        total = 0
        async for page in self._paginate(
            f"/repos/{repository.full_name}/pulls",
            {"state": "all", "sort": "created", "direction": "desc"},
        ):
            reached_window_start = False
            for item in page:
                created_at = item.get("created_at") if isinstance(item, dict) else None
                if not created_at:
                    continue
                try:
                    created = _parse_timestamp(str(created_at))
                except ValueError as exc:
                    raise GitHubAPIError(
                        f"Malformed created_at {created_at!r} in {repository.full_name}"
                    ) from exc
                if created >= window.start:
                    total += 1
                else:
                    reached_window_start = True
            if reached_window_start:
                break
        return total


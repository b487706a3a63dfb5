"""Activity scoring: commit and pull request counts per repository.

Repositories are scored concurrently, bounded by an ``asyncio.Semaphore``.
A failed fetch for one repository scores it as ``(0, 0)`` instead of
aborting the pass; only authentication failures stop scoring, and they
cancel every repository still in flight.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog

from profile_activity.exceptions import GitHubAPIError
from profile_activity.models import ActivityScore, ScoredRepository

if TYPE_CHECKING:
    from collections.abc import Sequence

    from profile_activity.models import ActivityWindow, Repository

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_DEFAULT_MAX_CONCURRENCY = 5


class ActivitySource(Protocol):
    """Anything that can count a repository's recent commits and PRs."""

    async def count_commits(self, repository: Repository, window: ActivityWindow) -> int: ...

    async def count_pull_requests(
        self, repository: Repository, window: ActivityWindow
    ) -> int: ...


async def score_repository(
    source: ActivitySource,
    repository: Repository,
    window: ActivityWindow,
) -> ScoredRepository:
    """Score a single repository.

    Returns a zero score carrying the error message when either count
    cannot be fetched. ``AuthError`` propagates.
    """
    try:
        commits = await source.count_commits(repository, window)
        pull_requests = await source.count_pull_requests(repository, window)
    except (GitHubAPIError, httpx.HTTPError) as exc:
        logger.warning(
            "repository_score_failed",
            repository=repository.full_name,
            error=str(exc),
        )
        return ScoredRepository(repository, ActivityScore(), error=str(exc))

    logger.info(
        "repository_scored",
        repository=repository.full_name,
        commits=commits,
        pull_requests=pull_requests,
    )
    return ScoredRepository(repository, ActivityScore(commits, pull_requests))


async def score_repositories(
    source: ActivitySource,
    repositories: Sequence[Repository],
    window: ActivityWindow,
    max_concurrency: int = _DEFAULT_MAX_CONCURRENCY,
) -> list[ScoredRepository]:
    """Score every repository concurrently and collect all results.

    Args:
        source: Client used for the commit and pull request queries.
        repositories: Repositories to score, already filtered.
        window: Trailing window the counts are bounded by.
        max_concurrency: Maximum repositories scored at the same time.

    Returns:
        One ``ScoredRepository`` per input, in input order.
    """
    semaphore = asyncio.Semaphore(max_concurrency)

    async def _limited_score(repository: Repository) -> ScoredRepository:
        async with semaphore:
            return await score_repository(source, repository, window)

    tasks = [asyncio.create_task(_limited_score(repository)) for repository in repositories]
    try:
        return list(await asyncio.gather(*tasks))
    except BaseException:
        # A fatal error in one task leaves no sibling running
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

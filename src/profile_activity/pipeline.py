"""Activity ranker pipeline.

Runs the stages ``LIST -> FILTER -> SCORE -> RANK -> RESOLVE -> RENDER ->
COMPARE -> {NO_OP | PUBLISH}`` over an explicit ``RunContext``. Any stage may
end the run early with an ``EmptyResultError``, which becomes a ``skipped``
outcome. Fatal errors propagate with the failing stage attached.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Protocol

import structlog

from profile_activity.exceptions import EmptyResultError, ProfileActivityError
from profile_activity.logging import stage_logging_context
from profile_activity.models import ActivityWindow
from profile_activity.publishing import publish_fragment
from profile_activity.ranking import (
    filter_repositories,
    parse_exclusions,
    rank_repositories,
)
from profile_activity.rendering import render_fragment, resolve_links
from profile_activity.scoring import score_repositories

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping, Sequence
    from pathlib import Path

    from profile_activity.config import Settings
    from profile_activity.models import (
        ReplacementEntry,
        Repository,
        ResolvedLink,
        ScoredRepository,
    )
    from profile_activity.publishing import PublishResult

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class Stage(StrEnum):
    """Pipeline stages, in execution order."""

    CONFIGURE = "configure"
    LIST = "list"
    FILTER = "filter"
    SCORE = "score"
    RANK = "rank"
    RESOLVE = "resolve"
    RENDER = "render"
    COMPARE = "compare"
    PUBLISH = "publish"


class OutcomeStatus(StrEnum):
    """Terminal state of a run."""

    SKIPPED = "skipped"
    NO_OP = "no_op"
    PUBLISH = "publish"


class RepositorySource(Protocol):
    """Listing and activity queries the pipeline needs from GitHub."""

    async def list_repositories(self) -> list[Repository]: ...

    async def count_commits(self, repository: Repository, window: ActivityWindow) -> int: ...

    async def count_pull_requests(
        self, repository: Repository, window: ActivityWindow
    ) -> int: ...


class Committer(Protocol):
    def commit(self, paths: Sequence[Path], message: str) -> bool: ...


@dataclass(frozen=True)
class RunContext:
    """Everything one ranker run needs, passed explicitly between stages."""

    source: RepositorySource
    window: ActivityWindow
    readme_path: Path
    marker: str
    footer_url: str
    exclusions: frozenset[str] = frozenset()
    overrides: Mapping[str, ReplacementEntry] = field(default_factory=dict)
    top_n: int = 3
    max_concurrency: int = 5
    dry_run: bool = False
    committer: Committer | None = None
    commit_message: str = "Update README with new top repositories"

    @property
    def prefix(self) -> str:
        return f"{self.marker} "

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        source: RepositorySource,
        *,
        account: str,
        overrides: Mapping[str, ReplacementEntry],
        window: ActivityWindow | None = None,
        dry_run: bool = False,
        committer: Committer | None = None,
    ) -> RunContext:
        return cls(
            source=source,
            window=window or ActivityWindow(days=settings.ranking.window_days),
            readme_path=settings.readme.path,
            marker=settings.readme.marker,
            footer_url=settings.footer_url(account),
            exclusions=parse_exclusions(settings.ranking.ignore),
            overrides=overrides,
            top_n=settings.ranking.top_n,
            max_concurrency=settings.github.max_concurrency,
            dry_run=dry_run,
            committer=committer,
            commit_message=settings.git.readme_message,
        )


@dataclass
class RankerOutcome:
    """What a run did and how far it got."""

    stage: Stage = Stage.LIST
    status: OutcomeStatus | None = None
    reason: str = ""
    scores: list[ScoredRepository] = field(default_factory=list)
    ranked: list[Repository] = field(default_factory=list)
    links: list[ResolvedLink] = field(default_factory=list)
    fragment: str = ""
    publish: PublishResult | None = None
    committed: bool = False

    @property
    def changed(self) -> bool:
        return self.status is OutcomeStatus.PUBLISH

    def step_outputs(self) -> dict[str, str]:
        """Values handed to the CI step that commits the change."""
        return {
            "changed": "true" if self.changed else "false",
            "top_repos": " ".join(repo.full_name for repo in self.ranked),
        }


@contextmanager
def run_stage(stage: Stage, outcome: RankerOutcome | None = None) -> Iterator[None]:
    """Run one stage with stage-scoped logging.

    Records the stage on ``outcome`` and tags any escaping
    ``ProfileActivityError`` with the stage it failed in.
    """
    if outcome is not None:
        outcome.stage = stage
    try:
        with stage_logging_context(stage.value):
            yield
    except ProfileActivityError as exc:
        if exc.stage is None:
            exc.stage = stage.value
        raise


async def run_ranker(context: RunContext) -> RankerOutcome:
    """Rank recently active repositories and publish the README fragment.

    Returns:
        A ``RankerOutcome`` whose status is ``skipped`` when a stage had
        nothing to do, ``no_op`` when the document already held the
        fragment, or ``publish`` when it changed.

    Raises:
        AuthError: If the token is missing or rejected.
        ConfigError: If the document or its marker line is unusable.
        GitHubAPIError: If the repository listing fails.
        GitError: If committing the published document fails.
    """
    outcome = RankerOutcome()
    try:
        with run_stage(Stage.LIST, outcome):
            repositories = await context.source.list_repositories()

        with run_stage(Stage.FILTER, outcome):
            filtered = filter_repositories(repositories, context.exclusions)
            logger.info(
                "repositories_filtered",
                listed=len(repositories),
                remaining=len(filtered),
            )
            if not filtered:
                raise EmptyResultError("No repositories left after filtering")

        with run_stage(Stage.SCORE, outcome):
            outcome.scores = await score_repositories(
                context.source,
                filtered,
                context.window,
                max_concurrency=context.max_concurrency,
            )

        with run_stage(Stage.RANK, outcome):
            outcome.ranked = rank_repositories(outcome.scores, context.top_n)
            if not outcome.ranked:
                raise EmptyResultError(
                    f"No repositories with activity in the last {context.window.days} days"
                )
            logger.info(
                "repositories_ranked",
                top=[repo.full_name for repo in outcome.ranked],
            )

        with run_stage(Stage.RESOLVE, outcome):
            outcome.links = resolve_links(outcome.ranked, context.overrides)

        with run_stage(Stage.RENDER, outcome):
            outcome.fragment = render_fragment(
                outcome.links,
                prefix=context.prefix,
                footer_url=context.footer_url,
            )

        with run_stage(Stage.COMPARE, outcome):
            outcome.publish = publish_fragment(
                context.readme_path,
                outcome.fragment,
                context.marker,
                dry_run=context.dry_run,
            )

        if not outcome.publish.changed:
            outcome.status = OutcomeStatus.NO_OP
            outcome.reason = "No changes detected"
            return outcome

        outcome.status = OutcomeStatus.PUBLISH
        outcome.reason = "Changes detected"
        if context.committer is not None and not context.dry_run:
            with run_stage(Stage.PUBLISH, outcome):
                outcome.committed = context.committer.commit(
                    [context.readme_path], context.commit_message
                )
    except EmptyResultError as exc:
        outcome.status = OutcomeStatus.SKIPPED
        outcome.reason = str(exc)

    return outcome

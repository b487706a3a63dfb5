"""Exclusion filtering and ranking of scored repositories."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from profile_activity.models import Repository, ScoredRepository

DEFAULT_TOP_N = 3


def parse_exclusions(value: str | Iterable[str] | None) -> frozenset[str]:
    """Build an exclusion set from a comma-delimited string or an iterable.

    Whitespace around identifiers is stripped and blank entries dropped.
    """
    if value is None:
        return frozenset()
    parts = value.split(",") if isinstance(value, str) else value
    return frozenset(part.strip() for part in parts if part.strip())


def filter_repositories(
    repositories: Sequence[Repository],
    exclude: frozenset[str] | set[str],
) -> list[Repository]:
    """Drop repositories whose full name is excluded, preserving order."""
    return [repo for repo in repositories if repo.full_name not in exclude]


def rank_repositories(
    scored: Sequence[ScoredRepository],
    n: int = DEFAULT_TOP_N,
) -> list[Repository]:
    """Select the ``n`` most active repositories.

    Repositories with neither commits nor pull requests are dropped, the
    rest ordered by commits, then pull requests, both descending. The sort
    is stable, so equally scored repositories keep their listing order.

    Raises:
        ValueError: If ``n`` is less than one.
    """
    if n < 1:
        msg = f"n must be at least 1, got {n}"
        raise ValueError(msg)

    active = [entry for entry in scored if entry.score.is_active]
    ordered = sorted(active, key=lambda entry: entry.score.sort_key, reverse=True)
    return [entry.repository for entry in ordered[:n]]

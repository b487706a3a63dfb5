"""Data models shared by the listing, scoring, ranking and rendering stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from pydantic import BaseModel, ConfigDict


@dataclass(frozen=True, slots=True)
class Repository:
    """A repository visible to the authenticated account."""

    full_name: str

    @property
    def owner(self) -> str:
        return self.full_name.rpartition("/")[0]

    @property
    def name(self) -> str:
        """Short name: the text after the last path separator."""
        return self.full_name.rpartition("/")[2]

    @property
    def url(self) -> str:
        return f"https://github.com/{self.full_name}"


@dataclass(frozen=True, slots=True)
class ActivityWindow:
    """Trailing time span anchored to the moment of invocation."""

    days: int = 30
    now: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if self.days < 1:
            msg = f"Activity window must span at least one day, got {self.days}"
            raise ValueError(msg)

    @property
    def start(self) -> datetime:
        return self.now - timedelta(days=self.days)

    @property
    def start_iso(self) -> str:
        """Window start in the ``YYYY-MM-DDTHH:MM:SSZ`` form GitHub expects."""
        return self.start.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True, slots=True)
class ActivityScore:
    """Commit and pull request counts within the activity window."""

    commits: int = 0
    pull_requests: int = 0

    @property
    def is_active(self) -> bool:
        return self.commits > 0 or self.pull_requests > 0

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.commits, self.pull_requests)


@dataclass(frozen=True, slots=True)
class ScoredRepository:
    """A repository paired with its score.

    ``error`` holds the reason a repository was scored as zero after a
    failed fetch; it is ``None`` for normally scored repositories.
    """

    repository: Repository
    score: ActivityScore
    error: str | None = None


class ReplacementEntry(BaseModel):
    """Display name and link overriding a repository's default link."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    display_name: str
    link: str


@dataclass(frozen=True, slots=True)
class ResolvedLink:
    """Human-facing name and URL for a ranked repository."""

    display_name: str
    link: str

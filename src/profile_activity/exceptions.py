"""Centralized exception hierarchy for the profile-activity package.

All domain-specific exceptions inherit from ``ProfileActivityError`` so
callers can catch the entire family with a single ``except`` clause. The
pipeline attaches the failing stage to an error as it propagates, so the
CLI can report where a run stopped.
"""

from __future__ import annotations


class ProfileActivityError(Exception):
    """Base exception for all profile-activity errors."""

    def __init__(self, message: str = "", *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigError(ProfileActivityError):
    """Raised for malformed configuration such as an invalid overrides file."""


class MarkerError(ConfigError):
    """Raised when the README marker matches zero or several lines."""

    def __init__(self, marker: str, count: int, *, stage: str | None = None) -> None:
        if count == 0:
            message = f"Marker {marker!r} not found in document"
        else:
            message = f"Marker {marker!r} found on {count} lines, expected exactly one"
        super().__init__(message, stage=stage)
        self.marker = marker
        self.count = count


# ---------------------------------------------------------------------------
# GitHub errors
# ---------------------------------------------------------------------------


class AuthError(ProfileActivityError):
    """Raised when the access token is missing or rejected."""


class GitHubAPIError(ProfileActivityError):
    """Raised when a GitHub API request fails after retries."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.status_code = status_code


class RateLimitError(GitHubAPIError):
    """Raised when the primary GitHub rate limit is exhausted."""


# ---------------------------------------------------------------------------
# Non-fatal outcomes
# ---------------------------------------------------------------------------


class EmptyResultError(ProfileActivityError):
    """Raised when a stage has nothing left to do.

    This is a normal terminal state: the pipeline turns it into a
    "skipped" outcome and the process exits successfully.
    """


# ---------------------------------------------------------------------------
# Collaborator errors
# ---------------------------------------------------------------------------


class AnimationError(ProfileActivityError):
    """Raised when the external animation generator fails."""


class GitError(ProfileActivityError):
    """Raised when a git command used for publishing fails."""

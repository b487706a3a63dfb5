"""Unit tests for profile_activity.models."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from profile_activity.models import (
    ActivityScore,
    ActivityWindow,
    ReplacementEntry,
    Repository,
)


class TestRepository:
    """Repository identity helpers."""

    def test_owner_and_name(self) -> None:
        repo = Repository("octo/hello-world")
        assert repo.owner == "octo"
        assert repo.name == "hello-world"

    def test_url(self) -> None:
        assert Repository("octo/a").url == "https://github.com/octo/a"

    def test_immutable(self) -> None:
        repo = Repository("octo/a")
        with pytest.raises(dataclasses.FrozenInstanceError):
            repo.full_name = "octo/b"  # type: ignore[misc]


class TestActivityWindow:
    """Trailing window arithmetic."""

    def test_start_is_days_before_now(self) -> None:
        now = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
        window = ActivityWindow(days=30, now=now)
        assert window.start == now - timedelta(days=30)

    def test_start_iso_format(self) -> None:
        now = datetime(2026, 10, 18, 12, 0, tzinfo=UTC)
        assert ActivityWindow(days=1, now=now).start_iso == "2026-10-17T12:00:00Z"

    def test_default_now_is_aware(self) -> None:
        assert ActivityWindow().now.tzinfo is not None

    def test_zero_days_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one day"):
            ActivityWindow(days=0)


class TestActivityScore:
    """Score helpers."""

    def test_zero_is_inactive(self) -> None:
        assert not ActivityScore().is_active

    @pytest.mark.parametrize(("commits", "prs"), [(1, 0), (0, 1), (3, 2)])
    def test_any_activity(self, commits: int, prs: int) -> None:
        assert ActivityScore(commits, prs).is_active

    def test_sort_key(self) -> None:
        assert ActivityScore(5, 2).sort_key == (5, 2)


class TestReplacementEntry:
    """Override entry validation."""

    def test_valid(self) -> None:
        entry = ReplacementEntry(display_name="Cool", link="https://cool.example")
        assert entry.display_name == "Cool"

    def test_missing_link_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ReplacementEntry(display_name="Cool")  # type: ignore[call-arg]

    def test_extra_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ReplacementEntry(display_name="Cool", link="x", color="red")  # type: ignore[call-arg]

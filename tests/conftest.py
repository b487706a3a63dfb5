"""Shared pytest fixtures for the profile-activity test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from profile_activity.models import ActivityWindow
from tests.fakes import FIXED_NOW, OLD_LINE

if TYPE_CHECKING:
    from pathlib import Path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def window() -> ActivityWindow:
    """A 30-day window anchored at a fixed instant."""
    return ActivityWindow(days=30, now=FIXED_NOW)


@pytest.fixture()
def readme_text() -> str:
    return f"# Hi there\n\n{OLD_LINE}\n- 📫 Reach me anywhere\n"


@pytest.fixture()
def readme_path(tmp_path: Path, readme_text: str) -> Path:
    """A README containing exactly one marker line."""
    path = tmp_path / "README.md"
    path.write_text(readme_text, encoding="utf-8")
    return path


@pytest.fixture()
def overrides_path(tmp_path: Path) -> Path:
    path = tmp_path / "replacement_links.json"
    path.write_text(
        '{"repoA": {"display_name": "Cool Project", "link": "https://cool.example"}}',
        encoding="utf-8",
    )
    return path


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove environment variables that leak into settings or the CLI."""
    for name in (
        "GH_TOKEN",
        "GITHUB_TOKEN",
        "IGNORE_LIST",
        "GITHUB_OUTPUT",
        "GITHUB_REPOSITORY_OWNER",
        "PROFILE_ACTIVITY_GITHUB__TOKEN",
        "PROFILE_ACTIVITY_RANKING__ACCOUNT",
    ):
        monkeypatch.delenv(name, raising=False)

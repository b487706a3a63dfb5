"""End-to-end ranker runs through the CLI against a mocked GitHub API."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import httpx
import pytest
import respx
from typer.testing import CliRunner

from profile_activity.cli import app

if TYPE_CHECKING:
    from pathlib import Path

API = "https://api.github.com"

runner = CliRunner()

pytestmark = pytest.mark.integration


def _ago(days: int) -> str:
    return (datetime.now(UTC) - timedelta(days=days)).strftime("%Y-%m-%dT%H:%M:%SZ")


def _mock_github(activity: dict[str, tuple[int, int]]) -> respx.MockRouter:
    """Route listing, commit and pull request calls for ``activity``."""
    router = respx.mock(assert_all_called=False)
    router.get(url__startswith=f"{API}/user/repos").mock(
        return_value=httpx.Response(200, json=[{"full_name": name} for name in activity])
    )
    for name, (commits, pulls) in activity.items():
        router.get(url__startswith=f"{API}/repos/{name}/commits").mock(
            return_value=httpx.Response(200, json=[{"sha": str(i)} for i in range(commits)])
        )
        recent = [{"created_at": _ago(1)} for _ in range(pulls)]
        router.get(url__startswith=f"{API}/repos/{name}/pulls").mock(
            return_value=httpx.Response(200, json=[*recent, {"created_at": _ago(90)}])
        )
    return router


def _rank(readme_path: Path, *extra: str, env: dict[str, str] | None = None) -> Any:
    return runner.invoke(
        app,
        [
            "rank",
            "--account",
            "owner",
            "--token",
            "ghp_test",
            "--readme",
            str(readme_path),
            *extra,
        ],
        env=env,
    )


class TestRankerEndToEnd:
    """Listing through publishing with only the HTTP layer faked."""

    def test_ranks_active_repositories(
        self, readme_path: Path, tmp_path: Path, clean_env: None
    ) -> None:
        target = tmp_path / "gh_output"
        with _mock_github({"owner/repoA": (5, 0), "owner/repoB": (0, 0), "owner/repoC": (2, 1)}):
            result = _rank(readme_path, env={"GITHUB_OUTPUT": str(target)})

        assert result.exit_code == 0, result.output
        text = readme_path.read_text(encoding="utf-8")
        assert "<b>repoA</b></a>, <a" in text
        assert "<b>repoC</b>" in text
        assert "<b>repoB</b>" not in text
        assert text.startswith("# Hi there\n\n")
        assert text.endswith("- 📫 Reach me anywhere\n")
        assert target.read_text(encoding="utf-8") == (
            "changed=true\ntop_repos=owner/repoA owner/repoC\n"
        )

    def test_override_replaces_default_link(
        self, readme_path: Path, overrides_path: Path, clean_env: None
    ) -> None:
        with _mock_github({"owner/repoA": (1, 0)}):
            result = _rank(readme_path, "--overrides", str(overrides_path))

        assert result.exit_code == 0, result.output
        text = readme_path.read_text(encoding="utf-8")
        assert (
            '<a href="https://cool.example" target="_blank"><b>Cool Project</b></a>' in text
        )
        assert "https://github.com/owner/repoA" not in text

    def test_ignored_repository_is_omitted(
        self, readme_path: Path, clean_env: None
    ) -> None:
        with _mock_github({"owner/repoA": (1, 0), "owner/repoB": (50, 5)}) as router:
            result = _rank(readme_path, env={"IGNORE_LIST": "owner/repoB"})
            commit_calls = [
                call.request.url.path for call in router.calls if "/commits" in call.request.url.path
            ]

        assert result.exit_code == 0, result.output
        assert "repoB" not in readme_path.read_text(encoding="utf-8")
        assert commit_calls == ["/repos/owner/repoA/commits"]

    def test_second_run_leaves_document_untouched(
        self, readme_path: Path, tmp_path: Path, clean_env: None
    ) -> None:
        activity = {"owner/repoA": (3, 0)}
        with _mock_github(activity):
            assert _rank(readme_path).exit_code == 0
        published = readme_path.read_bytes()

        target = tmp_path / "gh_output"
        with _mock_github(activity):
            result = _rank(readme_path, env={"GITHUB_OUTPUT": str(target)})

        assert result.exit_code == 0
        assert "No changes detected" in result.output
        assert readme_path.read_bytes() == published
        assert target.read_text(encoding="utf-8").startswith("changed=false\n")

    def test_no_activity_skips_without_writing(
        self, readme_path: Path, clean_env: None
    ) -> None:
        before = readme_path.read_bytes()
        with _mock_github({"owner/repoA": (0, 0)}):
            result = _rank(readme_path)

        assert result.exit_code == 0
        assert "Skipped at rank" in result.output
        assert readme_path.read_bytes() == before

    def test_bad_credentials_fail_at_list(
        self, readme_path: Path, clean_env: None
    ) -> None:
        before = readme_path.read_bytes()
        with respx.mock:
            respx.get(url__startswith=f"{API}/user/repos").mock(
                return_value=httpx.Response(401, json={"message": "Bad credentials"})
            )
            result = _rank(readme_path)

        assert result.exit_code == 1
        assert "Stage 'list' failed" in result.output
        assert readme_path.read_bytes() == before

"""Health checks and self-diagnostics for profile-activity."""

from __future__ import annotations

import shutil
from enum import StrEnum
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, Field

from profile_activity.config import Settings
from profile_activity.exceptions import ConfigError
from profile_activity.publishing import MarkedDocument, read_document
from profile_activity.rendering import load_overrides

if TYPE_CHECKING:
    from pathlib import Path

    from profile_activity.config import AnimationSettings, GitHubSettings, ReadmeSettings


class CheckStatus(StrEnum):
    """Status for a doctor check item."""

    OK = "ok"
    WARN = "warn"
    FAIL = "fail"


class CheckResult(BaseModel):
    """A single doctor check result."""

    name: str
    status: CheckStatus
    message: str
    details: dict[str, str] = Field(default_factory=dict)


class DoctorReport(BaseModel):
    """Aggregate report for all diagnostics."""

    checks: list[CheckResult]

    @property
    def healthy(self) -> bool:
        return all(check.status != CheckStatus.FAIL for check in self.checks)

    @property
    def exit_code(self) -> int:
        return 0 if self.healthy else 1


def _check_config_schema(config_path: Path | None) -> CheckResult:
    try:
        Settings.load(config_path=config_path)
        return CheckResult(
            name="config-schema",
            status=CheckStatus.OK,
            message="Configuration schema is valid.",
        )
    except Exception as exc:
        return CheckResult(
            name="config-schema",
            status=CheckStatus.FAIL,
            message="Configuration schema validation failed.",
            details={"error": str(exc)},
        )


def _check_overrides(path: Path) -> CheckResult:
    if not path.exists():
        return CheckResult(
            name="overrides-file",
            status=CheckStatus.WARN,
            message="No override mapping found; default GitHub links will be used.",
            details={"path": str(path)},
        )
    try:
        overrides = load_overrides(path)
    except ConfigError as exc:
        return CheckResult(
            name="overrides-file",
            status=CheckStatus.FAIL,
            message="Override mapping is malformed.",
            details={"path": str(path), "error": str(exc)},
        )
    return CheckResult(
        name="overrides-file",
        status=CheckStatus.OK,
        message="Override mapping is valid.",
        details={"path": str(path), "entries": str(len(overrides))},
    )


def _check_readme_marker(readme: ReadmeSettings) -> CheckResult:
    try:
        MarkedDocument.parse(read_document(readme.path), readme.marker)
    except ConfigError as exc:
        return CheckResult(
            name="readme-marker",
            status=CheckStatus.FAIL,
            message="README marker line is not usable.",
            details={"path": str(readme.path), "error": str(exc)},
        )
    return CheckResult(
        name="readme-marker",
        status=CheckStatus.OK,
        message="README contains exactly one marker line.",
        details={"path": str(readme.path)},
    )


def _check_github_token(github: GitHubSettings, probe: bool) -> CheckResult:
    if github.token is None:
        return CheckResult(
            name="github-token",
            status=CheckStatus.FAIL,
            message="No GitHub token configured.",
        )
    if not probe:
        return CheckResult(
            name="github-token",
            status=CheckStatus.OK,
            message="GitHub token is configured (probe skipped).",
        )

    headers = {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {github.token.get_secret_value()}",
    }
    try:
        response = httpx.get(
            f"{github.api_url.rstrip('/')}/user",
            headers=headers,
            timeout=github.timeout,
        )
    except httpx.HTTPError as exc:
        return CheckResult(
            name="github-token",
            status=CheckStatus.FAIL,
            message="GitHub API probe request failed.",
            details={"error": str(exc)},
        )

    if response.status_code == 200:
        details = {"login": str(response.json().get("login", ""))}
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is not None:
            details["rate_limit_remaining"] = remaining
        return CheckResult(
            name="github-token",
            status=CheckStatus.OK,
            message="GitHub token is valid.",
            details=details,
        )
    return CheckResult(
        name="github-token",
        status=CheckStatus.FAIL,
        message="GitHub token probe failed.",
        details={"status": str(response.status_code)},
    )


def _check_animation_command(animation: AnimationSettings) -> CheckResult:
    if not animation.command:
        return CheckResult(
            name="animation-command",
            status=CheckStatus.WARN,
            message="No animation command configured; 'animate' is unavailable.",
        )
    executable = animation.command[0]
    if shutil.which(executable) is None:
        return CheckResult(
            name="animation-command",
            status=CheckStatus.WARN,
            message="Animation command is not on PATH.",
            details={"command": executable},
        )
    return CheckResult(
        name="animation-command",
        status=CheckStatus.OK,
        message="Animation command is available.",
        details={"command": executable},
    )


def run_doctor(
    settings: Settings,
    config_path: Path | None = None,
    check_api_probes: bool = True,
) -> DoctorReport:
    """Run all diagnostics and return an aggregate report."""
    checks = [
        _check_config_schema(config_path),
        _check_github_token(settings.github, probe=check_api_probes),
        _check_overrides(settings.readme.overrides_path),
        _check_readme_marker(settings.readme),
        _check_animation_command(settings.animation),
    ]
    return DoctorReport(checks=checks)

"""Typer CLI entry point for profile-activity."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from profile_activity import __version__
from profile_activity.animation import CommandAnimationGenerator
from profile_activity.config import Settings, format_validation_error
from profile_activity.doctor import CheckStatus, run_doctor
from profile_activity.exceptions import ConfigError, ProfileActivityError
from profile_activity.github import GitHubClient
from profile_activity.logging import configure_logging, generate_run_id
from profile_activity.pipeline import (
    OutcomeStatus,
    RankerOutcome,
    RunContext,
    Stage,
    run_ranker,
    run_stage,
)
from profile_activity.publishing import (
    GitCommitter,
    MarkedDocument,
    read_document,
    write_step_outputs,
)
from profile_activity.rendering import load_overrides

if TYPE_CHECKING:
    from collections.abc import Mapping

    from profile_activity.models import ReplacementEntry

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="profile-activity",
    help="Keep a profile README listing the repositories you are most active in.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set_override(overrides: dict[str, Any], section: str, key: str, value: Any) -> None:
    if value is not None:
        overrides.setdefault(section, {})[key] = value


def _load_settings(
    config_path: Path | None = None,
    **overrides: Any,
) -> Settings:
    """Load settings with error handling and user-friendly messages."""
    from pydantic import ValidationError

    try:
        return Settings.load(config_path=config_path, **overrides)
    except ValidationError as exc:
        err_console.print(
            Panel(
                format_validation_error(exc),
                title="Configuration Error",
                border_style="red",
            )
        )
        raise typer.Exit(code=1) from exc


def _configure(settings: Settings) -> str:
    run_id = generate_run_id()
    configure_logging(
        level=settings.logging.level,
        fmt=settings.logging.format,
        log_file=settings.logging.file,
        run_id=run_id,
        account=settings.ranking.account,
    )
    return run_id


def _require_account(settings: Settings) -> str:
    account = settings.ranking.account
    if not account:
        raise ConfigError(
            "No account configured (use --account or GITHUB_REPOSITORY_OWNER)",
            stage=Stage.CONFIGURE.value,
        )
    return account


def _display_error(exc: ProfileActivityError) -> None:
    stage = exc.stage or "unknown"
    err_console.print(
        Panel(
            f"[bold]{type(exc).__name__}[/bold]: {escape(str(exc))}",
            title=f"Stage '{stage}' failed",
            border_style="red",
        )
    )


def _display_scores(outcome: RankerOutcome) -> None:
    """Display every scored repository as a Rich table, ranked ones marked."""
    if not outcome.scores:
        return
    ranked = {repo.full_name: index for index, repo in enumerate(outcome.ranked, 1)}

    table = Table(title="Repository Activity", show_lines=False)
    table.add_column("#", style="cyan", justify="right", width=3)
    table.add_column("Repository", style="white")
    table.add_column("Commits", justify="right")
    table.add_column("PRs", justify="right")
    table.add_column("Note", style="dim")

    for entry in outcome.scores:
        name = entry.repository.full_name
        table.add_row(
            str(ranked[name]) if name in ranked else "",
            name,
            str(entry.score.commits),
            str(entry.score.pull_requests),
            escape(entry.error or ""),
        )
    console.print(table)


def _display_outcome(outcome: RankerOutcome) -> None:
    if outcome.status is OutcomeStatus.SKIPPED:
        console.print(f"[yellow]Skipped at {outcome.stage}:[/yellow] {escape(outcome.reason)}")
        return
    console.print(f"\n[bold]Fragment:[/bold]\n{escape(outcome.fragment)}\n")
    if outcome.status is OutcomeStatus.NO_OP:
        console.print("[green]No changes detected.[/green]")
        return
    if outcome.publish is not None and not outcome.publish.written:
        console.print("[yellow]Changes detected (dry run, nothing written).[/yellow]")
    elif outcome.committed:
        console.print("[green]README updated and committed.[/green]")
    else:
        console.print("[green]README updated.[/green]")


async def _rank(
    settings: Settings,
    account: str,
    overrides: Mapping[str, ReplacementEntry],
    *,
    dry_run: bool,
    commit: bool,
) -> RankerOutcome:
    with run_stage(Stage.LIST):
        client = GitHubClient(settings.github)
    async with client:
        context = RunContext.from_settings(
            settings,
            client,
            account=account,
            overrides=overrides,
            dry_run=dry_run,
            committer=GitCommitter(settings.git) if commit else None,
        )
        return await run_ranker(context)


# ---------------------------------------------------------------------------
# Version callback
# ---------------------------------------------------------------------------


def _version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]profile-activity[/bold] {__version__}")
        raise typer.Exit


@app.callback()
def common(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Profile-activity global options."""


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def rank(
    account: Annotated[
        str | None,
        typer.Option(
            "--account",
            "-a",
            envvar="GITHUB_REPOSITORY_OWNER",
            help="Account whose profile README is updated.",
        ),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            envvar=["GH_TOKEN", "GITHUB_TOKEN"],
            help="GitHub access token.",
            show_default=False,
        ),
    ] = None,
    ignore: Annotated[
        str | None,
        typer.Option(
            "--ignore",
            envvar="IGNORE_LIST",
            help="Comma-delimited repository full names to exclude.",
        ),
    ] = None,
    overrides_path: Annotated[
        Path | None,
        typer.Option("--overrides", help="JSON file of display name / link overrides."),
    ] = None,
    readme: Annotated[
        Path | None,
        typer.Option("--readme", help="Document holding the marker line."),
    ] = None,
    days: Annotated[
        int | None,
        typer.Option("--days", help="Length of the activity window in days."),
    ] = None,
    top: Annotated[
        int | None,
        typer.Option("--top", "-n", help="Number of repositories to list."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Compute and compare, but never write."),
    ] = False,
    commit: Annotated[
        bool,
        typer.Option("--commit", help="Commit and push the README when it changes."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Rank recently active repositories and update the README line."""
    overrides: dict[str, Any] = {}
    _set_override(overrides, "ranking", "account", account)
    _set_override(overrides, "github", "token", token)
    _set_override(overrides, "ranking", "ignore", ignore)
    _set_override(overrides, "ranking", "window_days", days)
    _set_override(overrides, "ranking", "top_n", top)
    _set_override(overrides, "readme", "path", readme)
    _set_override(overrides, "readme", "overrides_path", overrides_path)
    if verbose:
        _set_override(overrides, "logging", "level", "DEBUG")

    settings = _load_settings(config, **overrides)
    _configure(settings)

    try:
        resolved_account = _require_account(settings)
        with run_stage(Stage.CONFIGURE):
            replacement_links = load_overrides(settings.readme.overrides_path)
            document = read_document(settings.readme.path)
            MarkedDocument.parse(document, settings.readme.marker)
        outcome = asyncio.run(
            _rank(
                settings,
                resolved_account,
                replacement_links,
                dry_run=dry_run,
                commit=commit,
            )
        )
    except ProfileActivityError as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    _display_scores(outcome)
    _display_outcome(outcome)
    write_step_outputs(outcome.step_outputs())


@app.command()
def animate(
    account: Annotated[
        str | None,
        typer.Option(
            "--account",
            "-a",
            envvar="GITHUB_REPOSITORY_OWNER",
            help="Account the animation is generated for.",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Where the generator writes its file."),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    commit: Annotated[
        bool,
        typer.Option("--commit", help="Commit and push the generated file."),
    ] = False,
) -> None:
    """Run the external animation generator and persist its output."""
    overrides: dict[str, Any] = {}
    _set_override(overrides, "ranking", "account", account)
    _set_override(overrides, "animation", "output", output)

    settings = _load_settings(config, **overrides)
    _configure(settings)

    try:
        resolved_account = _require_account(settings)
        generator = CommandAnimationGenerator(
            settings.animation.command,
            timeout=settings.animation.timeout,
        )
        artifact = generator.generate(resolved_account, settings.animation.output)
        committed = False
        if artifact.exists and commit:
            committed = GitCommitter(settings.git).commit(
                [artifact.path], settings.git.animation_message
            )
    except ProfileActivityError as exc:
        _display_error(exc)
        raise typer.Exit(code=1) from exc

    if artifact.exists:
        console.print(
            f"[green]Animation saved:[/green] {artifact.path} ({artifact.size} bytes)"
        )
        if committed:
            console.print("[green]Animation committed.[/green]")
    else:
        console.print(
            f"[yellow]Generator produced no file at {artifact.path}; nothing to persist.[/yellow]"
        )
    write_step_outputs(
        {
            "generated": "true" if artifact.exists else "false",
            "artifact": str(artifact.path),
        }
    )


@app.command()
def doctor(
    config: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to config YAML file."),
    ] = None,
    token: Annotated[
        str | None,
        typer.Option(
            "--token",
            envvar=["GH_TOKEN", "GITHUB_TOKEN"],
            help="GitHub access token.",
            show_default=False,
        ),
    ] = None,
    no_api_probes: Annotated[
        bool,
        typer.Option(
            "--no-api-probes",
            help="Skip the GitHub API probe call (offline mode).",
        ),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", help="Suppress table output, use exit code only."),
    ] = False,
) -> None:
    """Run self-diagnostics for configuration, token, and README."""
    overrides: dict[str, Any] = {}
    _set_override(overrides, "github", "token", token)
    settings = _load_settings(config, **overrides)
    report = run_doctor(
        settings=settings,
        config_path=config,
        check_api_probes=not no_api_probes,
    )

    if not quiet:
        table = Table(title="Profile Activity Doctor", show_lines=True)
        table.add_column("Check", style="cyan")
        table.add_column("Status", justify="center")
        table.add_column("Message")

        status_style = {
            CheckStatus.OK: "[green]OK[/green]",
            CheckStatus.WARN: "[yellow]WARN[/yellow]",
            CheckStatus.FAIL: "[red]FAIL[/red]",
        }

        for check in report.checks:
            table.add_row(
                check.name,
                status_style[check.status],
                check.message,
            )
        console.print(table)

        for check in report.checks:
            if check.details:
                details = ", ".join(f"{k}={v}" for k, v in check.details.items())
                console.print(f"[dim]{check.name}: {details}[/dim]")

    raise typer.Exit(code=report.exit_code)


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()

"""Configuration with 4-layer resolution: defaults -> YAML -> env -> CLI.

Uses pydantic-settings with YamlConfigSettingsSource for layered configuration.
Supports ``.env`` file loading, ``PROFILE_ACTIVITY_`` prefixed env vars, and
nested delimiter ``__`` for overriding sub-model fields.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar, Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

DEFAULT_MARKER = "- 🔭 I’m currently working on"


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class GitHubSettings(BaseModel):
    """GitHub REST API access configuration."""

    token: SecretStr | None = None
    api_url: str = "https://api.github.com"
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds.")
    per_page: int = Field(default=100, ge=1, le=100)
    max_concurrency: int = Field(
        default=5, gt=0, description="Concurrent repositories scored at once."
    )
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_min: float = Field(default=1.0, ge=0.0)
    backoff_max: float = Field(default=30.0, ge=0.0)

    @field_validator("token", mode="before")
    @classmethod
    def _blank_token_is_missing(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class RankingSettings(BaseModel):
    """Activity window and result size."""

    account: str | None = None
    window_days: int = Field(default=30, gt=0)
    top_n: int = Field(default=3, gt=0)
    ignore: list[str] = Field(
        default_factory=list,
        description="Repository full names to exclude (list or comma-delimited string).",
    )

    @field_validator("ignore", mode="before")
    @classmethod
    def _split_comma_delimited(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value


class ReadmeSettings(BaseModel):
    """Target document and rendering configuration."""

    path: Path = Path("README.md")
    marker: str = DEFAULT_MARKER
    overrides_path: Path = Path(".github/config/replacement_links.json")
    footer_url: str | None = Field(
        default=None,
        description="Link appended to the fragment; derived from the account when unset.",
    )

    @field_validator("marker")
    @classmethod
    def _marker_not_blank(cls, value: str) -> str:
        if not value.strip():
            msg = "marker must not be blank"
            raise ValueError(msg)
        return value


class AnimationSettings(BaseModel):
    """External animation generator invocation."""

    command: list[str] = Field(
        default_factory=list,
        description="Generator argv; '{account}' and '{output}' are substituted.",
    )
    output: Path = Path("dist/snake.svg")
    timeout: int = Field(default=600, gt=0)


class GitSettings(BaseModel):
    """Identity and messages used when committing published files."""

    user_name: str = "github-actions[bot]"
    user_email: str = "github-actions[bot]@users.noreply.github.com"
    readme_message: str = "Update README with new top repositories"
    animation_message: str = "Generated snake animation"
    push: bool = True


class LoggingSettings(BaseModel):
    """Logging / observability configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["console", "json"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Main Settings (4-layer resolution)
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Top-level application settings.

    Resolution order (last wins):
        1. Field defaults (defined above)
        2. YAML config file (``profile-activity.yaml`` or ``--config`` path)
        3. Environment variables (prefixed ``PROFILE_ACTIVITY_``)
        4. CLI overrides (applied programmatically after loading)
    """

    model_config = SettingsConfigDict(
        env_prefix="PROFILE_ACTIVITY_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="profile-activity.yaml",
        yaml_file_encoding="utf-8",
        extra="ignore",
    )

    _config_path_override: ClassVar[Path | None] = None

    github: GitHubSettings = Field(default_factory=GitHubSettings)
    ranking: RankingSettings = Field(default_factory=RankingSettings)
    readme: ReadmeSettings = Field(default_factory=ReadmeSettings)
    animation: AnimationSettings = Field(default_factory=AnimationSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings source priority.

        Resolution order (first = highest priority):
            init_settings (CLI) > env_settings > dotenv (.env) > yaml > defaults
        """
        yaml_file = cls._config_path_override or settings_cls.model_config.get(
            "yaml_file", "profile-activity.yaml"
        )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file),
        )

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> Settings:
        """Load settings with optional config path and CLI overrides.

        Args:
            config_path: Optional path to a YAML config file.
            **overrides: Key-value CLI overrides applied at highest priority.

        Returns:
            Fully-resolved Settings instance.

        Raises:
            ValidationError: If any setting value fails validation.
        """
        cls._config_path_override = config_path
        try:
            return cls(**overrides)
        finally:
            cls._config_path_override = None

    def footer_url(self, account: str) -> str:
        """Link back to the workflow that keeps the README fragment current."""
        if self.readme.footer_url:
            return self.readme.footer_url
        return (
            f"https://github.com/{account}/{account}"
            "/blob/main/.github/workflows/update-readme.yml"
        )


def format_validation_error(exc: ValidationError) -> str:
    """Format a Pydantic ValidationError into a user-friendly message.

    Args:
        exc: The validation error to format.

    Returns:
        A multi-line string with each error on its own line.
    """
    lines: list[str] = []
    for error in exc.errors():
        loc = " -> ".join(str(part) for part in error["loc"])
        msg = error["msg"]
        raw_input = error.get("input")
        if raw_input is not None:
            lines.append(f"  {loc}: {msg} (got {raw_input!r})")
        else:
            lines.append(f"  {loc}: {msg}")
    return "Configuration error:\n" + "\n".join(lines)

"""Unit tests for profile_activity.animation - external generator wrapper."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from profile_activity.animation import (
    ArtifactRef,
    CommandAnimationGenerator,
    inspect_artifact,
)
from profile_activity.exceptions import AnimationError, ConfigError

SNK = ["snk", "--user", "{account}", "--output", "{output}"]


def _writes_output(content: str = "<svg/>") -> Any:
    """Fake ``subprocess.run`` that leaves a file at the ``--output`` argument."""

    def _run(command: list[str], **_: Any) -> subprocess.CompletedProcess[str]:
        Path(command[command.index("--output") + 1]).write_text(content, encoding="utf-8")
        return subprocess.CompletedProcess(args=command, returncode=0, stdout="", stderr="")

    return _run


class TestInspectArtifact:
    def test_existing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "snake.svg"
        path.write_text("<svg/>", encoding="utf-8")
        assert inspect_artifact(path) == ArtifactRef(path=path, exists=True, size=6)

    def test_missing_file(self, tmp_path: Path) -> None:
        assert inspect_artifact(tmp_path / "nope.svg").exists is False


class TestCommandAnimationGenerator:
    """Command construction and failure mapping."""

    def test_empty_command_is_config_error(self) -> None:
        with pytest.raises(ConfigError, match="animation.command"):
            CommandAnimationGenerator([])

    def test_placeholders_substituted(self) -> None:
        generator = CommandAnimationGenerator(SNK)
        assert generator.build_command("octo", Path("dist/snake.svg")) == [
            "snk",
            "--user",
            "octo",
            "--output",
            "dist/snake.svg",
        ]

    def test_unknown_placeholder(self) -> None:
        generator = CommandAnimationGenerator(["snk", "{colour}"])
        with pytest.raises(ConfigError, match="placeholder"):
            generator.build_command("octo", Path("out.svg"))

    @patch("profile_activity.animation.subprocess.run")
    def test_generate_reports_artifact(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = _writes_output()
        output = tmp_path / "dist" / "snake.svg"

        artifact = CommandAnimationGenerator(SNK, timeout=5).generate("octo", output)

        assert artifact.exists is True
        assert artifact.path == output
        assert artifact.size == len("<svg/>")
        assert mock_run.call_args.kwargs["timeout"] == 5
        assert mock_run.call_args.args[0][2] == "octo"

    @patch("profile_activity.animation.subprocess.run")
    def test_no_output_is_not_an_error(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
        artifact = CommandAnimationGenerator(SNK).generate("octo", tmp_path / "s.svg")
        assert artifact.exists is False

    @pytest.mark.parametrize(
        ("error", "match"),
        [
            (FileNotFoundError("snk"), "not found"),
            (subprocess.TimeoutExpired(["snk"], 600), "timed out"),
            (
                subprocess.CalledProcessError(2, ["snk"], stderr="user not found"),
                "status 2: user not found",
            ),
        ],
    )
    def test_failures_raise_animation_error(
        self, tmp_path: Path, error: Exception, match: str
    ) -> None:
        with patch("profile_activity.animation.subprocess.run", side_effect=error):
            with pytest.raises(AnimationError, match=match):
                CommandAnimationGenerator(SNK).generate("octo", tmp_path / "s.svg")

"""Animation job: run an external generator and report its artifact."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

import structlog

from profile_activity.exceptions import AnimationError, ConfigError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ArtifactRef:
    """File produced by a generator, if any."""

    path: Path
    exists: bool
    size: int = 0


class AnimationGenerator(Protocol):
    def generate(self, account: str, output_path: Path) -> ArtifactRef: ...


def inspect_artifact(path: Path) -> ArtifactRef:
    if path.is_file():
        return ArtifactRef(path=path, exists=True, size=path.stat().st_size)
    return ArtifactRef(path=path, exists=False)


class CommandAnimationGenerator:
    """Invoke a configured command line as the animation generator.

    Each argument may contain ``{account}`` and ``{output}`` placeholders,
    substituted before the command runs.
    """

    def __init__(self, command: Sequence[str], timeout: int = 600) -> None:
        if not command:
            raise ConfigError(
                "No animation command configured (set animation.command)"
            )
        self._command = list(command)
        self._timeout = timeout

    def build_command(self, account: str, output_path: Path) -> list[str]:
        try:
            return [
                part.format(account=account, output=str(output_path))
                for part in self._command
            ]
        except (KeyError, IndexError, ValueError) as exc:
            raise ConfigError(
                f"Unknown placeholder in animation command: {exc}"
            ) from exc

    def generate(self, account: str, output_path: Path) -> ArtifactRef:
        """Run the generator and report the file it left at ``output_path``.

        Raises:
            AnimationError: If the command cannot be started, times out, or
                exits with a non-zero status.
        """
        command = self.build_command(account, output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("animation_started", command=command[0], output=str(output_path))

        try:
            subprocess.run(
                command,
                check=True,
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as exc:
            raise AnimationError(f"Animation command not found: {command[0]}") from exc
        except subprocess.TimeoutExpired as exc:
            raise AnimationError(
                f"Animation command timed out after {self._timeout}s"
            ) from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            raise AnimationError(
                f"Animation command exited with status {exc.returncode}: {detail}"
            ) from exc

        artifact = inspect_artifact(output_path)
        if artifact.exists:
            logger.info("animation_generated", output=str(output_path), size=artifact.size)
        else:
            logger.warning("animation_missing_output", output=str(output_path))
        return artifact

"""Idempotent publishing of the rendered fragment.

The target document is parsed into the text before the marked line, the
marked line itself, and the text after it. Only the marked line is ever
replaced, and the file is only written when that line actually changes.
Committing and pushing are left to a separate collaborator
(``GitCommitter``) driven by the ``changed`` signal.
"""

from __future__ import annotations

import os
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from profile_activity.exceptions import ConfigError, GitError, MarkerError

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from profile_activity.config import GitSettings

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_LINE_ENDINGS = ("\r\n", "\n", "\r")
_LINE_BREAK_RE = re.compile(r"(\r\n|\r|\n)")


def _split_lines(text: str) -> list[str]:
    """Split on CR, LF and CRLF only, keeping the endings.

    ``str.splitlines`` also breaks on form feeds and Unicode line
    separators, which a README line may legitimately contain.
    """
    parts = _LINE_BREAK_RE.split(text)
    lines = ["".join(parts[index : index + 2]) for index in range(0, len(parts), 2)]
    if lines and not lines[-1]:
        lines.pop()
    return lines


def _split_line_ending(line: str) -> tuple[str, str]:
    for ending in _LINE_ENDINGS:
        if line.endswith(ending):
            return line[: -len(ending)], ending
    return line, ""


@dataclass(frozen=True, slots=True)
class MarkedDocument:
    """A document split around its single marked line."""

    head: str
    line: str
    line_ending: str
    tail: str

    @classmethod
    def parse(cls, text: str, marker: str) -> MarkedDocument:
        """Split ``text`` around the one line that starts with ``marker``.

        Raises:
            MarkerError: If no line, or more than one line, starts with
                the marker.
        """
        lines = _split_lines(text)
        matches = [
            index
            for index, line in enumerate(lines)
            if _split_line_ending(line)[0].startswith(marker)
        ]
        if len(matches) != 1:
            raise MarkerError(marker, len(matches))

        index = matches[0]
        content, ending = _split_line_ending(lines[index])
        return cls(
            head="".join(lines[:index]),
            line=content,
            line_ending=ending,
            tail="".join(lines[index + 1 :]),
        )

    def render(self) -> str:
        return f"{self.head}{self.line}{self.line_ending}{self.tail}"

    def replace(self, line: str) -> str:
        """Serialize the document with the marked line swapped for ``line``."""
        return f"{self.head}{line}{self.line_ending}{self.tail}"


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of comparing and (maybe) writing the fragment."""

    path: Path
    changed: bool
    previous: str
    current: str
    written: bool


def read_document(path: Path) -> str:
    """Read a document without translating its line endings."""
    try:
        with path.open(encoding="utf-8", newline="") as handle:
            return handle.read()
    except FileNotFoundError as exc:
        raise ConfigError(f"Document not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Cannot read document {path}: {exc}") from exc


def write_document(path: Path, text: str) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        handle.write(text)


def publish_fragment(
    path: Path,
    fragment: str,
    marker: str,
    *,
    dry_run: bool = False,
) -> PublishResult:
    """Replace the marked line of ``path`` with ``fragment`` if it differs.

    Args:
        path: Document holding the marked line.
        fragment: Newly rendered line, without a line ending.
        marker: Leading text identifying the marked line.
        dry_run: Compare only; never write the file.

    Returns:
        A ``PublishResult``; ``changed`` is ``False`` when the current line
        is byte-identical to ``fragment``, in which case the file is not
        touched.

    Raises:
        ConfigError: If the document is missing.
        MarkerError: If the marker does not match exactly one line.
        ValueError: If ``fragment`` spans more than one line.
    """
    if fragment.splitlines() != [fragment]:
        msg = "Fragment must be a single line"
        raise ValueError(msg)

    document = MarkedDocument.parse(read_document(path), marker)

    if document.line == fragment:
        logger.info("fragment_unchanged", path=str(path))
        return PublishResult(
            path=path,
            changed=False,
            previous=document.line,
            current=fragment,
            written=False,
        )

    if not dry_run:
        write_document(path, document.replace(fragment))
    logger.info("fragment_changed", path=str(path), written=not dry_run)
    return PublishResult(
        path=path,
        changed=True,
        previous=document.line,
        current=fragment,
        written=not dry_run,
    )


def write_step_outputs(
    outputs: Mapping[str, str],
    path: str | Path | None = None,
) -> bool:
    """Append ``key=value`` lines to the CI step output file.

    Uses ``$GITHUB_OUTPUT`` when ``path`` is not given. Returns ``False``
    when no output file is available.
    """
    target = path or os.environ.get("GITHUB_OUTPUT")
    if not target:
        return False
    with Path(target).open("a", encoding="utf-8") as handle:
        for key, value in outputs.items():
            handle.write(f"{key}={value}\n")
    logger.debug("step_outputs_written", path=str(target), keys=sorted(outputs))
    return True


class GitCommitter:
    """Stage, commit and push files with the configured bot identity."""

    def __init__(self, settings: GitSettings, cwd: Path | None = None) -> None:
        self._settings = settings
        self._cwd = cwd

    def _git(self, *args: str) -> subprocess.CompletedProcess[str]:
        command = ["git", *args]
        try:
            return subprocess.run(
                command,
                cwd=self._cwd,
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise GitError("git executable not found") from exc
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or exc.stdout or "").strip()
            raise GitError(f"{' '.join(command)} failed: {detail}") from exc

    def commit(self, paths: Sequence[Path], message: str) -> bool:
        """Commit ``paths`` and push unless pushing is disabled.

        Returns:
            ``False`` when the paths had nothing staged to commit.
        """
        self._git("config", "user.name", self._settings.user_name)
        self._git("config", "user.email", self._settings.user_email)
        self._git("add", "--", *(str(path) for path in paths))

        staged = subprocess.run(
            ["git", "diff", "--cached", "--quiet"],
            cwd=self._cwd,
            check=False,
        )
        if staged.returncode == 0:
            logger.info("git_nothing_to_commit", paths=[str(p) for p in paths])
            return False

        self._git("commit", "-m", message)
        if self._settings.push:
            self._git("push")
        logger.info(
            "git_committed",
            paths=[str(p) for p in paths],
            pushed=self._settings.push,
        )
        return True

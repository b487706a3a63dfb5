"""Name resolution and rendering of the README fragment.

The fragment is built from a typed sequence of ``ResolvedLink`` pairs by
a pure formatting function, so identical input always renders to the
identical string.
"""

from __future__ import annotations

import html
from typing import TYPE_CHECKING

import structlog
from pydantic import TypeAdapter, ValidationError

from profile_activity.exceptions import ConfigError
from profile_activity.models import ReplacementEntry, ResolvedLink

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from profile_activity.models import Repository

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_OVERRIDES_ADAPTER: TypeAdapter[dict[str, ReplacementEntry]] = TypeAdapter(
    dict[str, ReplacementEntry]
)

# Characters str.splitlines() treats as line boundaries
_LINE_BREAKS = str.maketrans(dict.fromkeys("\r\n\v\f\x1c\x1d\x1e\x85\u2028\u2029", " "))

FOOTER_TEMPLATE = (
    "(Updated automatically, checkout the code "
    '<a href="{url}" target="_blank"><b>here</b></a>)'
)


# ---------------------------------------------------------------------------
# Overrides
# ---------------------------------------------------------------------------


def parse_overrides(raw: str | bytes) -> dict[str, ReplacementEntry]:
    """Validate override JSON into a short-name -> entry mapping.

    Raises:
        ConfigError: If the data is not a JSON object of
            ``{"display_name": ..., "link": ...}`` entries.
    """
    try:
        return _OVERRIDES_ADAPTER.validate_json(raw)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigError(f"Invalid override mapping: {problems}") from exc


def load_overrides(path: Path) -> dict[str, ReplacementEntry]:
    """Load the override mapping from ``path``.

    A missing file means no overrides.

    Raises:
        ConfigError: If the file exists but is malformed.
    """
    if not path.exists():
        logger.info("overrides_missing", path=str(path))
        return {}
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise ConfigError(f"Cannot read overrides file {path}: {exc}") from exc
    overrides = parse_overrides(raw)
    logger.debug("overrides_loaded", path=str(path), count=len(overrides))
    return overrides


# ---------------------------------------------------------------------------
# Resolution and rendering
# ---------------------------------------------------------------------------


def resolve_link(
    repository: Repository,
    overrides: Mapping[str, ReplacementEntry],
) -> ResolvedLink:
    """Map a repository to its display name and link.

    Overrides are keyed by short name; anything without an override links
    to the repository on GitHub under its short name.
    """
    entry = overrides.get(repository.name)
    if entry is not None:
        return ResolvedLink(display_name=entry.display_name, link=entry.link)
    return ResolvedLink(display_name=repository.name, link=repository.url)


def resolve_links(
    repositories: Sequence[Repository],
    overrides: Mapping[str, ReplacementEntry],
) -> list[ResolvedLink]:
    return [resolve_link(repository, overrides) for repository in repositories]


def render_link(link: ResolvedLink) -> str:
    """Render one anchor; line breaks in either field become spaces."""
    href = html.escape(link.link.translate(_LINE_BREAKS), quote=True)
    name = html.escape(link.display_name.translate(_LINE_BREAKS), quote=False)
    return f'<a href="{href}" target="_blank"><b>{name}</b></a>'


def render_fragment(
    links: Sequence[ResolvedLink],
    *,
    prefix: str,
    footer_url: str,
) -> str:
    """Render the single README line listing ``links`` in order.

    Args:
        links: Resolved links in ranked order.
        prefix: Leading text of the line, which starts with the marker.
        footer_url: Target of the trailing "here" link.

    Raises:
        ValueError: If ``links`` is empty.
    """
    if not links:
        msg = "Cannot render a fragment without links"
        raise ValueError(msg)
    joined = ", ".join(render_link(link) for link in links)
    url = html.escape(footer_url.translate(_LINE_BREAKS), quote=True)
    footer = FOOTER_TEMPLATE.format(url=url)
    return f"{prefix}{joined} {footer}"

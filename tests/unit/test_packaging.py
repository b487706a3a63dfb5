"""Packaging metadata: entrypoint, version, declared stack and wheel layout."""

from __future__ import annotations

import importlib.metadata
import re
import tomllib
from pathlib import Path
from typing import Any

import pytest

from profile_activity import __version__

ROOT = Path(__file__).resolve().parents[2]

# Import name -> distribution name for every third-party import under src/
RUNTIME_IMPORTS = {
    "httpx": "httpx",
    "pydantic": "pydantic",
    "pydantic_settings": "pydantic-settings",
    "rich": "rich",
    "structlog": "structlog",
    "tenacity": "tenacity",
    "typer": "typer",
    "yaml": "pyyaml",
}


@pytest.fixture(scope="module")
def pyproject() -> dict[str, Any]:
    with (ROOT / "pyproject.toml").open("rb") as f:
        return tomllib.load(f)


def _names(requirements: list[str]) -> set[str]:
    return {re.split(r"[<>=!~\[; ]", req, maxsplit=1)[0].lower() for req in requirements}


def test_console_entrypoint_resolves(pyproject: dict[str, Any]) -> None:
    from profile_activity.cli import main

    target = pyproject["project"]["scripts"]["profile-activity"]
    assert target == "profile_activity.cli:main"
    assert callable(main)


def test_module_version_matches_pyproject(pyproject: dict[str, Any]) -> None:
    assert __version__ == pyproject["project"]["version"]


def test_installed_version_matches_when_installed(pyproject: dict[str, Any]) -> None:
    expected = pyproject["project"]["version"]
    try:
        installed_version = importlib.metadata.version("profile-activity")
    except importlib.metadata.PackageNotFoundError:
        installed_version = expected
    assert installed_version == expected


def test_every_imported_library_is_declared(pyproject: dict[str, Any]) -> None:
    declared = _names(pyproject["project"]["dependencies"])
    sources = "\n".join(
        path.read_text(encoding="utf-8") for path in (ROOT / "src").rglob("*.py")
    )
    for module, distribution in RUNTIME_IMPORTS.items():
        if re.search(rf"^\s*(from|import) {module}\b", sources, re.MULTILINE):
            assert distribution in declared, module


def test_test_extra_carries_the_test_stack(pyproject: dict[str, Any]) -> None:
    extra = _names(pyproject["project"]["optional-dependencies"]["test"])
    assert {"pytest", "pytest-asyncio", "respx"} <= extra


def test_wheel_ships_the_src_package(pyproject: dict[str, Any]) -> None:
    packages = pyproject["tool"]["hatch"]["build"]["targets"]["wheel"]["packages"]
    assert packages == ["src/profile_activity"]
    assert (ROOT / packages[0] / "__init__.py").is_file()


def test_integration_marker_is_registered(pyproject: dict[str, Any]) -> None:
    options = pyproject["tool"]["pytest"]["ini_options"]
    assert options["asyncio_mode"] == "strict"
    assert any(marker.startswith("integration:") for marker in options["markers"])

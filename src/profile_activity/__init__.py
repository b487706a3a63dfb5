"""profile-activity: Rank recently active repositories into a profile README."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("profile-activity")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]

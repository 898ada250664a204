"""Gemfile manipulation.

Gem declarations are appended in exactly the format ``rails generate`` uses
for its own ``gem`` action (double-quoted strings, ``key: value`` options), so
a jumpstarted Gemfile reads as though it had been written by hand.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from pathlib import Path

from packaging.version import InvalidVersion, Version
from pydantic import BaseModel, Field

from .actions import append_with_newline, read_text

GEMFILE = "Gemfile"
GEMFILE_LOCK = "Gemfile.lock"

_GEM_LINE = re.compile(r"""^\s*gem\s+["']([^"']+)["']""", re.MULTILINE)
_LOCKED_RAILS = re.compile(r"^    rails \(([^)]+)\)$", re.MULTILINE)


class GemDependency(BaseModel):
    """One ``gem`` line in the Gemfile."""

    name: str = Field(..., min_length=1)
    versions: list[str] = Field(default_factory=list, description="Version constraints, e.g. ['~> 4.7']")
    github: str | None = None
    branch: str | None = None
    require: bool | None = None

    def render(self) -> str:
        """Return the declaration, e.g. ``gem "devise", "~> 4.7", ">= 4.7.3"``."""
        parts = [_quote(self.name)]
        parts.extend(_quote(v) for v in self.versions)
        if self.github is not None:
            parts.append(f"github: {_quote(self.github)}")
        if self.branch is not None:
            parts.append(f"branch: {_quote(self.branch)}")
        if self.require is not None:
            parts.append(f"require: {str(self.require).lower()}")
        return "gem " + ", ".join(parts)

    def describe(self) -> str:
        """Short form for status output: ``devise (~> 4.7, >= 4.7.3)``."""
        if self.github:
            return f"{self.name} (github: {self.github})"
        if self.versions:
            return f"{self.name} ({', '.join(self.versions)})"
        return self.name


class Gemfile:
    """Append-only view of a project's Gemfile."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def add(self, dependency: GemDependency, indentation: str = "") -> None:
        """Append *dependency* after the existing entries."""
        append_with_newline(self.path, indentation + dependency.render())

    def add_group(self, groups: Sequence[str], dependencies: Sequence[GemDependency]) -> None:
        """Append a ``group :a, :b do ... end`` block holding *dependencies*."""
        header = ", ".join(f":{g}" for g in groups)
        append_with_newline(self.path, f"\ngroup {header} do")
        for dependency in dependencies:
            self.add(dependency, indentation="  ")
        append_with_newline(self.path, "end")

    def declared_gems(self) -> list[str]:
        """Names of every declared gem, in file order (duplicates included)."""
        return _GEM_LINE.findall(read_text(self.path))


def detect_rails_version(project_root: str | Path) -> Version | None:
    """Read the locked Rails version from ``Gemfile.lock``.

    Returns ``None`` when the lock file is missing or does not pin Rails.
    """
    lock_path = Path(project_root) / GEMFILE_LOCK
    if not lock_path.is_file():
        return None
    match = _LOCKED_RAILS.search(lock_path.read_text(encoding="utf-8"))
    if match is None:
        return None
    try:
        return Version(match.group(1))
    except InvalidVersion:
        return None


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'

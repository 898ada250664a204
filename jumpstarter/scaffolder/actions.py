"""File actions applied to the generated project.

These are the primitives every recipe step is built from: literal-anchor
insertion, substitution, appending, copying and removal, plus the
"newest file matching a glob" lookup used to find freshly generated
migrations.

Anchors are matched as literal text, never parsed.  When an anchor is
missing the action raises :class:`AnchorNotFound` *before* writing, so the
target file is left exactly as it was.

None of these actions are idempotent.  Running an insertion twice inserts
the content twice.
"""

from __future__ import annotations

import re
import shutil
import textwrap
from pathlib import Path

from .errors import AnchorNotFound, MissingArtifact

ROUTES_FILE = "config/routes.rb"
ROUTES_DRAW = "Rails.application.routes.draw do"
ROUTES_ANCHOR = ROUTES_DRAW + "\n"
APPLICATION_FILE = "config/application.rb"
APPLICATION_ANCHOR = "class Application < Rails::Application\n"
ENVIRONMENT_ANCHOR = "Rails.application.configure do\n"


# ---------------------------------------------------------------------------
# Reading / writing
# ---------------------------------------------------------------------------


def read_text(path: Path) -> str:
    """Return the contents of *path*, raising ``MissingArtifact`` if absent."""
    if not path.is_file():
        raise MissingArtifact("File not found", path)
    return path.read_text(encoding="utf-8")


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# Insertion and substitution
# ---------------------------------------------------------------------------


def insert_before(path: Path, anchor: str, content: str) -> None:
    """Insert *content* immediately before the first occurrence of *anchor*."""
    _insert(path, anchor, content, after=False)


def insert_after(path: Path, anchor: str, content: str) -> None:
    """Insert *content* immediately after the first occurrence of *anchor*."""
    _insert(path, anchor, content, after=True)


def _insert(path: Path, anchor: str, content: str, *, after: bool) -> None:
    text = read_text(path)
    index = text.find(anchor)
    if index == -1:
        raise AnchorNotFound(path, anchor)
    if after:
        index += len(anchor)
    _write_text(path, text[:index] + content + text[index:])


def substitute(path: Path, pattern: str | re.Pattern[str], replacement: str) -> int:
    """Replace every match of *pattern* in *path* with *replacement*.

    A ``str`` pattern is matched literally; a compiled pattern is matched as
    a regular expression.  The replacement is always inserted verbatim
    (backslashes and group references are not expanded).

    Returns:
        The number of replacements made.

    Raises:
        AnchorNotFound: If the pattern does not occur in the file.
    """
    text = read_text(path)
    if isinstance(pattern, re.Pattern):
        new_text, count = pattern.subn(lambda _match: replacement, text)
        label = pattern.pattern
    else:
        count = text.count(pattern)
        new_text = text.replace(pattern, replacement)
        label = pattern
    if count == 0:
        raise AnchorNotFound(path, label)
    _write_text(path, new_text)
    return count


def append_with_newline(path: Path, text: str) -> None:
    """Append *text* as a new line, making sure the file ends with a newline first."""
    current = read_text(path)
    if current and not current.endswith("\n"):
        current += "\n"
    _write_text(path, f"{current}{text}\n")


# ---------------------------------------------------------------------------
# Copying and removal
# ---------------------------------------------------------------------------


def copy_file(source: Path, destination: Path, *, force: bool = True) -> str:
    """Copy *source* to *destination*.

    Returns:
        The status verb for reporting: ``"create"``, ``"force"`` (an existing
        file was overwritten), ``"identical"`` or ``"skip"`` (destination
        exists and *force* is false).
    """
    if not source.is_file():
        raise MissingArtifact("Template file not found", source)
    status = "create"
    if destination.exists():
        if destination.read_bytes() == source.read_bytes():
            return "identical"
        if not force:
            return "skip"
        status = "force"
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, destination)
    return status


def write_file(destination: Path, content: str, *, force: bool = True) -> str:
    """Write rendered *content* to *destination*; status verbs as :func:`copy_file`."""
    status = "create"
    if destination.exists():
        if destination.read_text(encoding="utf-8") == content:
            return "identical"
        if not force:
            return "skip"
        status = "force"
    _write_text(destination, content)
    return status


def remove_file(path: Path) -> bool:
    """Remove *path* if it exists.  Returns whether anything was removed."""
    if path.is_dir():
        shutil.rmtree(path)
        return True
    if path.exists():
        path.unlink()
        return True
    return False


# ---------------------------------------------------------------------------
# Generated-file lookup
# ---------------------------------------------------------------------------


def newest_file(root: Path, pattern: str) -> Path:
    """Return the most recently modified file under *root* matching *pattern*.

    This is how a just-generated migration is located: it assumes the
    previous step created exactly one new matching file.  A concurrent
    writer, or an earlier run that left a newer file behind, makes it pick
    the wrong one.

    Raises:
        MissingArtifact: If nothing matches.
    """
    candidates = [p for p in root.glob(pattern) if p.is_file()]
    if not candidates:
        raise MissingArtifact(f"No file matches {pattern!r} under {root}")
    return max(candidates, key=lambda p: p.stat().st_mtime)


def first_file(root: Path, pattern: str) -> Path:
    """Return the first file (in sorted order) under *root* matching *pattern*."""
    candidates = sorted(p for p in root.glob(pattern) if p.is_file())
    if not candidates:
        raise MissingArtifact(f"No file matches {pattern!r} under {root}")
    return candidates[0]


# ---------------------------------------------------------------------------
# Rails configuration helpers
# ---------------------------------------------------------------------------


def optimize_indentation(code: str, amount: int = 0) -> str:
    """Re-indent a code fragment by *amount* spaces and end it with one newline."""
    dedented = textwrap.dedent(code)
    return textwrap.indent(dedented, " " * amount).rstrip("\n") + "\n"


def add_route(root: Path, routing_code: str) -> None:
    """Insert a route at the top of the routes block in ``config/routes.rb``."""
    insert_after(root / ROUTES_FILE, ROUTES_ANCHOR, optimize_indentation(routing_code, 2))


def add_environment(root: Path, data: str, env: str | None = None) -> None:
    """Add a configuration line to the application or to one environment file.

    Without *env* the line goes into ``config/application.rb`` inside the
    ``Application`` class; with *env* it goes into
    ``config/environments/<env>.rb`` inside the ``configure`` block.
    """
    if env is None:
        insert_after(root / APPLICATION_FILE, APPLICATION_ANCHOR, optimize_indentation(data, 4))
    else:
        insert_after(
            root / "config" / "environments" / f"{env}.rb",
            ENVIRONMENT_ANCHOR,
            optimize_indentation(data, 2),
        )

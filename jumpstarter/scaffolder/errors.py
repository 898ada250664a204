"""Exceptions raised while scaffolding.

Every failure that a step can report derives from :class:`ScaffoldError` so
the orchestrator can tell domain failures apart from programming errors.
"""

from __future__ import annotations

import shlex
from collections.abc import Sequence
from pathlib import Path


class ScaffoldError(Exception):
    """Base class for all scaffolding failures."""


class ExternalCommandFailure(ScaffoldError):
    """An external command exited with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "", stdout: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        detail = (stderr or stdout).strip()
        message = f"Command failed (exit {returncode}): {shlex.join(self.argv)}"
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)


class AnchorNotFound(ScaffoldError):
    """The anchor text (or pattern) is absent from the target file."""

    def __init__(self, path: str | Path, anchor: str) -> None:
        self.path = Path(path)
        self.anchor = anchor
        super().__init__(f"Anchor {anchor!r} not found in {self.path}")


class MissingArtifact(ScaffoldError):
    """A file the recipe expects to exist could not be found."""

    def __init__(self, description: str, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else None
        message = description if path is None else f"{description}: {path}"
        super().__init__(message)


class CommitFailure(ScaffoldError):
    """The initial git commit could not be created."""

"""Template source resolution.

Template files can come from three places:

* the set bundled with this package (the default),
* a local directory, e.g. a working copy of a customised template set,
* a remote git repository, cloned into a temporary directory that is removed
  when the run ends.

A URL pointing at a raw ``template.rb`` inside the upstream repository, such
as ``https://raw.githubusercontent.com/whatapalaver/jumpstarter/<branch>/template.rb``,
is treated as "clone the upstream repository and check out ``<branch>``".
"""

from __future__ import annotations

import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .errors import MissingArtifact
from .templates import BUNDLED_TEMPLATE_DIR

if TYPE_CHECKING:
    from .context import ScaffoldContext

DEFAULT_REPOSITORY = "https://github.com/whatapalaver/jumpstarter.git"
TEMPDIR_PREFIX = "jumpstarter-"

_REMOTE = re.compile(r"\A(?:https?://|git@|ssh://)")
_BRANCH_IN_TEMPLATE_URL = re.compile(r"jumpstarter/(.+)/template\.rb")


@dataclass(frozen=True)
class TemplateSource:
    """Where template files are read from."""

    kind: str  # "bundled", "local" or "remote"
    location: str
    branch: str | None = None

    @property
    def is_remote(self) -> bool:
        return self.kind == "remote"


def parse_template_source(source: str | None, branch: str | None = None) -> TemplateSource:
    """Classify a ``--template-source`` value.

    Args:
        source: ``None`` for the bundled templates, a directory path, a git
            URL, or the URL of a raw ``template.rb``.
        branch: Explicit branch; wins over a branch embedded in the URL.
    """
    if not source:
        return TemplateSource("bundled", str(BUNDLED_TEMPLATE_DIR))

    if _REMOTE.match(source):
        if source.endswith(".rb"):
            match = _BRANCH_IN_TEMPLATE_URL.search(source)
            embedded = match.group(1) if match else None
            return TemplateSource("remote", DEFAULT_REPOSITORY, branch or embedded)
        return TemplateSource("remote", source, branch)

    return TemplateSource("local", source, branch)


async def materialize(source: TemplateSource, ctx: "ScaffoldContext") -> Path:
    """Make *source* available on disk and return its directory.

    Remote sources are cloned with ``git clone --quiet`` into a fresh
    ``jumpstarter-*`` temporary directory whose removal is registered on the
    context's cleanup stack.
    """
    if not source.is_remote:
        path = Path(source.location).expanduser().resolve()
        if not path.is_dir():
            raise MissingArtifact("Template source directory not found", path)
        return path

    tempdir = Path(tempfile.mkdtemp(prefix=TEMPDIR_PREFIX))
    ctx.cleanup.callback(shutil.rmtree, tempdir, ignore_errors=True)

    await ctx.git("clone", "--quiet", source.location, str(tempdir))
    if source.branch:
        await ctx.git("checkout", source.branch, cwd=tempdir)
    return tempdir

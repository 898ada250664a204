"""Jinja2 template rendering for project scaffolding.

Provides the TemplateRenderer class which resolves template files against an
ordered list of source directories (the bundled ``templates/`` directory, a
local checkout, or a freshly cloned remote repository) and renders them with
project-specific context data.  Files ending in ``.j2`` are rendered; every
other file is copied verbatim.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from .actions import copy_file, write_file
from .errors import MissingArtifact

# ---------------------------------------------------------------------------
# Template directory discovery
# ---------------------------------------------------------------------------

BUNDLED_TEMPLATE_DIR = Path(__file__).parent / "templates"

TEMPLATE_SUFFIX = ".j2"


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders and copies template files into the project tree.

    Lookups walk *source_paths* in order and use the first directory that
    contains the requested file, so a local or cloned source can shadow
    individual bundled files.
    """

    def __init__(self, source_paths: Sequence[str | Path] | None = None) -> None:
        if not source_paths:
            source_paths = [BUNDLED_TEMPLATE_DIR]
        self.source_paths = [Path(p) for p in source_paths]
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in self.source_paths]),
            autoescape=select_autoescape([]),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self.env.filters["snake_case"] = _snake_case_filter
        self.env.filters["pascal_case"] = _pascal_case_filter

    # -- Lookup ------------------------------------------------------------

    def find(self, relative_path: str) -> Path:
        """Return the first existing ``source_path / relative_path``.

        Raises:
            MissingArtifact: If no source path contains the file or directory.
        """
        for base in self.source_paths:
            candidate = base / relative_path
            if candidate.exists():
                return candidate
        searched = ", ".join(str(p) for p in self.source_paths)
        raise MissingArtifact(f"Could not find {relative_path!r} in any source path ({searched})")

    # -- Single template rendering -----------------------------------------

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a single template with the provided context.

        Args:
            template_path: Path relative to a source directory (e.g.
                ``"database.yml.j2"``).
            context: Dictionary of variables available inside the template.
        """
        self.find(template_path)
        template = self.env.get_template(template_path)
        return template.render(**context)

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context."""
        template = self.env.from_string(template_string)
        return template.render(**context)

    # -- File-based rendering (async) --------------------------------------

    async def render_to_file(
        self,
        template_path: str,
        output_path: str | Path,
        context: dict[str, Any],
        *,
        force: bool = True,
    ) -> str:
        """Render a template and write the result to *output_path*.

        Parent directories are created automatically.  Returns the status verb
        from :func:`~jumpstarter.scaffolder.actions.write_file`.
        """
        content = self.render(template_path, context)
        return await asyncio.to_thread(write_file, Path(output_path), content, force=force)

    async def copy_to_file(self, relative_path: str, output_path: str | Path, *, force: bool = True) -> str:
        """Copy a template file verbatim to *output_path*."""
        source = self.find(relative_path)
        return await asyncio.to_thread(copy_file, source, Path(output_path), force=force)

    async def render_tree(
        self,
        template_prefix: str,
        output_dir: str | Path,
        context: dict[str, Any],
        *,
        force: bool = True,
    ) -> list[tuple[str, Path]]:
        """Copy every file under *template_prefix* to *output_dir*.

        The directory structure is preserved.  ``*.j2`` files are rendered and
        written without their suffix; all other files are copied as-is.

        Returns:
            ``(status, written_path)`` pairs in sorted source order.
        """
        prefix_path = self.find(template_prefix)
        if not prefix_path.is_dir():
            raise MissingArtifact("Template directory is not a directory", prefix_path)

        written: list[tuple[str, Path]] = []
        out_base = Path(output_dir)

        for source_file in sorted(p for p in prefix_path.rglob("*") if p.is_file()):
            rel = source_file.relative_to(prefix_path)
            rel_str = rel.as_posix()
            if rel_str.endswith(TEMPLATE_SUFFIX):
                output_file = out_base / rel_str[: -len(TEMPLATE_SUFFIX)]
                template_key = f"{template_prefix}/{rel_str}"
                status = await self.render_to_file(template_key, output_file, context, force=force)
            else:
                output_file = out_base / rel
                status = await asyncio.to_thread(copy_file, source_file, output_file, force=force)
            written.append((status, output_file))

        return written


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    parts = re.split(r"[-_\s]+", value)
    return "".join(word[:1].upper() + word[1:] for word in parts if word)


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    s1 = re.sub(r"(.)([A-Z][a-z]+)", r"\1_\2", value)
    s2 = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s1)
    return re.sub(r"[-\s]+", "_", s2).lower()

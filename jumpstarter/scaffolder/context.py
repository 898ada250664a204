"""Explicit state shared by every recipe step.

A :class:`ScaffoldContext` carries everything a step needs: the project root,
the run's :class:`~jumpstarter.config.Config`, the command runner, the
ordered template source paths, a log of executed commands and a cleanup
stack.  Steps never change the process working directory; every path is
resolved against ``ctx.root`` and every command is given an explicit ``cwd``.

The helpers below mirror the vocabulary of Rails application templates
(``generate``, ``route``, ``environment``, ``insert_into_file``,
``gsub_file`` ...) and print the same status lines those actions print.
"""

from __future__ import annotations

import asyncio
import contextlib
import re
import shlex
from pathlib import Path
from typing import Any

from packaging.version import Version
from rich.markup import escape

from jumpstarter.config import Config
from jumpstarter.utils import console, print_status

from . import actions
from .errors import ExternalCommandFailure
from .gemfile import GEMFILE, GemDependency, Gemfile, detect_rails_version
from .runner import CommandResult, CommandRunner, SubprocessRunner
from .templates import TemplateRenderer


class ScaffoldContext:
    """Per-run state threaded through the recipe."""

    def __init__(self, config: Config, runner: CommandRunner | None = None) -> None:
        self.config = config
        self.root: Path = config.project_root
        self.runner: CommandRunner = runner or SubprocessRunner()
        self.source_paths: list[Path] = []
        self.commands: list[CommandResult] = []
        self.cleanup = contextlib.ExitStack()
        self._renderer: TemplateRenderer | None = None
        self._rails_version: Version | None = None
        self._rails_version_detected = False

    # ------------------------------------------------------------------
    # Basic properties
    # ------------------------------------------------------------------

    @property
    def app_name(self) -> str:
        return self.config.app_name

    @property
    def renderer(self) -> TemplateRenderer:
        """Renderer over the current source paths (bundled set when none are registered)."""
        if self._renderer is None:
            self._renderer = TemplateRenderer(self.source_paths)
        return self._renderer

    @property
    def gemfile(self) -> Gemfile:
        return Gemfile(self.root / GEMFILE)

    @property
    def rails_version(self) -> Version | None:
        """Locked Rails version, read once from ``Gemfile.lock``."""
        if not self._rails_version_detected:
            self._rails_version = detect_rails_version(self.root)
            self._rails_version_detected = True
        return self._rails_version

    def rails_version_satisfies(self, minimum: str, *, inclusive: bool = False) -> bool:
        """True when the locked Rails version is above *minimum*.

        An unknown version (no lock file yet) counts as current, i.e. it
        satisfies every minimum.
        """
        version = self.rails_version
        if version is None:
            return True
        bound = Version(minimum)
        return version >= bound if inclusive else version > bound

    def add_source_path(self, path: str | Path) -> None:
        """Put *path* in front of the template search order."""
        self.source_paths.insert(0, Path(path))
        self._renderer = None

    def path(self, relative: str) -> Path:
        return self.root / relative

    def relative(self, path: Path) -> str:
        try:
            return path.relative_to(self.root).as_posix()
        except ValueError:
            return str(path)

    def template_context(self, **extra: Any) -> dict[str, Any]:
        """Variables available to every rendered template."""
        return {
            "app_name": self.app_name,
            "rails_version": str(self.rails_version) if self.rails_version else "",
            **extra,
        }

    # ------------------------------------------------------------------
    # External commands
    # ------------------------------------------------------------------

    async def run(self, *argv: str, cwd: str | Path | None = None, env: dict[str, str] | None = None) -> CommandResult:
        """Run an external command in the project root (or *cwd*).

        Raises:
            ExternalCommandFailure: If the command exits non-zero.
        """
        print_status("run", shlex.join(argv))
        result = await self.runner.run(list(argv), cwd=cwd or self.root, env=env)
        self.commands.append(result)
        if self.config.verbose and result.stdout:
            console.print(f"[dim]{escape(result.stdout)}[/dim]", highlight=False)
        if not result.ok:
            raise ExternalCommandFailure(argv, result.returncode, stderr=result.stderr, stdout=result.stdout)
        return result

    async def generate(self, what: str, *args: str) -> CommandResult:
        """``bin/rails generate <what> <args...>``; *what* may hold several words."""
        return await self.run(self.config.rails_bin, "generate", *shlex.split(what), *args)

    async def rails_command(self, command: str) -> CommandResult:
        """``bin/rails <command>``, e.g. ``sitemap:install``."""
        return await self.run(self.config.rails_bin, *shlex.split(command))

    async def yarn_add(self, package: str) -> CommandResult:
        return await self.run("yarn", "add", package)

    async def git(self, *args: str, cwd: str | Path | None = None) -> CommandResult:
        return await self.run("git", *args, cwd=cwd)

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def gem(self, dependency: GemDependency) -> None:
        print_status("gemfile", dependency.describe())
        self.gemfile.add(dependency)

    def gem_group(self, groups: list[str], dependencies: list[GemDependency]) -> None:
        print_status("gemfile", "group " + ", ".join(f":{g}" for g in groups))
        self.gemfile.add_group(groups, dependencies)

    # ------------------------------------------------------------------
    # File actions
    # ------------------------------------------------------------------

    def insert_into_file(
        self,
        relative: str | Path,
        content: str,
        *,
        before: str | None = None,
        after: str | None = None,
    ) -> None:
        """Insert *content* before or after a literal anchor."""
        if (before is None) == (after is None):
            raise ValueError("insert_into_file needs exactly one of before= or after=")
        target = self.root / relative
        if before is not None:
            actions.insert_before(target, before, content)
        else:
            actions.insert_after(target, after, content)
        print_status("insert", self.relative(target))

    def gsub_file(self, relative: str | Path, pattern: str | re.Pattern[str], replacement: str) -> None:
        target = self.root / relative
        actions.substitute(target, pattern, replacement)
        print_status("gsub", self.relative(target))

    def route(self, routing_code: str) -> None:
        actions.add_route(self.root, routing_code)
        print_status("route", routing_code)

    def environment(self, data: str, env: str | None = None) -> None:
        actions.add_environment(self.root, data, env)
        print_status("environment", data if env is None else f"{env}: {data}")

    def remove_file(self, relative: str) -> None:
        if actions.remove_file(self.root / relative):
            print_status("remove", relative)

    def newest_file(self, pattern: str) -> Path:
        return actions.newest_file(self.root, pattern)

    def first_file(self, pattern: str) -> Path:
        return actions.first_file(self.root, pattern)

    # ------------------------------------------------------------------
    # Template actions
    # ------------------------------------------------------------------

    async def copy_file(self, source: str, destination: str | None = None, *, force: bool = True) -> None:
        target = self.root / (destination or source)
        status = await self.renderer.copy_to_file(source, target, force=force)
        print_status(status, self.relative(target))

    async def template(self, source: str, destination: str, **extra: Any) -> None:
        target = self.root / destination
        status = await self.renderer.render_to_file(source, target, self.template_context(**extra))
        print_status(status, self.relative(target))

    async def directory(self, source: str, destination: str | None = None, *, force: bool = True) -> None:
        written = await self.renderer.render_tree(
            source, self.root / (destination or source), self.template_context(), force=force
        )
        for status, path in written:
            print_status(status, self.relative(path))

    async def close(self) -> None:
        """Run registered cleanup callbacks (removes cloned template sources)."""
        await asyncio.to_thread(self.cleanup.close)

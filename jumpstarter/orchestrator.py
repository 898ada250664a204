"""jumpstarter scaffolding orchestrator.

Runs the recipe against a freshly generated Rails application:

Setup        -- resolve template sources, declare gems, ``bundle install``.
Post-install -- generators, file edits, template copies, README.
Finalize     -- ``git init``/``add``/``commit`` (skippable).

Steps run strictly one after another.  The first failing step stops the run
and the project is left as it is; there is no rollback.  The only exception
is the final commit, whose failure is reported as a warning.

Usage::

    rails new myapp --skip-bundle
    python -m jumpstarter myapp
    SKIP_GIT=1 python -m jumpstarter myapp --template-source ../jumpstarter-templates
"""

from __future__ import annotations

import asyncio
import sys
import time
import traceback
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field
from rich.markup import escape
from rich.panel import Panel

from jumpstarter.config import Config
from jumpstarter.scaffolder.context import ScaffoldContext
from jumpstarter.scaffolder.errors import ScaffoldError
from jumpstarter.scaffolder.recipe import Step, build_recipe
from jumpstarter.scaffolder.runner import CommandRunner
from jumpstarter.utils import (
    console,
    format_duration,
    print_error,
    print_step_header,
    print_success,
    print_summary_table,
    print_warning,
    save_json,
)

# ---------------------------------------------------------------------------
# Run record
# ---------------------------------------------------------------------------

STATUS_OK = "ok"
STATUS_FAILED = "failed"
STATUS_WARNED = "warned"
STATUS_SKIPPED = "skipped"


class StepRecord(BaseModel):
    """Outcome of one executed (or skipped) step."""

    name: str
    status: str
    duration: float = 0.0
    error: str | None = None


class RunResult(BaseModel):
    """Outcome of a whole run."""

    success: bool = False
    app_name: str
    project_root: str
    started_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    finished_at: str | None = None
    records: list[StepRecord] = Field(default_factory=list)
    failed_step: str | None = None
    error: str | None = None

    @property
    def warnings(self) -> list[StepRecord]:
        return [r for r in self.records if r.status == STATUS_WARNED]

    def executed(self) -> list[str]:
        """Names of the steps that ran, in order."""
        return [r.name for r in self.records if r.status != STATUS_SKIPPED]


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class Orchestrator:
    """Drive the recipe over one project directory.

    Attributes:
        config: Options for this run.
        steps: The ordered step list (the full recipe unless overridden).
        ctx: Context object handed to every step.
    """

    def __init__(
        self,
        config: Config,
        runner: CommandRunner | None = None,
        steps: Sequence[Step] | None = None,
    ) -> None:
        self.config = config
        self.steps = list(steps) if steps is not None else build_recipe()
        self.ctx = ScaffoldContext(config, runner)

    async def run(self) -> RunResult:
        """Execute every step in order and return the run record.

        Fatal step failures stop the run; non-fatal failures are printed and
        recorded as warnings.  Cloned template sources are removed on the way
        out, whether the run succeeded or not.
        """
        result = RunResult(app_name=self.config.app_name, project_root=str(self.ctx.root))
        run_start = time.monotonic()

        console.print(
            Panel(
                f"[bold bright_cyan]jumpstarter[/bold bright_cyan]\n"
                f"App     : {self.config.app_name}\n"
                f"Root    : {self.ctx.root}\n"
                f"Source  : {self.config.template_source or '(bundled templates)'}\n"
                f"Git     : {'skipped' if self.config.skip_git else 'init + commit'}",
                title="[bold]Scaffolding[/bold]",
                border_style="bright_cyan",
            )
        )

        try:
            if not self.ctx.root.is_dir():
                result.error = f"Project directory not found: {self.ctx.root}"
                print_error(result.error)
                return result

            for index, step in enumerate(self.steps, start=1):
                if step.is_skipped(self.config):
                    result.records.append(StepRecord(name=step.name, status=STATUS_SKIPPED))
                    continue

                print_step_header(index, step.name, step.phase)
                record = await self._run_step(step)
                result.records.append(record)

                if record.status == STATUS_FAILED:
                    result.failed_step = step.name
                    result.error = record.error
                    print_error(f"Step {step.name} FAILED: {record.error}")
                    break
            else:
                result.success = True
        finally:
            await self.ctx.close()
            result.finished_at = datetime.now(timezone.utc).isoformat()

        self._print_summary(result, time.monotonic() - run_start)
        if result.success:
            self._print_next_steps()
        if self.config.report_path is not None:
            await save_json(result.model_dump(), self.config.report_path)
        return result

    async def _run_step(self, step: Step) -> StepRecord:
        start = time.monotonic()
        try:
            await step.action(self.ctx)
        except ScaffoldError as exc:
            elapsed = time.monotonic() - start
            if step.fatal:
                return StepRecord(name=step.name, status=STATUS_FAILED, duration=elapsed, error=str(exc))
            print_warning(str(exc))
            return StepRecord(name=step.name, status=STATUS_WARNED, duration=elapsed, error=str(exc))
        except Exception as exc:
            elapsed = time.monotonic() - start
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
            return StepRecord(
                name=step.name,
                status=STATUS_FAILED,
                duration=elapsed,
                error=f"{type(exc).__name__}: {exc}",
            )
        return StepRecord(name=step.name, status=STATUS_OK, duration=time.monotonic() - start)

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _print_summary(self, result: RunResult, elapsed: float) -> None:
        rows = [
            (record.name, record.status, format_duration(record.duration) if record.status != STATUS_SKIPPED else "-")
            for record in result.records
        ]
        print_summary_table(rows, ["Step", "Status", "Duration"], title=f"jumpstarter ({format_duration(elapsed)})")

    def _print_next_steps(self) -> None:
        console.print()
        console.print("[bold blue]Jumpstarter app successfully created![/bold blue]")
        console.print()
        console.print("[bold green]To get started with your new app:[/bold green]")
        console.print(f"  cd {self.config.app_name}")
        console.print()
        console.print("  # Update config/database.yml with your database credentials")
        console.print()
        console.print("  rails db:create db:migrate")
        console.print("  rails g madmin:install # Generate admin dashboards")
        console.print("  gem install foreman")
        console.print("  foreman start # Run Rails, sidekiq, and webpack-dev-server")


def print_recipe(steps: Sequence[Step]) -> None:
    """Print the step list without running it."""
    rows = [
        (
            str(i),
            step.name,
            step.phase,
            ", ".join(kind.value for kind in step.kinds),
            "yes" if step.fatal else "no",
        )
        for i, step in enumerate(steps, start=1)
    ]
    print_summary_table(rows, ["#", "Step", "Phase", "Kinds", "Fatal"], title="Recipe")


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------


def main(argv: Sequence[str] | None = None) -> None:
    """CLI entry point for ``python -m jumpstarter``."""
    import argparse

    parser = argparse.ArgumentParser(
        prog="jumpstarter",
        description="Turn a fresh Rails skeleton into a fully wired starter app",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  jumpstarter myapp\n"
            "  jumpstarter myapp --skip-git\n"
            "  jumpstarter myapp --template-source https://github.com/whatapalaver/jumpstarter.git --branch main\n"
            "  jumpstarter --list-steps\n"
        ),
    )
    parser.add_argument("app_path", nargs="?", help="Path to the generated Rails application")
    parser.add_argument("--app-name", default=None, help="Application name (default: directory name)")
    parser.add_argument(
        "--template-source",
        default=None,
        help="Local directory or git URL with template files (default: bundled templates)",
    )
    parser.add_argument("--branch", default=None, help="Branch to check out for a remote template source")
    parser.add_argument(
        "--skip-git", action="store_true", default=None, help="Skip git init and the initial commit (or set SKIP_GIT)"
    )
    parser.add_argument("--skip-bundle", action="store_true", default=None, help="Skip `bundle install`")
    parser.add_argument("--rails-bin", default=None, help="Rails executable (default: bin/rails)")
    parser.add_argument("--report", default=None, help="Write the run record to this JSON file")
    parser.add_argument("--verbose", "-v", action="store_true", default=None, help="Show command output")
    parser.add_argument("--list-steps", action="store_true", help="Print the recipe and exit")

    args = parser.parse_args(argv)

    if args.list_steps:
        print_recipe(build_recipe())
        return

    if args.app_path is None and not _env_app_path():
        parser.error("app_path is required (or set JUMPSTARTER_APP_PATH)")

    config = Config.from_env(
        app_path=Path(args.app_path) if args.app_path else None,
        app_name=args.app_name,
        template_source=args.template_source,
        branch=args.branch,
        skip_git=args.skip_git,
        skip_bundle=args.skip_bundle,
        rails_bin=args.rails_bin,
        report_path=Path(args.report) if args.report else None,
        verbose=args.verbose,
    )

    result = asyncio.run(Orchestrator(config).run())

    if result.success:
        print_success("Scaffolding completed successfully!")
        for record in result.warnings:
            print_warning(f"  {record.name}: {record.error}")
    else:
        print_error(f"Scaffolding failed{f' at {result.failed_step}' if result.failed_step else ''}.")
        sys.exit(1)


def _env_app_path() -> str:
    import os

    return os.environ.get("JUMPSTARTER_APP_PATH", "")


if __name__ == "__main__":
    main()

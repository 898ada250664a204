"""External command execution.

Generators, package managers and git are reached through the
:class:`CommandRunner` protocol so the recipe can be exercised without a Ruby
toolchain.  :class:`SubprocessRunner` is the real implementation; tests
substitute a recording fake.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one external command."""

    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


@runtime_checkable
class CommandRunner(Protocol):
    """Anything that can run an argv list to completion."""

    async def run(
        self,
        argv: Sequence[str],
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        ...


class SubprocessRunner:
    """Run commands as child processes and wait for each to exit.

    No timeout is applied: generators and ``bundle install`` are awaited
    until they exit.
    """

    async def run(
        self,
        argv: Sequence[str],
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Execute *argv* and capture its output.

        Args:
            argv: Program and arguments; no shell is involved.
            cwd: Working directory for the child process.
            env: Optional extra environment variables merged on top of
                ``os.environ``.

        Returns:
            A :class:`CommandResult`.  A program that cannot be started is
            reported as exit status 127 with the OS error as stderr.
        """
        merged_env: dict[str, str] | None = None
        if env:
            merged_env = {**os.environ, **env}

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(cwd) if cwd else None,
                env=merged_env,
            )
        except (FileNotFoundError, PermissionError) as exc:
            return CommandResult(tuple(argv), 127, "", str(exc))

        stdout_bytes, stderr_bytes = await process.communicate()
        return CommandResult(
            argv=tuple(argv),
            returncode=process.returncode or 0,
            stdout=(stdout_bytes or b"").decode("utf-8", errors="replace").strip(),
            stderr=(stderr_bytes or b"").decode("utf-8", errors="replace").strip(),
        )

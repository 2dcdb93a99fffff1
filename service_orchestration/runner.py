"""Running external commands and collecting their results."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .errors import CommandError


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a finished command."""

    code: int | None
    signal: int | None
    output: str
    stderr: str = ""

    def success(self) -> bool:
        return self.code == 0


def run_command(
    program: str,
    args: Iterable[str] = (),
    env: Mapping[str, str] | None = None,
    cwd: str | os.PathLike[str] | None = None,
) -> CommandResult:
    """Run a program to completion and return its exit status and output.

    Variables in ``env`` are added to the inherited environment. Raises
    CommandError if the program cannot be started.
    """
    full_env = {**os.environ, **env} if env else None
    try:
        completed = subprocess.run(
            [program, *args],
            capture_output=True,
            text=True,
            errors="replace",
            env=full_env,
            cwd=cwd,
            check=False,
        )
    except OSError as exc:
        raise CommandError(f"failed to run {program}: {exc}") from exc

    code = completed.returncode
    if code < 0:
        return CommandResult(None, -code, completed.stdout, completed.stderr)
    return CommandResult(code, None, completed.stdout, completed.stderr)
"""Injectable subprocess seam for every external command the installer runs."""

from __future__ import annotations

import os
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol

DEFAULT_TIMEOUT_SECONDS: Final[float] = 1800.0
_OUTPUT_TAIL_CHARS: Final[int] = 2000


class CommandError(RuntimeError):
    """Raised when a command cannot be started, times out, or exits non-zero."""

    def __init__(
        self,
        *,
        command: Sequence[str],
        returncode: int | None,
        stdout: str = "",
        stderr: str = "",
        reason: str | None = None,
    ) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        if reason is not None:
            message = f"{reason}: {' '.join(command)}"
        else:
            message = f"command failed ({returncode}): {' '.join(command)}"
        detail = (stderr.strip() or stdout.strip())[-_OUTPUT_TAIL_CHARS:]
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class CommandExecutionResult:
    """Normalized subprocess execution result."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner(Protocol):
    """Injectable command runner used for deterministic/offline testing."""

    def run(
        self,
        command: Sequence[str],
        *,
        input_text: str | None = None,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> CommandExecutionResult: ...


class SubprocessCommandRunner:
    """Default command runner backed by ``subprocess.run``.

    ``env`` entries are layered over the current process environment so that
    secrets can be handed to a child without appearing on its command line.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        input_text: str | None = None,
        env: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> CommandExecutionResult:
        child_env = None
        if env:
            child_env = dict(os.environ)
            child_env.update(env)
        try:
            completed = subprocess.run(
                list(command),
                cwd=cwd,
                check=False,
                capture_output=True,
                text=True,
                input=input_text,
                env=child_env,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                command=command,
                returncode=None,
                reason=f"command timed out after {timeout_seconds} seconds",
            ) from exc
        except OSError as exc:
            raise CommandError(
                command=command,
                returncode=None,
                reason=f"unable to start command ({exc.strerror or exc})",
            ) from exc

        return CommandExecutionResult(
            command=tuple(command),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


def run_checked(
    runner: CommandRunner,
    command: Sequence[str],
    *,
    input_text: str | None = None,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
) -> CommandExecutionResult:
    """Run ``command`` and raise ``CommandError`` on a non-zero exit status."""

    result = runner.run(
        command,
        input_text=input_text,
        env=env,
        cwd=cwd,
        timeout_seconds=timeout_seconds,
    )
    if result.returncode != 0:
        raise CommandError(
            command=result.command,
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    return result


__all__ = [
    "DEFAULT_TIMEOUT_SECONDS",
    "CommandError",
    "CommandExecutionResult",
    "CommandRunner",
    "SubprocessCommandRunner",
    "run_checked",
]

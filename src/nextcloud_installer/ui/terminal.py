"""Line-oriented operator session.

All interactive I/O in the installer goes through a ``Terminal``. Reading one
line is the only place the process waits on the operator.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence
from typing import Final, Protocol, TextIO

_YES_ANSWERS: Final[frozenset[str]] = frozenset({"yes", "y"})


class AbortedByOperator(RuntimeError):
    """Raised when the operator closes the input stream or interrupts a prompt."""


class Terminal(Protocol):
    """Minimal contract used by the collector, reconciler and supervisor."""

    def ask(self, prompt: str) -> str:
        """Show ``prompt`` and return one line of input without its newline."""
        ...

    def say(self, message: str) -> None: ...


class ConsoleTerminal:
    """``Terminal`` backed by process stdin/stdout."""

    def __init__(self, *, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin if stdin is not None else sys.stdin
        self._stdout = stdout if stdout is not None else sys.stdout

    def ask(self, prompt: str) -> str:
        self.say(prompt)
        try:
            line = self._stdin.readline()
        except KeyboardInterrupt as exc:
            raise AbortedByOperator("interrupted while waiting for input") from exc
        if line == "":
            raise AbortedByOperator("input stream closed")
        return line.rstrip("\r\n")

    def say(self, message: str) -> None:
        self._stdout.write(message.rstrip("\n") + "\n")
        self._stdout.flush()


def ask_yes_no(terminal: Terminal, question: str) -> bool:
    """Ask a ``(yes/no)`` question; anything other than yes/y means no."""

    answer = terminal.ask(f"{question} (yes/no)")
    return answer.strip().lower() in _YES_ANSWERS


def ask_choice(terminal: Terminal, question: str, choices: Sequence[str]) -> str | None:
    """Ask the operator to pick one of ``choices``; ``None`` for anything else."""

    answer = terminal.ask(f"{question} ({'/'.join(choices)})").strip().lower()
    for choice in choices:
        if answer == choice.lower():
            return choice
    return None


__all__ = [
    "AbortedByOperator",
    "ConsoleTerminal",
    "Terminal",
    "ask_choice",
    "ask_yes_no",
]

"""Output rendering for nextcloud-installer CLI commands.

File: src/nextcloud_installer/ui/render.py
Last updated: 2026-10-18

Purpose
- Plain-text output for the non-interactive parts of the CLI: ``config``,
  ``doctor`` and the ``--verbose`` pipeline report.
- OK/FAIL marks are colored only on a terminal, and never when NO_COLOR is set
  or ``--no-color`` is given.

The interactive session itself writes through ``ui.terminal``, not through here.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence

    from nextcloud_installer.provisioning.pipeline import PipelineResult

_GREEN: Final[str] = "\033[32m"
_RED: Final[str] = "\033[31m"
_RESET: Final[str] = "\033[0m"


def format_table(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> list[str]:
    """Left-aligned columns, two spaces apart, under a dashed rule.

    Short rows are padded with empty cells; cells beyond the headers are dropped.
    """

    grid = [list(headers)] + [
        [str(row[i]) if i < len(row) else "" for i in range(len(headers))] for row in rows
    ]
    widths = [max(len(line[i]) for line in grid) for i in range(len(headers))]

    def join(cells: Sequence[str]) -> str:
        padded = (cell.ljust(width) for cell, width in zip(cells, widths, strict=True))
        return "  " + "  ".join(padded).rstrip()

    return [join(grid[0]), join(["-" * width for width in widths]), *map(join, grid[1:])]


class CLIRenderer:
    """Writes report lines to ``stream`` (standard output by default)."""

    def __init__(
        self, *, no_color: bool = False, verbose: bool = False, stream: TextIO | None = None
    ) -> None:
        self.verbose = verbose
        self._stream = sys.stdout if stream is None else stream
        self._color = (
            not no_color
            and not os.environ.get("NO_COLOR")
            and getattr(self._stream, "isatty", lambda: False)()
        )

    def heading(self, text: str) -> None:
        self.text(text)

    def text(self, line: str) -> None:
        self._stream.write(f"{line}\n")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[object]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a table; nothing at all is printed for zero rows."""

        if not rows:
            return
        if title:
            self.text(f"\n{title}")
        for line in format_table(headers, rows):
            self.text(line)

    def pipeline_report(self, result: PipelineResult) -> None:
        """Step outcomes, then resource resolutions, for one pipeline attempt."""

        self.table(
            ("step", "outcome"),
            [(name, outcome.value) for name, outcome in result.outcomes],
            title="Steps:",
        )
        self.table(
            ("resource", "identity", "resolution"),
            [
                (
                    item.kind.value,
                    item.identity_key,
                    "-" if item.resolution is None else item.resolution.value,
                )
                for item in result.resources
            ],
            title="Resources:",
        )

    def ok(self, label: str) -> None:
        self.text(f"  {self._mark('OK', _GREEN)}  {label}")

    def fail(self, label: str) -> None:
        self.text(f"  {self._mark('FAIL', _RED)}  {label}")

    def _mark(self, text: str, color: str) -> str:
        return f"{color}{text}{_RESET}" if self._color else text


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer", "format_table"]

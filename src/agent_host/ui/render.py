"""Output rendering for the agent-host diagnostic CLI.

File: src/agent_host/ui/render.py

Purpose
- Provide a thin plain-text rendering layer for CLI output.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.

Functional requirements
- Plain-text rendering must always work without external dependencies.
- Output goes to the stream given at construction (stdout by default).
"""

from __future__ import annotations

import json
import os
import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence


def _color_allowed(no_color_flag: bool, stream: TextIO) -> bool:
    """Check whether color output should be attempted."""

    if no_color_flag:
        return False
    if os.environ.get("NO_COLOR", ""):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


class CLIRenderer:
    """Thin CLI output renderer producing deterministic plain text."""

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.verbose = verbose
        self._stream = stream if stream is not None else sys.stdout
        self._color = _color_allowed(no_color, self._stream)

    def _print(self, line: str = "") -> None:
        self._stream.write(line + "\n")

    def heading(self, text: str) -> None:
        self._print(text)

    def kv(self, key: str, value: object) -> None:
        self._print(f"{key}: {value}")

    def text(self, line: str) -> None:
        self._print(line)

    def section(self, title: str) -> None:
        """Print a section header with a preceding blank line."""

        self._print(f"\n{title}")

    def warning(self, text: str) -> None:
        self._print(f"  Warning: {text}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
    ) -> None:
        """Print a formatted ASCII table."""

        if not rows:
            return

        col_count = len(headers)
        widths = [len(h) for h in headers]
        for row in rows:
            for i in range(min(len(row), col_count)):
                widths[i] = max(widths[i], len(str(row[i])))

        def _pad(cells: Sequence[str]) -> str:
            parts: list[str] = []
            for i in range(col_count):
                cell = str(cells[i]) if i < len(cells) else ""
                parts.append(cell.ljust(widths[i]))
            return "  ".join(parts).rstrip()

        if title:
            self.section(title)
        self._print(f"  {_pad(list(headers))}")
        self._print(f"  {'  '.join('-' * w for w in widths)}")
        for row in rows:
            self._print(f"  {_pad(list(row))}")

    def json(self, payload: object) -> None:
        """Print deterministic JSON."""

        self._print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))


def create_renderer(
    *,
    no_color: bool = False,
    verbose: bool = False,
    stream: TextIO | None = None,
) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose, stream=stream)


__all__ = ["CLIRenderer", "create_renderer"]

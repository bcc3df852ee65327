"""Append-only performance counter log."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from agent_host.observability.logging import format_utc_timestamp

if TYPE_CHECKING:
    from agent_host.observability.tracing import Tracing


class PerfCounterWriter:
    """Writes ``<counter>:<utc timestamp>`` lines to ``<dir>/<host_type>.perf``.

    A writer created without a directory is disabled and ignores writes.
    Write failures are traced and otherwise swallowed.
    """

    def __init__(
        self,
        directory: Path | str | None,
        *,
        host_type: str,
        trace: Tracing | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._trace = trace
        self._clock = clock
        self._path: Path | None = None
        if directory is None or not str(directory).strip():
            return
        try:
            root = Path(directory)
            root.mkdir(parents=True, exist_ok=True)
            self._path = root / f"{host_type}.perf"
        except OSError as exc:
            self._report(exc)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def enabled(self) -> bool:
        return self._path is not None

    def write(self, counter: str) -> None:
        if self._path is None:
            return
        line = f"{normalize_counter(counter)}:{self._timestamp()}\n"
        with self._lock:
            try:
                with self._path.open("a", encoding="utf-8") as handle:
                    handle.write(line)
            except OSError as exc:
                self._report(exc)

    def _timestamp(self) -> str:
        return format_utc_timestamp(self._clock() if self._clock is not None else None)

    def _report(self, exc: BaseException) -> None:
        if self._trace is not None:
            self._trace.error(exc)


def normalize_counter(counter: str) -> str:
    return counter.replace(":", "_")


__all__ = ["PerfCounterWriter", "normalize_counter"]

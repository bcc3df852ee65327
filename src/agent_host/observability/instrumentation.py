"""Process-wide registry of named instrumentation sources.

Runtime subsystems (an HTTP client, a job runner) create a named source and
write events to it; observers subscribe to the registry to learn about
sources, then to individual sources for their events. A source with no
subscribers drops writes before building anything.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Protocol

_LOGGER = logging.getLogger(__name__)


class EventLevel(IntEnum):
    """Severity attached to a diagnostic event by its source."""

    LOG_ALWAYS = 0
    CRITICAL = 1
    ERROR = 2
    WARNING = 3
    INFORMATIONAL = 4
    VERBOSE = 5


@dataclass(frozen=True, slots=True)
class DiagnosticEvent:
    """One instrumentation record; consumed once by each observer."""

    source_name: str
    event_id: int
    level: EventLevel
    message: str | None
    payload: tuple[object, ...] = field(default_factory=tuple)


class SourceObserver(Protocol):
    def on_source_created(self, source: InstrumentationSource) -> None: ...


class EventObserver(Protocol):
    def on_event(self, event: DiagnosticEvent) -> None: ...

    def on_record(self, key: str, value: object) -> None: ...

    def on_completed(self) -> None: ...

    def on_error(self, error: BaseException) -> None: ...


class Subscription:
    """Handle returned by ``subscribe``; ``dispose()`` is idempotent."""

    def __init__(self, remove: Callable[[], None]) -> None:
        self._remove = remove
        self._lock = threading.Lock()
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        with self._lock:
            if self._disposed:
                return
            self._disposed = True
        self._remove()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()


class InstrumentationSource:
    """A named emitter of diagnostic events and key/value records."""

    def __init__(self, name: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise ValueError("source name must be a non-empty string")
        self._name = name
        self._observers: tuple[EventObserver, ...] = ()
        self._lock = threading.Lock()
        self._completed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def is_enabled(self) -> bool:
        return bool(self._observers)

    def subscribe(self, observer: EventObserver) -> Subscription:
        with self._lock:
            self._observers = (*self._observers, observer)
        return Subscription(lambda: self._remove(observer))

    def write_event(
        self,
        event_id: int,
        level: EventLevel | int,
        message: str | None,
        payload: Sequence[object] = (),
    ) -> None:
        observers = self._observers
        if not observers:
            return
        event = DiagnosticEvent(
            source_name=self._name,
            event_id=int(event_id),
            level=_coerce_level(level),
            message=message,
            payload=tuple(payload),
        )
        for observer in observers:
            self._deliver(observer, "on_event", event)

    def write(self, key: str, value: object) -> None:
        observers = self._observers
        if not observers:
            return
        for observer in observers:
            self._deliver(observer, "on_record", key, value)

    def report_error(self, error: BaseException) -> None:
        for observer in self._observers:
            self._deliver(observer, "on_error", error)

    def complete(self) -> None:
        with self._lock:
            if self._completed:
                return
            self._completed = True
            observers = self._observers
        for observer in observers:
            self._deliver(observer, "on_completed")

    def _remove(self, observer: EventObserver) -> None:
        with self._lock:
            self._observers = tuple(item for item in self._observers if item is not observer)

    def _deliver(self, observer: EventObserver, method: str, *args: object) -> None:
        try:
            getattr(observer, method)(*args)
        except Exception:  # noqa: BLE001
            _LOGGER.exception("instrumentation observer failed on %s.%s", self._name, method)


class InstrumentationRegistry:
    """Name-keyed set of sources plus the observers watching for new ones."""

    def __init__(self) -> None:
        self._sources: dict[str, InstrumentationSource] = {}
        self._observers: tuple[SourceObserver, ...] = ()
        self._lock = threading.Lock()

    @property
    def source_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._sources))

    def get_source(self, name: str) -> InstrumentationSource:
        """Return the source called ``name``, creating and announcing it once."""

        with self._lock:
            existing = self._sources.get(name)
            if existing is not None:
                return existing
            source = InstrumentationSource(name)
            self._sources[name] = source
            observers = self._observers

        for observer in observers:
            _announce(observer, source)
        return source

    def subscribe(self, observer: SourceObserver) -> Subscription:
        """Observe every existing and future source."""

        with self._lock:
            self._observers = (*self._observers, observer)
            existing = tuple(self._sources.values())

        for source in existing:
            _announce(observer, source)
        return Subscription(lambda: self._remove(observer))

    def _remove(self, observer: SourceObserver) -> None:
        with self._lock:
            self._observers = tuple(item for item in self._observers if item is not observer)


def _announce(observer: SourceObserver, source: InstrumentationSource) -> None:
    try:
        observer.on_source_created(source)
    except Exception:  # noqa: BLE001
        _LOGGER.exception("source observer failed for %s", source.name)


def _coerce_level(level: EventLevel | int) -> EventLevel:
    if isinstance(level, EventLevel):
        return level
    try:
        return EventLevel(int(level))
    except ValueError:
        return EventLevel.VERBOSE


ALL_SOURCES = InstrumentationRegistry()


def get_source(name: str) -> InstrumentationSource:
    """Return a source registered with the process-wide registry."""

    return ALL_SOURCES.get_source(name)


__all__ = [
    "ALL_SOURCES",
    "DiagnosticEvent",
    "EventLevel",
    "EventObserver",
    "InstrumentationRegistry",
    "InstrumentationSource",
    "SourceObserver",
    "Subscription",
    "get_source",
]

"""
agent-host — diagnostic bridge from instrumentation sources to trace channels

File: src/agent_host/observability/diagnostics.py

Purpose
- Watch the process-wide instrumentation registry and turn events from the
  targeted sources into leveled, secret-masked trace records.

Functional requirements
- Subscribe to a targeted source once, on first observation.
- Replace numeric HTTP-method / credential-type payload heads with their names.
- Substitute payload values into the template, ``%n`` becoming the platform
  line separator.
- On any formatting failure log the exception, then the raw template and the
  raw payload; never drop an event.

Non-functional requirements
- Events may arrive on any thread; the bridge keeps no per-event state and
  trace writes only enqueue.
"""

from __future__ import annotations

import os
import threading
from collections.abc import Callable, Iterable
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from agent_host.constants import (
    HTTP_HANDLER_DIAGNOSTIC_LISTENER,
    HTTP_TRACE_NAME,
    VSS_HTTP_EVENT_SOURCE,
    VSS_TRACE_NAME,
)
from agent_host.observability.instrumentation import (
    ALL_SOURCES,
    DiagnosticEvent,
    EventLevel,
    InstrumentationRegistry,
    InstrumentationSource,
    Subscription,
)

if TYPE_CHECKING:
    from agent_host.observability.tracing import TraceHub, Tracing


class VssHttpMethod(IntEnum):
    UNKNOWN = 0
    DELETE = 1
    HEAD = 2
    GET = 3
    OPTIONS = 4
    PATCH = 5
    POST = 6
    PUT = 7


class VssCredentialsType(IntEnum):
    WINDOWS = 0
    FEDERATED = 1
    BASIC = 2
    SERVICE_IDENTITY = 3
    OAUTH = 4
    S2S = 5
    OTHER = 6
    AAD = 7


# Event ids whose first payload element is an enum ordinal.
HTTP_METHOD_EVENT_IDS: Final[frozenset[int]] = frozenset({1, 2, 3, 4, 5, 6, 7, 8, 9, 24})
CREDENTIAL_EVENT_IDS: Final[frozenset[int]] = frozenset(
    {11, 13, 14, 15, 16, 17, 18, 20, 21, 22, 27, 29}
)

LINE_BREAK_PLACEHOLDER: Final[str] = "%n"


def translate_payload(event_id: int, payload: tuple[object, ...]) -> tuple[object, ...]:
    """Return ``payload`` with an enum ordinal head replaced by its name."""

    if event_id in HTTP_METHOD_EVENT_IDS:
        enum_type: type[IntEnum] = VssHttpMethod
    elif event_id in CREDENTIAL_EVENT_IDS:
        enum_type = VssCredentialsType
    else:
        return payload

    head = int(payload[0])  # type: ignore[call-overload]
    try:
        name: object = enum_type(head).name
    except ValueError:
        name = str(head)
    return (name, *payload[1:])


def format_event(event: DiagnosticEvent, *, line_separator: str = os.linesep) -> str:
    """Render an event's message template with its payload."""

    payload = translate_payload(event.event_id, event.payload)
    template = (event.message or "").replace(LINE_BREAK_PLACEHOLDER, line_separator)
    if not payload:
        return template
    if not template:
        return ", ".join(str(item) for item in payload)
    return template.format(*payload)


def trace_writer_for(channel: Tracing, level: EventLevel) -> Callable[[str], None]:
    if level in (EventLevel.CRITICAL, EventLevel.ERROR):
        return channel.error
    if level is EventLevel.WARNING:
        return channel.warning
    if level is EventLevel.INFORMATIONAL:
        return channel.info
    return channel.verbose


class _EventTranslator:
    """Observer converting structured events into trace lines."""

    def __init__(self, channel: Tracing, *, line_separator: str) -> None:
        self._channel = channel
        self._line_separator = line_separator

    def on_event(self, event: DiagnosticEvent) -> None:
        try:
            message = format_event(event, line_separator=self._line_separator)
            trace_writer_for(self._channel, event.level)(message)
        except Exception as exc:  # noqa: BLE001
            self._channel.error(exc)
            self._channel.info(event.message or "")
            self._channel.info(", ".join(str(item) for item in event.payload))

    def on_record(self, key: str, value: object) -> None:
        self._channel.verbose("Trace %s event: %s", key, value)

    def on_completed(self) -> None:
        self._channel.info("Event source finished transmitting data.")

    def on_error(self, error: BaseException) -> None:
        self._channel.error(error)


class _RecordTracer:
    """Observer dumping key/value diagnostic records."""

    def __init__(self, channel: Tracing, *, source_name: str, line_separator: str) -> None:
        self._channel = channel
        self._source_name = source_name
        self._line_separator = line_separator

    def on_event(self, event: DiagnosticEvent) -> None:
        self._channel.info(f"Trace {event.event_id} event:{self._line_separator}{event.message}")

    def on_record(self, key: str, value: object) -> None:
        self._channel.info(f"Trace {key} event:{self._line_separator}{value}")

    def on_completed(self) -> None:
        self._channel.info(f"{self._source_name} finished transmitting data.")

    def on_error(self, error: BaseException) -> None:
        self._channel.error(error)


class DiagnosticBridge:
    """Subscribes targeted instrumentation sources to trace channels."""

    def __init__(
        self,
        hub: TraceHub,
        *,
        registry: InstrumentationRegistry | None = None,
        event_sources: Iterable[str] = (VSS_HTTP_EVENT_SOURCE,),
        record_sources: Iterable[str] = (HTTP_HANDLER_DIAGNOSTIC_LISTENER,),
        event_channel: str = VSS_TRACE_NAME,
        record_channel: str = HTTP_TRACE_NAME,
        line_separator: str = os.linesep,
    ) -> None:
        self._hub = hub
        self._registry = registry if registry is not None else ALL_SOURCES
        self._event_sources = frozenset(event_sources)
        self._record_sources = frozenset(record_sources)
        self._event_channel = event_channel
        self._record_channel = record_channel
        self._line_separator = line_separator
        self._lock = threading.Lock()
        self._registry_subscription: Subscription | None = None
        self._source_subscriptions: dict[str, Subscription] = {}
        self._closed = False

    @property
    def is_active(self) -> bool:
        return self._registry_subscription is not None and not self._closed

    @property
    def subscribed_sources(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._source_subscriptions))

    def start(self) -> DiagnosticBridge:
        with self._lock:
            if self._closed:
                raise RuntimeError("diagnostic bridge is closed")
            if self._registry_subscription is not None:
                return self
        subscription = self._registry.subscribe(self)
        with self._lock:
            if self._registry_subscription is None and not self._closed:
                self._registry_subscription = subscription
                return self
        subscription.dispose()
        return self

    def on_source_created(self, source: InstrumentationSource) -> None:
        observer = self._observer_for(source.name)
        if observer is None:
            return
        with self._lock:
            if self._closed or source.name in self._source_subscriptions:
                return
            self._source_subscriptions[source.name] = source.subscribe(observer)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            registry_subscription = self._registry_subscription
            self._registry_subscription = None
            subscriptions = tuple(self._source_subscriptions.values())
            self._source_subscriptions.clear()

        if registry_subscription is not None:
            registry_subscription.dispose()
        for subscription in subscriptions:
            subscription.dispose()

    def _observer_for(self, source_name: str) -> _EventTranslator | _RecordTracer | None:
        if source_name in self._event_sources:
            return _EventTranslator(
                self._hub.get_channel(self._event_channel),
                line_separator=self._line_separator,
            )
        if source_name in self._record_sources:
            return _RecordTracer(
                self._hub.get_channel(self._record_channel),
                source_name=source_name,
                line_separator=self._line_separator,
            )
        return None


__all__ = [
    "CREDENTIAL_EVENT_IDS",
    "DiagnosticBridge",
    "HTTP_METHOD_EVENT_IDS",
    "LINE_BREAK_PLACEHOLDER",
    "VssCredentialsType",
    "VssHttpMethod",
    "format_event",
    "trace_writer_for",
    "translate_payload",
]

"""Public observability primitives: trace channels, sinks, instrumentation and perf counters."""

from agent_host.observability.diagnostics import (
    DiagnosticBridge,
    VssCredentialsType,
    VssHttpMethod,
    format_event,
)
from agent_host.observability.instrumentation import (
    ALL_SOURCES,
    DiagnosticEvent,
    EventLevel,
    InstrumentationRegistry,
    InstrumentationSource,
    Subscription,
    get_source,
)
from agent_host.observability.logging import (
    PagedFileHandler,
    TraceSinkConfig,
    TraceSinkHandle,
    format_utc_timestamp,
    purge_expired_logs,
    setup_trace_sinks,
)
from agent_host.observability.perf import PerfCounterWriter
from agent_host.observability.tracing import TraceHub, Tracing

__all__ = [
    "ALL_SOURCES",
    "DiagnosticBridge",
    "DiagnosticEvent",
    "EventLevel",
    "InstrumentationRegistry",
    "InstrumentationSource",
    "PagedFileHandler",
    "PerfCounterWriter",
    "Subscription",
    "TraceHub",
    "TraceSinkConfig",
    "TraceSinkHandle",
    "Tracing",
    "VssCredentialsType",
    "VssHttpMethod",
    "format_event",
    "format_utc_timestamp",
    "get_source",
    "purge_expired_logs",
    "setup_trace_sinks",
]

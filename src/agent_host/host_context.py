"""
agent-host — host context composition root

File: src/agent_host/host_context.py

Purpose
- Own the process-wide collaborators every agent subsystem depends on: the
  secret masker, the trace hub, the optional diagnostic bridge, the service
  registry and the shutdown coordinator.

Functional requirements
- Construction order: masker -> trace hub -> diagnostic bridge (when HTTP
  tracing is enabled) -> service registry -> shutdown coordinator.
- ``dispose()`` releases the same resources once, in reverse order; later
  calls are no-ops and trace writes after disposal are ignored.
- Interpreter exit fires the unloading notification while the host is alive.

Non-functional requirements
- Safe for concurrent use from any thread without caller locking.
"""

from __future__ import annotations

import atexit
import logging
import sys
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from pathlib import Path
from types import TracebackType
from typing import TYPE_CHECKING, Final, TypeVar

from agent_host import constants
from agent_host.config.loader import DEFAULT_HOST_TYPE, HostOptions, load_host_options
from agent_host.observability.diagnostics import DiagnosticBridge
from agent_host.observability.instrumentation import InstrumentationRegistry
from agent_host.observability.logging import TraceSinkConfig, setup_trace_sinks
from agent_host.observability.perf import PerfCounterWriter
from agent_host.observability.tracing import TraceHub, Tracing
from agent_host.paths import PathResolver, WellKnownConfigFile, WellKnownDirectory
from agent_host.sandbox.containers import ContainerInfo, ContainerPathMapper, ContainerResource
from agent_host.security.secret_masker import SecretMasker, create_default_masker
from agent_host.services.configuration_store import AgentSettings, ConfigurationStore
from agent_host.services.manifest import load_service_manifest
from agent_host.services.platform import OSPlatform, coerce_platform
from agent_host.services.registry import AgentService, ServiceRegistry, ServiceTable
from agent_host.shutdown import (
    ShutdownCoordinator,
    ShutdownReason,
    StartupType,
    UnloadingListener,
    UnloadNotifier,
)
from agent_host.utils.concurrency import CancellationToken, delay, delay_async, linked_token

if TYPE_CHECKING:
    from agent_host.services.registry import ServiceDescriptor

T = TypeVar("T", bound=AgentService)

HTTP_TRACE_BANNER: Final[tuple[str, ...]] = (
    "*****************************************************************************************",
    "**                                                                                     **",
    "** Http trace is enabled, all your http traffic will be dumped into agent diag log.    **",
    "** DO NOT share the log in public place! The trace may contains secrets in plain text. **",
    "**                                                                                     **",
    "*****************************************************************************************",
)


def default_bin_dir() -> Path:
    """Directory of the entry script, or of this package when there is none."""

    entry = Path(sys.argv[0]) if sys.argv and sys.argv[0] else None
    if entry is not None and entry.is_file():
        return entry.resolve().parent
    return Path(__file__).resolve().parent


class HostContext:
    """Process-wide host for an agent process."""

    def __init__(
        self,
        host_type: str = DEFAULT_HOST_TYPE,
        *,
        options: HostOptions | None = None,
        environ: Mapping[str, str] | None = None,
        bin_dir: Path | str | None = None,
        service_table: ServiceTable | Iterable[ServiceDescriptor] | None = None,
        platform: OSPlatform | str | None = None,
        instrumentation: InstrumentationRegistry | None = None,
        extra_trace_handlers: Iterable[logging.Handler] = (),
        clock: Callable[[], datetime] | None = None,
        register_atexit: bool = True,
    ) -> None:
        self._options = options if options is not None else load_host_options(
            host_type, environ=environ
        )
        self._host_type = self._options.host_type
        self._platform = coerce_platform(platform)
        self._startup_type = self._options.startup_type
        self._dispose_lock = threading.Lock()
        self._disposed = False

        table = self._build_service_table(service_table)
        resolved_bin = bin_dir if bin_dir is not None else self._options.bin_dir
        self._paths = PathResolver(
            resolved_bin if resolved_bin is not None else default_bin_dir(),
            environ=environ,
            settings_provider=self._load_settings,
            platform=self._platform,
        )

        # 1. secret masker
        self._masker = create_default_masker(fail_closed=self._options.fail_closed_masking)

        # 2. trace hub
        sink = setup_trace_sinks(
            TraceSinkConfig(
                host_type=self._host_type,
                diag_dir=(
                    None
                    if self._options.log_file is not None
                    else self._paths.get_directory(WellKnownDirectory.DIAG)
                ),
                log_file=self._options.log_file,
                page_size_mb=self._options.log_page_size_mb,
                retention_days=self._options.log_retention_days,
                level=self._options.log_level,
                queue_size=self._options.trace_queue_size,
                log_to_stderr=self._options.log_to_stderr,
            ),
            extra_handlers=extra_trace_handlers,
            clock=clock,
        )
        self._hub = TraceHub(self._masker, sink)
        self._trace = self._hub.get_channel(constants.HOST_TRACE_NAME)
        self._masker.set_failure_callback(self._on_masking_failure)
        self._paths.attach_trace(self._trace)
        for warning in self._options.warnings:
            self._trace.warning(warning)

        # 3. diagnostic bridge
        self._bridge: DiagnosticBridge | None = None
        if self._options.http_trace:
            for line in HTTP_TRACE_BANNER:
                self._trace.warning(line)
            self._bridge = DiagnosticBridge(self._hub, registry=instrumentation).start()

        # 4. service registry
        self._registry = ServiceRegistry(
            self,
            table=table,
            platform=self._platform,
            trace=self._trace,
        )

        # 5. shutdown coordination
        self._shutdown = ShutdownCoordinator(trace=self._trace)
        self._unload = UnloadNotifier(trace=self._trace)
        self._atexit_registered = False
        if register_atexit:
            atexit.register(self._on_process_exit)
            self._atexit_registered = True

        self._perf = PerfCounterWriter(
            self._options.perf_log_dir,
            host_type=self._host_type,
            trace=self._trace,
            clock=clock,
        )
        self._containers = ContainerPathMapper(
            self.get_directory,
            platform=self._platform,
            trace=self._trace,
        )

    # -- identity ---------------------------------------------------------

    @property
    def host_type(self) -> str:
        return self._host_type

    @property
    def options(self) -> HostOptions:
        return self._options

    @property
    def platform(self) -> OSPlatform:
        return self._platform

    @property
    def user_agent(self) -> str:
        return (
            f"{constants.USER_AGENT_PRODUCT}-{constants.PACKAGE_NAME}/{constants.PACKAGE_VERSION}"
        )

    @property
    def startup_type(self) -> StartupType:
        return self._startup_type

    @startup_type.setter
    def startup_type(self, value: StartupType | str) -> None:
        self._startup_type = StartupType(value)

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # -- tracing ----------------------------------------------------------

    @property
    def secret_masker(self) -> SecretMasker:
        return self._masker

    @property
    def trace_hub(self) -> TraceHub:
        return self._hub

    @property
    def diagnostic_bridge(self) -> DiagnosticBridge | None:
        return self._bridge

    def get_trace(self, name: str) -> Tracing:
        return self._hub.get_channel(name)

    def flush_traces(self, *, timeout_seconds: float = 2.0) -> None:
        self._hub.flush(timeout_seconds=timeout_seconds)

    def write_perf_counter(self, counter: str) -> None:
        self._perf.write(counter)

    # -- paths ------------------------------------------------------------

    def get_directory(self, directory: WellKnownDirectory | str) -> str:
        return self._paths.get_directory(directory)

    def get_config_file(self, config_file: WellKnownConfigFile | str) -> str:
        return self._paths.get_config_file(config_file)

    # -- services ---------------------------------------------------------

    @property
    def service_registry(self) -> ServiceRegistry:
        return self._registry

    def create_service(self, capability: type[T]) -> T:
        return self._registry.create_service(capability)

    def get_service(self, capability: type[T]) -> T:
        return self._registry.get_service(capability)

    def set_default_implementation(self, capability: type, implementation: type) -> None:
        self._registry.set_implementation(capability, implementation)

    def register_service_instance(self, capability: type[T], instance: T) -> T:
        return self._registry.register_instance(capability, instance)

    # -- shutdown ---------------------------------------------------------

    @property
    def shutdown_token(self) -> CancellationToken:
        return self._shutdown.token

    @property
    def shutdown_reason(self) -> ShutdownReason | None:
        return self._shutdown.reason

    def shutdown_agent(self, reason: ShutdownReason | int) -> bool:
        return self._shutdown.signal(reason)

    def delay(self, seconds: float, token: CancellationToken | None = None) -> None:
        """Sleep for ``seconds``; agent shutdown or ``token`` ends the wait early."""

        if token is None:
            delay(seconds, self._shutdown.token)
            return
        with linked_token(self._shutdown.token, token) as linked:
            delay(seconds, linked)

    async def delay_async(self, seconds: float, token: CancellationToken | None = None) -> None:
        if token is None:
            await delay_async(seconds, self._shutdown.token)
            return
        with linked_token(self._shutdown.token, token) as linked:
            await delay_async(seconds, linked)

    def add_unloading_listener(self, listener: UnloadingListener) -> int:
        return self._unload.subscribe(listener)

    def remove_unloading_listener(self, token: int) -> bool:
        return self._unload.unsubscribe(token)

    def notify_unloading(self) -> int:
        """Fire the unloading notification; returns how many listeners raised."""

        return self._unload.fire(self)

    # -- containers -------------------------------------------------------

    def create_container_info(
        self,
        container: ContainerResource,
        *,
        is_job_container: bool = True,
    ) -> ContainerInfo:
        return self._containers.create_container_info(container, is_job_container=is_job_container)

    # -- lifecycle --------------------------------------------------------

    def dispose(self, *, timeout_seconds: float = 2.0) -> None:
        """Release owned resources in reverse acquisition order. Idempotent."""

        with self._dispose_lock:
            if self._disposed:
                return
            self._disposed = True

        if self._atexit_registered:
            atexit.unregister(self._on_process_exit)
            self._atexit_registered = False
        self._shutdown.dispose()
        if self._bridge is not None:
            self._bridge.close()
        self._hub.close(timeout_seconds=timeout_seconds)

    def __enter__(self) -> HostContext:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.dispose()

    # -- internals --------------------------------------------------------

    def _build_service_table(
        self,
        service_table: ServiceTable | Iterable[ServiceDescriptor] | None,
    ) -> ServiceTable:
        if isinstance(service_table, ServiceTable):
            table = service_table
        else:
            table = ServiceTable(service_table or ())
        if self._options.service_manifest is not None:
            load_service_manifest(self._options.service_manifest, table=table)
        return table

    def _load_settings(self) -> AgentSettings | None:
        return self.get_service(ConfigurationStore).get_settings()

    def _on_masking_failure(self, rule_name: str, exc: Exception) -> None:
        self._trace.warning("Secret masking rule '%s' failed: %s", rule_name, exc)

    def _on_process_exit(self) -> None:
        if not self._disposed:
            self._unload.fire(self)


__all__ = [
    "HTTP_TRACE_BANNER",
    "HostContext",
    "default_bin_dir",
]

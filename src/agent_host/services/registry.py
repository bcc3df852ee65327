"""
agent-host — platform-aware service registry

File: src/agent_host/services/registry.py

Purpose
- Resolve a capability (an ``AgentService`` subclass used as a contract) to
  one concrete implementation for the running platform, and cache singletons.

Resolution order
1. An implementation pinned with ``set_implementation`` or resolved earlier.
2. The descriptor's implementation for the running platform.
3. The descriptor's default.
Otherwise ``ServiceMappingNotFoundError``.

Functional requirements
- ``create_service`` always builds a new instance; ``get_service`` builds at
  most one per capability, even under concurrent first access.
- Resolved mappings and singletons are never evicted.
- Every instance is handed the host through ``initialize(host)``.
"""

from __future__ import annotations

import importlib
import threading
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias, TypeVar

from agent_host.errors import HostContextError, ServiceMappingNotFoundError, qualified_name
from agent_host.services.platform import OSPlatform, coerce_platform

if TYPE_CHECKING:
    from agent_host.observability.tracing import Tracing

ImplementationRef: TypeAlias = "type[AgentService] | str"

T = TypeVar("T", bound="AgentService")

_LOCATOR_ATTRIBUTE = "__service_locator__"


class ServiceRegistryError(HostContextError):
    """Raised for invalid registrations or circular service construction."""


class AgentService:
    """Base class for every capability the host can resolve."""

    host: Any = None

    def initialize(self, host: Any) -> None:
        self.host = host

    @property
    def trace(self) -> Tracing:
        if self.host is None:
            raise ServiceRegistryError(f"{type(self).__name__} has not been initialized")
        return self.host.get_trace(type(self).__name__)


@dataclass(frozen=True, slots=True)
class ServiceDescriptor:
    """Declared implementations of one capability."""

    capability: type
    default: ImplementationRef | None = None
    windows: ImplementationRef | None = None
    macos: ImplementationRef | None = None
    linux: ImplementationRef | None = None

    def preferred_for(self, platform: OSPlatform) -> ImplementationRef | None:
        if platform is OSPlatform.WINDOWS:
            return self.windows
        if platform is OSPlatform.MACOS:
            return self.macos
        if platform is OSPlatform.LINUX:
            return self.linux
        return None

    def implementation_for(self, platform: OSPlatform) -> ImplementationRef | None:
        preferred = self.preferred_for(platform)
        return preferred if preferred is not None else self.default


def service_locator(
    *,
    default: ImplementationRef | None = None,
    windows: ImplementationRef | None = None,
    macos: ImplementationRef | None = None,
    linux: ImplementationRef | None = None,
) -> Any:
    """Class decorator declaring a capability's implementations.

    Implementations may be given as ``"package.module:ClassName"`` strings so a
    capability can name subclasses defined after it.
    """

    def decorate(capability: type[T]) -> type[T]:
        setattr(
            capability,
            _LOCATOR_ATTRIBUTE,
            ServiceDescriptor(
                capability=capability,
                default=default,
                windows=windows,
                macos=macos,
                linux=linux,
            ),
        )
        return capability

    return decorate


class ServiceTable:
    """Explicit capability -> descriptor table, built at startup."""

    def __init__(self, descriptors: Iterable[ServiceDescriptor] = ()) -> None:
        self._lock = threading.Lock()
        self._descriptors: dict[type, ServiceDescriptor] = {}
        for descriptor in descriptors:
            self.add(descriptor)

    def add(self, descriptor: ServiceDescriptor) -> ServiceDescriptor:
        if not isinstance(descriptor, ServiceDescriptor):
            raise ServiceRegistryError(
                f"descriptor must be ServiceDescriptor, got {type(descriptor).__name__}"
            )
        with self._lock:
            self._descriptors[descriptor.capability] = descriptor
        return descriptor

    def register(
        self,
        capability: type,
        *,
        default: ImplementationRef | None = None,
        windows: ImplementationRef | None = None,
        macos: ImplementationRef | None = None,
        linux: ImplementationRef | None = None,
    ) -> ServiceDescriptor:
        return self.add(
            ServiceDescriptor(
                capability=capability,
                default=default,
                windows=windows,
                macos=macos,
                linux=linux,
            )
        )

    def get(self, capability: type) -> ServiceDescriptor | None:
        with self._lock:
            descriptor = self._descriptors.get(capability)
        if descriptor is not None:
            return descriptor
        declared = capability.__dict__.get(_LOCATOR_ATTRIBUTE)
        if isinstance(declared, ServiceDescriptor):
            return declared
        return None

    def copy(self) -> ServiceTable:
        with self._lock:
            return ServiceTable(self._descriptors.values())

    def __contains__(self, capability: object) -> bool:
        return isinstance(capability, type) and self.get(capability) is not None

    def __iter__(self) -> Iterator[ServiceDescriptor]:
        with self._lock:
            return iter(tuple(self._descriptors.values()))

    def __len__(self) -> int:
        with self._lock:
            return len(self._descriptors)


class ServiceRegistry:
    """Resolves capabilities to implementations and caches singletons."""

    def __init__(
        self,
        host: Any,
        *,
        table: ServiceTable | None = None,
        platform: OSPlatform | str | None = None,
        trace: Tracing | None = None,
    ) -> None:
        self._host = host
        self._table = table if table is not None else ServiceTable()
        self._platform = coerce_platform(platform)
        self._trace = trace
        self._resolved: dict[type, type] = {}
        self._instances: dict[type, AgentService] = {}
        self._types_lock = threading.Lock()
        self._instance_locks: dict[type, threading.RLock] = {}
        self._instance_locks_guard = threading.Lock()
        self._owners: dict[type, int] = {}
        self._waiting: dict[int, type] = {}
        self._creating = threading.local()

    @property
    def platform(self) -> OSPlatform:
        return self._platform

    @property
    def table(self) -> ServiceTable:
        return self._table

    @property
    def resolved_types(self) -> dict[type, type]:
        with self._types_lock:
            return dict(self._resolved)

    def is_cached(self, capability: type) -> bool:
        return capability in self._instances

    def set_implementation(self, capability: type, implementation: type) -> None:
        """Pin ``capability`` to ``implementation`` ahead of first resolution."""

        _ensure_implements(capability, implementation)
        with self._types_lock:
            existing = self._resolved.get(capability)
            if existing is not None and existing is not implementation:
                raise ServiceRegistryError(
                    f"{qualified_name(capability)} already resolved to {qualified_name(existing)}"
                )
            self._resolved[capability] = implementation

    def register_instance(self, capability: type[T], instance: T) -> T:
        """Seed the singleton cache; the first registered instance wins."""

        if not isinstance(instance, capability):
            raise ServiceRegistryError(
                f"instance of {type(instance).__name__} does not implement "
                f"{qualified_name(capability)}"
            )
        with self._instance_lock_for(capability):
            return self._instances.setdefault(capability, instance)  # type: ignore[return-value]

    def resolve_implementation(self, capability: type[T]) -> type[T]:
        resolved = self._resolved.get(capability)
        if resolved is not None:
            return resolved

        with self._types_lock:
            resolved = self._resolved.get(capability)
            if resolved is not None:
                return resolved

            descriptor = self._table.get(capability)
            reference = (
                descriptor.implementation_for(self._platform) if descriptor is not None else None
            )
            if reference is None:
                raise ServiceMappingNotFoundError(capability)

            implementation = _load_implementation(reference)
            _ensure_implements(capability, implementation)
            self._resolved[capability] = implementation

        if self._trace is not None:
            self._trace.verbose(
                "Resolved service '%s' to '%s' on %s",
                qualified_name(capability),
                qualified_name(implementation),
                self._platform.value,
            )
        return implementation

    def create_service(self, capability: type[T]) -> T:
        """Construct and initialize a new instance of ``capability``."""

        implementation = self.resolve_implementation(capability)
        in_progress = self._in_progress()
        if capability in in_progress:
            chain = " -> ".join(qualified_name(item) for item in (*in_progress, capability))
            raise ServiceRegistryError(f"circular service dependency: {chain}")

        in_progress.append(capability)
        try:
            instance = implementation()
            instance.initialize(self._host)
        finally:
            in_progress.pop()
        return instance

    def get_service(self, capability: type[T]) -> T:
        """Return the cached singleton for ``capability``, creating it once."""

        instance = self._instances.get(capability)
        if instance is not None:
            return instance  # type: ignore[return-value]

        lock = self._instance_lock_for(capability)
        claimed = self._acquire_for_construction(capability, lock)
        try:
            instance = self._instances.get(capability)
            if instance is None:
                instance = self.create_service(capability)
                self._instances[capability] = instance
            return instance  # type: ignore[return-value]
        finally:
            if claimed:
                with self._instance_locks_guard:
                    self._owners.pop(capability, None)
            lock.release()

    def _acquire_for_construction(self, capability: type, lock: threading.RLock) -> bool:
        """Acquire ``lock``; return whether this call became the constructing owner.

        Raises :class:`ServiceRegistryError` instead of blocking when the thread
        constructing ``capability`` already waits, directly or through other
        threads, on a capability the calling thread is constructing.
        """

        me = threading.get_ident()
        with self._instance_locks_guard:
            if self._owners.get(capability) == me:
                lock.acquire()
                return False
            if lock.acquire(blocking=False):
                self._owners[capability] = me
                return True
            chain = self._wait_chain(capability, me)
            if chain:
                raise ServiceRegistryError(
                    "circular service dependency across threads: "
                    + " -> ".join(qualified_name(item) for item in chain)
                )
            self._waiting[me] = capability

        try:
            lock.acquire()
        finally:
            with self._instance_locks_guard:
                self._waiting.pop(me, None)
        with self._instance_locks_guard:
            self._owners[capability] = me
        return True

    def _wait_chain(self, capability: type, thread_id: int) -> list[type]:
        # Follows owner -> awaited capability links; the guard is held by the caller.
        chain: list[type] = []
        current: type | None = capability
        while current is not None and current not in chain:
            chain.append(current)
            owner = self._owners.get(current)
            if owner is None:
                return []
            if owner == thread_id:
                return chain
            current = self._waiting.get(owner)
        return []

    def _instance_lock_for(self, capability: type) -> threading.RLock:
        with self._instance_locks_guard:
            lock = self._instance_locks.get(capability)
            if lock is None:
                lock = threading.RLock()
                self._instance_locks[capability] = lock
            return lock

    def _in_progress(self) -> list[type]:
        stack = getattr(self._creating, "stack", None)
        if stack is None:
            stack = []
            self._creating.stack = stack
        return stack


def import_object(reference: str) -> Any:
    """Import ``"package.module:Attribute"`` (or dotted ``package.module.Attribute``)."""

    if not isinstance(reference, str) or not reference.strip():
        raise ServiceRegistryError("import reference must be a non-empty string")
    text = reference.strip()
    if ":" in text:
        module_name, _, attribute_path = text.partition(":")
    else:
        module_name, _, attribute_path = text.rpartition(".")
    if not module_name or not attribute_path:
        raise ServiceRegistryError(f"invalid import reference {reference!r}")

    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise ServiceRegistryError(f"unable to import module {module_name!r}: {exc}") from exc
    for part in attribute_path.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ServiceRegistryError(f"{module_name!r} has no attribute {attribute_path!r}") from exc
    return target


def _load_implementation(reference: ImplementationRef) -> type:
    loaded = import_object(reference) if isinstance(reference, str) else reference
    if not isinstance(loaded, type):
        raise ServiceRegistryError(f"implementation {reference!r} is not a class")
    return loaded


def _ensure_implements(capability: type, implementation: type) -> None:
    if not isinstance(implementation, type) or not issubclass(implementation, capability):
        raise ServiceRegistryError(
            f"{getattr(implementation, '__name__', implementation)!r} does not implement "
            f"{qualified_name(capability)}"
        )


__all__ = [
    "AgentService",
    "ImplementationRef",
    "ServiceDescriptor",
    "ServiceRegistry",
    "ServiceRegistryError",
    "ServiceTable",
    "import_object",
    "service_locator",
]

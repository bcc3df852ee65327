"""Shutdown coordination and runtime-unloading notification."""

from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable
from enum import Enum, IntEnum
from typing import TYPE_CHECKING

from agent_host.utils.concurrency import CancellationToken

if TYPE_CHECKING:
    from agent_host.observability.tracing import Tracing

_LOGGER = logging.getLogger(__name__)

UnloadingListener = Callable[[object], object]


class ShutdownReason(IntEnum):
    USER_CANCELLED = 0
    OPERATING_SYSTEM_SHUTDOWN = 1


class StartupType(str, Enum):
    MANUAL = "manual"
    SERVICE = "service"
    AUTO_STARTUP = "auto_startup"


class ShutdownCoordinator:
    """One-way ``running -> shutting down`` transition with a broadcast token."""

    def __init__(self, *, trace: Tracing | None = None) -> None:
        self._token = CancellationToken()
        self._lock = threading.Lock()
        self._reason: ShutdownReason | None = None
        self._trace = trace

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def reason(self) -> ShutdownReason | None:
        return self._reason

    @property
    def is_shutting_down(self) -> bool:
        return self._token.is_cancelled

    def signal(self, reason: ShutdownReason | int) -> bool:
        """Request shutdown. Returns ``True`` only for the call that took effect."""

        resolved = ShutdownReason(reason)
        with self._lock:
            if self._reason is not None:
                if self._trace is not None:
                    self._trace.verbose(
                        "Shutdown already requested for %s; ignoring %s",
                        self._reason.name,
                        resolved.name,
                    )
                return False
            self._reason = resolved

        if self._trace is not None:
            self._trace.info("Agent will be shutdown for %s", resolved.name)
        self._token.cancel()
        return True

    def dispose(self) -> None:
        self._token.dispose()


class UnloadNotifier:
    """Fan-out of the hosting-runtime teardown notification."""

    def __init__(self, *, trace: Tracing | None = None) -> None:
        self._listeners: dict[int, UnloadingListener] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._trace = trace

    @property
    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def subscribe(self, listener: UnloadingListener) -> int:
        if not callable(listener):
            raise ValueError("listener must be callable")
        with self._lock:
            token = next(self._ids)
            self._listeners[token] = listener
        return token

    def unsubscribe(self, token: int) -> bool:
        with self._lock:
            return self._listeners.pop(token, None) is not None

    def fire(self, sender: object) -> int:
        """Notify every listener; returns how many raised."""

        with self._lock:
            listeners = tuple(self._listeners.values())

        failures = 0
        for listener in listeners:
            try:
                listener(sender)
            except Exception as exc:  # noqa: BLE001
                failures += 1
                if self._trace is not None:
                    self._trace.error(exc)
                else:
                    _LOGGER.exception("unloading listener failed")
        return failures


__all__ = [
    "ShutdownCoordinator",
    "ShutdownReason",
    "StartupType",
    "UnloadNotifier",
    "UnloadingListener",
]

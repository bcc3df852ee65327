"""Thread-safe cancellation primitives shared by host components."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress

from agent_host.errors import OperationCancelledError

_LOGGER = logging.getLogger(__name__)


class CancellationRegistration:
    """Handle for a callback registered on a :class:`CancellationToken`."""

    def __init__(self, token: CancellationToken, callback_id: int) -> None:
        self._token = token
        self._callback_id = callback_id

    def dispose(self) -> None:
        self._token._unregister(self._callback_id)


class CancellationToken:
    """Cooperative cancellation token backed by ``threading.Event``.

    ``cancel()`` is visible to every thread as soon as it returns. Registered
    callbacks run once, on the cancelling thread; a callback registered after
    cancellation runs immediately.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], object]] = {}
        self._next_id = 1
        self._disposed = False

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    def cancel(self) -> bool:
        """Cancel the token. Returns ``False`` when it was already cancelled."""

        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            callbacks = tuple(self._callbacks.values())
            self._callbacks.clear()

        for callback in callbacks:
            _invoke(callback)
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` elapses; return ``is_cancelled``."""

        return self._event.wait(timeout)

    async def wait_async(self) -> None:
        if self._event.is_set():
            return
        loop = asyncio.get_running_loop()
        future: asyncio.Future[None] = loop.create_future()

        def wake() -> None:
            loop.call_soon_threadsafe(_resolve, future)

        registration = self.register(wake)
        try:
            await future
        finally:
            registration.dispose()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError("operation cancelled")

    def register(self, callback: Callable[[], object]) -> CancellationRegistration:
        if not callable(callback):
            raise ValueError("callback must be callable")
        with self._lock:
            callback_id = self._next_id
            self._next_id += 1
            if not self._event.is_set():
                self._callbacks[callback_id] = callback
                return CancellationRegistration(self, callback_id)

        _invoke(callback)
        return CancellationRegistration(self, callback_id)

    def dispose(self) -> None:
        """Drop pending callbacks; the cancelled state stays observable."""

        with self._lock:
            self._disposed = True
            self._callbacks.clear()

    def _unregister(self, callback_id: int) -> None:
        with self._lock:
            self._callbacks.pop(callback_id, None)


@contextmanager
def linked_token(*tokens: CancellationToken) -> Iterator[CancellationToken]:
    """Yield a token cancelled as soon as any of ``tokens`` is cancelled."""

    linked = CancellationToken()
    registrations = [token.register(linked.cancel) for token in tokens]
    try:
        yield linked
    finally:
        for registration in registrations:
            registration.dispose()
        linked.dispose()


def delay(seconds: float, token: CancellationToken | None = None) -> None:
    """Sleep for ``seconds`` unless ``token`` is cancelled first."""

    if seconds < 0:
        raise ValueError("seconds must be >= 0")
    if token is None:
        threading.Event().wait(seconds)
        return
    if token.wait(seconds):
        raise OperationCancelledError("delay cancelled")


async def delay_async(seconds: float, token: CancellationToken | None = None) -> None:
    """Await ``seconds`` unless ``token`` is cancelled first."""

    if seconds < 0:
        raise ValueError("seconds must be >= 0")
    if token is None:
        await asyncio.sleep(seconds)
        return
    token.raise_if_cancelled()

    cancel_wait_task = asyncio.create_task(token.wait_async())
    try:
        done, _ = await asyncio.wait({cancel_wait_task}, timeout=seconds)
        if cancel_wait_task in done:
            raise OperationCancelledError("delay cancelled")
    finally:
        cancel_wait_task.cancel()
        with suppress(asyncio.CancelledError):
            await cancel_wait_task


def _resolve(future: asyncio.Future[None]) -> None:
    if not future.done():
        future.set_result(None)


def _invoke(callback: Callable[[], object]) -> None:
    try:
        callback()
    except Exception:  # noqa: BLE001
        _LOGGER.exception("cancellation callback failed")


__all__ = [
    "CancellationRegistration",
    "CancellationToken",
    "delay",
    "delay_async",
    "linked_token",
]

"""
agent-host — trace hub and secret-masking trace channels

File: src/agent_host/observability/tracing.py

Purpose
- Hand out named trace channels that mask secrets before any text reaches a
  sink.

Functional requirements
- One channel per name for the lifetime of the hub, including under
  concurrent first requests.
- Every message, exception text included, passes through the shared
  ``SecretMasker``.
- Writes after ``close()`` are ignored rather than raising.

Non-functional requirements
- Writes never block on file I/O; records are handed to the sink queue.
"""

from __future__ import annotations

import inspect
import itertools
import logging
import threading
import traceback
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from agent_host.observability.logging import TraceSinkHandle
    from agent_host.security.secret_masker import SecretMasker

_DEFAULT_LOGGER_PREFIX: Final[str] = "agent_host.trace"
_HUB_IDS = itertools.count(1)


class Tracing:
    """A named, secret-masking trace channel."""

    def __init__(self, name: str, *, logger: logging.Logger, hub: TraceHub) -> None:
        self._name = name
        self._logger = logger
        self._hub = hub

    @property
    def name(self) -> str:
        return self._name

    def info(self, message: object, *args: object) -> None:
        self._write(logging.INFO, message, args)

    def warning(self, message: object, *args: object) -> None:
        self._write(logging.WARNING, message, args)

    def error(self, message: object, *args: object) -> None:
        self._write(logging.ERROR, message, args)

    def verbose(self, message: object, *args: object) -> None:
        self._write(logging.DEBUG, message, args)

    debug = verbose

    def entering(self, name: str | None = None) -> None:
        self.verbose("Entering %s", name or _caller_name())

    def leaving(self, name: str | None = None) -> None:
        self.verbose("Leaving %s", name or _caller_name())

    def _write(self, level: int, message: object, args: tuple[object, ...]) -> None:
        if self._hub.is_closed:
            return
        text = _render(message, args)
        masked = self._hub.mask(text)
        self._logger.log(level, masked, extra={"channel": self._name})


class TraceHub:
    """Name-keyed set of trace channels sharing one masker and one sink."""

    def __init__(
        self,
        masker: SecretMasker,
        sink: TraceSinkHandle | None = None,
        *,
        logger_prefix: str | None = None,
        level: int = logging.DEBUG,
    ) -> None:
        self._masker = masker
        self._sink = sink
        self._level = level
        prefix = logger_prefix or _DEFAULT_LOGGER_PREFIX
        self._logger_prefix = f"{prefix}.hub{next(_HUB_IDS)}"
        self._channels: dict[str, Tracing] = {}
        self._loggers: list[logging.Logger] = []
        self._lock = threading.Lock()
        self._closed = False

    @property
    def masker(self) -> SecretMasker:
        return self._masker

    @property
    def sink(self) -> TraceSinkHandle | None:
        return self._sink

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def channel_names(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(sorted(self._channels))

    def get_channel(self, name: str) -> Tracing:
        """Return the channel for ``name``, creating it on first request."""

        if not isinstance(name, str) or not name.strip():
            raise ValueError("trace channel name must be a non-empty string")

        channel = self._channels.get(name)
        if channel is not None:
            return channel

        with self._lock:
            channel = self._channels.get(name)
            if channel is None:
                channel = Tracing(name, logger=self._build_logger(name), hub=self)
                self._channels[name] = channel
            return channel

    __getitem__ = get_channel

    def mask(self, text: str) -> str:
        try:
            return self._masker.mask_secrets(text)
        except Exception:  # noqa: BLE001
            return self._masker.mask

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        if self._sink is not None and not self._closed:
            self._sink.flush(timeout_seconds=timeout_seconds)

    def close(self, *, timeout_seconds: float = 2.0) -> None:
        """Detach every channel and shut the sink down. Safe to call twice."""

        with self._lock:
            if self._closed:
                return
            self._closed = True
            loggers = tuple(self._loggers)

        if self._sink is not None:
            queue_handler = self._sink.queue_handler
            for logger in loggers:
                logger.removeHandler(queue_handler)
            self._sink.shutdown(timeout_seconds=timeout_seconds)

    def _build_logger(self, name: str) -> logging.Logger:
        logger = logging.getLogger(f"{self._logger_prefix}.{name}")
        logger.setLevel(self._level)
        logger.propagate = False
        # A NullHandler keeps logging's last-resort stderr handler out once the
        # sink handler has been detached.
        if not any(isinstance(handler, logging.NullHandler) for handler in logger.handlers):
            logger.addHandler(logging.NullHandler())
        if self._sink is not None:
            logger.addHandler(self._sink.queue_handler)
        self._loggers.append(logger)
        return logger


def _render(message: object, args: tuple[object, ...]) -> str:
    if isinstance(message, BaseException):
        text = "".join(traceback.format_exception(type(message), message, message.__traceback__))
        return text.rstrip("\n")
    text = message if isinstance(message, str) else str(message)
    if not args:
        return text
    try:
        return text % args
    except (TypeError, ValueError):
        return " ".join([text, *(str(arg) for arg in args)])


def _caller_name() -> str:
    frame = inspect.currentframe()
    try:
        # _caller_name <- entering/leaving <- caller
        caller = frame.f_back.f_back if frame is not None and frame.f_back is not None else None
        return caller.f_code.co_name if caller is not None else "<unknown>"
    finally:
        del frame


__all__ = ["TraceHub", "Tracing"]

"""Queue-backed trace sinks writing JSON-lines diagnostic logs."""

from __future__ import annotations

import json
import logging
import logging.handlers
import os
import queue
import sys
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final


_LOGGER = logging.getLogger(__name__)

_DEFAULT_QUEUE_SIZE: Final[int] = 8192
_BYTES_PER_MB: Final[int] = 1024 * 1024
_PAGE_TIMESTAMP_FORMAT: Final[str] = "%Y%m%d-%H%M%S"

_LEVEL_NAMES: Final[dict[int, str]] = {
    logging.CRITICAL: "ERROR",
    logging.ERROR: "ERROR",
    logging.WARNING: "WARNING",
    logging.INFO: "INFO",
    logging.DEBUG: "VERBOSE",
}

Clock = Callable[[], datetime]


@dataclass(frozen=True, slots=True)
class TraceSinkConfig:
    """Where and how trace records are persisted.

    Either ``log_file`` (single explicit file) or ``diag_dir`` (paged files
    named after ``host_type``) must be set.
    """

    host_type: str
    diag_dir: Path | str | None = None
    log_file: Path | str | None = None
    page_size_mb: int = 8
    retention_days: int = 30
    level: int | str = logging.DEBUG
    queue_size: int = _DEFAULT_QUEUE_SIZE
    log_to_stderr: bool = False


class _DropCounter:
    """Thread-safe counter for dropped queue records."""

    __slots__ = ("_lock", "_value")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def increment(self) -> None:
        with self._lock:
            self._value += 1

    def value(self) -> int:
        with self._lock:
            return self._value


class _NonBlockingQueueHandler(logging.handlers.QueueHandler):
    """Queue handler that drops records when the queue is full."""

    def __init__(self, log_queue: queue.Queue[object], drop_counter: _DropCounter) -> None:
        super().__init__(log_queue)
        self._drop_counter = drop_counter

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self._drop_counter.increment()


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits one JSON object per trace record."""

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, object] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": _LEVEL_NAMES.get(record.levelno, record.levelname),
            "channel": getattr(record, "channel", record.name),
            "message": record.getMessage(),
        }
        if record.threadName:
            event["thread"] = record.threadName
        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class PagedFileHandler(logging.FileHandler):
    """File handler that starts a new timestamped page once a size is reached."""

    def __init__(
        self,
        directory: Path | str,
        *,
        prefix: str,
        page_size_bytes: int,
        clock: Clock | None = None,
    ) -> None:
        if page_size_bytes <= 0:
            raise ValueError("page_size_bytes must be > 0")
        self._directory = Path(directory)
        self._prefix = prefix
        self._page_size_bytes = page_size_bytes
        self._clock = clock or _utc_now
        self._directory.mkdir(parents=True, exist_ok=True)
        super().__init__(self._next_page_path(), encoding="utf-8")

    @property
    def page_path(self) -> Path:
        return Path(self.baseFilename)

    def emit(self, record: logging.LogRecord) -> None:
        # Handler.handle() holds the handler lock around emit().
        try:
            stream = self.stream
            if stream is not None and stream.tell() >= self._page_size_bytes:
                self._start_new_page()
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        super().emit(record)

    def _start_new_page(self) -> None:
        if self.stream is not None:
            self.stream.flush()
            self.stream.close()
            self.stream = None  # type: ignore[assignment]
        self.baseFilename = os.path.abspath(self._next_page_path())
        self.stream = self._open()

    def _next_page_path(self) -> Path:
        stamp = self._clock().strftime(_PAGE_TIMESTAMP_FORMAT)
        candidate = self._directory / f"{self._prefix}_{stamp}-utc.log"
        index = 1
        while candidate.exists():
            candidate = self._directory / f"{self._prefix}_{stamp}-utc_{index}.log"
            index += 1
        return candidate


class TraceSinkHandle:
    """Runtime handle for the queue, its listener and the sink handlers."""

    def __init__(
        self,
        *,
        log_queue: queue.Queue[object],
        queue_handler: _NonBlockingQueueHandler,
        sink_handlers: tuple[logging.Handler, ...],
        listener: logging.handlers.QueueListener,
        drop_counter: _DropCounter,
    ) -> None:
        self._queue = log_queue
        self._queue_handler = queue_handler
        self._sink_handlers = sink_handlers
        self._listener = listener
        self._drop_counter = drop_counter
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @property
    def queue_handler(self) -> logging.Handler:
        return self._queue_handler

    @property
    def dropped_records(self) -> int:
        return self._drop_counter.value()

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    @property
    def log_path(self) -> Path | None:
        for handler in self._sink_handlers:
            if isinstance(handler, logging.FileHandler):
                return Path(handler.baseFilename)
        return None

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        timeout = max(timeout_seconds, 0.0)
        deadline = time.monotonic() + timeout
        while self._queue.unfinished_tasks > 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        for handler in self._sink_handlers:
            handler.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._shutdown_lock:
            if self._is_shutdown:
                return

            self.flush(timeout_seconds=timeout_seconds)
            self._listener.stop()
            self._queue_handler.close()

            for handler in self._sink_handlers:
                handler.flush()
                handler.close()

            self._is_shutdown = True


def setup_trace_sinks(
    config: TraceSinkConfig,
    *,
    extra_handlers: Iterable[logging.Handler] = (),
    clock: Clock | None = None,
) -> TraceSinkHandle:
    """Create the sink handlers and start the queue listener feeding them."""

    host_type = _validate_host_type(config.host_type)
    queue_size = _validate_positive_int(config.queue_size, "queue_size")
    level = _parse_log_level(config.level)
    formatter = _JsonLineFormatter()

    file_handler = _build_file_handler(config, host_type=host_type, clock=clock)
    sink_handlers: list[logging.Handler] = [file_handler]
    if config.log_to_stderr:
        sink_handlers.append(logging.StreamHandler(sys.stderr))
    sink_handlers.extend(extra_handlers)

    for handler in sink_handlers:
        handler.setLevel(level)
        if handler.formatter is None:
            handler.setFormatter(formatter)

    log_queue: queue.Queue[object] = queue.Queue(maxsize=queue_size)
    drop_counter = _DropCounter()
    queue_handler = _NonBlockingQueueHandler(log_queue, drop_counter)
    queue_handler.setLevel(level)

    listener = logging.handlers.QueueListener(
        log_queue,
        *sink_handlers,
        respect_handler_level=True,
    )
    listener.start()

    return TraceSinkHandle(
        log_queue=log_queue,
        queue_handler=queue_handler,
        sink_handlers=tuple(sink_handlers),
        listener=listener,
        drop_counter=drop_counter,
    )


def purge_expired_logs(
    directory: Path | str,
    *,
    prefix: str,
    retention_days: int,
    now: datetime | None = None,
) -> tuple[Path, ...]:
    """Delete ``<prefix>_*.log`` pages older than ``retention_days``."""

    root = Path(directory)
    if retention_days <= 0 or not root.is_dir():
        return ()

    reference = now if now is not None else _utc_now()
    cutoff = (reference - timedelta(days=retention_days)).timestamp()
    removed: list[Path] = []
    for candidate in sorted(root.glob(f"{prefix}_*.log")):
        try:
            if candidate.is_file() and candidate.stat().st_mtime < cutoff:
                candidate.unlink()
                removed.append(candidate)
        except OSError as exc:
            _LOGGER.warning("unable to purge expired trace file %s: %s", candidate, exc)
    return tuple(removed)


def _build_file_handler(
    config: TraceSinkConfig,
    *,
    host_type: str,
    clock: Clock | None,
) -> logging.FileHandler:
    if config.log_file is not None:
        log_file = Path(config.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_file, encoding="utf-8")

    if config.diag_dir is None:
        raise ValueError("either log_file or diag_dir must be provided")

    page_size_mb = _validate_positive_int(config.page_size_mb, "page_size_mb")
    diag_dir = Path(config.diag_dir)
    diag_dir.mkdir(parents=True, exist_ok=True)
    purge_expired_logs(diag_dir, prefix=host_type, retention_days=config.retention_days)
    return PagedFileHandler(
        diag_dir,
        prefix=host_type,
        page_size_bytes=page_size_mb * _BYTES_PER_MB,
        clock=clock,
    )


def _validate_host_type(host_type: str) -> str:
    if not isinstance(host_type, str):
        raise ValueError(f"host_type must be a string, got {type(host_type).__name__}")
    normalized = host_type.strip()
    if not normalized:
        raise ValueError("host_type must not be empty")
    if Path(normalized).name != normalized:
        raise ValueError("host_type must not include path separators")
    return normalized


def _validate_positive_int(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0")
    return value


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    normalized = value.strip().upper()
    if normalized == "VERBOSE":
        return logging.DEBUG
    parsed = logging.getLevelName(normalized)
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def _utc_now() -> datetime:
    return datetime.now(tz=UTC)


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_utc_timestamp(moment: datetime | None = None) -> str:
    """Round-trip ISO-8601 UTC timestamp with a ``Z`` suffix."""

    value = moment if moment is not None else _utc_now()
    if value.tzinfo is None or value.utcoffset() is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


__all__ = [
    "PagedFileHandler",
    "TraceSinkConfig",
    "TraceSinkHandle",
    "format_utc_timestamp",
    "purge_expired_logs",
    "setup_trace_sinks",
]

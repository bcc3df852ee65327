"""Shared utilities: cancellation primitives and filesystem helpers."""

from agent_host.utils.concurrency import (
    CancellationRegistration,
    CancellationToken,
    delay,
    delay_async,
)
from agent_host.utils.fs import atomic_write, replace_path_prefix

__all__ = [
    "CancellationRegistration",
    "CancellationToken",
    "atomic_write",
    "delay",
    "delay_async",
    "replace_path_prefix",
]

"""
agent-host — filesystem utilities

File: src/agent_host/utils/fs.py

Purpose
- Atomic settings-file writes and host/container path prefix rewriting.

Functional requirements
- Atomic writes use a temp file in the destination directory and replace the
  target in a single step.
- Prefix rewriting only matches whole path segments.
"""

from __future__ import annotations

import contextlib
import ntpath
import os
import posixpath
import tempfile
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "replace_path_prefix",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding) as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def replace_path_prefix(
    path: str,
    prefix: str,
    replacement: str,
    *,
    windows: bool,
) -> str | None:
    """Rewrite ``prefix`` at the start of ``path``; ``None`` when it does not match.

    ``windows`` selects separator handling and case-insensitive comparison.
    """

    module = ntpath if windows else posixpath
    normalized_path = _normalize(path, windows=windows)
    normalized_prefix = _normalize(prefix, windows=windows)
    if not normalized_prefix:
        return None

    compare_path = module.normcase(normalized_path)
    compare_prefix = module.normcase(normalized_prefix)
    if compare_path == compare_prefix:
        return replacement

    separator = "\\" if windows else "/"
    boundary = compare_prefix if compare_prefix.endswith(separator) else compare_prefix + separator
    if not compare_path.startswith(boundary):
        return None

    remainder = normalized_path[len(boundary) :]
    if not remainder:
        return replacement
    target_separator = "\\" if _looks_windows(replacement) else "/"
    return replacement.rstrip("\\/") + target_separator + remainder.replace(separator, target_separator)


def _normalize(path: str, *, windows: bool) -> str:
    if windows:
        return path.replace("/", "\\").rstrip("\\") or path
    return path.rstrip("/") or path


def _looks_windows(path: str) -> bool:
    return "\\" in path or (len(path) >= 2 and path[1] == ":")

"""Running-platform detection used for per-platform service resolution."""

from __future__ import annotations

import sys
from enum import Enum


class OSPlatform(str, Enum):
    """Operating system families the registry distinguishes."""

    WINDOWS = "windows"
    MACOS = "macos"
    LINUX = "linux"
    OTHER = "other"

    @property
    def is_windows(self) -> bool:
        return self is OSPlatform.WINDOWS


def current_platform(platform_name: str | None = None) -> OSPlatform:
    """Map ``sys.platform`` (or an explicit name) onto :class:`OSPlatform`."""

    name = (platform_name if platform_name is not None else sys.platform).lower()
    if name.startswith(("win", "cygwin", "msys")):
        return OSPlatform.WINDOWS
    if name.startswith("darwin"):
        return OSPlatform.MACOS
    if name.startswith("linux"):
        return OSPlatform.LINUX
    return OSPlatform.OTHER


def coerce_platform(value: OSPlatform | str | None) -> OSPlatform:
    if value is None:
        return current_platform()
    if isinstance(value, OSPlatform):
        return value
    if not isinstance(value, str):
        raise ValueError(f"platform must be OSPlatform/str/None, got {type(value).__name__}")
    normalized = value.strip().lower()
    try:
        return OSPlatform(normalized)
    except ValueError:
        return current_platform(normalized)


__all__ = ["OSPlatform", "coerce_platform", "current_platform"]

"""
agent-host — host options loader.

File: src/agent_host/config/loader.py

Purpose
- Load the effective host options from defaults, environment variables and
  caller overrides.

What should be included in this file
- Precedence logic: overrides > env > defaults.
- Per host type trace sizing variables (``<HOSTTYPE>_LOGSIZE``,
  ``<HOSTTYPE>_LOGRETENTION``).
- Deterministic environment variable coercion.

Functional requirements
- An environment value that is present and parseable wins; anything else
  falls back to the default and is reported in ``HostOptions.warnings``.
- Overrides are validated strictly; a bad override raises ``HostConfigError``.

Non-functional requirements
- Keep loading deterministic and free of side effects.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Final, Literal

from agent_host import constants
from agent_host.shutdown import StartupType

DEFAULT_HOST_TYPE: Final[str] = "Agent"

_BOOLEAN_TRUE: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_BOOLEAN_FALSE: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})
_HOST_TYPE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]*$")


class HostConfigError(ValueError):
    """Raised when host options cannot be built from the given inputs."""


@dataclass(frozen=True, slots=True)
class HostOptions:
    """Effective host configuration."""

    host_type: str = DEFAULT_HOST_TYPE
    bin_dir: Path | None = None
    log_page_size_mb: int = constants.DEFAULT_LOG_PAGE_SIZE_MB
    log_retention_days: int = constants.DEFAULT_LOG_RETENTION_DAYS
    log_file: Path | None = None
    log_level: str = "DEBUG"
    log_to_stderr: bool = False
    trace_queue_size: int = 8192
    http_trace: bool = False
    perf_log_dir: Path | None = None
    fail_closed_masking: bool = False
    startup_type: StartupType = StartupType.MANUAL
    service_manifest: Path | None = None
    warnings: tuple[str, ...] = field(default=(), compare=False)


@dataclass(frozen=True, slots=True)
class _Binding:
    name: str
    env_name: str
    value_type: Literal["int", "bool", "path"]


def load_host_options(
    host_type: str = DEFAULT_HOST_TYPE,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, object] | None = None,
) -> HostOptions:
    """Load effective options with deterministic precedence: overrides > env > defaults."""

    resolved_host_type = _validate_host_type(host_type)
    env_map = dict(os.environ if environ is None else environ)
    warnings: list[str] = []

    values: dict[str, Any] = {"host_type": resolved_host_type}
    for binding in _bindings_for(resolved_host_type):
        raw = env_map.get(binding.env_name)
        if raw is None:
            continue
        coerced = _coerce_env(raw, binding, warnings)
        if coerced is not None:
            values[binding.name] = coerced

    values.update(_validate_overrides(overrides or {}))
    return replace(HostOptions(**values), warnings=tuple(warnings))


def host_env_name(host_type: str, suffix: str) -> str:
    return f"{host_type.upper()}{suffix}"


def _bindings_for(host_type: str) -> tuple[_Binding, ...]:
    return (
        _Binding("log_page_size_mb", host_env_name(host_type, constants.ENV_LOG_SIZE_SUFFIX), "int"),
        _Binding(
            "log_retention_days",
            host_env_name(host_type, constants.ENV_LOG_RETENTION_SUFFIX),
            "int",
        ),
        _Binding("http_trace", constants.ENV_HTTP_TRACE, "bool"),
        _Binding("perf_log_dir", constants.ENV_PERF_LOG, "path"),
    )


def _coerce_env(raw: str, binding: _Binding, warnings: list[str]) -> object | None:
    value = raw.strip()
    if not value:
        return None
    if binding.value_type == "path":
        return Path(value).expanduser()
    if binding.value_type == "int":
        try:
            parsed = int(value)
        except ValueError:
            warnings.append(f"{binding.env_name}={raw!r} is not an integer; using the default")
            return None
        if parsed <= 0:
            warnings.append(f"{binding.env_name}={raw!r} must be > 0; using the default")
            return None
        return parsed

    lowered = value.lower()
    if lowered in _BOOLEAN_TRUE:
        return True
    if lowered in _BOOLEAN_FALSE:
        return False
    warnings.append(
        f"{binding.env_name}={raw!r} is not a boolean (true/false/1/0/yes/no/on/off); "
        "using the default"
    )
    return None


def _validate_overrides(overrides: Mapping[str, object]) -> dict[str, Any]:
    known = {item.name: item for item in fields(HostOptions)}
    validated: dict[str, Any] = {}
    for key in sorted(overrides):
        value = overrides[key]
        if key not in known or key in {"host_type", "warnings"}:
            raise HostConfigError(f"unknown host option override {key!r}")
        if value is None:
            continue
        validated[key] = _coerce_override(key, value)
    return validated


def _coerce_override(key: str, value: object) -> object:
    if key in {"bin_dir", "log_file", "perf_log_dir", "service_manifest"}:
        if not isinstance(value, (str, os.PathLike)):
            raise HostConfigError(f"override {key!r} must be a path")
        return Path(value).expanduser()
    if key in {"log_page_size_mb", "log_retention_days", "trace_queue_size"}:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise HostConfigError(f"override {key!r} must be a positive integer")
        return value
    if key in {"http_trace", "log_to_stderr", "fail_closed_masking"}:
        if not isinstance(value, bool):
            raise HostConfigError(f"override {key!r} must be a boolean")
        return value
    if key == "startup_type":
        try:
            return StartupType(value)
        except ValueError as exc:
            raise HostConfigError(f"override 'startup_type' is invalid: {value!r}") from exc
    if key == "log_level":
        if not isinstance(value, str) or not value.strip():
            raise HostConfigError("override 'log_level' must be a non-empty string")
        return value.strip().upper()
    raise HostConfigError(f"unknown host option override {key!r}")


def _validate_host_type(host_type: str) -> str:
    if not isinstance(host_type, str) or not _HOST_TYPE_PATTERN.fullmatch(host_type.strip()):
        raise HostConfigError(f"invalid host type {host_type!r}")
    return host_type.strip()


__all__ = [
    "DEFAULT_HOST_TYPE",
    "HostConfigError",
    "HostOptions",
    "host_env_name",
    "load_host_options",
]

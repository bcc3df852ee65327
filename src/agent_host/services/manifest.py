"""
agent-host — service manifest loader

File: src/agent_host/services/manifest.py

Purpose
- Build a ``ServiceTable`` from a YAML document instead of decorators.

Manifest shape
```yaml
services:
  agent_host.services.configuration_store:ConfigurationStore:
    default: agent_host.services.configuration_store:JsonConfigurationStore
    windows: my_pkg.stores:RegistryStore
```
A bare string value is shorthand for ``{default: <value>}``.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

import yaml

from agent_host.services.registry import (
    ServiceDescriptor,
    ServiceRegistryError,
    ServiceTable,
    import_object,
)

_PLATFORM_KEYS: Final[tuple[str, ...]] = ("default", "windows", "macos", "linux")


class ServiceManifestError(ServiceRegistryError):
    """Raised when a service manifest cannot be read or is malformed."""


def load_service_manifest(path: Path | str, table: ServiceTable | None = None) -> ServiceTable:
    """Load ``path`` and add its descriptors to ``table`` (a new table by default)."""

    manifest_path = Path(path)
    try:
        with manifest_path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except OSError as exc:
        raise ServiceManifestError(f"unable to read service manifest {manifest_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ServiceManifestError(f"invalid YAML in service manifest {manifest_path}: {exc}") from exc

    return parse_service_manifest(raw, table=table, source=str(manifest_path))


def parse_service_manifest(
    raw: Any,
    *,
    table: ServiceTable | None = None,
    source: str = "<memory>",
) -> ServiceTable:
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ServiceManifestError(f"{source}: manifest root must be a mapping")

    services = raw.get("services", {})
    if services is None:
        services = {}
    if not isinstance(services, Mapping):
        raise ServiceManifestError(f"{source}: 'services' must be a mapping")

    target = table if table is not None else ServiceTable()
    for capability_ref, entry in services.items():
        target.add(_descriptor_from_entry(capability_ref, entry, source))
    return target


def _descriptor_from_entry(capability_ref: Any, entry: Any, source: str) -> ServiceDescriptor:
    if not isinstance(capability_ref, str) or not capability_ref.strip():
        raise ServiceManifestError(f"{source}: capability keys must be non-empty strings")

    if isinstance(entry, str):
        entry = {"default": entry}
    if not isinstance(entry, Mapping):
        raise ServiceManifestError(f"{source}: entry for {capability_ref!r} must be a mapping")

    unknown = sorted(str(key) for key in entry if key not in _PLATFORM_KEYS)
    if unknown:
        raise ServiceManifestError(
            f"{source}: entry for {capability_ref!r} has unknown keys: {', '.join(unknown)}"
        )

    references: dict[str, str | None] = {}
    for key in _PLATFORM_KEYS:
        value = entry.get(key)
        if value is not None and (not isinstance(value, str) or not value.strip()):
            raise ServiceManifestError(
                f"{source}: {capability_ref!r}.{key} must be an import reference string"
            )
        references[key] = value.strip() if isinstance(value, str) else None
    if all(value is None for value in references.values()):
        raise ServiceManifestError(f"{source}: {capability_ref!r} declares no implementation")

    try:
        capability = import_object(capability_ref)
    except ServiceRegistryError as exc:
        raise ServiceManifestError(f"{source}: {exc}") from exc
    if not isinstance(capability, type):
        raise ServiceManifestError(f"{source}: {capability_ref!r} is not a class")

    return ServiceDescriptor(capability=capability, **references)


__all__ = [
    "ServiceManifestError",
    "load_service_manifest",
    "parse_service_manifest",
]

"""Container descriptions and host <-> container path mapping for job isolation."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from agent_host import constants
from agent_host.errors import HostContextError
from agent_host.paths import WellKnownDirectory
from agent_host.services.platform import OSPlatform, coerce_platform
from agent_host.utils.fs import replace_path_prefix

if TYPE_CHECKING:
    from agent_host.observability.tracing import Tracing

DirectoryResolver = Callable[[WellKnownDirectory], str]

_READ_ONLY_FLAGS: Final[frozenset[str]] = frozenset({"ro", "readonly"})
_READ_WRITE_FLAGS: Final[frozenset[str]] = frozenset({"rw"})
_WINDOWS_DRIVE = re.compile(r"^[A-Za-z]:[\\/]")


class ContainerSpecError(HostContextError):
    """Raised when a container resource cannot be turned into a container description."""


@dataclass(frozen=True, slots=True)
class MountVolume:
    """One bind mount. ``source`` is ``None`` for an anonymous volume."""

    source: str | None
    target: str
    read_only: bool = False

    @classmethod
    def parse(cls, spec: str) -> MountVolume:
        """Parse ``"source:target[:ro]"`` (or a bare ``"target"``).

        Drive-letter paths such as ``C:\\data`` are kept whole.
        """

        if not isinstance(spec, str) or not spec.strip():
            raise ContainerSpecError("volume specification must be a non-empty string")
        parts = _split_volume(spec.strip())
        read_only = False
        if len(parts) > 1 and parts[-1].lower() in _READ_ONLY_FLAGS | _READ_WRITE_FLAGS:
            read_only = parts.pop().lower() in _READ_ONLY_FLAGS

        if len(parts) == 1:
            return cls(source=None, target=parts[0], read_only=read_only)
        if len(parts) == 2 and parts[0] and parts[1]:
            return cls(source=parts[0], target=parts[1], read_only=read_only)
        raise ContainerSpecError(f"invalid volume specification {spec!r}")

    def render(self) -> str:
        text = self.target if self.source is None else f"{self.source}:{self.target}"
        return f"{text}:ro" if self.read_only else text


@dataclass(frozen=True, slots=True)
class ContainerResource:
    """Container declared by a pipeline, before host paths are known."""

    alias: str
    image: str
    options: str = ""
    environment: Mapping[str, str] = field(default_factory=dict)
    ports: tuple[str, ...] = ()
    volumes: tuple[str, ...] = ()
    map_docker_socket: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.alias, str) or not self.alias.strip():
            raise ContainerSpecError("container alias must be a non-empty string")
        if not isinstance(self.image, str) or not self.image.strip():
            raise ContainerSpecError(f"container {self.alias!r} must declare an image")


@dataclass(frozen=True, slots=True)
class ContainerInfo:
    """Immutable container description with its host/container path table."""

    container_name: str
    image: str
    network_alias: str
    is_job_container: bool
    map_docker_socket: bool
    platform: OSPlatform
    options: str
    environment: Mapping[str, str]
    ports: tuple[str, ...]
    mount_volumes: tuple[MountVolume, ...]
    path_mappings: Mapping[str, str]

    def translate_to_container_path(self, path: str) -> str:
        for host_prefix, container_prefix in _longest_first(self.path_mappings.items()):
            rewritten = replace_path_prefix(
                path, host_prefix, container_prefix, windows=self.platform.is_windows
            )
            if rewritten is not None:
                return rewritten
        return path

    def translate_to_host_path(self, path: str) -> str:
        reverse = ((target, source) for source, target in self.path_mappings.items())
        for container_prefix, host_prefix in _longest_first(reverse):
            rewritten = replace_path_prefix(
                path, container_prefix, host_prefix, windows=self.platform.is_windows
            )
            if rewritten is not None:
                return rewritten
        return path


class ContainerPathMapper:
    """Builds ``ContainerInfo`` with the default agent mounts for a platform."""

    def __init__(
        self,
        directory_resolver: DirectoryResolver,
        *,
        platform: OSPlatform | str | None = None,
        trace: Tracing | None = None,
    ) -> None:
        self._resolve = directory_resolver
        self._platform = coerce_platform(platform)
        self._trace = trace

    @property
    def platform(self) -> OSPlatform:
        return self._platform

    def default_targets(self) -> tuple[tuple[WellKnownDirectory, str], ...]:
        if self._platform.is_windows:
            return (
                (WellKnownDirectory.TOOLS, constants.WINDOWS_CONTAINER_TOOLS),
                (WellKnownDirectory.WORK, constants.WINDOWS_CONTAINER_WORK),
                (WellKnownDirectory.ROOT, constants.WINDOWS_CONTAINER_ROOT),
            )
        return (
            (WellKnownDirectory.TOOLS, constants.POSIX_CONTAINER_TOOLS),
            (WellKnownDirectory.WORK, constants.POSIX_CONTAINER_WORK),
            (WellKnownDirectory.ROOT, constants.POSIX_CONTAINER_ROOT),
        )

    def create_container_info(
        self,
        container: ContainerResource,
        *,
        is_job_container: bool = True,
    ) -> ContainerInfo:
        # Tools may come from the environment, so it gets its own target.
        mappings: dict[str, str] = {}
        for directory, target in self.default_targets():
            mappings[self._resolve(directory)] = target

        mounts = [MountVolume(source=source, target=target) for source, target in mappings.items()]
        if is_job_container and container.map_docker_socket:
            mounts.append(
                MountVolume(source=constants.DOCKER_SOCKET_PATH, target=constants.DOCKER_SOCKET_PATH)
            )
        mounts.extend(MountVolume.parse(spec) for spec in container.volumes)

        info = ContainerInfo(
            container_name=container.alias,
            image=container.image,
            network_alias=container.alias,
            is_job_container=is_job_container,
            map_docker_socket=container.map_docker_socket,
            platform=self._platform,
            options=container.options,
            environment=MappingProxyType(dict(container.environment)),
            ports=tuple(container.ports),
            mount_volumes=tuple(mounts),
            path_mappings=MappingProxyType(mappings),
        )
        if self._trace is not None:
            self._trace.info(
                "Container '%s' (%s): %d mounts, %d path mappings",
                info.container_name,
                info.image,
                len(info.mount_volumes),
                len(info.path_mappings),
            )
        return info


def _split_volume(spec: str) -> list[str]:
    parts: list[str] = []
    remaining = spec
    while remaining:
        if _WINDOWS_DRIVE.match(remaining):
            index = remaining.find(":", 2)
        else:
            index = remaining.find(":")
        if index < 0:
            parts.append(remaining)
            break
        parts.append(remaining[:index])
        remaining = remaining[index + 1 :]
    return parts


def _longest_first(pairs: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    return sorted(pairs, key=lambda pair: len(pair[0]), reverse=True)


__all__ = [
    "ContainerInfo",
    "ContainerPathMapper",
    "ContainerResource",
    "ContainerSpecError",
    "DirectoryResolver",
    "MountVolume",
]

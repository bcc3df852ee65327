"""Container descriptions for isolated job execution."""

from agent_host.sandbox.containers import (
    ContainerInfo,
    ContainerPathMapper,
    ContainerResource,
    ContainerSpecError,
    MountVolume,
)

__all__ = [
    "ContainerInfo",
    "ContainerPathMapper",
    "ContainerResource",
    "ContainerSpecError",
    "MountVolume",
]

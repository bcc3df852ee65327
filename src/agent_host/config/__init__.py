"""Host option loading."""

from agent_host.config.loader import (
    DEFAULT_HOST_TYPE,
    HostConfigError,
    HostOptions,
    host_env_name,
    load_host_options,
)

__all__ = [
    "DEFAULT_HOST_TYPE",
    "HostConfigError",
    "HostOptions",
    "host_env_name",
    "load_host_options",
]

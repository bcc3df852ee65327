"""Service registry, platform detection and host-provided capabilities."""

from agent_host.services.configuration_store import (
    AgentSettings,
    ConfigurationStore,
    JsonConfigurationStore,
    SettingsFileError,
    read_settings_file,
)
from agent_host.services.manifest import (
    ServiceManifestError,
    load_service_manifest,
    parse_service_manifest,
)
from agent_host.services.platform import OSPlatform, current_platform
from agent_host.services.registry import (
    AgentService,
    ServiceDescriptor,
    ServiceRegistry,
    ServiceRegistryError,
    ServiceTable,
    service_locator,
)

__all__ = [
    "AgentService",
    "AgentSettings",
    "ConfigurationStore",
    "JsonConfigurationStore",
    "OSPlatform",
    "ServiceDescriptor",
    "ServiceManifestError",
    "ServiceRegistry",
    "ServiceRegistryError",
    "ServiceTable",
    "SettingsFileError",
    "current_platform",
    "load_service_manifest",
    "parse_service_manifest",
    "read_settings_file",
    "service_locator",
]
